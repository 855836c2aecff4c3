"""
═══════════════════════════════════════════════════════════
 QueueFlow — XP, Mini-Quests and Reward Shop
═══════════════════════════════════════════════════════════
"""

from dataclasses import dataclass, field

from db import level_for

STARTING_XP = 125

# Used when the backend has no active rows
DEFAULT_QUESTS = [
    {"id": "1", "title": "Watch Promo Video", "description": "Learn about our new services",
     "quest_type": "video", "xp_reward": 50, "icon": "📺"},
    {"id": "2", "title": "Complete Survey", "description": "Help us improve our service",
     "quest_type": "survey", "xp_reward": 75, "icon": "📝"},
    {"id": "3", "title": "NBA Trivia Quiz", "description": "Test your basketball knowledge",
     "quest_type": "trivia", "xp_reward": 60, "icon": "🏀"},
    {"id": "4", "title": "Follow Social Media", "description": "Stay updated with our news",
     "quest_type": "social", "xp_reward": 25, "icon": "📱"},
]

DEFAULT_REWARDS = [
    {"id": "1", "title": "10% Service Discount", "description": "Save on your next transaction",
     "cost": 200, "reward_type": "discount", "icon": "🎁", "effect_data": {"percent": 10}},
    {"id": "2", "title": "Skip 3 Places", "description": "Move ahead in the queue",
     "cost": 150, "reward_type": "skip", "icon": "🚀", "effect_data": {"places": 3}},
    {"id": "3", "title": "Golden Ticket Skin", "description": "Customize your ticket appearance",
     "cost": 100, "reward_type": "cosmetic", "icon": "🎨", "effect_data": {}},
    {"id": "4", "title": "Free Coffee Voucher", "description": "Enjoy complimentary refreshments",
     "cost": 75, "reward_type": "voucher", "icon": "☕", "effect_data": {"item": "coffee"}},
]

REWARD_CATEGORY = {"discount": "discount", "voucher": "discount", "skip": "boost", "cosmetic": "cosmetic"}


def quests_or_default(rows):
    return rows or DEFAULT_QUESTS

def rewards_or_default(rows):
    return rows or DEFAULT_REWARDS


@dataclass
class Wallet:
    xp: int = STARTING_XP
    completed: set = field(default_factory=set)
    golden_ticket: bool = False
    discounts: list = field(default_factory=list)
    vouchers: list = field(default_factory=list)

    @property
    def level(self):
        return level_for(self.xp)

    def can_afford(self, reward):
        return self.xp >= reward.get("cost", 0)

    def complete_quest(self, quest):
        """Returns (ok, message). Each quest pays out once."""
        if not quest:
            return False, "Unknown quest"
        if quest["id"] in self.completed:
            return False, f"{quest['title']} already completed"
        self.completed.add(quest["id"])
        self.xp += quest.get("xp_reward", 0)
        return True, f"Quest completed! +{quest.get('xp_reward', 0)} XP"

    def purchase(self, reward, session=None):
        """Spend XP and apply the reward's effect. Returns (ok, messages)."""
        if not reward:
            return False, ["Unknown reward"]
        if not self.can_afford(reward):
            return False, ["Insufficient XP"]

        self.xp -= reward["cost"]
        effect = reward.get("effect_data") or {}
        kind = reward.get("reward_type")
        msgs = []
        if kind == "discount":
            pct = effect.get("percent", 10)
            self.discounts.append(pct)
            msgs.append(f"{pct}% discount applied to your next service!")
        elif kind == "skip":
            skipped = session.skip_places(effect.get("places", 3)) if session else 0
            msgs.append(f"You skipped {skipped} places in the queue!")
        elif kind == "cosmetic":
            self.golden_ticket = True
            msgs.append("Golden ticket skin activated!")
        elif kind == "voucher":
            self.vouchers.append(effect.get("item", reward["title"]))
            msgs.append(f"{reward['title']} added to your account!")
        msgs.append(f"{reward['title']} purchased!")
        return True, msgs


# ═══════════════════════════════════════════════════
#  QUEST CONTENT
# ═══════════════════════════════════════════════════
VIDEO_SECONDS = 15

TRIVIA_QUESTIONS = [
    {"question": "Which team has won the most NBA championships?",
     "options": ["Los Angeles Lakers", "Boston Celtics", "Chicago Bulls", "Golden State Warriors"],
     "correct": 1},
    {"question": "Who holds the record for most points scored in a single NBA game?",
     "options": ["Kobe Bryant", "Michael Jordan", "Wilt Chamberlain", "LeBron James"],
     "correct": 2},
    {"question": "What does NBA stand for?",
     "options": ["National Basketball Association", "North Basketball Alliance",
                 "National Ball Association", "New Basketball Association"],
     "correct": 0},
    {"question": "Which player is known as 'The King'?",
     "options": ["Michael Jordan", "Kobe Bryant", "LeBron James", "Stephen Curry"],
     "correct": 2},
    {"question": "How many teams are currently in the NBA?",
     "options": ["28", "30", "32", "34"],
     "correct": 1},
]

SURVEY_QUESTIONS = [
    {"key": "rating", "question": "How would you rate your overall experience?",
     "options": ["Excellent", "Good", "Fair", "Poor"], "required": True},
    {"key": "valuable_feature", "question": "What feature do you find most valuable?",
     "options": ["Real-time updates", "XP rewards", "Queue position tracking", "Mini-quests"],
     "required": True},
    {"key": "recommendation", "question": "How likely are you to recommend us to others?",
     "options": ["Very likely", "Likely", "Neutral", "Unlikely", "Very unlikely"], "required": True},
    {"key": "email", "question": "Your email address (optional)", "options": [], "required": False},
    {"key": "feedback", "question": "Any additional feedback or suggestions?", "options": [], "required": False},
]

SOCIAL_PLATFORMS = [
    {"id": "twitter", "name": "Twitter", "handle": "@queueflow", "icon": "🐦",
     "url": "https://twitter.com/queueflow"},
    {"id": "instagram", "name": "Instagram", "handle": "@queueflow.app", "icon": "📸",
     "url": "https://instagram.com/queueflow.app"},
    {"id": "linkedin", "name": "LinkedIn", "handle": "queueflow", "icon": "💼",
     "url": "https://linkedin.com/company/queueflow"},
]
MIN_SOCIAL_FOLLOWS = 2

def score_trivia(answers):
    """answers: {question index: option index}."""
    return sum(1 for i, q in enumerate(TRIVIA_QUESTIONS) if answers.get(i) == q["correct"])

def trivia_verdict(score):
    if score >= 3:
        return "Excellent!"
    if score >= 2:
        return "Good Job!"
    return "Keep Learning!"

def survey_missing(answers):
    """Required questions left unanswered."""
    return [q["question"] for q in SURVEY_QUESTIONS
            if q["required"] and not (answers.get(q["key"]) or "").strip()]

def social_complete(followed):
    return len(set(followed)) >= MIN_SOCIAL_FOLLOWS

def quest_for_type(quests, quest_type):
    return next((q for q in quests if q.get("quest_type") == quest_type), None)
