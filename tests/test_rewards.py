from estimator import start_session
from rewards import (
    DEFAULT_QUESTS, DEFAULT_REWARDS, STARTING_XP, TRIVIA_QUESTIONS, Wallet,
    quest_for_type, quests_or_default, rewards_or_default,
    score_trivia, social_complete, survey_missing, trivia_verdict,
)

from conftest import T0


def reward(kind):
    return next(r for r in DEFAULT_REWARDS if r["reward_type"] == kind)


def test_new_wallet_starts_at_level_one():
    w = Wallet()
    assert w.xp == STARTING_XP
    assert w.level == 1


def test_level_boundaries():
    assert Wallet(xp=499).level == 1
    assert Wallet(xp=500).level == 2
    assert Wallet(xp=1250).level == 3


def test_quest_pays_once():
    w = Wallet(xp=0)
    quest = quest_for_type(DEFAULT_QUESTS, "survey")
    assert w.complete_quest(quest) == (True, "Quest completed! +75 XP")
    ok, msg = w.complete_quest(quest)
    assert not ok
    assert w.xp == 75


def test_unknown_quest_rejected():
    assert Wallet().complete_quest(None) == (False, "Unknown quest")


def test_insufficient_xp_changes_nothing():
    w = Wallet(xp=100)
    s = start_session(4, 5, now=T0)
    ok, msgs = w.purchase(reward("skip"), s)
    assert not ok
    assert msgs == ["Insufficient XP"]
    assert w.xp == 100
    assert s.current_ahead == 5


def test_skip_reward_moves_session_forward():
    w = Wallet(xp=200)
    s = start_session(4, 5, now=T0)
    ok, msgs = w.purchase(reward("skip"), s)
    assert ok
    assert w.xp == 50
    assert s.current_ahead == 2
    assert s.baseline_ahead == 2
    assert msgs == ["You skipped 3 places in the queue!", "Skip 3 Places purchased!"]


def test_skip_reward_near_front_reports_actual_places():
    w = Wallet(xp=200)
    s = start_session(4, 1, now=T0)
    ok, msgs = w.purchase(reward("skip"), s)
    assert msgs[0] == "You skipped 1 places in the queue!"
    assert s.current_ahead == 0


def test_other_effects():
    w = Wallet(xp=1000)
    w.purchase(reward("cosmetic"))
    w.purchase(reward("discount"))
    w.purchase(reward("voucher"))
    assert w.golden_ticket
    assert w.discounts == [10]
    assert w.vouchers == ["coffee"]
    assert w.xp == 1000 - 100 - 200 - 75


def test_defaults_only_when_backend_empty():
    rows = [{"id": "x", "title": "Custom", "quest_type": "video", "xp_reward": 5}]
    assert quests_or_default([]) is DEFAULT_QUESTS
    assert quests_or_default(rows) is rows
    assert rewards_or_default(None) is DEFAULT_REWARDS


def test_trivia_scoring():
    perfect = {i: q["correct"] for i, q in enumerate(TRIVIA_QUESTIONS)}
    assert score_trivia(perfect) == len(TRIVIA_QUESTIONS)
    assert score_trivia({}) == 0
    assert trivia_verdict(3) == "Excellent!"
    assert trivia_verdict(2) == "Good Job!"
    assert trivia_verdict(1) == "Keep Learning!"


def test_survey_requires_first_three():
    assert len(survey_missing({})) == 3
    answers = {"rating": "Good", "valuable_feature": "XP rewards", "recommendation": "Likely"}
    assert survey_missing(answers) == []


def test_social_needs_two_follows():
    assert not social_complete({"twitter"})
    assert social_complete({"twitter", "linkedin"})
