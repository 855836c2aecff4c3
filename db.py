"""
═══════════════════════════════════════════════════════════
 QueueFlow — Database Layer V1.2.0 (Supabase)
 Shared by customer_app.py and staff_app.py
 All times in UTC
═══════════════════════════════════════════════════════════
"""

import logging
import os
import re
from datetime import date, datetime, timezone, timedelta

import streamlit as st
from supabase import create_client

VER = "V1.2.0"

log = logging.getLogger(__name__)

# ── Timing ──
TICK_SECONDS = 30          # customer ETA refresh
STAFF_REFRESH_SECONDS = 15
CACHE_TTL = 60
MAX_JITTER = 9

def now_utc():
    return datetime.now(timezone.utc)

def today_iso():
    return now_utc().date().isoformat()

# Postgres trims trailing zeros from fractional seconds
_FRACTION = re.compile(r"\.(\d+)")

def parse_ts(value):
    """Parse a Supabase timestamp (ISO string) into an aware datetime."""
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).replace("Z", "+00:00")
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts

# ── Configuration ──
def get_setting(name, default=""):
    """st.secrets first, then the environment."""
    try:
        return st.secrets[name]
    except Exception:
        return os.environ.get(name, default)

def jitter_enabled():
    return str(get_setting("QUEUEFLOW_JITTER", "1")).strip().lower() not in ("0", "false", "no", "off")

def join_link(queue_id):
    base = get_setting("QUEUEFLOW_JOIN_URL", "https://queueflow.app/join")
    return f"{base.rstrip('/')}?queue={queue_id}"

# ── Supabase Connection ──
def get_supabase():
    if "sb_client" not in st.session_state:
        url = get_setting("SUPABASE_URL")
        key = get_setting("SUPABASE_KEY")
        if not url or not key:
            st.error("❌ Missing Supabase credentials.")
            st.stop()
        st.session_state.sb_client = create_client(url, key)
    return st.session_state.sb_client

def _run(action, query):
    """Execute a query builder. Failures are logged and re-raised."""
    try:
        r = query.execute()
    except Exception:
        log.exception("Supabase %s failed", action)
        raise
    log.debug("Supabase %s ok", action)
    return r.data or []

# ═══════════════════════════════════════════════════
#  CACHED LOOKUPS (queues, quests and rewards change rarely)
# ═══════════════════════════════════════════════════
QUEUE_SELECT = "*, locations (id, name, organization_id, organizations (id, name, primary_color, secondary_color))"

@st.cache_data(ttl=CACHE_TTL)
def list_queues_cached(location_id=None):
    sb = get_supabase()
    q = sb.table("queues").select(QUEUE_SELECT).eq("is_active", True)
    if location_id:
        q = q.eq("location_id", location_id)
    return _run("list_queues", q)

def list_queues(location_id=None):
    return list_queues_cached(location_id or get_setting("QUEUEFLOW_LOCATION_ID") or None)

def get_queue(queue_id, queues=None):
    queues = list_queues() if queues is None else queues
    return next((q for q in queues if q["id"] == queue_id), None)

def invalidate_queues():
    list_queues_cached.clear()

def location_name(queue):
    loc = queue.get("locations") or {}
    return loc.get("name", "")

@st.cache_data(ttl=CACHE_TTL)
def list_mini_quests_cached(organization_id=None):
    sb = get_supabase()
    q = sb.table("mini_quests").select("*").eq("is_active", True)
    if organization_id:
        q = q.eq("organization_id", organization_id)
    return _run("list_mini_quests", q)

@st.cache_data(ttl=CACHE_TTL)
def list_xp_rewards_cached(organization_id=None):
    sb = get_supabase()
    q = sb.table("xp_rewards").select("*").eq("is_active", True)
    if organization_id:
        q = q.eq("organization_id", organization_id)
    return _run("list_xp_rewards", q)

def list_mini_quests(organization_id=None):
    return list_mini_quests_cached(organization_id)

def list_xp_rewards(organization_id=None):
    return list_xp_rewards_cached(organization_id)

# ═══════════════════════════════════════════════════
#  QUEUES — WRITES
# ═══════════════════════════════════════════════════
QUEUE_STATUSES = ("active", "paused", "stopped")

def update_queue_status(queue_id, status):
    if status not in QUEUE_STATUSES:
        raise ValueError(f"Unknown queue status: {status}")
    sb = get_supabase()
    _run("update_queue_status", sb.table("queues").update({
        "status": status, "updated_at": now_utc().isoformat()
    }).eq("id", queue_id))
    invalidate_queues()

# ═══════════════════════════════════════════════════
#  TICKETS — READS
# ═══════════════════════════════════════════════════
# Terminal statuses: ticket is done — no more triage actions
TERMINAL = ("served", "cancelled", "no_show")

def list_tickets(queue_id=None):
    sb = get_supabase()
    q = sb.table("tickets").select("*").order("joined_at")
    if queue_id:
        q = q.eq("queue_id", queue_id)
    return _run("list_tickets", q)

def by_status(tickets, status):
    return [t for t in tickets if t.get("status") == status]

def count_waiting(tickets):
    return len(by_status(tickets, "waiting"))

def ticket_counts(tickets):
    return {
        "waiting": count_waiting(tickets),
        "parked": len(by_status(tickets, "parked")),
        "served": len(by_status(tickets, "served")),
        "total": len(tickets),
    }

def next_ticket_number(tickets, prefix="A"):
    return f"{prefix}{len(tickets) + 1:03d}"

# ═══════════════════════════════════════════════════
#  TICKETS — WRITES
# ═══════════════════════════════════════════════════
def create_ticket(fields):
    sb = get_supabase()
    rows = _run("create_ticket", sb.table("tickets").insert(fields))
    return rows[0] if rows else dict(fields)

def update_ticket(ticket_id, **fields):
    """Partial update keyed by ticket id. Only the named fields change."""
    sb = get_supabase()
    fields["updated_at"] = now_utc().isoformat()
    rows = _run("update_ticket", sb.table("tickets").update(fields).eq("id", ticket_id))
    return rows[0] if rows else None

def cancel_ticket(ticket_id):
    """Customer leaves the queue."""
    return update_ticket(ticket_id, status="cancelled")

# ═══════════════════════════════════════════════════
#  CUSTOMERS / XP
# ═══════════════════════════════════════════════════
def level_for(xp):
    return int(xp) // 500 + 1

def create_customer(first_name, total_xp=0):
    sb = get_supabase()
    rows = _run("create_customer", sb.table("customers").insert({
        "first_name": first_name or None,
        "total_xp": total_xp,
        "current_level": level_for(total_xp),
    }))
    return rows[0] if rows else None

def set_customer_xp(customer_id, total_xp):
    sb = get_supabase()
    _run("set_customer_xp", sb.table("customers").update({
        "total_xp": total_xp,
        "current_level": level_for(total_xp),
        "updated_at": now_utc().isoformat(),
    }).eq("id", customer_id))

def record_quest_completion(customer_id, quest_id, ticket_id, xp_earned, completion_data=None):
    sb = get_supabase()
    _run("record_quest_completion", sb.table("quest_completions").insert({
        "customer_id": customer_id, "quest_id": quest_id,
        "ticket_id": ticket_id, "xp_earned": xp_earned,
        "completion_data": completion_data or {},
    }))

def record_purchase(customer_id, reward_id, ticket_id, xp_cost):
    sb = get_supabase()
    _run("record_purchase", sb.table("customer_purchases").insert({
        "customer_id": customer_id, "reward_id": reward_id,
        "ticket_id": ticket_id, "xp_cost": xp_cost,
    }))

# ═══════════════════════════════════════════════════
#  ANALYTICS
# ═══════════════════════════════════════════════════
def get_queue_analytics(queue_id, days=7, today=None):
    sb = get_supabase()
    start = (today or date.today()) - timedelta(days=days)
    q = (sb.table("queue_analytics").select("*")
         .eq("queue_id", queue_id)
         .gte("date", start.isoformat())
         .order("date"))
    return _run("get_queue_analytics", q)

# ═══════════════════════════════════════════════════
#  STATUS CONSTANTS
# ═══════════════════════════════════════════════════
QSTATUS = {
    "active":  {"label": "Active",  "emoji": "🟢", "color": "green"},
    "paused":  {"label": "Paused",  "emoji": "🟡", "color": "yellow"},
    "stopped": {"label": "Stopped", "emoji": "🔴", "color": "red"},
}

STATUS_LABELS = {
    "waiting":   "⏳ Waiting",
    "called":    "📣 Called",
    "served":    "✅ Served",
    "cancelled": "🚫 Cancelled",
    "no_show":   "👻 No-show",
    "parked":    "🅿️ Parked",
}
