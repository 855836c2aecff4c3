"""
═══════════════════════════════════════════════════════════
 QueueFlow — Staff Console V1.2.0
═══════════════════════════════════════════════════════════
"""

import logging

import streamlit as st
from streamlit_autorefresh import st_autorefresh

import db
from db import VER, STAFF_REFRESH_SECONDS, QSTATUS, QUEUE_STATUSES, STATUS_LABELS, now_utc
from history import ActionHistory, serve, skip, hold, requeue

log = logging.getLogger(__name__)

st.set_page_config(page_title="QueueFlow Staff", page_icon="🛡️", layout="centered")

st.markdown("""<style>
.qf-header{background:linear-gradient(135deg,#1f2937,#374151);color:#fff!important;padding:18px 22px;border-radius:12px;margin-bottom:16px}
.qf-header h2{margin:0;font-size:22px;color:#fff!important}
.qf-header p{margin:4px 0 0;opacity:.75;font-size:13px;color:#fff!important}
.qf-card{background:var(--secondary-background-color,#fff);color:var(--text-color,#1a1a2e);border-radius:10px;padding:14px;margin-bottom:10px;border:1px solid rgba(128,128,128,.15)}
.qf-metric{text-align:center;padding:12px 8px;border-radius:10px;background:var(--secondary-background-color,#f5f5f5);border:1px solid rgba(128,128,128,.1)}
.qf-metric .val{font-size:26px;font-weight:900;line-height:1.2}
.qf-metric .lbl{font-size:12px;opacity:.8;margin-top:4px;font-weight:600}
.stButton>button{border-radius:8px;font-weight:700}
</style>""", unsafe_allow_html=True)

# ── Auto-refresh re-fetches tickets (stands in for realtime change feed) ──
st_autorefresh(interval=STAFF_REFRESH_SECONDS * 1000, limit=None, key="staff_ar")

# ── Session state ──
for k, v in {"staff_view": "queues", "queue_id": None, "histories": {}, "notices": []}.items():
    if k not in st.session_state:
        st.session_state[k] = v

def go(view):
    st.session_state.staff_view = view
    st.rerun()

def notify(msg, icon="✅"):
    st.session_state.notices.append((msg, icon))

for _msg, _icon in st.session_state.notices:
    st.toast(_msg, icon=_icon)
st.session_state.notices = []

def history_for(queue_id):
    hs = st.session_state.histories
    if queue_id not in hs:
        hs[queue_id] = ActionHistory()
    return hs[queue_id]

def triage(op, *args):
    """Run a staff operation; store failures become a notice, nothing is recorded."""
    try:
        ok, msg = op(*args)
    except Exception as e:
        log.error("Staff action failed: %s", e)
        notify(f"Update failed: {e}", "❌")
    else:
        notify(msg, "✅" if ok else "⚠️")
    st.rerun()

now = now_utc()

try:
    queues = db.list_queues()
except Exception as e:
    st.error(f"❌ Could not load queues: {e}")
    st.stop()

# ═══════════════════════════════════════════════════
#  HEADER
# ═══════════════════════════════════════════════════
st.markdown(f"""<div class="qf-header">
    <div style="display:flex;justify-content:space-between;align-items:center;">
        <div><h2>🛡️ Staff Console</h2><p>QueueFlow · {VER}</p></div>
        <div style="text-align:right;font-size:12px;opacity:.8;">
            {now.strftime('%H:%M')} UTC<br/>{db.today_iso()}</div>
    </div></div>""", unsafe_allow_html=True)

st.caption(f"🔄 Auto {STAFF_REFRESH_SECONDS}s · {len(queues)} queues")

view = st.session_state.staff_view

# ═══════════════════════════════════════════════════
#  QUEUES LIST
# ═══════════════════════════════════════════════════
if view == "queues":
    st.subheader("📋 Queues")
    if not queues:
        st.info("No active queues for this location.")
    for q in queues:
        sm = QSTATUS.get(q.get("status", "active"), QSTATUS["active"])
        try:
            waiting = db.count_waiting(db.list_tickets(q["id"]))
        except Exception:
            waiting = "?"
        st.markdown(f"""<div class="qf-card">
            <strong>{q['name']}</strong> <span style="font-size:12px;">{sm['emoji']} {sm['label']}</span><br/>
            <span style="font-size:13px;opacity:.7;">📍 {db.location_name(q)} · 👥 {waiting} waiting · ⏱ {q.get('avg_service_time', 0)} min avg</span>
        </div>""", unsafe_allow_html=True)
        c1, c2 = st.columns(2)
        with c1:
            if st.button("Manage", key=f"manage_{q['id']}", type="primary", use_container_width=True):
                st.session_state.queue_id = q["id"]
                go("manage")
        with c2:
            if st.button("🔗 Share link", key=f"link_{q['id']}", use_container_width=True):
                st.session_state[f"show_link_{q['id']}"] = True
                notify(f"Link ready for {q['name']}", "🔗")
                st.rerun()
        if st.session_state.get(f"show_link_{q['id']}"):
            st.code(db.join_link(q["id"]), language=None)

# ═══════════════════════════════════════════════════
#  QUEUE MANAGEMENT
# ═══════════════════════════════════════════════════
elif view == "manage":
    queue = db.get_queue(st.session_state.queue_id, queues)
    if not queue:
        st.error("❌ Queue not found.")
        if st.button("← Back to queues"):
            go("queues")
        st.stop()

    if st.button("← Back to queues"):
        go("queues")

    try:
        tickets = db.list_tickets(queue["id"])
    except Exception as e:
        st.error(f"❌ Could not load tickets: {e}")
        st.stop()

    hist = history_for(queue["id"])
    counts = db.ticket_counts(tickets)
    status = queue.get("status", "active")
    sm = QSTATUS.get(status, QSTATUS["active"])

    st.subheader(f"{queue['name']} · {sm['emoji']} {sm['label']}")

    # ── Queue status ──
    cols = st.columns(len(QUEUE_STATUSES))
    for i, s in enumerate(QUEUE_STATUSES):
        with cols[i]:
            lbl = f"{QSTATUS[s]['emoji']} {QSTATUS[s]['label']}"
            if st.button(lbl, key=f"qs_{s}", use_container_width=True,
                         type="primary" if s == status else "secondary", disabled=s == status):
                try:
                    db.update_queue_status(queue["id"], s)
                except Exception as e:
                    notify(f"Could not update queue status: {e}", "❌")
                else:
                    notify(f"Queue {QSTATUS[s]['label'].lower()}")
                st.rerun()

    # ── Counts ──
    m = st.columns(4)
    for col, (key, lbl) in zip(m, [("waiting", "Waiting"), ("parked", "Parked"),
                                   ("served", "Served"), ("total", "Total")]):
        with col:
            st.markdown(f'<div class="qf-metric"><div class="val">{counts[key]}</div><div class="lbl">{lbl}</div></div>', unsafe_allow_html=True)

    # ── Undo ──
    last = hist.last
    undo_lbl = f"↩️ Undo {last.kind.value} · {last.ticket.get('ticket_number', '')}" if last else "↩️ Undo"
    if st.button(undo_lbl, use_container_width=True):
        try:
            rec, msg = hist.undo(db.update_ticket)
        except Exception as e:
            log.error("Undo failed: %s", e)
            notify(f"Undo failed: {e}", "❌")
        else:
            notify(msg, "↩️" if rec else "⚠️")
        st.rerun()
    st.caption(f"{len(hist)} action(s) in history · only the most recent can be undone")

    # ── Waiting roster ──
    st.markdown("---")
    waiting = db.by_status(tickets, "waiting")
    st.markdown(f"**⏳ Waiting ({len(waiting)})**")
    if status != "active":
        st.info(f"{sm['emoji']} Queue is {sm['label'].lower()}.")
    for t in waiting:
        st.markdown(f"""<div class="qf-card">
            <b style="font-family:monospace;">{t.get('ticket_number', '')}</b> · {t.get('customer_name', '')}<br/>
            <span style="font-size:12px;opacity:.7;">{t.get('purpose', '')} · waited {t.get('actual_wait_time', 0)} min · est {t.get('estimated_wait_time', 0)} min</span>
        </div>""", unsafe_allow_html=True)
        c1, c2, c3 = st.columns(3)
        with c1:
            if st.button("✅ Serve", key=f"serve_{t['id']}", use_container_width=True, type="primary"):
                triage(serve, hist, t, db.update_ticket)
        with c2:
            if st.button("🚫 No-show", key=f"skip_{t['id']}", use_container_width=True):
                triage(skip, hist, t, db.update_ticket)
        with c3:
            if st.button("🅿️ Park", key=f"hold_{t['id']}", use_container_width=True):
                triage(hold, hist, t, db.update_ticket)

    # ── Parked roster ──
    parked = db.by_status(tickets, "parked")
    with st.expander(f"🅿️ Parked ({len(parked)})", expanded=bool(parked)):
        if not parked:
            st.caption("Nobody parked.")
        for t in parked:
            c1, c2 = st.columns([4, 2])
            with c1:
                st.markdown(f"**{t.get('ticket_number', '')}** · {t.get('customer_name', '')}  \n{STATUS_LABELS['parked']}")
            with c2:
                if st.button("🔄 Re-queue", key=f"rq_{t['id']}", use_container_width=True):
                    triage(requeue, t, db.update_ticket)

    # ── Analytics ──
    with st.expander("📊 Last 7 days"):
        try:
            rows = db.get_queue_analytics(queue["id"], days=7)
        except Exception as e:
            rows = []
            st.error(f"❌ Could not load analytics: {e}")
        if rows:
            st.dataframe([{
                "Date": r.get("date"), "Tickets": r.get("total_tickets", 0),
                "Served": r.get("served_tickets", 0), "Cancelled": r.get("cancelled_tickets", 0),
                "No-show": r.get("no_show_tickets", 0), "Avg wait": r.get("avg_wait_time", 0),
                "Max wait": r.get("max_wait_time", 0), "Peak": r.get("peak_queue_length", 0),
                "XP earned": r.get("total_xp_earned", 0),
            } for r in rows], use_container_width=True, hide_index=True)
        else:
            st.caption("No analytics yet.")

# ═══════════════════════════════════════════════════
#  FOOTER
# ═══════════════════════════════════════════════════
st.markdown("---")
st.markdown(f"""<div style="text-align:center;font-size:10px;opacity:.3;padding:8px;">
    QueueFlow Staff {VER}
</div>""", unsafe_allow_html=True)
