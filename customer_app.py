"""
═══════════════════════════════════════════════════════════
 QueueFlow — Customer Portal V1.2.0 (Public)
═══════════════════════════════════════════════════════════
"""

import logging
import time

import streamlit as st
from streamlit_autorefresh import st_autorefresh

import db
from db import VER, TICK_SECONDS, QSTATUS, STATUS_LABELS, TERMINAL, now_utc
from estimator import join_queue, draw_jitter
from ticker import TickSchedule
from rewards import (
    Wallet, STARTING_XP, REWARD_CATEGORY, VIDEO_SECONDS,
    TRIVIA_QUESTIONS, SURVEY_QUESTIONS, SOCIAL_PLATFORMS, MIN_SOCIAL_FOLLOWS,
    quests_or_default, rewards_or_default, quest_for_type,
    score_trivia, trivia_verdict, survey_missing, social_complete,
)

log = logging.getLogger(__name__)

st.set_page_config(page_title="QueueFlow", page_icon="🎟️", layout="centered")

st.markdown("""<style>
.qf-header{background:linear-gradient(135deg,#1f2937,#ff6b5b);color:#fff!important;padding:18px 22px;border-radius:12px;margin-bottom:16px}
.qf-header h2{margin:0;font-size:22px;color:#fff!important}
.qf-header p{margin:4px 0 0;opacity:.75;font-size:13px;color:#fff!important}
.qf-card{background:var(--secondary-background-color,#fff);color:var(--text-color,#1a1a2e);border-radius:10px;padding:16px;margin-bottom:12px;border:1px solid rgba(128,128,128,.15)}
.qf-metric{text-align:center;padding:14px 8px;border-radius:10px;background:var(--secondary-background-color,#f5f5f5);border:1px solid rgba(128,128,128,.1)}
.qf-metric .val{font-size:30px;font-weight:900;line-height:1.2}
.qf-metric .lbl{font-size:12px;opacity:.8;margin-top:4px;font-weight:600}
.qf-ticket{font-family:monospace;font-size:40px;font-weight:900;text-align:center}
.qf-gold{color:#eab308;text-shadow:0 0 10px rgba(255,215,0,.5)}
.stButton>button{border-radius:8px;font-weight:700}
</style>""", unsafe_allow_html=True)

# ── Auto-refresh drives the ETA tick ──
st_autorefresh(interval=TICK_SECONDS * 1000, limit=None, key="customer_ar")

# ── Session state ──
for k, v in {"screen": "select_queue", "queue_id": None, "qsession": None,
             "tick": None, "wallet": None, "customer": None, "notices": [],
             "social": set(), "left_status": None}.items():
    if k not in st.session_state:
        st.session_state[k] = v

def go(scr):
    st.session_state.screen = scr
    st.rerun()

def notify(msg, icon="✅"):
    st.session_state.notices.append((msg, icon))

for _msg, _icon in st.session_state.notices:
    st.toast(_msg, icon=_icon)
st.session_state.notices = []

def end_session():
    if st.session_state.tick:
        st.session_state.tick.cancel()
    st.session_state.qsession = None
    st.session_state.tick = None
    st.session_state.social = set()

def save_xp():
    cust = st.session_state.customer
    if not cust:
        return
    try:
        db.set_customer_xp(cust["id"], st.session_state.wallet.xp)
    except Exception as e:
        st.error(f"❌ Could not save XP: {e}")

# ── Preselect from share link ──
_qp = st.query_params.get("queue")
if _qp and "link_used" not in st.session_state:
    st.session_state.queue_id = _qp
    st.session_state.link_used = True

# ── Load data ──
try:
    queues = db.list_queues()
except Exception as e:
    st.error(f"❌ Could not load queues: {e}")
    st.stop()

queue = db.get_queue(st.session_state.queue_id, queues) if st.session_state.queue_id else None
org_id = ((queue or {}).get("locations") or {}).get("organization_id")
quest_rows = db.list_mini_quests(org_id) if queue else []
reward_rows = db.list_xp_rewards(org_id) if queue else []
quests = quests_or_default(quest_rows)
rewards = rewards_or_default(reward_rows)

sess = st.session_state.qsession
wallet = st.session_state.wallet
screen = st.session_state.screen
now = now_utc()

# ═══════════════════════════════════════════════════
#  TICK (at most once per TICK_SECONDS)
# ═══════════════════════════════════════════════════
if sess and st.session_state.tick:
    sched = st.session_state.tick
    if not sess.active:
        sched.cancel()
    try:
        if sched.run_due(sess.tick, now):
            db.update_ticket(sess.ticket["id"],
                             estimated_wait_time=round(sess.current_wait),
                             actual_wait_time=sess.ticket.get("actual_wait_time") or 0)
    except Exception as e:
        log.warning("ETA refresh not saved: %s", e)
        st.warning("⚠️ Live estimate not saved. It will retry on the next update.")

# ── Staff may have served/cancelled us ──
if sess and screen not in ("select_queue", "join"):
    try:
        fresh = next((t for t in db.list_tickets(sess.ticket["queue_id"])
                      if t.get("id") == sess.ticket.get("id")), None)
    except Exception:
        fresh = None
    if fresh and fresh.get("status") in TERMINAL:
        st.session_state.left_status = fresh["status"]
        end_session()
        go("done")

# ═══════════════════════════════════════════════════
#  HEADER
# ═══════════════════════════════════════════════════
_sub = f"{queue['name']} · {db.location_name(queue)}" if queue else "Virtual queue"
st.markdown(f"""<div class="qf-header">
    <div style="display:flex;justify-content:space-between;align-items:center;">
        <div><h2>🎟️ QueueFlow</h2><p>{_sub} · {VER}</p></div>
        <div style="text-align:right;font-size:13px;opacity:.8;">
            {now.strftime('%b %d, %Y')}<br/>{now.strftime('%H:%M')} UTC</div>
    </div></div>""", unsafe_allow_html=True)

# ═══════════════════════════════════════════════════
#  SELECT QUEUE
# ═══════════════════════════════════════════════════
if screen == "select_queue":
    st.subheader("Choose a queue")
    if not queues:
        st.info("No open queues right now.")
    for q in queues:
        sm = QSTATUS.get(q.get("status", "active"), QSTATUS["active"])
        c1, c2 = st.columns([5, 1])
        with c1:
            if st.button(f"{q['name']}", key=f"q_{q['id']}", use_container_width=True,
                         disabled=q.get("status") == "stopped"):
                st.session_state.queue_id = q["id"]
                go("join")
        with c2:
            st.markdown(f"<div style='text-align:center;font-size:20px;'>{sm['emoji']}</div>", unsafe_allow_html=True)
        st.caption(f"📍 {db.location_name(q)} · ~{q.get('avg_service_time', 0)} min per person")
    if queue:
        go("join")

# ═══════════════════════════════════════════════════
#  JOIN
# ═══════════════════════════════════════════════════
elif screen == "join":
    if not queue:
        st.session_state.queue_id = None
        go("select_queue")
    try:
        tickets = db.list_tickets(queue["id"])
    except Exception as e:
        st.error(f"❌ Could not load the queue: {e}")
        st.stop()
    waiting = db.count_waiting(tickets)
    stopped = queue.get("status") == "stopped"

    m1, m2 = st.columns(2)
    with m1:
        st.markdown(f'<div class="qf-metric"><div class="val">👥 {waiting}</div><div class="lbl">Waiting</div></div>', unsafe_allow_html=True)
    with m2:
        st.markdown(f'<div class="qf-metric"><div class="val">⏱ ~{queue.get("avg_service_time", 0) * waiting}</div><div class="lbl">Est. Minutes</div></div>', unsafe_allow_html=True)

    if stopped:
        st.warning("🔴 This queue is not accepting customers right now.")
    elif queue.get("status") == "paused":
        st.info("🟡 Service is paused. You can still join; your place is kept.")

    with st.form("join_form"):
        name = st.text_input("Your name", value="")
        purpose = st.text_input("Purpose of visit", value="Service request")
        if st.form_submit_button("🎟️ Join Queue", type="primary", use_container_width=True, disabled=stopped):
            try:
                if not st.session_state.customer:
                    st.session_state.customer = db.create_customer(name.strip(), total_xp=STARTING_XP)
                cust = st.session_state.customer or {}
                jitter = draw_jitter() if db.jitter_enabled() else 0
                sess = join_queue(queue, tickets, db.create_ticket,
                                  customer_name=name.strip() or "You",
                                  purpose=purpose.strip() or "Service request",
                                  customer_id=cust.get("id"), jitter=jitter, now=now)
            except Exception as e:
                log.error("Join failed: %s", e)
                st.error(f"❌ Could not join the queue: {e}")
            else:
                st.session_state.qsession = sess
                st.session_state.tick = TickSchedule()
                st.session_state.tick.start(now)
                if st.session_state.wallet is None:
                    st.session_state.wallet = Wallet(xp=cust.get("total_xp") or STARTING_XP)
                notify("Successfully joined the queue!")
                go("waiting")

    if st.button("← Other queues"):
        st.session_state.queue_id = None
        go("select_queue")

# ═══════════════════════════════════════════════════
#  WAITING ROOM
# ═══════════════════════════════════════════════════
elif screen == "waiting":
    if not sess:
        go("select_queue")
    t = sess.ticket
    cls = "qf-ticket qf-gold" if wallet.golden_ticket else "qf-ticket"
    st.markdown(f'<div class="qf-card"><div style="font-size:11px;opacity:.5;text-align:center;">YOUR TICKET</div><div class="{cls}">{t.get("ticket_number", "")}</div></div>', unsafe_allow_html=True)

    if sess.position == 1:
        st.success("🎉 You're next! Please head to the counter.")

    m1, m2, m3 = st.columns(3)
    with m1:
        st.markdown(f'<div class="qf-metric"><div class="val">#{sess.position}</div><div class="lbl">Position</div></div>', unsafe_allow_html=True)
    with m2:
        st.markdown(f'<div class="qf-metric"><div class="val">{round(sess.current_wait)}m</div><div class="lbl">Est. Wait</div></div>', unsafe_allow_html=True)
    with m3:
        st.markdown(f'<div class="qf-metric"><div class="val">{wallet.xp}</div><div class="lbl">XP · Lv {wallet.level}</div></div>', unsafe_allow_html=True)

    st.progress(min(1.0, (wallet.xp % 500) / 500), text=f"{500 - wallet.xp % 500} XP to level {wallet.level + 1}")

    perks = [f"🎁 {p}% discount on your next service" for p in wallet.discounts]
    perks += [f"☕ Free {v} voucher" for v in wallet.vouchers]
    if perks:
        st.info("**Your perks**  \n" + "  \n".join(perks))

    done = len([q for q in quests if q["id"] in wallet.completed])
    st.subheader(f"🏆 Mini-Quests ({done}/{len(quests)})")
    for q in quests:
        c1, c2 = st.columns([5, 2])
        with c1:
            st.markdown(f"**{q.get('icon', '⭐')} {q['title']}** · +{q.get('xp_reward', 0)} XP  \n{q.get('description', '')}")
        with c2:
            if q["id"] in wallet.completed:
                st.markdown("✅ Done")
            elif st.button("Start", key=f"quest_{q['id']}", use_container_width=True):
                go(f"quest_{q.get('quest_type')}")

    c1, c2 = st.columns(2)
    with c1:
        if st.button("🛍️ XP Shop", use_container_width=True, type="primary"):
            go("shop")
    with c2:
        if st.button("🚪 Leave Queue", use_container_width=True):
            go("leave")

    st.caption(f"🔄 Updates every {TICK_SECONDS}s · Waited {t.get('actual_wait_time', 0)} min")

# ═══════════════════════════════════════════════════
#  QUESTS
# ═══════════════════════════════════════════════════
elif screen.startswith("quest_"):
    qtype = screen[len("quest_"):]
    quest = quest_for_type(quests, qtype)
    if not sess or not quest:
        go("waiting")

    def finish(data=None):
        ok, msg = wallet.complete_quest(quest)
        if ok:
            save_xp()
            cust = st.session_state.customer
            if cust and quest_rows:
                try:
                    db.record_quest_completion(cust["id"], quest["id"], sess.ticket["id"],
                                               quest.get("xp_reward", 0), data)
                except Exception as e:
                    log.warning("Quest completion not recorded: %s", e)
        notify(msg, "🏆" if ok else "ℹ️")
        go("waiting")

    if st.button("← Back"):
        go("waiting")
    st.subheader(f"{quest.get('icon', '')} {quest['title']}")

    if qtype == "video":
        st.caption(quest.get("description", ""))
        if st.button("▶️ Play", type="primary"):
            bar = st.progress(0, text="Playing…")
            for i in range(VIDEO_SECONDS):
                time.sleep(1)
                bar.progress((i + 1) / VIDEO_SECONDS, text="Playing…")
            finish({"watched_seconds": VIDEO_SECONDS})

    elif qtype == "survey":
        with st.form("survey"):
            answers = {}
            for q in SURVEY_QUESTIONS:
                if q["options"]:
                    answers[q["key"]] = st.radio(q["question"], q["options"], index=None)
                elif q["key"] == "feedback":
                    answers[q["key"]] = st.text_area(q["question"])
                else:
                    answers[q["key"]] = st.text_input(q["question"])
            if st.form_submit_button("Submit", type="primary"):
                missing = survey_missing(answers)
                if missing:
                    for m in missing:
                        st.error(f"❌ Please answer: {m}")
                else:
                    finish({**answers, "submitted_at": now.isoformat()})

    elif qtype == "trivia":
        with st.form("trivia"):
            picks = {}
            for i, q in enumerate(TRIVIA_QUESTIONS):
                choice = st.radio(q["question"], q["options"], index=None, key=f"tq_{i}")
                if choice is not None:
                    picks[i] = q["options"].index(choice)
            if st.form_submit_button("Submit answers", type="primary"):
                if len(picks) < len(TRIVIA_QUESTIONS):
                    st.error("❌ Answer every question first.")
                else:
                    score = score_trivia(picks)
                    notify(f"You scored {score} out of {len(TRIVIA_QUESTIONS)}. {trivia_verdict(score)}", "🏀")
                    finish({"score": score})

    elif qtype == "social":
        followed = st.session_state.social
        for p in SOCIAL_PLATFORMS:
            c1, c2 = st.columns([4, 2])
            with c1:
                st.markdown(f"**{p['icon']} {p['name']}** · {p['handle']}")
            with c2:
                if p["id"] in followed:
                    st.markdown("✅ Following")
                else:
                    st.link_button("Follow", p["url"], use_container_width=True)
            if p["id"] not in followed and st.checkbox(f"I followed {p['name']}", key=f"soc_{p['id']}"):
                followed.add(p["id"])
                st.rerun()
        st.caption(f"Follow at least {MIN_SOCIAL_FOLLOWS} accounts to complete this quest.")
        if st.button("Complete quest", type="primary", disabled=not social_complete(followed)):
            finish({"followed": sorted(followed)})

# ═══════════════════════════════════════════════════
#  XP SHOP
# ═══════════════════════════════════════════════════
elif screen == "shop":
    if not sess:
        go("select_queue")
    if st.button("← Back to Waiting Room"):
        go("waiting")
    st.subheader(f"🛍️ XP Shop · {wallet.xp} XP")
    for r in rewards:
        afford = wallet.can_afford(r)
        cat = REWARD_CATEGORY.get(r.get("reward_type"), r.get("reward_type", ""))
        st.markdown(f"""<div class="qf-card"><span style="font-size:26px;">{r.get('icon', '🎁')}</span>
            <strong>{r['title']}</strong> <span style="font-size:11px;opacity:.6;">{cat}</span><br/>
            <span style="font-size:13px;opacity:.7;">{r.get('description', '')}</span><br/>
            <b style="color:#ff6b5b;">{r['cost']} XP</b>
            {'' if afford else '<span style="font-size:11px;color:#ef4444;"> Insufficient XP</span>'}
        </div>""", unsafe_allow_html=True)
        if st.button("Purchase" if afford else "Need more XP", key=f"buy_{r['id']}", disabled=not afford):
            ok, msgs = wallet.purchase(r, sess)
            for m in msgs:
                notify(m, "🎁" if ok else "⚠️")
            if ok:
                save_xp()
                cust = st.session_state.customer
                if cust and reward_rows:
                    try:
                        db.record_purchase(cust["id"], r["id"], sess.ticket["id"], r["cost"])
                    except Exception as e:
                        log.warning("Purchase not recorded: %s", e)
            st.rerun()
    st.caption("Complete more mini-quests to earn XP and unlock rewards!")

# ═══════════════════════════════════════════════════
#  LEAVE
# ═══════════════════════════════════════════════════
elif screen == "leave":
    if not sess:
        go("select_queue")
    st.warning("⚠️ Leave the queue? You will lose your place.")
    c1, c2 = st.columns(2)
    with c1:
        if st.button("✅ Yes, leave", type="primary", use_container_width=True):
            try:
                db.cancel_ticket(sess.ticket["id"])
            except Exception as e:
                st.error(f"❌ Could not leave the queue: {e}")
            else:
                end_session()
                st.session_state.queue_id = None
                notify("Left the queue", "👋")
                go("select_queue")
    with c2:
        if st.button("← Stay", use_container_width=True):
            go("waiting")

# ═══════════════════════════════════════════════════
#  DONE (served / cancelled by staff)
# ═══════════════════════════════════════════════════
elif screen == "done":
    status = st.session_state.left_status or "served"
    if status == "served":
        st.success("✅ You have been served. Thank you for waiting!")
    else:
        st.warning(f"{STATUS_LABELS.get(status, status)} — your ticket is no longer active.")
    if st.button("🎟️ Join again", type="primary"):
        st.session_state.left_status = None
        go("join" if queue else "select_queue")

# ═══════════════════════════════════════════════════
#  FOOTER
# ═══════════════════════════════════════════════════
st.markdown("---")
st.markdown(f"""<div style="text-align:center;font-size:10px;opacity:.3;padding:8px;">
    QueueFlow {VER}
</div>""", unsafe_allow_html=True)
