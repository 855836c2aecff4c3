import pytest

from history import ActionHistory, ActionKind, hold, requeue, serve, skip

from conftest import T0


def ticket(tid, status="waiting", name=None):
    return {"id": tid, "status": status, "customer_name": name or tid.upper(), "ticket_number": f"A{tid}"}


def test_undo_on_empty_history_is_a_notice(store):
    hist = ActionHistory()
    rec, msg = hist.undo(store.update_ticket)
    assert rec is None
    assert msg == "No actions to undo"
    assert len(hist) == 0
    assert store.rows == {}


def test_undo_after_serve_restores_waiting(store):
    hist = ActionHistory()
    t = ticket("t")
    ok, msg = serve(hist, t, store.update_ticket, now=T0)
    assert ok and msg == "T has been served"
    assert store.rows["t"]["status"] == "served"
    assert store.rows["t"]["served_at"] == T0.isoformat()
    assert len(hist) == 1

    rec, msg = hist.undo(store.update_ticket)
    assert rec.kind is ActionKind.SERVE
    assert msg == "Action undone"
    assert store.rows["t"]["status"] == "waiting"
    assert len(hist) == 0


def test_undo_only_reverses_most_recent(store):
    hist = ActionHistory()
    serve(hist, ticket("t"), store.update_ticket)
    skip(hist, ticket("u"), store.update_ticket)

    hist.undo(store.update_ticket)

    assert store.rows["u"]["status"] == "waiting"
    assert store.rows["t"]["status"] == "served"
    assert hist.last.kind is ActionKind.SERVE


def test_hold_records_and_undo_unparks(store):
    hist = ActionHistory()
    ok, msg = hold(hist, ticket("p"), store.update_ticket)
    assert ok and "parked" in msg
    assert store.rows["p"]["status"] == "parked"
    hist.undo(store.update_ticket)
    assert store.rows["p"]["status"] == "waiting"


def test_requeue_is_not_undoable(store):
    hist = ActionHistory()
    ok, msg = requeue(ticket("p", status="parked"), store.update_ticket)
    assert ok and msg == "P has been re-queued"
    assert store.rows["p"]["status"] == "waiting"
    assert len(hist) == 0


def test_requeue_requires_parked(store):
    ok, msg = requeue(ticket("w"), store.update_ticket)
    assert not ok
    assert store.rows == {}


@pytest.mark.parametrize("op", [serve, skip, hold])
def test_triage_requires_waiting(store, op):
    hist = ActionHistory()
    ok, msg = op(hist, ticket("s", status="served"), store.update_ticket)
    assert not ok
    assert msg == "S is not waiting"
    assert len(hist) == 0
    assert store.rows == {}


def test_failed_update_is_not_recorded():
    def broken(ticket_id, **fields):
        raise RuntimeError("offline")

    hist = ActionHistory()
    with pytest.raises(RuntimeError):
        serve(hist, ticket("t"), broken)
    assert len(hist) == 0


def test_failed_undo_keeps_record(store):
    hist = ActionHistory()
    skip(hist, ticket("u"), store.update_ticket)

    def broken(ticket_id, **fields):
        raise RuntimeError("offline")

    with pytest.raises(RuntimeError):
        hist.undo(broken)
    assert len(hist) == 1
    assert store.rows["u"]["status"] == "cancelled"


def test_snapshot_is_independent_of_later_edits(store):
    hist = ActionHistory()
    t = ticket("t")
    serve(hist, t, store.update_ticket)
    t["status"] = "mutated"
    assert hist.last.ticket["status"] == "waiting"


def test_undo_ignores_terminality(store):
    hist = ActionHistory()
    skip(hist, ticket("u"), store.update_ticket)
    assert store.rows["u"]["status"] == "cancelled"
    hist.undo(store.update_ticket)
    assert store.rows["u"]["status"] == "waiting"


def no_rows(ticket_id, **fields):
    return None


@pytest.mark.parametrize("op", [serve, skip, hold])
def test_unmatched_update_is_not_recorded(op):
    hist = ActionHistory()
    ok, msg = op(hist, ticket("t"), no_rows)
    assert not ok
    assert msg == "Could not update T's ticket"
    assert len(hist) == 0


def test_unmatched_undo_keeps_record(store):
    hist = ActionHistory()
    hold(hist, ticket("p"), store.update_ticket)
    rec, msg = hist.undo(no_rows)
    assert rec is None
    assert len(hist) == 1
    assert store.rows["p"]["status"] == "parked"
