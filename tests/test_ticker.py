from datetime import timedelta

from ticker import TickSchedule

from conftest import T0


def test_not_due_before_start():
    sched = TickSchedule(30)
    assert sched.run_due(lambda now: "ran", T0) is None


def test_fires_once_per_interval():
    sched = TickSchedule(30)
    sched.start(T0)
    fired = []

    assert sched.run_due(fired.append, T0 + timedelta(seconds=10)) is None
    sched.run_due(fired.append, T0 + timedelta(seconds=30))
    sched.run_due(fired.append, T0 + timedelta(seconds=45))
    sched.run_due(fired.append, T0 + timedelta(seconds=61))

    assert fired == [T0 + timedelta(seconds=30), T0 + timedelta(seconds=61)]


def test_cancel_stops_ticks():
    sched = TickSchedule(30)
    sched.start(T0)
    sched.cancel()
    assert sched.active is False
    assert sched.run_due(lambda now: "ran", T0 + timedelta(minutes=5)) is None


def test_callback_may_cancel():
    sched = TickSchedule(30)
    sched.start(T0)
    sched.run_due(lambda now: sched.cancel(), T0 + timedelta(seconds=30))
    assert sched.next_due is None
    assert sched.due(T0 + timedelta(minutes=5)) is False


def test_no_reentrant_tick():
    sched = TickSchedule(30)
    sched.start(T0)
    later = T0 + timedelta(seconds=40)
    inner = []

    def outer(now):
        inner.append(sched.run_due(lambda n: "nested", now))
        return "outer"

    assert sched.run_due(outer, later) == "outer"
    assert inner == [None]
