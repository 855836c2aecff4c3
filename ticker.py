"""
═══════════════════════════════════════════════════════════
 QueueFlow — Tick Schedule
 Pull-based periodic task: polled on every Streamlit rerun.
═══════════════════════════════════════════════════════════
"""

from datetime import timedelta

from db import TICK_SECONDS, now_utc


class TickSchedule:
    """start / cancel / run_due. At most one callback in flight."""

    def __init__(self, interval_seconds=TICK_SECONDS):
        self.interval = timedelta(seconds=interval_seconds)
        self.next_due = None
        self.active = False
        self._in_flight = False

    def start(self, now=None):
        self.next_due = (now or now_utc()) + self.interval
        self.active = True

    def cancel(self):
        self.active = False
        self.next_due = None

    def due(self, now=None):
        if not self.active or self._in_flight:
            return False
        return (now or now_utc()) >= self.next_due

    def run_due(self, callback, now=None):
        """Fire callback(now) once if due. Returns the callback's result, or None if skipped."""
        now = now or now_utc()
        if not self.due(now):
            return None
        self._in_flight = True
        try:
            return callback(now)
        finally:
            self._in_flight = False
            if self.active:
                self.next_due = now + self.interval
