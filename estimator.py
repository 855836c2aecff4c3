"""
═══════════════════════════════════════════════════════════
 QueueFlow — Position & ETA Estimator
 One QueueSession per customer waiting in a queue.
═══════════════════════════════════════════════════════════

Position and wait are captured once at join time (the baseline) and then
decay linearly with elapsed minutes. Nothing here re-reads the ticket list
on a tick.
"""

import math
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from db import MAX_JITTER, next_ticket_number, now_utc, parse_ts


@dataclass
class QueueSession:
    baseline_ahead: int
    baseline_wait: float
    current_ahead: int
    current_wait: float
    per_person: float
    started_at: datetime
    ticket: dict = field(default_factory=dict)

    @property
    def active(self):
        """Ticks only run while someone is still ahead."""
        return self.current_ahead > 0

    @property
    def position(self):
        return self.current_ahead + 1 if self.ticket else 0

    def tick(self, now=None):
        """Recompute position/wait from elapsed time. Returns True if either changed."""
        if self.per_person <= 0:
            return False
        now = now or now_utc()
        elapsed = int((now - self.started_at).total_seconds() // 60)

        expected_ahead = max(0, self.baseline_ahead - math.floor(elapsed / self.per_person))
        expected_wait = max(0, self.baseline_wait - elapsed)

        changed = False
        if expected_ahead != self.current_ahead:
            self.current_ahead = expected_ahead
            changed = True
        if expected_wait != self.current_wait:
            self.current_wait = expected_wait
            changed = True

        joined = parse_ts(self.ticket.get("joined_at")) if self.ticket else None
        if joined is not None:
            waited = int((now - joined).total_seconds() // 60)
            if waited > (self.ticket.get("actual_wait_time") or 0):
                self.ticket["actual_wait_time"] = waited
        return changed

    def skip_places(self, k):
        """Move k places forward. Baseline moves too so the next tick doesn't snap back."""
        skip = min(max(0, int(k)), self.current_ahead)
        if skip == 0:
            return 0
        saved = skip * self.per_person
        self.current_ahead = max(0, self.current_ahead - skip)
        self.current_wait = max(0, self.current_wait - saved)
        self.baseline_ahead = max(0, self.baseline_ahead - skip)
        self.baseline_wait = max(0, self.baseline_wait - saved)
        return skip


def draw_jitter(rng=None):
    return (rng or random).randint(0, MAX_JITTER)


def start_session(avg_service_time, waiting_count, jitter=0, now=None):
    ahead = max(0, int(waiting_count))
    wait = (avg_service_time or 0) * ahead + jitter
    per_person = wait / ahead if ahead > 0 else 0
    return QueueSession(
        baseline_ahead=ahead,
        baseline_wait=wait,
        current_ahead=ahead,
        current_wait=wait,
        per_person=per_person,
        started_at=now or now_utc(),
    )


def join_queue(queue, tickets, create_ticket: Callable[[dict], dict],
               customer_name="You", purpose="Service request",
               customer_id: Optional[str] = None, jitter=0, now=None):
    """Open a session behind every waiting ticket and persist the new ticket.

    `tickets` is the queue's current ticket list; `create_ticket` is the
    store's insert. The session is only returned once the insert succeeds.
    """
    now = now or now_utc()
    waiting = len([t for t in tickets if t.get("status") == "waiting"])
    session = start_session(queue.get("avg_service_time", 0), waiting, jitter=jitter, now=now)

    fields = {
        "queue_id": queue["id"],
        "customer_id": customer_id,
        "ticket_number": next_ticket_number(tickets),
        "customer_name": customer_name,
        "purpose": purpose,
        "status": "waiting",
        "priority": 0,
        "estimated_wait_time": round(session.baseline_wait),
        "actual_wait_time": 0,
        "joined_at": now.isoformat(),
    }
    session.ticket = dict(create_ticket(fields) or fields)
    session.ticket["actual_wait_time"] = session.ticket.get("actual_wait_time") or 0
    return session
