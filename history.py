"""
═══════════════════════════════════════════════════════════
 QueueFlow — Staff Action History / Undo
 One ActionHistory per staff session per queue.
═══════════════════════════════════════════════════════════

Undo is deliberately blunt: it pops the most recent action and sets that
ticket back to "waiting". It does not check whether the ticket was in a
terminal state and restores no other field.
"""

import copy
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from db import now_utc

log = logging.getLogger(__name__)


class ActionKind(str, Enum):
    SERVE = "serve"
    CANCEL = "cancel"
    HOLD = "hold"


@dataclass(frozen=True)
class ActionRecord:
    kind: ActionKind
    ticket: dict
    at: datetime


class ActionHistory:
    def __init__(self):
        self._records = []

    def __len__(self):
        return len(self._records)

    def __bool__(self):
        return bool(self._records)

    @property
    def last(self):
        return self._records[-1] if self._records else None

    def record(self, kind, ticket, at=None):
        rec = ActionRecord(ActionKind(kind), copy.deepcopy(dict(ticket)), at or now_utc())
        self._records.append(rec)
        return rec

    def undo(self, update_ticket):
        """Restore the most recent action's ticket to waiting.

        Returns (record, message). record is None when there is nothing to
        undo or the store matched no row. The record is popped only after
        update_ticket returns the updated row.
        """
        if not self._records:
            return None, "No actions to undo"
        rec = self._records[-1]
        if update_ticket(rec.ticket["id"], status="waiting") is None:
            return None, "Could not undo: ticket was not updated"
        self._records.pop()
        log.info("Undid %s on ticket %s", rec.kind.value, rec.ticket["id"])
        return rec, "Action undone"


# ═══════════════════════════════════════════════════
#  STAFF TRIAGE
# ═══════════════════════════════════════════════════
def _name(ticket):
    return ticket.get("customer_name") or ticket.get("ticket_number", "Customer")

def _not_waiting(ticket):
    if ticket.get("status", "waiting") != "waiting":
        return f"{_name(ticket)} is not waiting"
    return None

# update_ticket returns None when no row matched (e.g. blocked by row-level security)
def _not_updated(ticket):
    return f"Could not update {_name(ticket)}'s ticket"

def serve(history, ticket, update_ticket, now=None):
    err = _not_waiting(ticket)
    if err:
        return False, err
    if update_ticket(ticket["id"], status="served", served_at=(now or now_utc()).isoformat()) is None:
        return False, _not_updated(ticket)
    history.record(ActionKind.SERVE, ticket, now)
    log.info("Served ticket %s", ticket["id"])
    return True, f"{_name(ticket)} has been served"

def skip(history, ticket, update_ticket, now=None):
    err = _not_waiting(ticket)
    if err:
        return False, err
    if update_ticket(ticket["id"], status="cancelled") is None:
        return False, _not_updated(ticket)
    history.record(ActionKind.CANCEL, ticket, now)
    log.info("Cancelled ticket %s (no-show)", ticket["id"])
    return True, f"{_name(ticket)}'s ticket has been cancelled (no-show)"

def hold(history, ticket, update_ticket, now=None):
    err = _not_waiting(ticket)
    if err:
        return False, err
    if update_ticket(ticket["id"], status="parked") is None:
        return False, _not_updated(ticket)
    history.record(ActionKind.HOLD, ticket, now)
    log.info("Parked ticket %s", ticket["id"])
    return True, f"{_name(ticket)} has been moved to parked list"

def requeue(ticket, update_ticket):
    """Parked → waiting. Not recorded, so it cannot be undone."""
    if ticket.get("status") != "parked":
        return False, f"{_name(ticket)} is not parked"
    if update_ticket(ticket["id"], status="waiting") is None:
        return False, _not_updated(ticket)
    log.info("Re-queued ticket %s", ticket["id"])
    return True, f"{_name(ticket)} has been re-queued"
