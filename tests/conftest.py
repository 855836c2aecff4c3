from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

import db

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeQuery:
    """Records the builder chain of one sb.table(...) call."""

    def __init__(self, table, data, failing=()):
        self.table = table
        self.data = data
        self.failing = failing
        self.calls = []

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args))
            return self
        return method

    def execute(self):
        op = self.calls[0][0] if self.calls else "select"
        if self.table in self.failing or f"{self.table}.{op}" in self.failing:
            raise ConnectionError(f"{self.table}.{op} unavailable")
        return SimpleNamespace(data=self.data)


class FakeSupabase:
    def __init__(self):
        self.responses = {}
        # table names, or "table.op" such as "tickets.update"
        self.failing = set()
        self.queries = []

    def table(self, name):
        q = FakeQuery(name, self.responses.get(name, []), self.failing)
        self.queries.append(q)
        return q

    def last(self, table):
        return [q for q in self.queries if q.table == table][-1]

    def writes(self, table, op="update"):
        """Payloads of every insert/update issued against a table."""
        return [q.calls[0][1][0] for q in self.queries
                if q.table == table and q.calls and q.calls[0][0] == op]


@pytest.fixture
def sb(monkeypatch):
    fake = FakeSupabase()
    monkeypatch.setattr(db, "get_supabase", lambda: fake)
    db.invalidate_queues()
    db.list_mini_quests_cached.clear()
    db.list_xp_rewards_cached.clear()
    return fake


@pytest.fixture
def store():
    """In-memory ticket store: create_ticket / update_ticket."""
    rows = {}

    def create_ticket(fields):
        row = dict(fields, id=f"t{len(rows) + 1}")
        rows[row["id"]] = row
        return row

    def update_ticket(ticket_id, **fields):
        rows.setdefault(ticket_id, {"id": ticket_id}).update(fields)
        return rows[ticket_id]

    return SimpleNamespace(rows=rows, create_ticket=create_ticket, update_ticket=update_ticket)
