"""
Shared fixtures: an in-memory stand-in for the Supabase client and a
small seeded VSLA group.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List

import pytest

from db import Settings
from rbac import MemberSession, StaffSession, classify_principal


@dataclass
class FakeResponse:
    data: List[Dict[str, Any]]


class FakeQuery:
    """Supports the PostgREST builder calls the app makes."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.payload: Dict[str, Any] | None = None
        self.filters: list[tuple[str, Any]] = []
        self._limit: int | None = None

    def select(self, cols: str = "*"):
        self.op = "select"
        return self

    def insert(self, payload: Dict[str, Any]):
        self.op = "insert"
        self.payload = payload
        return self

    def update(self, payload: Dict[str, Any]):
        self.op = "update"
        self.payload = payload
        return self

    def eq(self, col: str, value: Any):
        self.filters.append((col, value))
        return self

    def order(self, *args, **kwargs):
        return self

    def limit(self, n: int):
        self._limit = n
        return self

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(str(row.get(col)) == str(val) for col, val in self.filters)

    def execute(self) -> FakeResponse:
        rows = self.db.tables.setdefault(self.table_name, [])
        if self.op == "insert":
            row = dict(self.payload or {})
            row.setdefault("id", f"{self.table_name}-{len(rows) + 1}")
            rows.append(row)
            return FakeResponse([dict(row)])

        matched = [r for r in rows if self._matches(r)]
        if self.op == "update":
            for r in matched:
                r.update(self.payload or {})
            return FakeResponse([dict(r) for r in matched])

        if self._limit is not None:
            matched = matched[: self._limit]
        return FakeResponse([dict(r) for r in matched])


class FakeSupabase:
    def __init__(self, tables: Dict[str, List[Dict[str, Any]]] | None = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = copy.deepcopy(tables or {})
        self.failing_tables: set[str] = set()

    def schema(self, name: str) -> "FakeSupabase":
        return self

    def table(self, name: str) -> FakeQuery:
        if name in self.failing_tables:
            raise RuntimeError(f"relation {name} does not exist")
        return FakeQuery(self, name)

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.get(name, [])


GROUP_ID = "grp-1"
OTHER_GROUP_ID = "grp-2"


@pytest.fixture
def seeded_tables() -> Dict[str, List[Dict[str, Any]]]:
    return {
        "groups": [
            {
                "id": GROUP_ID,
                "name": "Tukolere Wamu",
                "location": "Mukono",
                "saving_per_share": "1000.00",
                "interest_rate": "2.00",
                "welfare_amount": "500.00",
                "available_cash": "0.00",
                "is_active": True,
            },
            {
                "id": OTHER_GROUP_ID,
                "name": "Bakyala Kwegatta",
                "location": "Jinja",
                "saving_per_share": "2000.00",
                "interest_rate": None,
                "welfare_amount": "0.00",
                "available_cash": "0.00",
                "is_active": True,
            },
        ],
        "members": [
            {
                "id": "m-1",
                "group_id": GROUP_ID,
                "first_name": "Sarah",
                "last_name": "Namubiru",
                "group_role": "chairman",
                "savings_balance": "5000.00",
                "welfare_balance": "500.00",
                "current_loan": "50000.00",
                "total_shares": 5,
                "is_active": True,
            },
            {
                "id": "m-2",
                "group_id": GROUP_ID,
                "first_name": "Joseph",
                "last_name": "Okello",
                "group_role": "member",
                "savings_balance": "0.00",
                "welfare_balance": "0.00",
                "current_loan": "0.00",
                "total_shares": 0,
                "is_active": True,
            },
            {
                "id": "m-3",
                "group_id": OTHER_GROUP_ID,
                "first_name": "Grace",
                "last_name": "Achieng",
                "group_role": "finance",
                "savings_balance": "4000.00",
                "welfare_balance": "0.00",
                "current_loan": "0.00",
                "total_shares": 2,
                "is_active": True,
            },
        ],
    }


@pytest.fixture
def client(seeded_tables) -> FakeSupabase:
    return FakeSupabase(seeded_tables)


@pytest.fixture
def settings() -> Settings:
    return Settings(loan_fallback_rate_percent=Decimal("10"), auto_approve_loans=True)


@pytest.fixture
def admin():
    return classify_principal(StaffSession(user_id="u-admin", role="admin", name="Admin"))


@pytest.fixture
def field_attendant():
    return classify_principal(StaffSession(user_id="u-field", role="field_attendant", name="Field"))


@pytest.fixture
def chairman():
    return classify_principal(MemberSession(member_id="m-1", group_id=GROUP_ID, group_role="chairman", name="Sarah"))


@pytest.fixture
def regular_member():
    return classify_principal(MemberSession(member_id="m-2", group_id=GROUP_ID, group_role="member"))
