"""
conftest.py — Shared pytest fixtures for the whole vangdata test suite.

Provides:
  FakeSupabase       — in-memory stand-in for supabase.Client's query builder
  fake_supabase()    — installs a FakeSupabase as both the anon and service client
  seed_source()      — inserts a crawler_sources row plus type mappings
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

import pytest

from vangdata_shared import db


# ---------------------------------------------------------------------------
# In-memory Supabase
# ---------------------------------------------------------------------------

def _coerce(value: Any) -> Any:
    """Parse ISO timestamps so range filters compare chronologically."""
    if isinstance(value, str) and len(value) >= 10 and value[4:5] == "-" and value[7:8] == "-":
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return value


def _public(row: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in copy.deepcopy(row).items() if k != "_seq"}


@dataclass
class FakeResponse:
    data: list[dict[str, Any]]
    count: int | None = None


@dataclass
class FakeQuery:
    """Chainable builder mirroring the postgrest-py calls the code base uses."""

    store: "FakeSupabase"
    table: str
    op: str = "select"
    payload: Any = None
    on_conflict: str | None = None
    count_mode: str | None = None
    filters: list[tuple[str, str, Any]] = field(default_factory=list)
    order_by: list[tuple[str, bool]] = field(default_factory=list)
    limit_n: int | None = None
    offset_n: int = 0

    # -- operations ------------------------------------------------------
    def select(self, columns: str = "*", *, count: str | None = None) -> "FakeQuery":
        if self.op == "select":
            self.count_mode = count
        return self

    def insert(self, rows: Any) -> "FakeQuery":
        self.op, self.payload = "insert", rows
        return self

    def upsert(self, rows: Any, *, on_conflict: str = "") -> "FakeQuery":
        self.op, self.payload, self.on_conflict = "upsert", rows, on_conflict
        return self

    def update(self, values: dict[str, Any]) -> "FakeQuery":
        self.op, self.payload = "update", values
        return self

    def delete(self) -> "FakeQuery":
        self.op = "delete"
        return self

    # -- filters ---------------------------------------------------------
    def _add(self, op: str, column: str, value: Any) -> "FakeQuery":
        self.filters.append((op, column, value))
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        return self._add("eq", column, value)

    def neq(self, column: str, value: Any) -> "FakeQuery":
        return self._add("neq", column, value)

    def gt(self, column: str, value: Any) -> "FakeQuery":
        return self._add("gt", column, value)

    def gte(self, column: str, value: Any) -> "FakeQuery":
        return self._add("gte", column, value)

    def lt(self, column: str, value: Any) -> "FakeQuery":
        return self._add("lt", column, value)

    def lte(self, column: str, value: Any) -> "FakeQuery":
        return self._add("lte", column, value)

    def in_(self, column: str, values: list[Any]) -> "FakeQuery":
        return self._add("in", column, list(values))

    def is_(self, column: str, value: Any) -> "FakeQuery":
        return self._add("is", column, value)

    def order(self, column: str, *, desc: bool = False) -> "FakeQuery":
        self.order_by.append((column, desc))
        return self

    def limit(self, n: int) -> "FakeQuery":
        self.limit_n = n
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self.offset_n = start
        self.limit_n = end - start + 1
        return self

    # -- execution -------------------------------------------------------
    def _matches(self, row: dict[str, Any]) -> bool:
        for op, column, value in self.filters:
            actual = row.get(column)
            if op == "eq" and actual != value:
                return False
            if op == "neq" and actual == value:
                return False
            if op == "in" and actual not in value:
                return False
            if op == "is":
                expected = None if value in (None, "null") else value
                if actual is not expected and actual != expected:
                    return False
            if op in ("gt", "gte", "lt", "lte"):
                if actual is None:
                    return False
                a, b = _coerce(actual), _coerce(value)
                if op == "gt" and not a > b:
                    return False
                if op == "gte" and not a >= b:
                    return False
                if op == "lt" and not a < b:
                    return False
                if op == "lte" and not a <= b:
                    return False
        return True

    def execute(self) -> FakeResponse:
        error = self.store.errors.get((self.table, self.op))
        if error is not None:
            raise error
        self.store.calls.append((self.table, self.op))
        rows = self.store.tables.setdefault(self.table, [])

        if self.op in ("insert", "upsert"):
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            written = []
            for item in payload:
                new = self.store._with_defaults(dict(item))
                existing = None
                if self.op == "upsert" and self.on_conflict:
                    keys = [k.strip() for k in self.on_conflict.split(",")]
                    existing = next(
                        (r for r in rows if all(r.get(k) == new.get(k) for k in keys)),
                        None,
                    )
                if existing is not None:
                    existing.update({k: v for k, v in item.items()})
                    written.append(_public(existing))
                else:
                    rows.append(new)
                    written.append(_public(new))
            return FakeResponse(data=written, count=len(written))

        matched = [r for r in rows if self._matches(r)]

        if self.op == "update":
            for r in matched:
                r.update(copy.deepcopy(self.payload))
            return FakeResponse(data=[_public(r) for r in matched], count=len(matched))

        if self.op == "delete":
            self.store.tables[self.table] = [r for r in rows if not self._matches(r)]
            return FakeResponse(data=[_public(r) for r in matched], count=len(matched))

        for column, desc in reversed(self.order_by):
            matched.sort(
                key=lambda r: (_coerce(r.get(column)) is None, _coerce(r.get(column)) or 0, r["_seq"]),
                reverse=desc,
            )
        total = len(matched)
        matched = matched[self.offset_n:]
        if self.limit_n is not None:
            matched = matched[: self.limit_n]
        data = [_public(r) for r in matched]
        return FakeResponse(data=data, count=total if self.count_mode else None)


class FakeSupabase:
    """Minimal in-memory supabase.Client: .table(name) -> chainable FakeQuery."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.errors: dict[tuple[str, str], Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self._seq = 0

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(store=self, table=name)

    def _with_defaults(self, row: dict[str, Any]) -> dict[str, Any]:
        self._seq += 1
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        row["_seq"] = self._seq
        return row

    # -- test helpers ----------------------------------------------------
    def seed(self, table: str, rows: list[dict[str, Any]]) -> None:
        for row in rows:
            self.tables.setdefault(table, []).append(self._with_defaults(dict(row)))

    def rows(self, table: str) -> list[dict[str, Any]]:
        return [_public(r) for r in self.tables.get(table, [])]

    def fail(self, table: str, op: str, exc: Exception | None = None) -> None:
        self.errors[(table, op)] = exc or RuntimeError(f"{table}.{op} unavailable")


@pytest.fixture
def fake_supabase():
    """Install a FakeSupabase as the process-wide Supabase client."""
    client = FakeSupabase()
    db.set_supabase_clients(client)  # type: ignore[arg-type]
    yield client
    db.reset_supabase_clients()


@pytest.fixture
def seed_source(fake_supabase: FakeSupabase):
    """
    Insert an enabled vang.today source with two mapped types and return its id.

    Types: SJL1L10 -> SJC/SJC_BAR, XAUUSD -> WORLD/XAU.
    """

    def _seed(
        source_id: str = "src-vangtoday",
        *,
        api_type: str = "vang_today",
        api_url: str = "https://www.vang.today/api/prices",
        type_codes: tuple[str, ...] = ("SJL1L10", "XAUUSD"),
        is_enabled: bool = True,
    ) -> str:
        fake_supabase.seed(
            "crawler_sources",
            [
                {
                    "id": source_id,
                    "name": "vang.today",
                    "api_url": api_url,
                    "api_type": api_type,
                    "is_enabled": is_enabled,
                    "headers": {},
                    "auth_type": "none",
                    "auth_config": {},
                    "rate_limit_per_minute": 600,
                    "timeout_seconds": 5,
                    "priority": 1,
                }
            ],
        )
        canonical = {
            "SJL1L10": ("SJC", "SJC_BAR"),
            "XAUUSD": ("WORLD", "XAU"),
        }
        fake_supabase.seed(
            "crawler_type_mappings",
            [
                {
                    "source_id": source_id,
                    "external_code": code,
                    "retailer_code": canonical.get(code, ("RET", code))[0],
                    "product_type_code": canonical.get(code, ("RET", code))[1],
                    "province_code": None,
                    "label": code,
                    "is_enabled": True,
                }
                for code in type_codes
            ],
        )
        return source_id

    return _seed
