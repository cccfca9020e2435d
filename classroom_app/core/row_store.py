"""Row store interface and the in-process implementation used by the app.

The services only speak to the store through ``insert``, ``select_where``,
``select_one`` and ``count``. Rows are plain dictionaries; every read returns
copies so callers can never mutate stored state.

Filters are equality checks. A list, tuple or set value means "column is one
of". A key of the form ``"alias.column"`` filters on a joined row and drops
rows whose join is missing, which gives inner-join semantics.
"""

from __future__ import annotations

import copy
import logging
from itertools import count as counter
from threading import Lock
from typing import Any, Iterable, Mapping, Protocol
from uuid import uuid4

from classroom_app.core.errors import StoreError, UniqueViolation
from classroom_app.core.models import utc_now

logger = logging.getLogger(__name__)

Row = dict[str, Any]
Filters = Mapping[str, Any]
OrderBy = Iterable[tuple[str, bool]]
Joins = Mapping[str, tuple[str, str]]

RELATIONS: tuple[str, ...] = (
    "profiles",
    "classrooms",
    "classroom_members",
    "announcements",
    "quizzes",
    "quiz_attempts",
)

_TIMESTAMP_COLUMNS: dict[str, str] = {
    "classrooms": "created_at",
    "classroom_members": "joined_at",
    "announcements": "created_at",
    "quizzes": "created_at",
    "quiz_attempts": "completed_at",
}

DEFAULT_UNIQUE_CONSTRAINTS: dict[str, list[tuple[str, ...]]] = {
    "classrooms": [("join_code",)],
    "classroom_members": [("classroom_id", "student_id")],
    "quiz_attempts": [("quiz_id", "student_id")],
}


class RowStore(Protocol):
    """Query interface the services depend on."""

    def insert(self, relation: str, record: Mapping[str, Any]) -> Row: ...

    def select_where(
        self,
        relation: str,
        filters: Filters | None = None,
        order_by: OrderBy | None = None,
        joins: Joins | None = None,
    ) -> list[Row]: ...

    def select_one(self, relation: str, filters: Filters, joins: Joins | None = None) -> Row | None: ...

    def count(self, relation: str, filters: Filters | None = None) -> int: ...


class InMemoryRowStore:
    """Thread-safe dictionary-backed row store with uniqueness constraints."""

    def __init__(
        self,
        unique_constraints: Mapping[str, list[tuple[str, ...]]] | None = None,
    ) -> None:
        self._lock = Lock()
        self._tables: dict[str, list[Row]] = {name: [] for name in RELATIONS}
        self._unique = dict(DEFAULT_UNIQUE_CONSTRAINTS if unique_constraints is None else unique_constraints)
        self._sequence = counter()

    def insert(self, relation: str, record: Mapping[str, Any]) -> Row:
        with self._lock:
            table = self._table(relation)
            row: Row = copy.deepcopy(dict(record))
            row.setdefault("id", uuid4().hex)
            timestamp_column = _TIMESTAMP_COLUMNS.get(relation)
            if timestamp_column is not None and row.get(timestamp_column) is None:
                row[timestamp_column] = utc_now()
            self._check_unique(relation, table, row)
            row["_seq"] = next(self._sequence)
            table.append(row)
            return self._public(row)

    def select_where(
        self,
        relation: str,
        filters: Filters | None = None,
        order_by: OrderBy | None = None,
        joins: Joins | None = None,
    ) -> list[Row]:
        with self._lock:
            rows = [self._with_joins(row, joins) for row in self._table(relation)]
            rows = [row for row in rows if self._matches(row, filters or {})]
            order = list(order_by or [])
            if order:
                # Ties fall back to insertion order in the leading direction.
                rows.sort(key=lambda row: row["_seq"], reverse=order[0][1])
            for column, descending in reversed(order):
                rows.sort(key=lambda row, col=column: _sort_key(row.get(col)), reverse=descending)
            return [self._public(row) for row in rows]

    def select_one(self, relation: str, filters: Filters, joins: Joins | None = None) -> Row | None:
        rows = self.select_where(relation, filters, joins=joins)
        return rows[0] if rows else None

    def count(self, relation: str, filters: Filters | None = None) -> int:
        with self._lock:
            return sum(1 for row in self._table(relation) if self._matches(row, filters or {}))

    def _table(self, relation: str) -> list[Row]:
        try:
            return self._tables[relation]
        except KeyError as exc:
            raise StoreError(f"Unknown relation '{relation}'.") from exc

    def _check_unique(self, relation: str, table: list[Row], row: Row) -> None:
        for columns in self._unique.get(relation, []):
            key = tuple(row.get(column) for column in columns)
            if any(tuple(existing.get(column) for column in columns) == key for existing in table):
                logger.warning("Unique constraint violated on %s%s", relation, columns)
                raise UniqueViolation(relation, columns)

    def _with_joins(self, row: Row, joins: Joins | None) -> Row:
        if not joins:
            return row
        joined = dict(row)
        for alias, (relation, foreign_key) in joins.items():
            target_id = row.get(foreign_key)
            match = next((other for other in self._table(relation) if other.get("id") == target_id), None)
            joined[alias] = match
        return joined

    @staticmethod
    def _matches(row: Row, filters: Filters) -> bool:
        for key, expected in filters.items():
            if "." in key:
                alias, column = key.split(".", 1)
                nested = row.get(alias)
                if nested is None:
                    return False
                actual = nested.get(column)
            else:
                actual = row.get(key)
            if isinstance(expected, (list, tuple, set, frozenset)):
                if actual not in expected:
                    return False
            elif actual != expected:
                return False
        return True

    @staticmethod
    def _public(row: Row) -> Row:
        cleaned = {key: value for key, value in row.items() if key != "_seq"}
        for key, value in cleaned.items():
            if isinstance(value, dict) and "_seq" in value:
                cleaned[key] = {k: v for k, v in value.items() if k != "_seq"}
        return copy.deepcopy(cleaned)


def _sort_key(value: Any) -> tuple[bool, Any]:
    # Missing values sort after present ones in ascending order.
    return (value is None, value if value is not None else 0)
