"""Parameterized SQL construction for the generic record store.

Values never appear in SQL text. ``Parameters.bind`` records a value and
hands back the placeholder that refers to it, so a statement's placeholders
and its parameter mapping are produced together and always agree in count
and order. Only identifiers (table, column and ORDER BY names supplied by
internal callers) are interpolated, and those are checked against a strict
pattern first.
"""

import re
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from school_admin.core.exceptions import ValidationError

DEFAULT_ORDER_BY = "created_at DESC"

# Largest BIGINT; stands in for "no limit" since SQLite rejects OFFSET without LIMIT
NO_LIMIT = 2**63 - 1
LIKE_ESCAPE = "\\"

PLACEHOLDER_PATTERN = re.compile(r":(p\d+)\b")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_ORDER_TERM = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)(?:\s+(ASC|DESC))?$", re.IGNORECASE)


def check_identifier(name: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValidationError(f"Invalid identifier: {name!r}")
    return name


def check_order_by(order_by: str) -> str:
    terms = [term.strip() for term in order_by.split(",")]
    normalized = []
    for term in terms:
        match = _ORDER_TERM.match(term)
        if not match:
            raise ValidationError(f"Invalid ORDER BY term: {term!r}")
        column, direction = match.groups()
        normalized.append(f"{column} {direction.upper()}" if direction else column)
    return ", ".join(normalized)


class Parameters:
    """Ordered bound values, each paired with its placeholder."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def bind(self, value: Any) -> str:
        name = f"p{len(self._values) + 1}"
        self._values[name] = value
        return f":{name}"

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def __len__(self) -> int:
        return len(self._values)


@dataclass(frozen=True)
class Statement:
    sql: str
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def placeholders(self) -> list[str]:
        """Placeholder names in the order they appear in the SQL text."""
        return PLACEHOLDER_PATTERN.findall(self.sql)


@dataclass(frozen=True)
class Predicate:
    """A WHERE clause: an OR'd substring search, then equality terms, then exclusions.

    ``conditions`` are ANDed equality tests (``None`` renders ``IS NULL``);
    ``search_fields``/``term`` add a case-insensitive ``LIKE`` on each field,
    OR'd together; ``exclude`` adds ``column != value`` terms.
    """

    conditions: Mapping[str, Any] = field(default_factory=dict)
    search_fields: tuple[str, ...] = ()
    term: str | None = None
    exclude: Mapping[str, Any] = field(default_factory=dict)

    def render(self, params: Parameters) -> str:
        clauses = []

        if self.term and self.search_fields:
            pattern = f"%{escape_like(self.term)}%"
            matches = [
                f"LOWER({check_identifier(column)}) LIKE LOWER({params.bind(pattern)}) ESCAPE '{LIKE_ESCAPE}'"
                for column in self.search_fields
            ]
            clauses.append(f"({' OR '.join(matches)})")

        for column, value in self.conditions.items():
            check_identifier(column)
            if value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = {params.bind(value)}")

        for column, value in self.exclude.items():
            clauses.append(f"{check_identifier(column)} != {params.bind(value)}")

        if not clauses:
            return ""
        return " WHERE " + " AND ".join(clauses)


def _predicate(conditions: Mapping[str, Any] | Predicate | None) -> Predicate:
    if isinstance(conditions, Predicate):
        return conditions
    return Predicate(conditions=dict(conditions or {}))


def escape_like(term: str) -> str:
    """Make ``%`` and ``_`` in a search term match literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_insert(table: str, fields: Mapping[str, Any]) -> Statement:
    """INSERT ... RETURNING *, with a generated id bound first when none is given."""
    check_identifier(table)
    if not fields:
        raise ValidationError(f"No fields provided to create a {table} record")

    values = dict(fields)
    record_id = values.pop("id", None)
    values = {"id": record_id or new_id(), **values}

    params = Parameters()
    columns = [check_identifier(column) for column in values]
    placeholders = [params.bind(value) for value in values.values()]
    sql = (
        f"INSERT INTO {table} ({', '.join(columns)}) "
        f"VALUES ({', '.join(placeholders)}) RETURNING *"
    )
    return Statement(sql, params.as_dict())


def build_select(
    table: str,
    conditions: Mapping[str, Any] | Predicate | None = None,
    order_by: str | None = DEFAULT_ORDER_BY,
    limit: int | None = None,
    offset: int | None = None,
    columns: Iterable[str] | None = None,
) -> Statement:
    """SELECT with clauses in WHERE, ORDER BY, LIMIT, OFFSET order."""
    check_identifier(table)
    selected = ", ".join(check_identifier(column) for column in columns) if columns else "*"

    params = Parameters()
    sql = f"SELECT {selected} FROM {table}"
    sql += _predicate(conditions).render(params)
    if order_by:
        sql += f" ORDER BY {check_order_by(order_by)}"
    if limit is not None:
        sql += f" LIMIT {params.bind(int(limit))}"
    elif offset is not None:
        sql += f" LIMIT {params.bind(NO_LIMIT)}"
    if offset is not None:
        sql += f" OFFSET {params.bind(int(offset))}"
    return Statement(sql, params.as_dict())


def build_search(
    table: str,
    search_fields: Iterable[str],
    term: str | None,
    conditions: Mapping[str, Any] | None = None,
    order_by: str | None = DEFAULT_ORDER_BY,
    limit: int | None = 50,
    offset: int | None = None,
) -> Statement:
    predicate = Predicate(
        conditions=dict(conditions or {}),
        search_fields=tuple(search_fields),
        term=term.strip() if term else None,
    )
    return build_select(table, predicate, order_by=order_by, limit=limit, offset=offset)


def build_count(table: str, conditions: Mapping[str, Any] | Predicate | None = None) -> Statement:
    check_identifier(table)
    params = Parameters()
    sql = f"SELECT COUNT(*) AS count FROM {table}" + _predicate(conditions).render(params)
    return Statement(sql, params.as_dict())


def build_update(
    table: str,
    record_id: Any,
    fields: Mapping[str, Any],
    stamp_updated_at: bool = True,
    now: datetime | None = None,
) -> Statement:
    """UPDATE ... SET ... WHERE id = ... RETURNING *.

    Bound in order: the caller's fields, then ``updated_at`` when it is
    stamped here, then the id.
    """
    check_identifier(table)
    if not fields:
        raise ValidationError(f"No fields provided to update the {table} record")

    values = {column: value for column, value in fields.items() if column != "id"}
    if not values:
        raise ValidationError("The record id cannot be updated")
    if stamp_updated_at and "updated_at" not in values:
        values["updated_at"] = now or utcnow()

    params = Parameters()
    assignments = [f"{check_identifier(column)} = {params.bind(value)}" for column, value in values.items()]
    sql = f"UPDATE {table} SET {', '.join(assignments)} WHERE id = {params.bind(record_id)} RETURNING *"
    return Statement(sql, params.as_dict())


def build_delete(table: str, record_id: Any) -> Statement:
    check_identifier(table)
    params = Parameters()
    sql = f"DELETE FROM {table} WHERE id = {params.bind(record_id)} RETURNING *"
    return Statement(sql, params.as_dict())
