"""Generic CRUD over any table with an ``id`` primary key."""

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sqlalchemy.engine import Connection

from school_admin.database import ConnectionManager
from school_admin.store import query_builder as qb
from school_admin.store.query_builder import DEFAULT_ORDER_BY, Predicate, Statement

logger = logging.getLogger(__name__)

Record = dict[str, Any]


class RecordStore:
    """Builds and runs parameterized statements for arbitrary tables.

    The store holds no business rules and no cached rows; every call is one
    statement against the injected ``ConnectionManager`` (or the caller's
    open transaction when ``connection`` is passed).
    """

    def __init__(self, db: ConnectionManager):
        self.db = db

    def _run(self, statement: Statement, connection: Connection | None = None):
        return self.db.execute(statement.sql, statement.params, connection=connection)

    def create(self, table: str, fields: Mapping[str, Any], connection: Connection | None = None) -> Record:
        row = self._run(qb.build_insert(table, fields), connection).first()
        logger.info("Created %s record %s", table, row["id"] if row else None)
        return row

    def find_by_id(self, table: str, record_id: Any, connection: Connection | None = None) -> Record | None:
        statement = qb.build_select(table, {"id": record_id}, order_by=None)
        return self._run(statement, connection).first()

    def find_all(
        self,
        table: str,
        conditions: Mapping[str, Any] | Predicate | None = None,
        order_by: str | None = DEFAULT_ORDER_BY,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Record]:
        return self._run(qb.build_select(table, conditions, order_by, limit, offset)).rows

    def find_one(
        self,
        table: str,
        conditions: Mapping[str, Any] | Predicate | None = None,
        order_by: str | None = DEFAULT_ORDER_BY,
    ) -> Record | None:
        rows = self.find_all(table, conditions, order_by, limit=1)
        return rows[0] if rows else None

    def update_by_id(
        self,
        table: str,
        record_id: Any,
        fields: Mapping[str, Any],
        connection: Connection | None = None,
    ) -> Record | None:
        stamp = "updated_at" in self.db.table_columns(table, connection)
        statement = qb.build_update(table, record_id, fields, stamp_updated_at=stamp)
        row = self._run(statement, connection).first()
        if row is None:
            logger.info("No %s record %s to update", table, record_id)
        return row

    def delete_by_id(self, table: str, record_id: Any, connection: Connection | None = None) -> Record | None:
        row = self._run(qb.build_delete(table, record_id), connection).first()
        if row is not None:
            logger.info("Deleted %s record %s", table, record_id)
        return row

    def count(self, table: str, conditions: Mapping[str, Any] | Predicate | None = None) -> int:
        row = self._run(qb.build_count(table, conditions)).first()
        return int(row["count"]) if row else 0

    def exists(self, table: str, conditions: Mapping[str, Any] | Predicate | None = None) -> bool:
        return self.count(table, conditions) > 0

    def search(
        self,
        table: str,
        search_fields: Iterable[str],
        term: str | None,
        conditions: Mapping[str, Any] | None = None,
        order_by: str | None = DEFAULT_ORDER_BY,
        limit: int | None = 50,
        offset: int | None = None,
    ) -> list[Record]:
        statement = qb.build_search(table, search_fields, term, conditions, order_by, limit, offset)
        return self._run(statement).rows

    def bulk_insert(
        self,
        table: str,
        records: Sequence[Mapping[str, Any]],
        connection: Connection | None = None,
    ) -> list[Record]:
        """Insert every record or none of them."""
        if not records:
            return []

        if connection is not None:
            return [self.create(table, record, connection) for record in records]

        with self.db.transaction() as transaction_connection:
            created = [self.create(table, record, transaction_connection) for record in records]
        logger.info("Bulk inserted %d %s records", len(created), table)
        return created
