"""Connection management for the relational store.

``ConnectionManager`` owns one SQLAlchemy engine and its bounded connection
pool. Everything that touches the database goes through ``execute`` or a
``transaction`` block so connections are always checked back in.
"""

import logging
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, TypeVar

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import QueuePool

from school_admin.core import config
from school_admin.core.exceptions import (
    DatabaseConnectionError,
    DuplicateKeyError,
    QueryError,
    SchoolAdminError,
)

logger = logging.getLogger(__name__)

Base = declarative_base()

T = TypeVar("T")

_schema_lock = Lock()

TIMESTAMP_COLUMNS = ("created_at", "updated_at")


@dataclass
class RowSet:
    rows: list[dict[str, Any]] = field(default_factory=list)
    rowcount: int = 0

    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None

    def __len__(self) -> int:
        return len(self.rows)


def statement_shape(statement: str) -> str:
    """Collapse whitespace so a statement logs on one line."""
    return " ".join(statement.split())


def _is_unique_violation(exc: sa_exc.IntegrityError) -> bool:
    driver_error = exc.orig
    # 23505 is unique_violation on Postgres
    if getattr(driver_error, "pgcode", None) == "23505":
        return True
    message = str(driver_error).lower()
    return "unique" in message or "duplicate" in message


def install_pool_recycling(engine: Engine, *, max_uses: int, idle_timeout: float) -> None:
    """Retire pooled connections that are worn out or have sat idle too long.

    Raising ``DisconnectionError`` from a checkout listener makes the pool
    discard the connection and hand out a freshly opened one instead.
    """

    @event.listens_for(engine, "checkout")
    def _retire_stale_connection(dbapi_connection, connection_record, connection_proxy):
        info = connection_record.info
        idle_since = info.pop("idle_since", None)
        if idle_timeout and idle_since is not None and time.monotonic() - idle_since > idle_timeout:
            info.clear()
            logger.debug("Replacing connection idle for more than %ss", idle_timeout)
            raise sa_exc.DisconnectionError("connection idle timeout exceeded")

        info["uses"] = info.get("uses", 0) + 1
        if max_uses and info["uses"] > max_uses:
            info.clear()
            logger.debug("Replacing connection after %s uses", max_uses)
            raise sa_exc.DisconnectionError("connection use limit reached")

    @event.listens_for(engine, "checkin")
    def _mark_idle(dbapi_connection, connection_record):
        if dbapi_connection is not None:
            connection_record.info["idle_since"] = time.monotonic()


class ConnectionManager:
    """Pool owner exposing statement execution, transactions and health."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._columns: dict[str, frozenset[str]] = {}
        self._columns_lock = Lock()

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        pool_size: int | None = None,
        max_overflow: int | None = None,
        pool_timeout: float | None = None,
        idle_timeout: float | None = None,
        max_uses: int | None = None,
        echo: bool | None = None,
    ) -> "ConnectionManager":
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=pool_size if pool_size is not None else config.DB_POOL_SIZE,
            max_overflow=max_overflow if max_overflow is not None else config.DB_MAX_OVERFLOW,
            pool_timeout=pool_timeout if pool_timeout is not None else config.DB_POOL_TIMEOUT_SECONDS,
            echo=config.DB_ECHO if echo is None else echo,
            connect_args=connect_args,
        )
        install_pool_recycling(
            engine,
            max_uses=max_uses if max_uses is not None else config.DB_MAX_USES,
            idle_timeout=idle_timeout if idle_timeout is not None else config.DB_IDLE_TIMEOUT_SECONDS,
        )
        return cls(engine)

    @classmethod
    def from_config(cls) -> "ConnectionManager":
        return cls.from_url(config.DATABASE_URL)

    @contextmanager
    def _acquire(self) -> Iterator[Connection]:
        try:
            connection = self.engine.connect()
        except sa_exc.TimeoutError as exc:
            logger.error("Connection pool exhausted: %s", self.engine.pool.status())
            raise DatabaseConnectionError(
                "No database connection is available. Please try again shortly."
            ) from exc
        except sa_exc.DBAPIError as exc:
            logger.error("Could not connect to the database: %s", type(exc.orig).__name__)
            raise DatabaseConnectionError("Unable to connect to the database.") from exc
        try:
            yield connection
        finally:
            connection.close()

    @contextmanager
    def _translate_errors(self, statement: str) -> Iterator[None]:
        try:
            yield
        except sa_exc.IntegrityError as exc:
            if _is_unique_violation(exc):
                logger.warning("Unique constraint violated by: %s", statement_shape(statement))
                raise DuplicateKeyError("A record with the same unique value already exists.") from exc
            logger.error("Integrity error in: %s", statement_shape(statement))
            raise QueryError("The statement violates a database constraint.") from exc
        except sa_exc.DBAPIError as exc:
            if exc.connection_invalidated:
                logger.error("Connection lost while running: %s", statement_shape(statement))
                raise DatabaseConnectionError("The database connection was lost.") from exc
            logger.error("Query failed: %s", statement_shape(statement))
            raise QueryError("The database rejected the statement.") from exc
        except sa_exc.StatementError as exc:
            logger.error("Could not prepare statement: %s", statement_shape(statement))
            raise QueryError("The statement could not be prepared.") from exc

    def _run(self, connection: Connection, statement: str, parameters: Mapping[str, Any] | None) -> RowSet:
        started = time.perf_counter()
        result = connection.execute(text(statement), dict(parameters or {}))
        if result.returns_rows:
            rows = [dict(row) for row in result.mappings()]
            rowcount = len(rows)
        else:
            rows = []
            rowcount = result.rowcount
        logger.debug(
            "Executed query %s (%.1f ms, %s rows)",
            statement_shape(statement),
            (time.perf_counter() - started) * 1000,
            rowcount,
        )
        return RowSet(rows=rows, rowcount=rowcount)

    def execute(
        self,
        statement: str,
        parameters: Mapping[str, Any] | None = None,
        connection: Connection | None = None,
    ) -> RowSet:
        """Run one parameterized statement.

        With ``connection`` the statement joins that connection's open
        transaction; otherwise a connection is checked out, the statement is
        committed on its own and the connection is returned to the pool.
        """
        if connection is not None:
            with self._translate_errors(statement):
                return self._run(connection, statement, parameters)

        with self._acquire() as conn:
            with self._translate_errors(statement), conn.begin():
                return self._run(conn, statement, parameters)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a dedicated connection inside BEGIN ... COMMIT.

        Any exception raised by the block rolls the transaction back and is
        re-raised; the connection is released on every path.
        """
        with self._acquire() as connection:
            try:
                with self._translate_errors("<transaction>"), connection.begin():
                    yield connection
            except Exception as exc:
                logger.warning("Transaction rolled back after %s", type(exc).__name__)
                raise

    def with_transaction(self, work: Callable[[Connection], T]) -> T:
        with self.transaction() as connection:
            return work(connection)

    def pool_stats(self) -> dict[str, Any]:
        pool = self.engine.pool
        if isinstance(pool, QueuePool):
            return {
                "size": pool.size(),
                "checked_out": pool.checkedout(),
                "idle": pool.checkedin(),
                "overflow": pool.overflow(),
            }
        return {"status": pool.status()}

    def health_check(self) -> dict[str, Any]:
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            self.execute("SELECT 1 AS health_check")
        except SchoolAdminError as exc:
            return {"status": "unhealthy", "error": exc.message, "timestamp": timestamp}
        return {"status": "healthy", "timestamp": timestamp, "pool": self.pool_stats()}

    def table_columns(self, table: str, connection: Connection | None = None) -> frozenset[str]:
        """Column names of ``table``; empty when the table does not exist.

        Pass the caller's open ``connection`` to avoid a second checkout
        while a transaction is in progress.
        """
        with self._columns_lock:
            cached = self._columns.get(table)
            if cached is not None:
                return cached

            if connection is not None:
                columns = self._inspect_columns(connection, table)
            else:
                with self._acquire() as conn:
                    columns = self._inspect_columns(conn, table)

            if columns:
                self._columns[table] = columns
            return columns

    def _inspect_columns(self, connection: Connection, table: str) -> frozenset[str]:
        with self._translate_errors(f"<inspect {table}>"):
            inspector = inspect(connection)
            if not inspector.has_table(table):
                return frozenset()
            return frozenset(column["name"] for column in inspector.get_columns(table))

    def forget_columns(self) -> None:
        with self._columns_lock:
            self._columns.clear()

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database pool closed")


def ensure_timestamp_columns(engine: Engine) -> list[str]:
    """Add ``created_at``/``updated_at`` to known tables that predate them.

    Returns the ``table.column`` names that were added.
    """
    added: list[str] = []
    with _schema_lock:
        inspector = inspect(engine)
        existing_tables = set(inspector.get_table_names())

        with engine.begin() as connection:
            for table_name in Base.metadata.tables:
                if table_name not in existing_tables:
                    continue
                existing_columns = {column["name"] for column in inspector.get_columns(table_name)}
                for column_name in TIMESTAMP_COLUMNS:
                    if column_name not in existing_columns:
                        connection.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column_name} TIMESTAMP"))
                        added.append(f"{table_name}.{column_name}")

    if added:
        logger.info("Added timestamp columns: %s", ", ".join(added))
    return added


def init_schema(engine: Engine) -> None:
    from school_admin.models import records, user  # noqa: F401

    Base.metadata.create_all(bind=engine)
    ensure_timestamp_columns(engine)
