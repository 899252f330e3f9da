"""
SQLite driver hooks shared by the application engine and the test engine.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Connection, Engine


def enable_sqlite_savepoints(engine: Engine) -> None:
    """
    Let pysqlite honour SAVEPOINT / begin_nested() and serialize writers.

    The stdlib driver issues its own BEGIN lazily, which breaks nested
    transactions; hand transaction control back to SQLAlchemy instead.
    Transactions open with BEGIN IMMEDIATE so the write lock is taken up
    front and competing writers wait out the driver's busy timeout instead
    of failing mid-transaction with "database is locked".
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")
