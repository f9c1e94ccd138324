from __future__ import annotations

import logging
import sqlite3
import time
from typing import Sequence

from flask import current_app, g

from .config import QUERY_TIMEOUT_SECONDS
from .errors import QueryTimeout, StoreError

logger = logging.getLogger(__name__)

# sqlite VM instructions between deadline checks
_PROGRESS_STEPS = 1000


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def connect(path: str, timeout: float = QUERY_TIMEOUT_SECONDS) -> sqlite3.Connection:
    conn = sqlite3.connect(path, timeout=timeout)
    conn.row_factory = sqlite3.Row
    # sqlite's lower()/LIKE only fold ASCII letters
    conn.create_function("unicode_lower", 1, _unicode_lower, deterministic=True)
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute(f"PRAGMA busy_timeout = {int(timeout * 1000)}")
    return conn


def get_db() -> sqlite3.Connection:
    """Return a SQLite connection stored on Flask's `g` context."""
    if "sqlite_conn" not in g:
        g.sqlite_conn = connect(
            current_app.config["DATABASE_PATH"],
            current_app.config.get("QUERY_TIMEOUT", QUERY_TIMEOUT_SECONDS),
        )
    return g.sqlite_conn


def close_db(_: Exception | None = None) -> None:
    """Close the connection at the end of the request/app context."""
    conn = g.pop("sqlite_conn", None)
    if conn is not None:
        conn.close()


def _timeout() -> float:
    return float(current_app.config.get("QUERY_TIMEOUT", QUERY_TIMEOUT_SECONDS))


class deadline:
    """
    Bound every statement run on `conn` inside the block by `seconds`.

    sqlite has no statement timeout of its own, so a progress handler checks
    the clock and interrupts the running statement once the deadline passes;
    sqlite then raises OperationalError("interrupted").
    """

    def __init__(self, conn: sqlite3.Connection, seconds: float):
        self.conn = conn
        self.seconds = seconds
        self.expired = False

    def _check(self) -> int:
        if time.monotonic() > self._until:
            self.expired = True
            return 1
        return 0

    def __enter__(self) -> "deadline":
        self._until = time.monotonic() + self.seconds
        self.conn.set_progress_handler(self._check, _PROGRESS_STEPS)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.conn.set_progress_handler(None, _PROGRESS_STEPS)
        if exc_type is None:
            return False
        # constraint violations are left for callers to translate
        if isinstance(exc, sqlite3.IntegrityError):
            return False
        if isinstance(exc, sqlite3.Error):
            if self.expired:
                logger.error("query exceeded %.1fs deadline", self.seconds)
                raise QueryTimeout() from exc
            logger.error("query failed: %s", exc, exc_info=(exc_type, exc, tb))
            raise StoreError() from exc
        return False


def query(sql: str, params: Sequence | dict = ()) -> list[sqlite3.Row]:
    """Execute a SELECT statement and return all rows."""
    conn = get_db()
    with deadline(conn, _timeout()):
        cur = conn.execute(sql, params)
        rows = cur.fetchall()
        cur.close()
    return rows


def query_one(sql: str, params: Sequence | dict = ()) -> sqlite3.Row | None:
    """Execute a SELECT statement and return the first row, if any."""
    conn = get_db()
    with deadline(conn, _timeout()):
        cur = conn.execute(sql, params)
        row = cur.fetchone()
        cur.close()
    return row


def execute(sql: str, params: Sequence | dict = ()) -> sqlite3.Cursor:
    """Execute an INSERT/UPDATE/DELETE statement, commit, and return the cursor."""
    conn = get_db()
    try:
        with deadline(conn, _timeout()):
            cur = conn.execute(sql, params)
            conn.commit()
    except (StoreError, sqlite3.IntegrityError):
        conn.rollback()
        raise
    return cur


class transaction:
    """
    Group several statements into one commit on the request connection.

    Statements inside are individually bounded by the query deadline; any
    exception rolls the whole group back.
    """

    def __init__(self):
        self.conn = get_db()

    def execute(self, sql: str, params: Sequence | dict = ()) -> sqlite3.Cursor:
        with deadline(self.conn, _timeout()):
            return self.conn.execute(sql, params)

    def query_one(self, sql: str, params: Sequence | dict = ()) -> sqlite3.Row | None:
        with deadline(self.conn, _timeout()):
            return self.conn.execute(sql, params).fetchone()

    def __enter__(self) -> "transaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            try:
                with deadline(self.conn, _timeout()):
                    self.conn.commit()
            except StoreError:
                self.conn.rollback()
                raise
        else:
            self.conn.rollback()
        return False
