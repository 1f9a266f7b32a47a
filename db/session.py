"""A single store session wrapping one SQLite connection."""

import itertools
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Optional, Sequence

from config import CANCEL_CHECK_OPS, DB_BUSY_TIMEOUT_MS
from .errors import Cancelled, ConnectionLost, ConstraintViolation, QueryError

logger = logging.getLogger(__name__)

_session_ids = itertools.count(1)


class Session:
    """One logical connection to the store.

    Every statement sent through fetch/execute counts as one round trip.
    Sessions are not thread-safe; the pool hands each one to a single
    scope at a time.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.id = next(_session_ids)
        self._conn = conn
        self.round_trips = 0
        self.broken = False
        self._in_transaction = False

    @classmethod
    def open(cls, db_path: Path, wal_mode: bool = True) -> "Session":
        """Open a new session on the database file."""
        conn = sqlite3.connect(
            str(db_path),
            check_same_thread=False,  # The pool hands sessions across threads
            isolation_level=None,  # Autocommit; transactions are explicit
        )
        conn.row_factory = sqlite3.Row
        if wal_mode:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute(f"PRAGMA busy_timeout={DB_BUSY_TIMEOUT_MS}")
        conn.execute("PRAGMA foreign_keys=ON")
        return cls(conn)

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def fetch(
        self,
        sql: str,
        params: Sequence = (),
        cancel: Optional[threading.Event] = None,
    ) -> list[sqlite3.Row]:
        """Run a query and return all rows. One round trip."""
        with self._guard(cancel):
            self.round_trips += 1
            return self._conn.execute(sql, tuple(params)).fetchall()

    def execute(
        self,
        sql: str,
        params: Sequence = (),
        cancel: Optional[threading.Event] = None,
    ) -> sqlite3.Cursor:
        """Run a statement and return its cursor. One round trip."""
        with self._guard(cancel):
            self.round_trips += 1
            return self._conn.execute(sql, tuple(params))

    def execute_many(self, sql: str, rows: Iterable[Sequence]) -> int:
        """Run a statement for each parameter row. One round trip."""
        with self._guard(None):
            self.round_trips += 1
            return self._conn.executemany(sql, rows).rowcount

    def execute_script(self, script: str) -> None:
        with self._guard(None):
            self.round_trips += 1
            self._conn.executescript(script)

    @contextmanager
    def transaction(self):
        """Run the enclosed statements in one transaction.

        Commits on success, rolls back on any exception and re-raises it.
        """
        with self._guard(None):
            self._conn.execute("BEGIN")
        self._in_transaction = True
        try:
            yield self
        except BaseException:
            try:
                self._conn.execute("ROLLBACK")
            except sqlite3.Error as e:
                logger.warning(f"Rollback failed on session {self.id}: {e}")
                self.broken = True
            raise
        else:
            with self._guard(None):
                self._conn.execute("COMMIT")
        finally:
            self._in_transaction = False

    def is_alive(self) -> bool:
        """Cheap liveness check."""
        if self.broken:
            return False
        try:
            self._conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error:
            return False

    def close(self) -> None:
        try:
            self._conn.close()
        except sqlite3.Error as e:
            logger.debug(f"Error closing session {self.id}: {e}")
        self.broken = True

    @contextmanager
    def _guard(self, cancel: Optional[threading.Event]):
        """Map sqlite3 errors onto the store error taxonomy."""
        if cancel is not None:
            if cancel.is_set():
                raise Cancelled("Cancelled before the statement was sent")
            self._conn.set_progress_handler(
                lambda: 1 if cancel.is_set() else 0, CANCEL_CHECK_OPS
            )
        try:
            yield
        except sqlite3.IntegrityError as e:
            raise ConstraintViolation(str(e)) from e
        except sqlite3.ProgrammingError as e:
            if "closed" in str(e).lower():
                self.broken = True
                raise ConnectionLost(str(e)) from e
            raise QueryError(str(e)) from e
        except sqlite3.OperationalError as e:
            message = str(e).lower()
            if "interrupted" in message and cancel is not None and cancel.is_set():
                raise Cancelled("Cancelled while the statement was running") from e
            if "disk i/o" in message or "unable to open" in message:
                self.broken = True
                raise ConnectionLost(str(e)) from e
            raise QueryError(str(e)) from e
        except sqlite3.DatabaseError as e:
            self.broken = True
            raise ConnectionLost(str(e)) from e
        finally:
            if cancel is not None and not self.broken:
                self._conn.set_progress_handler(None, 0)

    def __repr__(self) -> str:
        return f"Session(id={self.id}, round_trips={self.round_trips})"
