"""Bounded session pool with WAL mode for concurrent access."""

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from config import (
    DB_PATH,
    DB_WAL_MODE,
    POOL_ACQUIRE_TIMEOUT,
    POOL_CAPACITY,
    POOL_VALIDATE_ON_CHECKOUT,
    POOL_WAIT_SLICE,
)
from utils.validation import validate_positive_int, validate_timeout
from .errors import Cancelled, ConnectionLost, PoolExhausted, StoreError
from .schema import init_schema
from .session import Session

logger = logging.getLogger(__name__)


class ConnectionPool:
    """Thread-safe pool owning a fixed number of SQLite sessions.

    Every slot holds a free session, a checked-out session, or nothing
    when a replacement couldn't be opened, so
    ``free + in_flight + missing == capacity`` holds at all times. Empty
    slots are refilled by the next acquire. WAL mode lets
    the checked-out sessions read concurrently while one of them writes.
    """

    def __init__(
        self,
        db_path: str = DB_PATH,
        capacity: int = POOL_CAPACITY,
        acquire_timeout: float = POOL_ACQUIRE_TIMEOUT,
        validate_on_checkout: bool = POOL_VALIDATE_ON_CHECKOUT,
        wal_mode: bool = DB_WAL_MODE,
    ):
        ok, error = validate_positive_int(capacity, "capacity")
        if not ok:
            raise ValueError(error)
        ok, error = validate_timeout(acquire_timeout, "acquire_timeout")
        if not ok:
            raise ValueError(error)

        self.db_path = Path(db_path).expanduser()
        self.capacity = capacity
        self.acquire_timeout = acquire_timeout
        self.validate_on_checkout = validate_on_checkout
        self.wal_mode = wal_mode

        self._free: list[Session] = []
        self._in_flight: dict[int, Session] = {}
        self._missing = 0
        self._cond = threading.Condition(threading.Lock())

        self._initialized = False

        # Statistics
        self.checkouts = 0
        self.replaced = 0
        self.peak_in_flight = 0
        self._retired_round_trips = 0

    def initialize(self) -> None:
        """Open all sessions and create the schema."""
        if self._initialized:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        sessions = [self._open_session() for _ in range(self.capacity)]
        init_schema(sessions[0].connection)

        with self._cond:
            self._free.extend(sessions)
            self._initialized = True
        logger.info(f"Initialized pool of {self.capacity} sessions at {self.db_path}")

    def _open_session(self) -> Session:
        return Session.open(self.db_path, wal_mode=self.wal_mode)

    def acquire(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Session:
        """Check out a session, blocking while the pool is exhausted.

        Raises PoolExhausted when no session frees up within ``timeout``
        (the pool default when None) and Cancelled when ``cancel`` is set
        while waiting. Raises ConnectionLost when a dead session can't be
        replaced; its slot stays empty until a later acquire refills it.
        """
        if timeout is None:
            timeout = self.acquire_timeout
        deadline = time.monotonic() + timeout

        with self._cond:
            if not self._initialized:
                raise RuntimeError("Connection pool not initialized")

            while not self._free and not self._missing:
                if cancel is not None and cancel.is_set():
                    raise Cancelled("Cancelled while waiting for a session")
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise PoolExhausted(self.capacity, timeout)
                self._cond.wait(min(remaining, POOL_WAIT_SLICE))
                if not self._initialized:
                    raise RuntimeError("Connection pool closed while waiting")

            if cancel is not None and cancel.is_set():
                raise Cancelled("Cancelled while waiting for a session")

            self.checkouts += 1
            if not self._free:
                # Claim an empty slot and open its session outside the lock
                self._missing -= 1
                session = None
            else:
                session = self._free.pop()
                self._in_flight[session.id] = session
                self.peak_in_flight = max(self.peak_in_flight, len(self._in_flight))

        if session is None:
            return self._refill()
        if self.validate_on_checkout and not session.is_alive():
            session = self._replace(session)

        return session

    def release(self, session: Session) -> None:
        """Return a checked-out session to the free set."""
        with self._cond:
            if self._in_flight.get(session.id) is not session:
                raise ValueError(f"{session!r} is not checked out from this pool")

        if session.broken or session.in_transaction:
            try:
                session = self._replace(session)
            except ConnectionLost as e:
                logger.error(f"Pool slot left empty on release: {e}")
                return

        with self._cond:
            del self._in_flight[session.id]
            if self._initialized:
                self._free.append(session)
                self._cond.notify()
            else:
                self._retire(session)

    def _replace(self, dead: Session) -> Session:
        """Swap a dead checked-out session for a fresh one in place.

        The dead session is retired first, so a failed open leaves an
        empty slot rather than a checkout nobody owns.
        """
        logger.warning(f"Replacing dead {dead!r}")
        with self._cond:
            del self._in_flight[dead.id]
            self._retire(dead)
            self.replaced += 1
        return self._refill()

    def _refill(self) -> Session:
        """Open a session for a claimed slot and check it out.

        Raises ConnectionLost, handing the slot back, if the open fails.
        """
        try:
            fresh = self._open_session()
        except (StoreError, sqlite3.Error) as e:
            with self._cond:
                self._missing += 1
                self._cond.notify()
            raise ConnectionLost(f"Could not open a session on {self.db_path}: {e}") from e
        with self._cond:
            self._in_flight[fresh.id] = fresh
            self.peak_in_flight = max(self.peak_in_flight, len(self._in_flight))
        return fresh

    def _retire(self, session: Session) -> None:
        self._retired_round_trips += session.round_trips
        session.close()

    @contextmanager
    def session(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ):
        """Check out a session for the duration of the block.

        Usage:
            with pool.session() as session:
                rows = session.fetch("SELECT ...")
        """
        session = self.acquire(timeout=timeout, cancel=cancel)
        try:
            yield session
        finally:
            self.release(session)

    @property
    def free_count(self) -> int:
        with self._cond:
            return len(self._free)

    @property
    def in_flight_count(self) -> int:
        with self._cond:
            return len(self._in_flight)

    @property
    def missing_count(self) -> int:
        """Slots whose replacement session couldn't be opened yet."""
        with self._cond:
            return self._missing

    @property
    def round_trips(self) -> int:
        """Total statements sent by every session this pool has owned."""
        with self._cond:
            live = sum(s.round_trips for s in self._free)
            live += sum(s.round_trips for s in self._in_flight.values())
            return live + self._retired_round_trips

    @property
    def stats(self) -> dict:
        """Get pool statistics."""
        with self._cond:
            free = len(self._free)
            in_flight = len(self._in_flight)
            missing = self._missing
        return {
            "capacity": self.capacity,
            "free": free,
            "in_flight": in_flight,
            "missing": missing,
            "peak_in_flight": self.peak_in_flight,
            "checkouts": self.checkouts,
            "replaced": self.replaced,
            "round_trips": self.round_trips,
        }

    def close(self) -> None:
        """Close free sessions; checked-out ones are closed on release."""
        with self._cond:
            for session in self._free:
                self._retire(session)
            self._free.clear()
            self._missing = 0
            self._initialized = False
            self._cond.notify_all()

        if self.wal_mode and self.db_path.exists():
            # Checkpoint WAL so the database file is self-contained
            try:
                checkpoint = Session.open(self.db_path, wal_mode=False)
                checkpoint.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                checkpoint.close()
            except (StoreError, sqlite3.Error) as e:
                logger.debug(f"WAL checkpoint skipped: {e}")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def open_session(db_path: str = DB_PATH, wal_mode: bool = DB_WAL_MODE) -> Session:
    """Open a standalone session outside any pool.

    The caller owns it and must close it.
    """
    return Session.open(Path(db_path).expanduser(), wal_mode=wal_mode)


class SessionFactory:
    """Unpooled session source: opens a session per acquire, closes it on release.

    Drop-in for ConnectionPool wherever a scope needs acquire/release,
    used as the baseline when measuring what pooling saves.
    """

    def __init__(self, db_path: str = DB_PATH, wal_mode: bool = DB_WAL_MODE):
        self.db_path = Path(db_path).expanduser()
        self.wal_mode = wal_mode
        self.opened = 0
        self.round_trips = 0

    def acquire(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Session:
        if cancel is not None and cancel.is_set():
            raise Cancelled("Cancelled before opening a session")
        self.opened += 1
        return open_session(str(self.db_path), wal_mode=self.wal_mode)

    def release(self, session: Session) -> None:
        self.round_trips += session.round_trips
        session.close()
