"""Error taxonomy for the data-access layer.

Errors raised by the pool, sessions, scopes and query strategies all derive
from BlogBenchError. Store-side failures derive from StoreError and are only
ever produced by Session, which maps sqlite3 exceptions onto them.
"""


class BlogBenchError(Exception):
    """Base class for all data-access errors."""


class PoolExhausted(BlogBenchError):
    """No session became free before the acquire timeout.

    Retryable by the caller, typically with backoff.
    """

    def __init__(self, capacity: int, timeout: float):
        self.capacity = capacity
        self.timeout = timeout
        super().__init__(
            f"No free session in pool of {capacity} after {timeout:.2f}s"
        )


class Cancelled(BlogBenchError):
    """The caller cancelled while waiting for a session or a query."""


class UntranslatablePredicate(BlogBenchError):
    """A filter can't be pushed to the store and client evaluation is off."""

    def __init__(self, predicate_name: str):
        self.predicate_name = predicate_name
        super().__init__(
            f"Predicate '{predicate_name}' can't be translated to SQL; "
            "opt in with with_client_eval() to filter in memory"
        )


class ReadOnlyResult(BlogBenchError):
    """A projected row was offered for change tracking or write-back."""


class StoreError(BlogBenchError):
    """Base class for failures reported by the store."""


class ConnectionLost(StoreError):
    """The session's connection is closed or unusable."""


class ConstraintViolation(StoreError):
    """The store rejected a write for data-integrity reasons."""


class QueryError(StoreError):
    """The store rejected a statement (syntax, unknown table or column)."""
