"""Materialized query results."""

import copy
from dataclasses import dataclass, replace
from typing import Any, Iterator, Optional, Tuple


@dataclass(frozen=True)
class ResultSet:
    """Rows returned by one logical query."""
    entity: str
    rows: Tuple[Any, ...]
    projected: bool = False
    tracked: bool = False
    round_trips: int = 0
    from_cache: bool = False

    def __iter__(self) -> Iterator[Any]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def __getitem__(self, index):
        return self.rows[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, ResultSet):
            return NotImplemented
        return self.entity == other.entity and self.rows == other.rows

    def first(self) -> Optional[Any]:
        return self.rows[0] if self.rows else None

    def snapshot(self) -> "ResultSet":
        """Detached deep copy, safe to share or hand out again."""
        return replace(
            self,
            rows=copy.deepcopy(self.rows),
            tracked=False,
            round_trips=0,
        )
