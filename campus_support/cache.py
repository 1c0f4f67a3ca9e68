"""
Fetch Cache State
=================
Explicit per-resource cache record:

    CacheState{data, last_fetched_at, is_loading, error}

plus the pure `should_refetch(state, now, ttl)` predicate that decides
whether a store hits the backend again.  States are immutable; every
transition returns a new record.
"""

import time
from dataclasses import dataclass, replace
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class CacheState(Generic[T]):
    data:            Optional[T] = None
    last_fetched_at: Optional[float] = None    # UNIX timestamp of last success
    is_loading:      bool = False
    error:           Optional[str] = None

    # ── Transitions ───────────────────────────────────────────────────────────

    def loading(self) -> "CacheState[T]":
        return replace(self, is_loading=True, error=None)

    def loaded(self, data: T, now: float) -> "CacheState[T]":
        return CacheState(data=data, last_fetched_at=now, is_loading=False, error=None)

    def failed(self, error: str) -> "CacheState[T]":
        # keep stale data visible alongside the error
        return replace(self, is_loading=False, error=error)

    def invalidated(self) -> "CacheState[T]":
        return replace(self, last_fetched_at=None)

    def with_data(self, data: T) -> "CacheState[T]":
        """Local mutation result; freshness is unchanged."""
        return replace(self, data=data)

    def age(self, now: float) -> Optional[float]:
        if self.last_fetched_at is None:
            return None
        return now - self.last_fetched_at

    def to_dict(self) -> dict:
        return {
            "has_data":        self.data is not None,
            "last_fetched_at": self.last_fetched_at,
            "is_loading":      self.is_loading,
            "error":           self.error,
        }


def should_refetch(state: CacheState, now: float, ttl: float) -> bool:
    """
    True when the data is missing, never fetched, invalidated or older than
    `ttl` seconds.  Never True while a fetch is already in flight.
    """
    if state.is_loading:
        return False
    if state.data is None or state.last_fetched_at is None:
        return True
    return (now - state.last_fetched_at) >= ttl


Clock = Callable[[], float]

default_clock: Clock = time.time
