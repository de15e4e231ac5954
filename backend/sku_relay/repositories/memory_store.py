"""In-process key/value stores shared by the request handlers.

Handlers receive a store through FastAPI dependencies rather than touching
module globals, so a deployment with several workers can swap in an external
cache that implements the same ``BaseStore`` interface.
"""
from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

V = TypeVar("V")


class BaseStore(ABC, Generic[V]):
    """get/set/delete/sweep contract for every store backend."""

    @abstractmethod
    def get(self, key: str) -> Optional[V]:
        ...

    @abstractmethod
    def set(self, key: str, value: V) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    def sweep(self) -> int:
        """Evict expired entries and return how many were removed."""

    @abstractmethod
    def items(self) -> List[Tuple[str, V]]:
        ...


@dataclass
class _Entry(Generic[V]):
    value: V
    stored_at: float


class InMemoryStore(BaseStore[V]):
    """Dict-backed store with timestamped entries and an optional TTL.

    Entries older than ``ttl_seconds`` are invisible to ``get`` and removed by
    ``sweep``. ``ttl_seconds=None`` keeps entries until deleted.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, _Entry[V]] = {}

    def _expired(self, entry: _Entry[V], now: float) -> bool:
        if self.ttl_seconds is None:
            return False
        return now - entry.stored_at > self.ttl_seconds

    def get(self, key: str) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None or self._expired(entry, self._clock()):
            return None
        return entry.value

    def set(self, key: str, value: V) -> None:
        self._entries[key] = _Entry(value=value, stored_at=self._clock())

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def sweep(self) -> int:
        now = self._clock()
        stale = [key for key, entry in self._entries.items() if self._expired(entry, now)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def items(self) -> List[Tuple[str, V]]:
        now = self._clock()
        return [(k, e.value) for k, e in self._entries.items() if not self._expired(e, now)]

    def values(self) -> List[V]:
        return [value for _, value in self.items()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __len__(self) -> int:
        return len(self.items())

    def __iter__(self) -> Iterator[str]:
        return iter([key for key, _ in self.items()])
