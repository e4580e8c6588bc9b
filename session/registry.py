"""
session/registry.py

Keyed in-memory storage for session objects.

Locking model
-------------
* A short structural lock guards the key map only (insert, lookup, delete).
* Each entry carries its own ``threading.RLock``; :meth:`SessionRegistry.locked`
  holds it for the duration of a mutation, so there is a single writer per key
  while independent keys proceed in parallel.

Expiry is an explicit scan (:meth:`SessionRegistry.expire`) driven by the
caller's scheduler. Entries have no timers of their own.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from app.logging_utils import log_event
from session.errors import SessionError, SessionNotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Entry(Generic[T]):
    value: T
    last_access: float
    lock: threading.RLock = field(default_factory=threading.RLock)


class SessionRegistry(Generic[T]):
    """
    Arena-style registry keyed by session id.

    Args:
        name: Label used in log lines.
        ttl_seconds: Idle lifetime measured from last access. ``None``
            disables TTL expiry.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        *,
        name: str = "sessions",
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._name = name
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry[T]] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float | None:
        return self._ttl_seconds

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, key: str, value: T) -> T:
        with self._lock:
            if key in self._entries:
                raise SessionError(f"Session already exists: {key}")
            self._entries[key] = _Entry(value=value, last_access=self._clock())
        return value

    def get(self, key: str, *, touch: bool = True) -> T | None:
        """
        Return the value for *key*, or None when absent or already idle past the TTL.
        """

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            now = self._clock()
            if self._is_expired(entry, now):
                del self._entries[key]
                return None
            if touch:
                entry.last_access = now
            return entry.value

    def require(self, key: str, *, touch: bool = True) -> T:
        value = self.get(key, touch=touch)
        if value is None:
            raise SessionNotFoundError(key)
        return value

    def _is_expired(self, entry: _Entry[T], now: float) -> bool:
        return self._ttl_seconds is not None and now - entry.last_access > self._ttl_seconds

    def touch(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            entry.last_access = self._clock()
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    @contextmanager
    def locked(self, key: str) -> Iterator[T]:
        """
        Hold the per-key lock while the caller mutates the entry.

        Raises:
            SessionNotFoundError: The key is absent, or was deleted while
                waiting for the lock.
        """

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_expired(entry, self._clock()):
                del self._entries[key]
                entry = None
        if entry is None:
            raise SessionNotFoundError(key)

        with entry.lock:
            with self._lock:
                if self._entries.get(key) is not entry:
                    raise SessionNotFoundError(key)
                entry.last_access = self._clock()
            yield entry.value

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    def expire(self, now: float | None = None) -> int:
        """
        Remove entries idle for longer than the TTL. Returns the removed count.

        Entries whose lock is currently held are skipped until the next scan.
        """

        if self._ttl_seconds is None:
            return 0
        reference = self._clock() if now is None else now
        return self._remove(
            lambda entry: self._is_expired(entry, reference),
            event="registry_expired",
        )

    def remove_where(self, predicate: Callable[[T], bool]) -> int:
        """
        Remove every entry whose value satisfies *predicate*.
        """

        return self._remove(lambda entry: predicate(entry.value), event="registry_pruned")

    def _remove(self, should_remove: Callable[[_Entry[T]], bool], *, event: str) -> int:
        with self._lock:
            candidates = [(key, entry) for key, entry in self._entries.items() if should_remove(entry)]

        removed = 0
        for key, entry in candidates:
            if not entry.lock.acquire(blocking=False):
                continue
            try:
                with self._lock:
                    if self._entries.get(key) is entry and should_remove(entry):
                        del self._entries[key]
                        removed += 1
            finally:
                entry.lock.release()

        if removed:
            log_event(logger, logging.INFO, event, registry=self._name, removed=removed, remaining=len(self))
        return removed

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def values(self) -> list[T]:
        with self._lock:
            return [entry.value for entry in self._entries.values()]

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
