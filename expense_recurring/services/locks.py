"""
KeyedLock -- process-wide mutual exclusion per key.

Serializes the check-then-write section of overlapping generation runs in
one process.  Cross-process exclusion is the database's job (row lock plus
the unique success index).
"""

from __future__ import annotations

import threading
from collections.abc import Hashable
from contextlib import contextmanager
from typing import Generator


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class KeyedLock:
    """A registry of ``threading.Lock`` objects, one per key.

    An entry lives only while some thread holds or waits for its key, so the
    registry does not grow with every definition ever processed.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Generator[None, None, None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._entries)


_definition_locks = KeyedLock()


def definition_locks() -> KeyedLock:
    """The shared per-definition lock registry."""
    return _definition_locks
