"""Per-window content checksums with a bounded LRU."""

from __future__ import annotations

import hashlib
from collections import OrderedDict
from typing import Hashable

DEFAULT_MAX_ENTRIES = 1000


def content_checksum(content: str) -> str:
    return hashlib.md5(content.encode("utf-8")).hexdigest()


class ChecksumCache:
    """Last-seen checksum per key; least recently used keys are evicted."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._entries: OrderedDict[Hashable, str] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def get(self, key: Hashable) -> str | None:
        value = self._entries.get(key)
        if value is not None:
            self._entries.move_to_end(key)
        return value

    def update(self, key: Hashable, checksum: str) -> bool:
        """Store ``checksum``; return True when it differs from the previous one."""
        previous = self._entries.get(key)
        self._entries[key] = checksum
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return previous != checksum

    def clear(self) -> None:
        self._entries.clear()
