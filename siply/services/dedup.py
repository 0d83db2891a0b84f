from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Hashable


class HandledCache:
    """Remembers handled notification ids for a limited time.

    Created once by the entry point and passed to handlers; entries expire after
    ``ttl`` and the oldest ones are evicted beyond ``max_size``.
    """

    def __init__(self, ttl: timedelta, max_size: int = 512) -> None:
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.ttl = ttl
        self.max_size = max_size
        self._entries: OrderedDict[Hashable, datetime] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def prune(self, now: datetime) -> None:
        expired = [key for key, expires_at in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]

    def seen(self, key: Hashable, now: datetime) -> bool:
        expires_at = self._entries.get(key)
        return expires_at is not None and expires_at > now

    def mark(self, key: Hashable, now: datetime) -> bool:
        """Record ``key``; False when it was already handled and has not expired."""
        self.prune(now)
        if key in self._entries:
            return False
        self._entries[key] = now + self.ttl
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)
        return True
