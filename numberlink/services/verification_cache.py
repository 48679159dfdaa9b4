# numberlink/services/verification_cache.py
"""
Short-lived record of business numbers that passed registry verification.

Company registration is only allowed while a fresh entry exists for the exact
business number string. Entries expire after VERIFICATION_TTL_HOURS; expiry is
checked on read and by a periodic sweep (see services/scheduler.py) so the map
stays bounded even when nobody reads it.

The cache is handed to its users (app.state → dependency) rather than living
as module state, so tests and alternative backends can supply their own.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Optional

from numberlink.config import settings
from numberlink.utils.logger import get_logger

logger = get_logger(__name__)


class VerificationCache(ABC):
    @abstractmethod
    def mark_verified(self, business_number: str) -> None:
        ...

    @abstractmethod
    def is_verified(self, business_number: str) -> bool:
        ...

    @abstractmethod
    def sweep_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""


class InMemoryVerificationCache(VerificationCache):
    """Process-local cache guarded by a lock; safe across request threads."""

    def __init__(self, ttl: Optional[timedelta] = None,
                 clock: Callable[[], datetime] = datetime.utcnow):
        self.ttl = ttl or timedelta(hours=settings.VERIFICATION_TTL_HOURS)
        self._clock = clock
        self._entries: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def _expired(self, verified_at: datetime, now: datetime) -> bool:
        return now - verified_at >= self.ttl

    def mark_verified(self, business_number: str) -> None:
        with self._lock:
            self._entries[business_number] = self._clock()

    def is_verified(self, business_number: str) -> bool:
        with self._lock:
            verified_at = self._entries.get(business_number)
            if verified_at is None:
                return False
            if self._expired(verified_at, self._clock()):
                del self._entries[business_number]
                return False
            return True

    def sweep_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [bn for bn, at in self._entries.items() if self._expired(at, now)]
            for bn in stale:
                del self._entries[bn]
        if stale:
            logger.info(f"Verification cache sweep removed {len(stale)} expired entries")
        return len(stale)

    def __len__(self):
        with self._lock:
            return len(self._entries)
