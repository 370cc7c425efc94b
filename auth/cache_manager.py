"""
In-memory cache for revoked access tokens and per-IP rate limiting.
Single-instance only; data is lost on restart.
"""

import threading
from datetime import datetime, timedelta
from typing import Tuple

from loguru import logger

SWEEP_INTERVAL_SECONDS = 60
MAX_RATE_KEYS = 10000


class InMemoryCacheManager:
    """In-memory cache manager using Python dicts"""

    def __init__(self):
        self.blacklist = {}  # token -> expiry time
        self.rate_limits = {}  # rate:key -> (count, window expiry)
        self.lock = threading.Lock()
        self.next_sweep = datetime.utcnow() + timedelta(seconds=SWEEP_INTERVAL_SECONDS)
        logger.debug("In-memory cache initialized")

    def _sweep(self, now: datetime, force: bool = False):
        """Drop expired blacklist entries and rate windows together; caller holds the lock"""
        if not force and now < self.next_sweep:
            return
        self.blacklist = {k: v for k, v in self.blacklist.items() if v > now}
        self.rate_limits = {k: v for k, v in self.rate_limits.items() if v[1] > now}
        self.next_sweep = now + timedelta(seconds=SWEEP_INTERVAL_SECONDS)

    # ==================== TOKEN BLACKLIST ====================

    def blacklist_token(self, token: str, ttl: int = 3600):
        """Revoke an access token until it would have expired anyway"""
        with self.lock:
            now = datetime.utcnow()
            self.blacklist[token] = now + timedelta(seconds=max(ttl, 1))
            self._sweep(now)

    def is_token_blacklisted(self, token: str) -> bool:
        with self.lock:
            expiry = self.blacklist.get(token)
            if expiry is None:
                return False
            if expiry <= datetime.utcnow():
                del self.blacklist[token]
                return False
            return True

    # ==================== RATE LIMITING ====================

    def hit(self, key: str, window_seconds: int = 60) -> Tuple[int, datetime]:
        """Count one request in a fixed window; returns (count, window reset time)"""
        with self.lock:
            now = datetime.utcnow()
            count, reset_at = self.rate_limits.get(key, (0, now + timedelta(seconds=window_seconds)))
            if reset_at <= now:
                count, reset_at = 0, now + timedelta(seconds=window_seconds)
            count += 1
            self.rate_limits[key] = (count, reset_at)

            self._sweep(now, force=len(self.rate_limits) > MAX_RATE_KEYS)
            return count, reset_at

    def clear(self):
        with self.lock:
            self.blacklist.clear()
            self.rate_limits.clear()


# Global instance
cache_manager = InMemoryCacheManager()
