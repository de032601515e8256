"""
Server-side record of the refresh tokens a user currently holds.

One sorted set per user: member is the token string, score its expiry as a
unix timestamp. Every write prunes expired members and re-applies the
rolling record TTL inside a single MULTI/EXEC.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Tuple
from uuid import UUID

from servicecommon.cache import CacheGateway
from servicecommon.logging import get_logger

RECORD_TTL = timedelta(days=30)


def refresh_key(user_id: UUID) -> str:
    return f"refresh_tokens:{user_id}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshTokenStore:
    def __init__(self, cache: CacheGateway, clock: Callable[[], datetime] = _utc_now):
        self.cache = cache
        self._clock = clock
        self.logger = get_logger("userservice.refresh_tokens")

    def _prune(self, key: str) -> Tuple:
        return ("zremrangebyscore", key, "-inf", self._clock().timestamp())

    def save(self, user_id: UUID, token: str, expires_at: datetime) -> bool:
        key = refresh_key(user_id)
        ops: List[Tuple] = [
            self._prune(key),
            ("zadd", key, {token: expires_at.timestamp()}),
            ("expire", key, RECORD_TTL),
        ]
        return self.cache.atomic_multi_write(ops)

    def is_active(self, user_id: UUID, token: str) -> bool:
        score = self.cache.score(refresh_key(user_id), token)
        return score is not None and score > self._clock().timestamp()

    def rotate(self, user_id: UUID, old_token: str, new_token: str, expires_at: datetime) -> bool:
        key = refresh_key(user_id)
        ops: List[Tuple] = [
            ("zrem", key, old_token),
            self._prune(key),
            ("zadd", key, {new_token: expires_at.timestamp()}),
            ("expire", key, RECORD_TTL),
        ]
        ok = self.cache.atomic_multi_write(ops)
        if ok:
            self.logger.info("Refresh token rotated", user_id=str(user_id))
        return ok

    def revoke(self, user_id: UUID, token: str) -> bool:
        return self.cache.atomic_multi_write([("zrem", refresh_key(user_id), token)])
