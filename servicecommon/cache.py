"""
Redis-backed cache gateway.

Every failure talking to Redis is logged and swallowed: reads degrade to a
miss, writes to a no-op. The relational store stays the source of truth.
"""

from datetime import timedelta
from typing import Iterable, Optional, Sequence, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError
from redis import Redis, RedisError

from servicecommon.logging import get_logger

M = TypeVar("M", bound=BaseModel)

Ttl = Union[int, timedelta]

SCAN_BATCH = 100

# commands allowed inside atomic_multi_write
PIPELINE_COMMANDS = frozenset({"zadd", "zrem", "zremrangebyscore", "expire", "set", "delete"})


def build_redis(url: str, timeout_seconds: float) -> Redis:
    return Redis.from_url(
        url,
        socket_timeout=timeout_seconds,
        socket_connect_timeout=timeout_seconds,
        health_check_interval=30,
    )


class CacheGateway:
    """Key/value access with TTL, pattern deletion and atomic pipelines."""

    def __init__(self, client: Redis):
        self.client = client
        self.logger = get_logger("servicecommon.cache")

    def get(self, key: str) -> Optional[bytes]:
        try:
            value = self.client.get(key)
        except RedisError as e:
            self.logger.warning("Cache read failed", key=key, error=str(e))
            return None
        if value is None:
            self.logger.debug("Cache miss", key=key)
        return value

    def set(self, key: str, value: Union[bytes, str], ttl: Ttl) -> None:
        try:
            self.client.set(key, value, ex=ttl)
        except RedisError as e:
            self.logger.warning("Cache write failed", key=key, error=str(e))

    def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            self.client.delete(*keys)
            self.logger.debug("Cache keys deleted", keys=list(keys))
        except RedisError as e:
            self.logger.warning("Cache delete failed", keys=list(keys), error=str(e))

    def delete_by_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern; returns the number removed."""
        deleted = 0
        cursor = 0
        try:
            while True:
                cursor, keys = self.client.scan(cursor=cursor, match=pattern, count=SCAN_BATCH)
                if keys:
                    deleted += self.client.delete(*keys)
                if cursor == 0:
                    break
        except RedisError as e:
            self.logger.warning("Cache pattern delete failed", pattern=pattern, error=str(e))
            return deleted
        if deleted:
            self.logger.info("Deleted keys matching pattern", pattern=pattern, count=deleted)
        return deleted

    def atomic_multi_write(self, ops: Sequence[Tuple]) -> bool:
        """Run ``(command, *args)`` tuples in one MULTI/EXEC round trip."""
        for op in ops:
            if op[0] not in PIPELINE_COMMANDS:
                raise ValueError(f"unsupported pipeline command: {op[0]}")
        try:
            pipe = self.client.pipeline(transaction=True)
            for command, *args in ops:
                getattr(pipe, command)(*args)
            pipe.execute()
        except RedisError as e:
            self.logger.warning("Cache pipeline failed", commands=[op[0] for op in ops], error=str(e))
            return False
        return True

    def score(self, key: str, member: str) -> Optional[float]:
        try:
            return self.client.zscore(key, member)
        except RedisError as e:
            self.logger.warning("Cache score lookup failed", key=key, error=str(e))
            return None

    def get_model(self, key: str, model: Type[M]) -> Optional[M]:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            value = model.model_validate_json(raw)
        except ValidationError as e:
            self.logger.warning("Discarding undecodable cache entry", key=key, error=str(e))
            return None
        self.logger.debug("Cache hit", key=key)
        return value

    def set_model(self, key: str, value: BaseModel, ttl: Ttl) -> None:
        self.set(key, value.model_dump_json(), ttl)

    def invalidate(self, keys: Iterable[str] = (), patterns: Iterable[str] = ()) -> None:
        keys = [k for k in keys if k]
        if keys:
            self.delete(*keys)
        for pattern in patterns:
            self.delete_by_pattern(pattern)
