"""Distributed cache client contract and its Redis implementation."""

import asyncio
from typing import List, Optional, Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..config.logging import get_logger
from ..core.errors import OperationalError

logger = get_logger(__name__)


class DistributedCacheClient(Protocol):
    """Operations the cache service needs from a shared cache."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def keys(self, pattern: str = "*") -> List[str]: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class RedisCacheClient:
    """
    Redis-backed distributed tier.

    Every call is bounded by ``timeout_seconds``; connection errors, Redis
    errors and timeouts are all raised as CACHE_TIER operational errors so
    the cache service can fall back per operation.
    """

    def __init__(
        self,
        host: str,
        port: int = 6379,
        password: Optional[str] = None,
        db: int = 0,
        timeout_seconds: float = 2.0,
        client: Optional[redis.Redis] = None,
    ):
        self.host = host
        self.port = port
        self.timeout_seconds = timeout_seconds
        self._client = client or redis.Redis(
            host=host,
            port=port,
            password=password,
            db=db,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
            decode_responses=True,
        )
        self.logger = logger.bind(component="redis_cache", host=host, port=port)

    async def _call(self, operation: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise OperationalError.cache_tier(
                "distributed", operation, f"timed out after {self.timeout_seconds}s"
            )
        except (RedisError, OSError) as e:
            raise OperationalError.cache_tier("distributed", operation, str(e))

    async def get(self, key: str) -> Optional[str]:
        return await self._call("get", self._client.get(key))

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._call("set", self._client.set(key, value, ex=ttl_seconds))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._call("delete", self._client.delete(*keys)))

    async def keys(self, pattern: str = "*") -> List[str]:
        async def _scan() -> List[str]:
            return [key async for key in self._client.scan_iter(match=pattern)]

        return await self._call("keys", _scan())

    async def ping(self) -> bool:
        return bool(await self._call("ping", self._client.ping()))

    async def close(self) -> None:
        try:
            await self._client.aclose()
            self.logger.info("Redis connection closed")
        except (RedisError, OSError) as e:
            self.logger.warning("Error closing Redis connection", error=str(e))
