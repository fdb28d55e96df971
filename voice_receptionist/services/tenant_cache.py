"""
Tenant Configuration Cache
Time-bounded cache of per-tenant call configuration with pluggable backends
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, NamedTuple, Optional

from voice_receptionist.core.config import settings
from voice_receptionist.core.logging import get_logger
from voice_receptionist.models.tenant import TenantCallConfig

logger = get_logger(__name__)

ConfigLoader = Callable[[str], Awaitable[TenantCallConfig]]


class CacheEntry(NamedTuple):
    value: TenantCallConfig
    cached_at: float


class CacheBackend(ABC):
    """Storage for cache entries"""

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        ...

    @abstractmethod
    async def set(self, key: str, entry: CacheEntry, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...


class InMemoryCacheBackend(CacheBackend):
    """
    Process-local backend

    Entries are replaced wholesale on refresh and never mutated, so
    concurrent readers of the same tenant always see a complete snapshot.
    """

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    async def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    async def set(self, key: str, entry: CacheEntry, ttl_seconds: int) -> None:
        self._entries[key] = entry

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class RedisCacheBackend(CacheBackend):
    """Shared backend for multi-process deployments"""

    def __init__(self, prefix: str = "tenant_config", client_factory=None):
        if client_factory is None:
            from voice_receptionist.services.redis_service import get_redis
            client_factory = get_redis
        self.prefix = prefix
        self._client_factory = client_factory

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get(self, key: str) -> Optional[CacheEntry]:
        client = await self._client_factory()
        data = await client.get(self._key(key))
        if not data:
            return None

        payload = json.loads(data)
        return CacheEntry(
            value=TenantCallConfig.model_validate(payload["value"]),
            cached_at=payload["cached_at"]
        )

    async def set(self, key: str, entry: CacheEntry, ttl_seconds: int) -> None:
        client = await self._client_factory()
        payload = {
            "value": entry.value.model_dump(mode="json"),
            "cached_at": entry.cached_at,
        }
        await client.setex(self._key(key), ttl_seconds, json.dumps(payload))

    async def delete(self, key: str) -> None:
        client = await self._client_factory()
        await client.delete(self._key(key))


class TenantConfigCache:
    """
    Read-through cache in front of the tenant repository

    Concurrent misses for the same tenant may each load; loads are
    idempotent so the last writer simply wins.
    """

    def __init__(
        self,
        loader: ConfigLoader,
        backend: Optional[CacheBackend] = None,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time
    ):
        self.loader = loader
        self.backend = backend or InMemoryCacheBackend()
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.tenant_cache_ttl_seconds
        self.clock = clock

    async def get(self, tenant_id: str) -> TenantCallConfig:
        """
        Get a tenant's configuration

        Args:
            tenant_id: Tenant identifier

        Returns:
            Cached snapshot if younger than the TTL, otherwise a fresh one

        Raises:
            ConfigNotFoundError: If the repository has no such tenant
        """
        now = self.clock()
        entry = await self.backend.get(tenant_id)
        if entry is not None and now - entry.cached_at < self.ttl_seconds:
            return entry.value

        value = await self.loader(tenant_id)
        await self.backend.set(tenant_id, CacheEntry(value=value, cached_at=now), self.ttl_seconds)
        logger.debug(f"Cached configuration for tenant {tenant_id}")
        return value

    async def invalidate(self, tenant_id: str) -> None:
        """Drop a tenant's entry so the next get reloads it"""
        await self.backend.delete(tenant_id)
        logger.info(f"Invalidated cached configuration for tenant {tenant_id}")


# Singleton instance
_tenant_cache: Optional[TenantConfigCache] = None


def get_tenant_cache() -> TenantConfigCache:
    """Get the TenantConfigCache singleton instance"""
    global _tenant_cache
    if _tenant_cache is None:
        from voice_receptionist.services.tenant_repository import get_tenant_repository

        if settings.tenant_cache_backend == "redis":
            backend: CacheBackend = RedisCacheBackend()
        else:
            backend = InMemoryCacheBackend()

        _tenant_cache = TenantConfigCache(
            loader=get_tenant_repository().load_config,
            backend=backend
        )
    return _tenant_cache
