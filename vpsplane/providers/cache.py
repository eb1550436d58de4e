"""
VPSPlane Provider Resource Cache
================================

In-process TTL cache for slow-changing vendor catalogs (plans, images,
regions, marketplace apps), keyed by (provider_id, resource_type).

One instance is constructed at startup and injected into the factory and
adapters. Entries are replaced wholesale, never merged. Expired or disabled
entries are invisible to readers and are overwritten lazily; there is no
background sweep.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, TYPE_CHECKING
import threading
import time
import logging

if TYPE_CHECKING:
    from ..config import CacheSettings

logger = logging.getLogger(__name__)


class ResourceType(str, Enum):
    PLANS = "plans"
    IMAGES = "images"
    REGIONS = "regions"
    MARKETPLACE = "marketplace"


HOUR = 60 * 60

DEFAULT_TTLS = {
    ResourceType.PLANS: 1 * HOUR,
    ResourceType.IMAGES: 1 * HOUR,
    ResourceType.REGIONS: 1 * HOUR,
    ResourceType.MARKETPLACE: 6 * HOUR,
}


@dataclass
class CacheConfig:
    """Per-resource-type settings shared by every provider."""
    ttl: float
    enabled: bool = True


@dataclass(frozen=True)
class CacheEntry:
    resource_type: ResourceType
    provider_id: str
    value: Any
    stored_at: float
    ttl: float

    def is_fresh(self, now: float, ttl: Optional[float] = None) -> bool:
        return now < self.stored_at + (self.ttl if ttl is None else ttl)


class ProviderResourceCache:
    """
    Thread-safe keyed TTL store.

    Usage:
        cache = ProviderResourceCache()
        plans = cache.get_or_fetch(ResourceType.PLANS, "p1", fetch_plans)
        cache.invalidate("p1")
    """

    def __init__(
        self,
        configs: Optional[Dict[ResourceType, CacheConfig]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._clock = clock
        self._lock = threading.Lock()
        self._configs: Dict[ResourceType, CacheConfig] = {
            rt: CacheConfig(ttl=DEFAULT_TTLS[rt]) for rt in ResourceType
        }
        for rt, config in (configs or {}).items():
            self._configs[ResourceType(rt)] = CacheConfig(config.ttl, config.enabled)

        self._entries: Dict[ResourceType, Dict[str, CacheEntry]] = {rt: {} for rt in ResourceType}
        self._fetch_locks: Dict[Tuple[ResourceType, str], threading.Lock] = {}

    @classmethod
    def from_config(
        cls,
        settings: "CacheSettings",
        clock: Callable[[], float] = time.monotonic,
    ) -> "ProviderResourceCache":
        """Build a cache from the application CacheSettings."""
        configs = {
            ResourceType.PLANS: CacheConfig(settings.plans_ttl, settings.enabled),
            ResourceType.IMAGES: CacheConfig(settings.images_ttl, settings.enabled),
            ResourceType.REGIONS: CacheConfig(settings.regions_ttl, settings.enabled),
            ResourceType.MARKETPLACE: CacheConfig(settings.marketplace_ttl, settings.enabled),
        }
        return cls(configs=configs, clock=clock)

    # =========================================
    # READ / WRITE
    # =========================================

    def get(self, resource_type: ResourceType, provider_id: str) -> Optional[Any]:
        """
        Return the cached value, or None if absent, expired or disabled.

        Freshness is judged against the TTL configured now, so configure()
        takes effect on existing entries immediately.
        """
        resource_type = ResourceType(resource_type)
        with self._lock:
            config = self._configs[resource_type]
            entry = self._entries[resource_type].get(provider_id)
            hit = (
                entry is not None
                and config.enabled
                and entry.is_fresh(self._clock(), config.ttl)
            )

        if hit:
            logger.debug(
                f"Cache HIT {resource_type.value} for provider {provider_id}",
                extra={"provider_id": provider_id, "resource_type": resource_type.value},
            )
            return entry.value

        logger.debug(
            f"Cache MISS {resource_type.value} for provider {provider_id}",
            extra={"provider_id": provider_id, "resource_type": resource_type.value},
        )
        return None

    def set(self, resource_type: ResourceType, provider_id: str, value: Any) -> None:
        """Store value unconditionally, replacing any prior entry."""
        resource_type = ResourceType(resource_type)
        with self._lock:
            entry = CacheEntry(
                resource_type=resource_type,
                provider_id=provider_id,
                value=value,
                stored_at=self._clock(),
                ttl=self._configs[resource_type].ttl,
            )
            self._entries[resource_type][provider_id] = entry

        size = len(value) if hasattr(value, "__len__") else 1
        logger.info(
            f"Cache SET {resource_type.value} for provider {provider_id} ({size} items)",
            extra={"provider_id": provider_id, "resource_type": resource_type.value},
        )

    def get_or_fetch(
        self,
        resource_type: ResourceType,
        provider_id: str,
        fetch: Callable[[], Any],
    ) -> Any:
        """
        Fetch-through read.

        Concurrent misses on the same key wait for a single fetch instead of
        all calling the vendor. A failed fetch stores nothing.
        """
        resource_type = ResourceType(resource_type)
        value = self.get(resource_type, provider_id)
        if value is not None:
            return value

        with self._key_lock(resource_type, provider_id):
            value = self.get(resource_type, provider_id)
            if value is not None:
                return value
            value = fetch()
            self.set(resource_type, provider_id, value)
            return value

    def _key_lock(self, resource_type: ResourceType, provider_id: str) -> threading.Lock:
        with self._lock:
            return self._fetch_locks.setdefault((resource_type, provider_id), threading.Lock())

    # =========================================
    # INVALIDATION
    # =========================================

    def invalidate(self, provider_id: str, resource_type: Optional[ResourceType] = None) -> None:
        """
        Drop cached entries for a provider.

        Args:
            provider_id: Provider configuration id
            resource_type: Only this type; all four types when omitted
        """
        if resource_type is not None:
            resource_type = ResourceType(resource_type)
        types = [resource_type] if resource_type else list(ResourceType)
        with self._lock:
            for rt in types:
                self._entries[rt].pop(provider_id, None)
                self._fetch_locks.pop((rt, provider_id), None)

        scope = resource_type.value if resource_type else "all resources"
        logger.info(
            f"Cache INVALIDATE {scope} for provider {provider_id}",
            extra={"provider_id": provider_id},
        )

    def clear_all(self) -> None:
        with self._lock:
            for entries in self._entries.values():
                entries.clear()
            self._fetch_locks.clear()
        logger.info("Cache CLEAR all provider resource caches")

    # =========================================
    # CONFIGURATION
    # =========================================

    def configure(self, resource_type: ResourceType, ttl: float) -> None:
        """Set the TTL (seconds) for a resource type across all providers."""
        if ttl < 0:
            raise ValueError("ttl must be non-negative")
        resource_type = ResourceType(resource_type)
        with self._lock:
            self._configs[resource_type].ttl = ttl
        logger.info(f"Cache CONFIG {resource_type.value} TTL set to {ttl}s")

    def set_enabled(self, resource_type: ResourceType, enabled: bool) -> None:
        resource_type = ResourceType(resource_type)
        with self._lock:
            self._configs[resource_type].enabled = enabled
        logger.info(
            f"Cache CONFIG {resource_type.value} caching {'enabled' if enabled else 'disabled'}"
        )

    def get_config(self, resource_type: ResourceType) -> CacheConfig:
        with self._lock:
            config = self._configs[ResourceType(resource_type)]
            return CacheConfig(config.ttl, config.enabled)

    def stats(self) -> Dict[str, Dict[str, Any]]:
        """Per-type entry counts and provider ids. No side effects."""
        with self._lock:
            return {
                rt.value: {
                    "count": len(entries),
                    "provider_ids": list(entries.keys()),
                }
                for rt, entries in self._entries.items()
            }
