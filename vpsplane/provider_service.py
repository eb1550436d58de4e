"""
VPSPlane Provider Service
=========================

High-level entry point that combines the provider directory with the
factory: resolve a stored provider, build its adapter, apply the
operator's allowlists.
"""

from typing import Any, Dict, List, Optional
import logging

from .config import VPSPlaneConfig
from .providers.allowlists import filter_marketplace_apps, filter_regions
from .providers.base import BaseProviderService, MarketplaceApp, ProviderRegion
from .providers.cache import ProviderResourceCache, ResourceType
from .providers.directory import InMemoryProviderDirectory, ProviderDirectory, ProviderRecord
from .providers.registry import ProviderFactory

logger = logging.getLogger(__name__)


class ProviderService:
    """
    Provider operations keyed by stored provider id.

    Usage:
        service = ProviderService.from_config(VPSPlaneConfig.from_env())
        adapter = service.get_provider_service("linode-env")
        plans = adapter.get_plans()
    """

    def __init__(self, directory: ProviderDirectory, factory: ProviderFactory):
        self.directory = directory
        self.factory = factory

    @classmethod
    def from_config(cls, config: VPSPlaneConfig) -> "ProviderService":
        """Wire a cache, factory and token-seeded directory from configuration."""
        cache = ProviderResourceCache.from_config(config.cache)
        factory = ProviderFactory(cache, client_config=config.client)
        directory = InMemoryProviderDirectory.from_tokens(config.providers, cache=cache)
        return cls(directory, factory)

    @property
    def cache(self) -> ProviderResourceCache:
        return self.factory.cache

    def _build(self, record: ProviderRecord) -> BaseProviderService:
        return self.factory.create(record.type.value, record.api_token, record.id)

    def get_provider_service(self, provider_id: str) -> BaseProviderService:
        """
        Build the adapter for a stored provider.

        Raises:
            ProviderError: PROVIDER_NOT_FOUND, PROVIDER_INACTIVE,
                MISSING_CREDENTIALS or UNSUPPORTED_PROVIDER
        """
        return self._build(self.directory.resolve(provider_id))

    def get_provider_service_by_type(self, provider_type: str) -> BaseProviderService:
        """Build the adapter for the first active provider of a vendor type."""
        return self._build(self.directory.resolve_active_by_type(provider_type))

    def get_active_providers(self) -> List[Dict[str, Any]]:
        return [record.public_info() for record in self.directory.list_active()]

    def get_provider_info(self, provider_id: str) -> Optional[Dict[str, Any]]:
        record = self.directory.get(provider_id)
        return record.public_info() if record is not None else None

    def validate_provider_credentials(self, provider_id: str) -> bool:
        """Return True if the stored credential works. Never raises."""
        try:
            return self.get_provider_service(provider_id).validate_credentials()
        except Exception as e:
            logger.error(
                f"Error validating provider credentials: {e}",
                extra={"provider_id": provider_id},
            )
            return False

    def get_allowed_regions(self, provider_id: str) -> List[ProviderRegion]:
        """Vendor regions narrowed to the provider's allowlist, if customised."""
        record = self.directory.resolve(provider_id)
        regions = self._build(record).get_regions()
        return filter_regions(record.type.value, regions, record.allowed_regions)

    def get_allowed_marketplace_apps(self, provider_id: str) -> List[MarketplaceApp]:
        record = self.directory.resolve(provider_id)
        apps = self._build(record).get_marketplace_apps()
        return filter_marketplace_apps(apps, record.allowed_marketplace_apps)

    def refresh_provider(self, provider_id: str, resource_type: Optional[ResourceType] = None) -> None:
        """Drop cached catalogs so the next read goes to the vendor."""
        self.cache.invalidate(provider_id, resource_type)
        logger.info(
            f"Provider {provider_id} cache refreshed",
            extra={"provider_id": provider_id, "resource_type": resource_type},
        )
