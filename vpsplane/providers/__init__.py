"""
VPSPlane VPS Provider Abstraction Layer
=======================================

One service contract over several cloud vendors, with normalized results,
normalized errors and a TTL cache for vendor catalogs.

Supported Providers:
- Linode/Akamai (REST v4)
- DigitalOcean (REST v2)

Reserved (not implemented):
- AWS
- GCP

Note: Import provider modules to trigger @register_provider decorators.
"""

from .base import (
    BaseProviderService,
    CreateInstanceParams,
    ErrorCode,
    InstanceAction,
    InstanceSpecs,
    InstanceStatus,
    MarketplaceApp,
    PlanPrice,
    ProviderError,
    ProviderImage,
    ProviderInstance,
    ProviderPlan,
    ProviderRegion,
    ProviderType,
)
from .cache import CacheConfig, CacheEntry, ProviderResourceCache, ResourceType
from .errors import (
    error_from_response,
    get_user_friendly_message,
    normalize_digitalocean_error,
    normalize_error,
    normalize_linode_error,
)
from .registry import ProviderFactory, ProviderRegistry, register_provider

# Import providers to trigger registration via @register_provider decorator
from . import linode
from . import digitalocean

from .linode import LinodeProviderService
from .digitalocean import DigitalOceanProviderService

__all__ = [
    # Data model
    "BaseProviderService",
    "CreateInstanceParams",
    "ErrorCode",
    "InstanceAction",
    "InstanceSpecs",
    "InstanceStatus",
    "MarketplaceApp",
    "PlanPrice",
    "ProviderError",
    "ProviderImage",
    "ProviderInstance",
    "ProviderPlan",
    "ProviderRegion",
    "ProviderType",
    # Cache
    "CacheConfig",
    "CacheEntry",
    "ProviderResourceCache",
    "ResourceType",
    # Errors
    "error_from_response",
    "get_user_friendly_message",
    "normalize_digitalocean_error",
    "normalize_error",
    "normalize_linode_error",
    # Registry
    "ProviderFactory",
    "ProviderRegistry",
    "register_provider",
    # Adapters
    "LinodeProviderService",
    "DigitalOceanProviderService",
]
