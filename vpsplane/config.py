"""
VPSPlane Centralized Configuration
==================================

Single source of truth for all configuration values.
Reads from environment variables with sensible defaults.
"""

import os
from typing import List
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class CacheSettings:
    """TTLs in seconds for each cached vendor catalog."""
    plans_ttl: int = 3600
    images_ttl: int = 3600
    regions_ttl: int = 3600
    marketplace_ttl: int = 21600
    enabled: bool = True


@dataclass
class VendorClientConfig:
    timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0


@dataclass
class ProviderTokens:
    linode: str = ""
    digitalocean: str = ""

    def available_providers(self) -> List[str]:
        providers = []
        if self.linode:
            providers.append("linode")
        if self.digitalocean:
            providers.append("digitalocean")
        return providers


@dataclass
class VPSPlaneConfig:
    """Master configuration for the provider layer."""

    # Sub-configs
    cache: CacheSettings = field(default_factory=CacheSettings)
    client: VendorClientConfig = field(default_factory=VendorClientConfig)
    providers: ProviderTokens = field(default_factory=ProviderTokens)

    # Application settings
    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> "VPSPlaneConfig":
        """Load configuration from environment variables."""
        return cls(
            cache=CacheSettings(
                plans_ttl=int(os.environ.get("CACHE_PLANS_TTL", "3600")),
                images_ttl=int(os.environ.get("CACHE_IMAGES_TTL", "3600")),
                regions_ttl=int(os.environ.get("CACHE_REGIONS_TTL", "3600")),
                marketplace_ttl=int(os.environ.get("CACHE_MARKETPLACE_TTL", "21600")),
                enabled=_env_bool("CACHE_ENABLED", True),
            ),
            client=VendorClientConfig(
                timeout=float(os.environ.get("VENDOR_TIMEOUT", "30")),
                max_retries=int(os.environ.get("VENDOR_MAX_RETRIES", "3")),
                retry_delay=float(os.environ.get("VENDOR_RETRY_DELAY", "1")),
            ),
            providers=ProviderTokens(
                linode=os.environ.get("LINODE_API_TOKEN", ""),
                digitalocean=os.environ.get("DIGITALOCEAN_API_TOKEN", ""),
            ),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            log_format=os.environ.get("LOG_FORMAT", "json"),
        )
