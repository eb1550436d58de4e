"""
VPSPlane Provider API Configuration
===================================

Centralized API configuration for each supported vendor: endpoints,
authentication and the request budgets the vendors enforce per token.

Documentation Links:
- DigitalOcean: https://docs.digitalocean.com/reference/api/
- Linode: https://techdocs.akamai.com/linode-api/reference/api
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class ProviderAPIConfig:
    """API configuration for a VPS vendor."""
    provider_id: str
    name: str

    # API endpoints
    base_url: str
    api_version: str

    # Authentication
    auth_header: str = "Authorization"
    token_prefix: str = "Bearer"

    # Rate limiting (per token)
    requests_per_hour: Optional[int] = None
    requests_per_minute: Optional[int] = None

    # Pagination
    page_size: int = 200

    # Portal links for operators
    api_key_url: str = ""
    console_url: str = ""


DIGITALOCEAN_API = ProviderAPIConfig(
    provider_id="digitalocean",
    name="DigitalOcean",

    base_url="https://api.digitalocean.com/v2",
    api_version="v2",

    # 5,000 requests/hour and 250/minute per token
    requests_per_hour=5000,
    requests_per_minute=250,

    page_size=200,

    api_key_url="https://cloud.digitalocean.com/account/api/tokens",
    console_url="https://cloud.digitalocean.com/",
)

LINODE_API = ProviderAPIConfig(
    provider_id="linode",
    name="Linode (Akamai)",

    base_url="https://api.linode.com/v4",
    api_version="v4",

    requests_per_hour=1600,

    # Linode caps page_size at 500
    page_size=500,

    api_key_url="https://cloud.linode.com/profile/tokens",
    console_url="https://cloud.linode.com/",
)


API_CONFIGS: Dict[str, ProviderAPIConfig] = {
    "digitalocean": DIGITALOCEAN_API,
    "linode": LINODE_API,
}


def get_api_config(provider_id: str) -> Optional[ProviderAPIConfig]:
    """Get API configuration for a provider."""
    return API_CONFIGS.get(provider_id)

