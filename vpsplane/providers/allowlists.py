"""
VPSPlane Region and Marketplace Allowlists
==========================================

Operators can restrict which regions and marketplace apps a provider
offers. Stored allowlists arrive in several shapes (list, JSON string,
JSON object); everything is normalized to a lower-case, de-duplicated list.
An empty list means "no restriction".
"""

from typing import Any, Iterable, List, Mapping, Sequence, TypeVar
import json
import logging

from .base import MarketplaceApp, ProviderRegion, ProviderType

logger = logging.getLogger(__name__)

T = TypeVar("T")


DEFAULT_DIGITALOCEAN_ALLOWED_REGIONS = [
    "nyc1", "nyc3", "ams3", "sfo3", "sgp1",
    "lon1", "fra1", "tor1", "blr1", "syd1",
]

DEFAULT_LINODE_ALLOWED_REGIONS = [
    "us-east", "us-west", "us-central", "us-southeast", "eu-west",
    "eu-central", "ap-south", "ap-southeast", "ap-northeast", "ca-central",
]

DEFAULT_ALLOWED_REGIONS = {
    ProviderType.LINODE: DEFAULT_LINODE_ALLOWED_REGIONS,
    ProviderType.DIGITALOCEAN: DEFAULT_DIGITALOCEAN_ALLOWED_REGIONS,
}

# DigitalOcean's region payload has no country field
DIGITALOCEAN_REGION_COUNTRY_MAP = {
    "nyc1": "United States",
    "nyc2": "United States",
    "nyc3": "United States",
    "sfo1": "United States",
    "sfo2": "United States",
    "sfo3": "United States",
    "sea1": "United States",
    "ams2": "Netherlands",
    "ams3": "Netherlands",
    "sgp1": "Singapore",
    "lon1": "United Kingdom",
    "fra1": "Germany",
    "fra2": "Germany",
    "tor1": "Canada",
    "blr1": "India",
    "syd1": "Australia",
    "mad1": "Spain",
    "bom1": "India",
}


def _normalize_slugs(values: Iterable[str]) -> List[str]:
    seen = []
    for value in values:
        slug = value.strip().lower()
        if slug and slug not in seen:
            seen.append(slug)
    return seen


def normalize_region_list(regions: Iterable[str]) -> List[str]:
    return _normalize_slugs(regions)


def normalize_marketplace_slugs(slugs: Iterable[str]) -> List[str]:
    return _normalize_slugs(slugs)


def _parse_stored(raw: Any, what: str) -> List[str]:
    if not raw:
        return []

    if isinstance(raw, (list, tuple)):
        return _normalize_slugs(v for v in raw if isinstance(v, str))

    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning(f"Failed to parse stored {what} value: {raw!r}")
            return []
        return _parse_stored(parsed, what) if isinstance(parsed, (list, dict)) else []

    if isinstance(raw, Mapping):
        # JSONB objects shaped like {"0": "nyc1", "1": "ams3"}
        return _normalize_slugs(v for v in raw.values() if isinstance(v, str))

    return []


def parse_stored_allowed_regions(raw: Any) -> List[str]:
    return _parse_stored(raw, "allowed_regions")


def parse_stored_allowed_marketplace_apps(raw: Any) -> List[str]:
    return _parse_stored(raw, "allowed marketplace apps")


def matches_default_allowed_regions(provider_type: str, regions: Sequence[str]) -> bool:
    """True when the stored list is exactly the vendor default set."""
    try:
        defaults = DEFAULT_ALLOWED_REGIONS.get(ProviderType(provider_type))
    except ValueError:
        return False
    if not regions or defaults is None:
        return False
    return set(regions) == set(defaults) and len(regions) == len(defaults)


def should_filter_by_allowed_regions(provider_type: str, regions: Sequence[str]) -> bool:
    """
    Filter only when an explicit, non-default allowlist is stored.

    A stored list equal to the defaults is treated as "never customised".
    """
    return len(regions) > 0 and not matches_default_allowed_regions(provider_type, regions)


def should_filter_by_allowed_marketplace_apps(slugs: Sequence[str]) -> bool:
    return len(slugs) > 0


def filter_regions(
    provider_type: str,
    regions: List[ProviderRegion],
    allowed: Sequence[str],
) -> List[ProviderRegion]:
    if not should_filter_by_allowed_regions(provider_type, allowed):
        return regions
    allowed_set = set(allowed)
    return [region for region in regions if region.id.lower() in allowed_set]


def filter_marketplace_apps(apps: List[MarketplaceApp], allowed: Sequence[str]) -> List[MarketplaceApp]:
    if not should_filter_by_allowed_marketplace_apps(allowed):
        return apps
    allowed_set = set(allowed)
    return [app for app in apps if app.slug in allowed_set]
