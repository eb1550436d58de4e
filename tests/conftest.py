"""
VPSPlane Test Fixtures
======================

Shared fixtures for all test modules.
"""

import pytest
from unittest.mock import MagicMock
from typing import Dict, Any

from vpsplane.providers.cache import ProviderResourceCache
from vpsplane.providers.clients import DigitalOceanClient, LinodeClient
from vpsplane.providers.digitalocean import DigitalOceanProviderService
from vpsplane.providers.linode import LinodeProviderService


# ============================================
# CLOCK / CACHE
# ============================================

class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    """Resource cache driven by the fake clock."""
    return ProviderResourceCache(clock=clock)


# ============================================
# VENDOR PAYLOADS
# ============================================

@pytest.fixture
def linode_type() -> Dict[str, Any]:
    return {
        "id": "g6-standard-2",
        "label": "Linode 4GB",
        "class": "standard",
        "vcpus": 2,
        "memory": 4096,
        "disk": 81920,
        "transfer": 4000,
        "price": {"hourly": 0.036, "monthly": 24.0},
    }


@pytest.fixture
def linode_instance() -> Dict[str, Any]:
    return {
        "id": 123456,
        "label": "web-1",
        "status": "running",
        "ipv4": ["203.0.113.10", "192.168.1.5"],
        "ipv6": "2600:3c00::f03c:91ff:fe24:3a2f/128",
        "region": "us-east",
        "image": "linode/ubuntu22.04",
        "specs": {"vcpus": 2, "memory": 4096, "disk": 81920, "transfer": 4000},
        "created": "2024-01-15T10:00:00",
        "tags": ["web"],
    }


@pytest.fixture
def droplet() -> Dict[str, Any]:
    return {
        "id": 3164444,
        "name": "web-1",
        "status": "active",
        "memory": 2048,
        "vcpus": 1,
        "disk": 50,
        "created_at": "2024-01-15T10:00:00Z",
        "region": {"slug": "nyc3", "name": "New York 3"},
        "image": {"id": 6918990, "slug": "ubuntu-22-04-x64"},
        "size": {"slug": "s-1vcpu-2gb", "transfer": 2.0},
        "networks": {
            "v4": [
                {"ip_address": "10.128.0.2", "type": "private"},
                {"ip_address": "104.131.186.241", "type": "public"},
            ],
            "v6": [{"ip_address": "2604:a880:800:10::4f8:1", "type": "public"}],
        },
        "tags": ["web"],
    }


@pytest.fixture
def do_size() -> Dict[str, Any]:
    return {
        "slug": "s-1vcpu-2gb",
        "description": "Basic",
        "vcpus": 1,
        "memory": 2048,
        "disk": 50,
        "transfer": 2.0,
        "price_hourly": 0.01786,
        "price_monthly": 12.0,
        "regions": ["nyc3", "ams3"],
    }


# ============================================
# MOCK CLIENTS / ADAPTERS
# ============================================

@pytest.fixture
def linode_client():
    """Mock Linode REST client."""
    client = MagicMock(spec=LinodeClient)
    client.list_types.return_value = []
    client.list_regions.return_value = []
    client.list_images.return_value = []
    client.list_instances.return_value = []
    return client


@pytest.fixture
def do_client():
    """Mock DigitalOcean REST client."""
    client = MagicMock(spec=DigitalOceanClient)
    client.list_sizes.return_value = []
    client.list_regions.return_value = []
    client.list_images.return_value = []
    client.list_droplets.return_value = []
    client.list_one_click_apps.return_value = []
    return client


@pytest.fixture
def linode_service(cache, linode_client):
    return LinodeProviderService("linode-token", provider_id="p1", cache=cache, client=linode_client)


@pytest.fixture
def do_service(cache, do_client):
    return DigitalOceanProviderService("do-token", provider_id="p2", cache=cache, client=do_client)
