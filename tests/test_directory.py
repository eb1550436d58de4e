"""
Tests for the Provider Directory and ProviderService
===================================================

Resolution errors, cache invalidation on directory changes, and the
service glue that builds adapters for stored providers.
"""

import pytest

from vpsplane.config import ProviderTokens, VPSPlaneConfig
from vpsplane.provider_service import ProviderService
from vpsplane.providers.base import MarketplaceApp, ProviderError, ProviderRegion, ProviderType
from vpsplane.providers.cache import ResourceType
from vpsplane.providers.digitalocean import DigitalOceanProviderService
from vpsplane.providers.directory import InMemoryProviderDirectory, ProviderRecord
from vpsplane.providers.linode import LinodeProviderService
from vpsplane.providers.registry import ProviderFactory


@pytest.fixture
def directory(cache):
    directory = InMemoryProviderDirectory(cache=cache)
    directory.add(ProviderRecord(id="p1", name="Linode Main", type="linode", api_token="tok-1"))
    directory.add(ProviderRecord(id="p2", name="DO Main", type="digitalocean", api_token="tok-2",
                                 display_order=1))
    return directory


@pytest.fixture
def clients(linode_client, do_client):
    return {LinodeProviderService: linode_client, DigitalOceanProviderService: do_client}


@pytest.fixture
def service(directory, cache, clients):
    factory = ProviderFactory(cache, client_factory=lambda cls, token: clients[cls])
    return ProviderService(directory, factory)


class TestProviderRecord:
    def test_type_coerced(self):
        record = ProviderRecord(id="x", name="X", type="linode")
        assert record.type is ProviderType.LINODE

    def test_allowlists_parsed(self):
        record = ProviderRecord(
            id="x", name="X", type="digitalocean",
            allowed_regions='["NYC3", "ams3", "nyc3"]',
            allowed_marketplace_apps={"0": "WordPress"},
        )
        assert record.allowed_regions == ["nyc3", "ams3"]
        assert record.allowed_marketplace_apps == ["wordpress"]

    def test_public_info_hides_token(self):
        info = ProviderRecord(id="x", name="X", type="linode", api_token="secret").public_info()
        assert "api_token" not in info
        assert info["type"] == "linode"


class TestResolve:
    """Directory resolution errors."""

    def test_not_found(self, directory):
        with pytest.raises(ProviderError) as exc:
            directory.resolve("nope")
        assert exc.value.code == "PROVIDER_NOT_FOUND"

    def test_inactive(self, directory):
        directory.set_active("p1", False)
        with pytest.raises(ProviderError) as exc:
            directory.resolve("p1")
        assert exc.value.code == "PROVIDER_INACTIVE"

    def test_missing_token(self, directory):
        directory.add(ProviderRecord(id="p3", name="Empty", type="linode"))
        with pytest.raises(ProviderError) as exc:
            directory.resolve("p3")
        assert exc.value.code == "MISSING_CREDENTIALS"

    def test_by_type(self, directory):
        assert directory.resolve_active_by_type("digitalocean").id == "p2"

    def test_by_type_none_active(self, directory):
        directory.set_active("p2", False)
        with pytest.raises(ProviderError) as exc:
            directory.resolve_active_by_type("digitalocean")
        assert exc.value.code == "PROVIDER_NOT_FOUND"
        assert exc.value.message == "No active digitalocean provider found"

    def test_list_active_ordering(self, directory):
        directory.add(ProviderRecord(id="p0", name="Alpha", type="linode", api_token="t"))
        assert [r.id for r in directory.list_active()] == ["p0", "p1", "p2"]


class TestMutations:
    """Directory changes drop the provider's cached catalogs."""

    def test_update_invalidates(self, directory, cache):
        cache.set(ResourceType.PLANS, "p1", ["plan"])
        cache.set(ResourceType.PLANS, "p2", ["plan"])
        directory.update("p1", api_token="tok-new")
        assert cache.get(ResourceType.PLANS, "p1") is None
        assert cache.get(ResourceType.PLANS, "p2") == ["plan"]
        assert directory.get("p1").api_token == "tok-new"

    def test_deactivate_invalidates(self, directory, cache):
        cache.set(ResourceType.REGIONS, "p2", ["nyc3"])
        directory.set_active("p2", False)
        assert cache.get(ResourceType.REGIONS, "p2") is None

    def test_remove_invalidates(self, directory, cache):
        cache.set(ResourceType.IMAGES, "p1", ["img"])
        assert directory.remove("p1") is True
        assert cache.get(ResourceType.IMAGES, "p1") is None
        assert directory.remove("p1") is False

    def test_type_is_immutable(self, directory):
        with pytest.raises(ValueError):
            directory.update("p1", type="digitalocean")

    def test_update_unknown(self, directory):
        with pytest.raises(ProviderError) as exc:
            directory.update("ghost", name="x")
        assert exc.value.code == "PROVIDER_NOT_FOUND"

    def test_duplicate_add(self, directory):
        with pytest.raises(ValueError):
            directory.add(ProviderRecord(id="p1", name="Again", type="linode"))

    def test_from_tokens(self):
        directory = InMemoryProviderDirectory.from_tokens(ProviderTokens(linode="", digitalocean="tok"))
        records = directory.list_active()
        assert [r.id for r in records] == ["digitalocean-env"]
        assert records[0].name == "DigitalOcean"
        assert records[0].api_token == "tok"


class TestProviderService:
    def test_get_provider_service(self, service, linode_client):
        adapter = service.get_provider_service("p1")
        assert isinstance(adapter, LinodeProviderService)
        assert adapter.provider_id == "p1"
        assert adapter.api_token == "tok-1"
        assert adapter.client is linode_client

    def test_get_by_type(self, service):
        adapter = service.get_provider_service_by_type("digitalocean")
        assert isinstance(adapter, DigitalOceanProviderService)
        assert adapter.provider_id == "p2"

    def test_unknown_provider(self, service):
        with pytest.raises(ProviderError) as exc:
            service.get_provider_service("nope")
        assert exc.value.code == "PROVIDER_NOT_FOUND"

    def test_adapters_share_cache(self, service, linode_client):
        """Adapters built per request still hit the shared cache."""
        service.get_provider_service("p1").get_plans()
        service.get_provider_service("p1").get_plans()
        assert linode_client.list_types.call_count == 1

    def test_validate_credentials(self, service, linode_client):
        linode_client.get_profile.return_value = {}
        assert service.validate_provider_credentials("p1") is True

    def test_validate_credentials_never_raises(self, service):
        assert service.validate_provider_credentials("nope") is False

    def test_active_providers_and_info(self, service):
        assert [p["id"] for p in service.get_active_providers()] == ["p1", "p2"]
        assert service.get_provider_info("p2")["name"] == "DO Main"
        assert service.get_provider_info("nope") is None

    def test_allowed_regions(self, service, directory, do_client):
        do_client.list_regions.return_value = [
            {"slug": "nyc3", "name": "New York 3", "available": True},
            {"slug": "sfo3", "name": "San Francisco 3", "available": True},
        ]
        assert len(service.get_allowed_regions("p2")) == 2

        directory.update("p2", allowed_regions=["sfo3"])
        regions = service.get_allowed_regions("p2")
        assert [r.id for r in regions] == ["sfo3"]
        assert isinstance(regions[0], ProviderRegion)

    def test_allowed_marketplace_apps(self, service, directory, do_client):
        do_client.list_one_click_apps.return_value = [{"slug": "wordpress"}, {"slug": "docker"}]
        directory.update("p2", allowed_marketplace_apps=["docker"])
        apps = service.get_allowed_marketplace_apps("p2")
        assert [a.slug for a in apps] == ["docker"]
        assert isinstance(apps[0], MarketplaceApp)

    def test_refresh_provider(self, service, linode_client):
        service.get_provider_service("p1").get_plans()
        service.refresh_provider("p1")
        service.get_provider_service("p1").get_plans()
        assert linode_client.list_types.call_count == 2

    def test_refresh_one_type(self, service, cache):
        cache.set(ResourceType.PLANS, "p1", ["plan"])
        cache.set(ResourceType.IMAGES, "p1", ["img"])
        service.refresh_provider("p1", ResourceType.PLANS)
        assert cache.get(ResourceType.PLANS, "p1") is None
        assert cache.get(ResourceType.IMAGES, "p1") == ["img"]

    def test_from_config(self):
        config = VPSPlaneConfig(providers=ProviderTokens(linode="tok"))
        service = ProviderService.from_config(config)
        assert [p["id"] for p in service.get_active_providers()] == ["linode-env"]
        assert service.factory.client_config is config.client
        assert service.directory.cache is service.cache
