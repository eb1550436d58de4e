"""
VPSPlane DigitalOcean Provider Adapter
======================================

DigitalOcean integration over the v2 REST API.

DigitalOcean offers:
- 1-Click marketplace apps (deployed by using the app slug as the image)
- Root passwords set through cloud-init user data
- Hardware power cycle

DigitalOcean reports plan transfer in TB; it is converted to GB here.

API: https://docs.digitalocean.com/reference/api/
"""

from typing import Any, Dict, List, Optional
import json
import re

from .allowlists import DIGITALOCEAN_REGION_COUNTRY_MAP
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
from .cache import ResourceType
from .clients import DigitalOceanClient
from .errors import normalize_digitalocean_error
from .registry import register_provider


# Mapping of droplet statuses to normalized statuses
DIGITALOCEAN_STATUS_MAP = {
    "new": InstanceStatus.PROVISIONING,
    "active": InstanceStatus.RUNNING,
    "off": InstanceStatus.STOPPED,
    "archive": InstanceStatus.STOPPED,
}

# Normalized action -> droplet action type
DIGITALOCEAN_ACTIONS = {
    InstanceAction.BOOT: "power_on",
    InstanceAction.POWER_ON: "power_on",
    InstanceAction.SHUTDOWN: "shutdown",
    InstanceAction.POWER_OFF: "power_off",
    InstanceAction.REBOOT: "reboot",
    InstanceAction.POWER_CYCLE: "power_cycle",
}

# App names that title-casing the slug gets wrong
MARKETPLACE_APP_NAMES = {
    "openwebui": "OpenWebUI",
    "sharklabs-openwebui": "OpenWebUI",
    "pihole": "Pi-hole",
    "sharklabs-piholevpn": "Pi-hole + VPN",
    "wordpress": "WordPress",
    "lamp": "LAMP",
    "lemp": "LEMP",
    "mongodb": "MongoDB",
    "mysql": "MySQL",
    "postgresql": "PostgreSQL",
    "nodejs": "Node.js",
    "gitlab": "GitLab",
    "phpmyadmin": "phpMyAdmin",
    "openvpn": "OpenVPN",
    "wireguard": "WireGuard",
}


@register_provider
class DigitalOceanProviderService(BaseProviderService):
    """
    DigitalOcean provider adapter.

    Features:
    - Clean API and great documentation
    - 1-Click marketplace catalog
    - Cloud-init user data on create
    """

    PROVIDER_TYPE = ProviderType.DIGITALOCEAN
    PROVIDER_NAME = "DigitalOcean"
    ALLOWED_EXTRAS = frozenset({
        "app_slug",
        "app_data",
        "backups",
        "ipv6",
        "monitoring",
        "vpc_uuid",
    })

    def _create_client(self) -> DigitalOceanClient:
        return DigitalOceanClient.from_config(self.api_token, self.client_config)

    def _normalize_error(self, error: Any) -> ProviderError:
        return normalize_digitalocean_error(error, self.PROVIDER_TYPE.value)

    def _check_credentials(self) -> None:
        self.client.get_account()

    # =========================================
    # INSTANCES
    # =========================================

    def create_instance(self, params: CreateInstanceParams) -> ProviderInstance:
        """Create a new Droplet."""
        self.validate_token()
        extras = self._validate_create_params(params)

        app_data = extras.get("app_data")
        if app_data is not None and not isinstance(app_data, dict):
            raise self.create_error(
                ErrorCode.VALIDATION_ERROR,
                "app_data must be a mapping",
                field="app_data",
            )

        ssh_keys = []
        for key in params.ssh_keys:
            # Droplets accept key ids or fingerprints
            ssh_keys.append(int(key) if str(key).isdigit() else key)

        body: Dict[str, Any] = {
            "name": params.label,
            "region": params.region,
            "size": params.plan,
            # 1-Click apps are deployed by using the app slug as the image
            "image": extras.get("app_slug") or params.image,
            "ssh_keys": ssh_keys,
            "tags": list(params.tags),
            "user_data": self.build_user_data(params.root_password, app_data),
        }
        for key in ("backups", "ipv6", "monitoring"):
            if key in extras:
                body[key] = bool(extras[key])
        if extras.get("vpc_uuid"):
            body["vpc_uuid"] = extras["vpc_uuid"]

        droplet = self._call("createInstance", self.client.create_droplet, body)
        return self.normalize_instance(droplet)

    @staticmethod
    def build_user_data(root_password: str, app_data: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """Cloud-config that sets the root password, plus app settings."""
        if not root_password and not app_data:
            return None

        lines = ["#cloud-config"]
        if root_password:
            lines += [
                f"password: {root_password}",
                "chpasswd: { expire: False }",
                "ssh_pwauth: True",
            ]
        if app_data:
            lines += ["# App configuration", json.dumps(app_data)]
        return "\n".join(lines)

    def get_instance(self, instance_id: str) -> ProviderInstance:
        self.validate_token()
        droplet_id = self._parse_numeric_id(instance_id)
        droplet = self._call("getInstance", self.client.get_droplet, droplet_id)
        return self.normalize_instance(droplet)

    def list_instances(self) -> List[ProviderInstance]:
        self.validate_token()
        droplets = self._call("listInstances", self.client.list_droplets)
        return [self.normalize_instance(droplet) for droplet in droplets]

    def perform_action(
        self,
        instance_id: str,
        action: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Trigger a droplet action, or delete the droplet."""
        self.validate_token()
        act = self._parse_action(action)
        droplet_id = self._parse_numeric_id(instance_id)

        if act == InstanceAction.DELETE:
            self._call("performAction:delete", self.client.delete_droplet, droplet_id)
            return

        # Power actions take no arguments; params are not forwarded
        self._call(
            f"performAction:{act.value}",
            self.client.droplet_action,
            droplet_id,
            DIGITALOCEAN_ACTIONS[act],
        )

    # =========================================
    # CATALOG
    # =========================================

    def get_plans(self) -> List[ProviderPlan]:
        return self._fetch_through(
            ResourceType.PLANS,
            "getPlans",
            lambda: [self.normalize_plan(s) for s in self.client.list_sizes()],
        )

    def get_images(self) -> List[ProviderImage]:
        return self._fetch_through(
            ResourceType.IMAGES,
            "getImages",
            lambda: [self.normalize_image(i) for i in self.client.list_images()],
        )

    def get_regions(self) -> List[ProviderRegion]:
        return self._fetch_through(
            ResourceType.REGIONS,
            "getRegions",
            lambda: [self.normalize_region(r) for r in self.client.list_regions()],
        )

    def get_marketplace_apps(self) -> List[MarketplaceApp]:
        """1-Click apps, cached under the marketplace resource type."""
        return self._fetch_through(
            ResourceType.MARKETPLACE,
            "getMarketplaceApps",
            lambda: [
                app for app in (self.normalize_marketplace_app(raw) for raw in self.client.list_one_click_apps())
                if app is not None
            ],
        )

    # =========================================
    # NORMALIZATION
    # =========================================

    @staticmethod
    def normalize_status(status: Optional[str]) -> InstanceStatus:
        return DIGITALOCEAN_STATUS_MAP.get((status or "").lower(), InstanceStatus.UNKNOWN)

    @classmethod
    def normalize_instance(cls, droplet: Dict[str, Any]) -> ProviderInstance:
        networks = droplet.get("networks") or {}
        ipv4 = [
            net["ip_address"] for net in networks.get("v4") or []
            if net.get("type") == "public"
        ]
        ipv6 = next(
            (net["ip_address"] for net in networks.get("v6") or [] if net.get("type") == "public"),
            None,
        )
        image = droplet.get("image") or {}
        size = droplet.get("size") or {}

        return ProviderInstance(
            id=str(droplet["id"]),
            label=droplet.get("name", ""),
            status=cls.normalize_status(droplet.get("status")),
            ipv4=ipv4,
            ipv6=ipv6,
            region=(droplet.get("region") or {}).get("slug", ""),
            specs=InstanceSpecs(
                vcpus=droplet.get("vcpus", 0),
                memory=droplet.get("memory", 0),
                disk=droplet.get("disk", 0),
                transfer=_tb_to_gb(size.get("transfer")),
            ),
            created=droplet.get("created_at", ""),
            image=image.get("slug") or (str(image["id"]) if image.get("id") else None),
            tags=droplet.get("tags"),
        )

    @staticmethod
    def normalize_plan(size: Dict[str, Any]) -> ProviderPlan:
        return ProviderPlan(
            id=size["slug"],
            label=size.get("description") or size["slug"],
            vcpus=size.get("vcpus", 0),
            memory=size.get("memory", 0),
            disk=size.get("disk", 0),
            transfer=_tb_to_gb(size.get("transfer")),
            price=PlanPrice(
                hourly=float(size.get("price_hourly") or 0),
                monthly=float(size.get("price_monthly") or 0),
            ),
            regions=list(size.get("regions") or []),
        )

    @staticmethod
    def normalize_image(image: Dict[str, Any]) -> ProviderImage:
        return ProviderImage(
            id=str(image["id"]),
            slug=image.get("slug") or None,
            label=image.get("name", str(image["id"])),
            description=image.get("description"),
            distribution=image.get("distribution"),
            public=bool(image.get("public", False)),
            min_disk_size=image.get("min_disk_size"),
        )

    @staticmethod
    def normalize_region(region: Dict[str, Any]) -> ProviderRegion:
        slug = region["slug"]
        return ProviderRegion(
            id=slug,
            label=region.get("name", slug),
            country=DIGITALOCEAN_REGION_COUNTRY_MAP.get(slug.lower()),
            available=bool(region.get("available", False)),
            capabilities=list(region.get("features") or []),
        )

    @classmethod
    def normalize_marketplace_app(cls, app: Dict[str, Any]) -> Optional[MarketplaceApp]:
        """Normalize a 1-Click entry; entries without a slug are dropped."""
        slug = _clean(app.get("slug"))
        if not slug:
            return None
        slug = slug.lower()

        categories: List[str] = []
        for raw in [app.get("category")] + list(app.get("categories") or []):
            category = normalize_category(raw)
            if category and category not in categories:
                categories.append(category)

        compatible = app.get("compatible_images") or app.get("compatible_distro_slugs") or []

        return MarketplaceApp(
            slug=slug,
            name=_clean(app.get("name")) or format_app_name(slug),
            description=(
                _clean(app.get("group_description"))
                or _clean(app.get("short_description"))
                or _clean(app.get("summary"))
                or _clean(app.get("description"))
                or ""
            ),
            category=categories[0] if categories else "Other",
            categories=categories,
            image_slug=_clean(app.get("image_slug")) or slug,
            compatible_images=[c for c in (_clean(v) for v in compatible) if c],
            vendor=_clean(app.get("vendor_name")) or _clean(app.get("vendor")),
            badge=_clean(app.get("badge")),
            type=_clean(app.get("type")) or "droplet",
        )


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _tb_to_gb(transfer: Any) -> int:
    if not transfer:
        return 0
    return int(round(float(transfer) * 1000))


def format_app_name(slug: str) -> str:
    """Display name for a 1-Click slug, e.g. "docker-20-04" -> "Docker 20 04"."""
    if slug in MARKETPLACE_APP_NAMES:
        return MARKETPLACE_APP_NAMES[slug]
    return " ".join(part.capitalize() for part in re.split(r"[-_]+", slug) if part)


def normalize_category(value: Any) -> Optional[str]:
    """Title-case a category unless it already carries formatting (e.g. "CI/CD")."""
    raw = _clean(value)
    if not raw:
        return None

    sanitized = re.sub(r"\s+", " ", re.sub(r"[_-]+", " ", raw)).strip()
    if not sanitized:
        return None

    has_formatting = any(c.isupper() for c in raw[1:]) or "/" in raw or "&" in raw
    if has_formatting and raw == sanitized:
        return raw
    return " ".join(part[:1].upper() + part[1:].lower() for part in sanitized.split(" "))
