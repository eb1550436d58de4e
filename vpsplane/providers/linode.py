"""
VPSPlane Linode (Akamai) Provider Adapter
=========================================

Linode integration over the v4 REST API.

Linode reports disk sizes in MB; they are converted to GB here.
StackScripts are passed through as ``stackscript_id`` / ``stackscript_data``
extras on create.

API: https://techdocs.akamai.com/linode-api/reference/api
"""

from typing import Any, Dict, List, Optional

from .base import (
    BaseProviderService,
    CreateInstanceParams,
    ErrorCode,
    InstanceAction,
    InstanceSpecs,
    InstanceStatus,
    PlanPrice,
    ProviderError,
    ProviderImage,
    ProviderInstance,
    ProviderPlan,
    ProviderRegion,
    ProviderType,
)
from .cache import ResourceType
from .clients import LinodeClient
from .errors import normalize_linode_error
from .registry import register_provider


# Mapping of Linode instance statuses to normalized statuses
LINODE_STATUS_MAP = {
    "running": InstanceStatus.RUNNING,
    "offline": InstanceStatus.STOPPED,
    "booting": InstanceStatus.PROVISIONING,
    "rebooting": InstanceStatus.REBOOTING,
    "shutting_down": InstanceStatus.STOPPED,
    "provisioning": InstanceStatus.PROVISIONING,
    "deleting": InstanceStatus.ERROR,
    "migrating": InstanceStatus.PROVISIONING,
    "rebuilding": InstanceStatus.PROVISIONING,
    "cloning": InstanceStatus.PROVISIONING,
    "restoring": InstanceStatus.PROVISIONING,
}


@register_provider
class LinodeProviderService(BaseProviderService):
    """
    Linode (Akamai Cloud) provider adapter.

    Features:
    - StackScript deployments
    - Plans available in every region
    - No hardware power cycle action
    """

    PROVIDER_TYPE = ProviderType.LINODE
    PROVIDER_NAME = "Linode (Akamai)"
    ALLOWED_EXTRAS = frozenset({
        "stackscript_id",
        "stackscript_data",
        "backups_enabled",
        "private_ip",
    })

    def _create_client(self) -> LinodeClient:
        return LinodeClient.from_config(self.api_token, self.client_config)

    def _normalize_error(self, error: Any) -> ProviderError:
        return normalize_linode_error(error, self.PROVIDER_TYPE.value)

    def _check_credentials(self) -> None:
        self.client.get_profile()

    # =========================================
    # INSTANCES
    # =========================================

    def create_instance(self, params: CreateInstanceParams) -> ProviderInstance:
        """Create a new Linode."""
        self.validate_token()
        extras = self._validate_create_params(params)

        body: Dict[str, Any] = {
            "type": params.plan,
            "region": params.region,
            "image": params.image,
            "label": params.label,
            "root_pass": params.root_password,
            "authorized_keys": list(params.ssh_keys),
            "tags": list(params.tags),
        }

        if "stackscript_id" in extras:
            try:
                body["stackscript_id"] = int(extras["stackscript_id"])
            except (TypeError, ValueError):
                raise self.create_error(
                    ErrorCode.VALIDATION_ERROR,
                    "stackscript_id must be numeric",
                    field="stackscript_id",
                )
        if "stackscript_data" in extras:
            if not isinstance(extras["stackscript_data"], dict):
                raise self.create_error(
                    ErrorCode.VALIDATION_ERROR,
                    "stackscript_data must be a mapping of field names to values",
                    field="stackscript_data",
                )
            body["stackscript_data"] = extras["stackscript_data"]
        if "backups_enabled" in extras:
            body["backups_enabled"] = bool(extras["backups_enabled"])
        if "private_ip" in extras:
            body["private_ip"] = bool(extras["private_ip"])

        # Linode rejects empty values for optional fields
        body = {key: value for key, value in body.items() if value not in (None, "", [])}

        instance = self._call("createInstance", self.client.create_instance, body)
        return self.normalize_instance(instance)

    def get_instance(self, instance_id: str) -> ProviderInstance:
        self.validate_token()
        linode_id = self._parse_numeric_id(instance_id)
        instance = self._call("getInstance", self.client.get_instance, linode_id)
        return self.normalize_instance(instance)

    def list_instances(self) -> List[ProviderInstance]:
        self.validate_token()
        instances = self._call("listInstances", self.client.list_instances)
        return [self.normalize_instance(instance) for instance in instances]

    def perform_action(
        self,
        instance_id: str,
        action: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Boot, shut down, reboot or delete a Linode."""
        self.validate_token()
        act = self._parse_action(action)
        linode_id = self._parse_numeric_id(instance_id)
        config_id = (params or {}).get("config_id")

        context = f"performAction:{act.value}"
        if act in (InstanceAction.BOOT, InstanceAction.POWER_ON):
            self._call(context, self.client.boot_instance, linode_id, config_id)
        elif act in (InstanceAction.SHUTDOWN, InstanceAction.POWER_OFF):
            self._call(context, self.client.shutdown_instance, linode_id)
        elif act == InstanceAction.REBOOT:
            self._call(context, self.client.reboot_instance, linode_id, config_id)
        elif act == InstanceAction.DELETE:
            self._call(context, self.client.delete_instance, linode_id)
        else:
            raise self.create_error(
                ErrorCode.INVALID_ACTION,
                f"Action '{act.value}' is not supported by Linode",
            )

    # =========================================
    # CATALOG
    # =========================================

    def get_plans(self) -> List[ProviderPlan]:
        return self._fetch_through(
            ResourceType.PLANS,
            "getPlans",
            lambda: [self.normalize_plan(t) for t in self.client.list_types()],
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

    # =========================================
    # NORMALIZATION
    # =========================================

    @staticmethod
    def normalize_status(status: Optional[str]) -> InstanceStatus:
        return LINODE_STATUS_MAP.get((status or "").lower(), InstanceStatus.UNKNOWN)

    @classmethod
    def normalize_instance(cls, instance: Dict[str, Any]) -> ProviderInstance:
        specs = instance.get("specs") or {}
        return ProviderInstance(
            id=str(instance["id"]),
            label=instance.get("label", ""),
            status=cls.normalize_status(instance.get("status")),
            ipv4=list(instance.get("ipv4") or []),
            ipv6=instance.get("ipv6") or None,
            region=instance.get("region", ""),
            specs=InstanceSpecs(
                vcpus=specs.get("vcpus", 0),
                memory=specs.get("memory", 0),
                disk=(specs.get("disk") or 0) // 1024,
                transfer=specs.get("transfer", 0),
            ),
            created=instance.get("created", ""),
            image=instance.get("image"),
            tags=instance.get("tags"),
        )

    @staticmethod
    def normalize_plan(linode_type: Dict[str, Any]) -> ProviderPlan:
        price = linode_type.get("price") or {}
        return ProviderPlan(
            id=linode_type["id"],
            label=linode_type.get("label", linode_type["id"]),
            vcpus=linode_type.get("vcpus", 0),
            memory=linode_type.get("memory", 0),
            disk=(linode_type.get("disk") or 0) // 1024,
            transfer=linode_type.get("transfer", 0),
            price=PlanPrice(
                hourly=float(price.get("hourly") or 0),
                monthly=float(price.get("monthly") or 0),
            ),
            # Linode types are available in all regions
            regions=[],
            type_class=linode_type.get("class"),
        )

    @staticmethod
    def normalize_image(image: Dict[str, Any]) -> ProviderImage:
        size_mb = image.get("size")
        return ProviderImage(
            id=image["id"],
            slug=image["id"],
            label=image.get("label", image["id"]),
            description=image.get("description"),
            distribution=image.get("vendor"),
            public=bool(image.get("is_public", True)),
            # MB, rounded up to whole GB
            min_disk_size=-(-size_mb // 1024) if size_mb else None,
        )

    @staticmethod
    def normalize_region(region: Dict[str, Any]) -> ProviderRegion:
        return ProviderRegion(
            id=region["id"],
            label=region.get("label", region["id"]),
            country=(region.get("country") or "").upper() or None,
            available=region.get("status") == "ok",
            capabilities=list(region.get("capabilities") or []),
        )
