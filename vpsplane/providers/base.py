"""
VPSPlane Provider Base Classes and Interfaces
==============================================

Defines the normalized data model and the abstract service contract that
every vendor adapter implements. Callers only ever see these shapes, never
vendor-native payloads.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from .cache import ProviderResourceCache, ResourceType
    from ..config import VendorClientConfig

logger = logging.getLogger(__name__)


class ProviderType(str, Enum):
    """Vendor tags. Immutable once a provider configuration row exists."""
    LINODE = "linode"
    DIGITALOCEAN = "digitalocean"
    # Reserved, not implemented
    AWS = "aws"
    GCP = "gcp"


class InstanceStatus(Enum):
    """Standard instance states across all providers."""
    RUNNING = "running"
    STOPPED = "stopped"
    PROVISIONING = "provisioning"
    REBOOTING = "rebooting"
    ERROR = "error"
    UNKNOWN = "unknown"


class InstanceAction(str, Enum):
    """Closed vocabulary accepted by perform_action()."""
    BOOT = "boot"
    POWER_ON = "power_on"
    SHUTDOWN = "shutdown"
    POWER_OFF = "power_off"
    REBOOT = "reboot"
    POWER_CYCLE = "power_cycle"
    DELETE = "delete"


class ErrorCode(str, Enum):
    """Closed set of error codes. HTTP_<status> codes are built dynamically."""
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_ACTION = "INVALID_ACTION"
    PROVIDER_NOT_FOUND = "PROVIDER_NOT_FOUND"
    PROVIDER_INACTIVE = "PROVIDER_INACTIVE"
    INSTANCE_NOT_FOUND = "INSTANCE_NOT_FOUND"
    INSUFFICIENT_RESOURCES = "INSUFFICIENT_RESOURCES"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    UNSUPPORTED_PROVIDER = "UNSUPPORTED_PROVIDER"
    API_ERROR = "API_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    @staticmethod
    def http(status: int) -> str:
        return f"HTTP_{status}"


# =========================================
# NORMALIZED RESOURCES
# =========================================

@dataclass(frozen=True)
class InstanceSpecs:
    """Instance sizing. Memory in MB, disk and transfer in GB."""
    vcpus: int = 0
    memory: int = 0
    disk: int = 0
    transfer: int = 0


@dataclass
class ProviderInstance:
    """Represents a VM instance normalized from a vendor response."""
    id: str
    label: str
    status: InstanceStatus
    region: str
    specs: InstanceSpecs
    created: str
    ipv4: List[str] = field(default_factory=list)
    ipv6: Optional[str] = None
    image: Optional[str] = None
    tags: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    def __str__(self) -> str:
        ip = self.ipv4[0] if self.ipv4 else "no-ip"
        return f"{self.label} ({self.id}): {ip} [{self.status.value}]"


@dataclass(frozen=True)
class PlanPrice:
    hourly: float = 0.0
    monthly: float = 0.0


@dataclass(frozen=True)
class ProviderPlan:
    """Represents a VPS plan/size from a provider."""
    id: str
    label: str
    vcpus: int
    memory: int
    disk: int
    transfer: int
    price: PlanPrice = field(default_factory=PlanPrice)
    regions: List[str] = field(default_factory=list)
    type_class: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.label}: {self.vcpus}vCPU, {self.memory}MB RAM, {self.disk}GB disk (${self.price.monthly}/mo)"


@dataclass(frozen=True)
class ProviderImage:
    """Represents an OS image."""
    id: str
    label: str
    slug: Optional[str] = None
    description: Optional[str] = None
    distribution: Optional[str] = None
    public: bool = True
    min_disk_size: Optional[int] = None


@dataclass(frozen=True)
class ProviderRegion:
    """Represents a provider region/datacenter."""
    id: str
    label: str
    country: Optional[str] = None
    available: bool = True
    capabilities: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.label} ({self.country or self.id})"


@dataclass(frozen=True)
class MarketplaceApp:
    """Vendor pre-configured application image selectable at create time."""
    slug: str
    name: str
    description: str = ""
    category: str = "Other"
    categories: List[str] = field(default_factory=list)
    image_slug: Optional[str] = None
    compatible_images: List[str] = field(default_factory=list)
    vendor: Optional[str] = None
    badge: Optional[str] = None
    type: str = "droplet"


@dataclass
class CreateInstanceParams:
    """
    Parameters for creating an instance.

    Common fields are shared by every vendor. Vendor-specific options go in
    ``extras`` and are validated by the adapter that receives them.
    """
    label: str
    plan: str
    region: str
    image: str
    root_password: str = ""
    ssh_keys: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    extras: Dict[str, Any] = field(default_factory=dict)


# =========================================
# ERRORS
# =========================================

class ProviderError(Exception):
    """
    Normalized provider failure.

    This is the terminal error shape: it is constructed once where the
    vendor call fails and is never wrapped again by calling layers.
    """

    def __init__(
        self,
        provider: str,
        code: str,
        message: str,
        field: Optional[str] = None,
        original_error: Any = None,
    ):
        self.provider = provider
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.message = message
        self.field = field
        self.original_error = original_error
        super().__init__(f"[{provider}] {self.code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "code": self.code,
            "message": self.message,
            "provider": self.provider,
        }
        if self.field:
            data["field"] = self.field
        return data


# =========================================
# SERVICE CONTRACT
# =========================================

class BaseProviderService(ABC):
    """
    Abstract interface for VPS providers.

    Subclasses wrap one vendor client, normalize its responses and errors,
    and serve catalog reads through the shared resource cache.
    """

    PROVIDER_TYPE: ProviderType = None
    PROVIDER_NAME: str = "Base Provider"
    # Extras keys accepted by create_instance(), per vendor
    ALLOWED_EXTRAS: frozenset = frozenset()

    def __init__(
        self,
        api_token: str,
        provider_id: Optional[str] = None,
        cache: Optional["ProviderResourceCache"] = None,
        client: Any = None,
        client_config: Optional["VendorClientConfig"] = None,
    ):
        """
        Initialize the provider adapter.

        Args:
            api_token: API token for the vendor
            provider_id: Configuration row id; keys the resource cache
            cache: Shared resource cache (a private one is created if omitted)
            client: Vendor client; built from the token when omitted
            client_config: Timeout and retry settings for the built client
        """
        if cache is None:
            from .cache import ProviderResourceCache
            cache = ProviderResourceCache()

        self.api_token = api_token
        self.provider_id = provider_id or f"{self.PROVIDER_TYPE.value}-default"
        self.cache = cache
        self._client = client
        self.client_config = client_config

    @property
    def client(self):
        if self._client is None:
            self._client = self._create_client()
        return self._client

    @abstractmethod
    def _create_client(self):
        """Build the vendor client for self.api_token."""

    @abstractmethod
    def _normalize_error(self, error: Any) -> ProviderError:
        """Map a vendor failure to a ProviderError."""

    def get_provider_type(self) -> ProviderType:
        return self.PROVIDER_TYPE

    # =========================================
    # SHARED HELPERS
    # =========================================

    def create_error(
        self,
        code: str,
        message: str,
        field: Optional[str] = None,
        original_error: Any = None,
    ) -> ProviderError:
        return ProviderError(
            self.PROVIDER_TYPE.value,
            code,
            message,
            field=field,
            original_error=original_error,
        )

    def validate_token(self) -> None:
        """
        Fail fast when no credential is configured.

        Raises:
            ProviderError: MISSING_CREDENTIALS
        """
        if not self.api_token or not self.api_token.strip():
            raise self.create_error(
                ErrorCode.MISSING_CREDENTIALS,
                f"{self.PROVIDER_TYPE.value} API token not configured",
            )

    def handle_api_error(self, error: Exception, context: str) -> ProviderError:
        """Log a failed vendor call and return its normalized error."""
        normalized = self._normalize_error(error)
        logger.error(
            f"[{self.PROVIDER_TYPE.value}] {context} failed: {normalized.code} {normalized.message}",
            extra={
                "provider": self.PROVIDER_TYPE.value,
                "provider_id": self.provider_id,
                "error_code": normalized.code,
            },
        )
        return normalized

    def _call(self, context: str, func: Callable, *args, **kwargs):
        """Run one vendor call, normalizing any failure at this point."""
        try:
            return func(*args, **kwargs)
        except Exception as e:
            raise self.handle_api_error(e, context) from e

    def _fetch_through(
        self,
        resource_type: "ResourceType",
        context: str,
        fetch: Callable[[], List[Any]],
    ) -> List[Any]:
        """Serve a catalog read from the cache, calling the vendor on a miss."""
        self.validate_token()
        return self.cache.get_or_fetch(
            resource_type,
            self.provider_id,
            lambda: self._call(context, fetch),
        )

    def _parse_numeric_id(self, instance_id: str) -> int:
        try:
            return int(str(instance_id).strip())
        except (TypeError, ValueError):
            raise self.create_error(
                ErrorCode.VALIDATION_ERROR,
                f"Invalid instance id: {instance_id!r}",
                field="id",
            )

    def _parse_action(self, action: str) -> InstanceAction:
        try:
            return InstanceAction(action)
        except ValueError:
            raise self.create_error(
                ErrorCode.INVALID_ACTION,
                f"Unknown action: {action}",
            )

    def _validate_create_params(self, params: CreateInstanceParams) -> Mapping[str, Any]:
        """Check required fields and vendor extras; returns the extras."""
        for name in ("label", "plan", "region", "image"):
            if not getattr(params, name, None):
                raise self.create_error(
                    ErrorCode.VALIDATION_ERROR,
                    f"{name} is required",
                    field=name,
                )

        extras = params.extras or {}
        for key in extras:
            if key not in self.ALLOWED_EXTRAS:
                raise self.create_error(
                    ErrorCode.VALIDATION_ERROR,
                    f"Unsupported option for {self.PROVIDER_TYPE.value}: {key}",
                    field=key,
                )
        return extras

    # =========================================
    # INSTANCE OPERATIONS
    # =========================================

    @abstractmethod
    def create_instance(self, params: CreateInstanceParams) -> ProviderInstance:
        """
        Provision a new instance.

        Raises:
            ProviderError: MISSING_CREDENTIALS, VALIDATION_ERROR,
                API_ERROR or HTTP_<status>
        """

    @abstractmethod
    def get_instance(self, instance_id: str) -> ProviderInstance:
        """Get details for a specific instance."""

    @abstractmethod
    def list_instances(self) -> List[ProviderInstance]:
        """List all instances on the account."""

    @abstractmethod
    def perform_action(
        self,
        instance_id: str,
        action: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Trigger a power/lifecycle action.

        Returns once the vendor accepted the request; completion is not
        polled.

        Raises:
            ProviderError: INVALID_ACTION for unknown or unsupported actions
        """

    # =========================================
    # CATALOG (CACHED)
    # =========================================

    @abstractmethod
    def get_plans(self) -> List[ProviderPlan]:
        """List plans, served from the resource cache when fresh."""

    @abstractmethod
    def get_images(self) -> List[ProviderImage]:
        """List images, served from the resource cache when fresh."""

    @abstractmethod
    def get_regions(self) -> List[ProviderRegion]:
        """List regions, served from the resource cache when fresh."""

    def get_marketplace_apps(self) -> List[MarketplaceApp]:
        """Vendors without a marketplace catalog return an empty list."""
        self.validate_token()
        return []

    # =========================================
    # CREDENTIALS
    # =========================================

    def validate_credentials(self) -> bool:
        """Return True if the token works against the vendor. Never raises."""
        try:
            self.validate_token()
            self._check_credentials()
            return True
        except Exception as e:
            logger.warning(
                f"[{self.PROVIDER_TYPE.value}] credential check failed: {e}",
                extra={"provider": self.PROVIDER_TYPE.value, "provider_id": self.provider_id},
            )
            return False

    @abstractmethod
    def _check_credentials(self) -> None:
        """Make a cheap authenticated vendor call; raise on failure."""

    def close(self) -> None:
        if self._client is not None and hasattr(self._client, "close"):
            self._client.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} ({self.provider_id})>"
