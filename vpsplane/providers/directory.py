"""
VPSPlane Provider Directory
===========================

Resolves a stored provider configuration to its vendor type and credential.

The production directory is database-backed and lives with the caller;
this module defines the narrow lookup contract the core consumes and an
in-memory implementation for single-process deployments and tests.
Directory mutations invalidate the provider's cached catalogs.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, TYPE_CHECKING
import threading
import logging

from .allowlists import parse_stored_allowed_marketplace_apps, parse_stored_allowed_regions
from .base import ErrorCode, ProviderError, ProviderType
from .cache import ProviderResourceCache
from .registry import ProviderRegistry

if TYPE_CHECKING:
    from ..config import ProviderTokens

logger = logging.getLogger(__name__)


@dataclass
class ProviderRecord:
    """A stored provider configuration row."""
    id: str
    name: str
    type: ProviderType
    api_token: str = ""
    active: bool = True
    allowed_regions: List[str] = field(default_factory=list)
    allowed_marketplace_apps: List[str] = field(default_factory=list)
    display_order: int = 0
    configuration: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.type = ProviderType(self.type)
        self.allowed_regions = parse_stored_allowed_regions(self.allowed_regions)
        self.allowed_marketplace_apps = parse_stored_allowed_marketplace_apps(
            self.allowed_marketplace_apps
        )

    def public_info(self) -> Dict[str, Any]:
        """Record fields safe to hand to callers (no credential)."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "active": self.active,
            "allowed_regions": list(self.allowed_regions),
            "allowed_marketplace_apps": list(self.allowed_marketplace_apps),
            "display_order": self.display_order,
            "configuration": dict(self.configuration),
        }


class ProviderDirectory(ABC):
    """Lookup contract for stored provider configurations."""

    @abstractmethod
    def get(self, provider_id: str) -> Optional[ProviderRecord]:
        """Return the record regardless of its active flag, or None."""

    @abstractmethod
    def find_active_by_type(self, provider_type: ProviderType) -> Optional[ProviderRecord]:
        """Return the first active record of a type, or None."""

    @abstractmethod
    def list_active(self) -> List[ProviderRecord]:
        """Active records ordered by display_order then name."""

    def resolve(self, provider_id: str) -> ProviderRecord:
        """
        Resolve a provider id to an active record with a credential.

        Raises:
            ProviderError: PROVIDER_NOT_FOUND, PROVIDER_INACTIVE or
                MISSING_CREDENTIALS
        """
        record = self.get(provider_id)
        if record is None:
            raise ProviderError(
                "directory", ErrorCode.PROVIDER_NOT_FOUND, f"Provider not found: {provider_id}"
            )
        if not record.active:
            raise ProviderError(
                record.type.value, ErrorCode.PROVIDER_INACTIVE, f"Provider is not active: {provider_id}"
            )
        _require_token(record)
        return record

    def resolve_active_by_type(self, provider_type: str) -> ProviderRecord:
        ptype = ProviderType(provider_type)
        record = self.find_active_by_type(ptype)
        if record is None:
            raise ProviderError(
                ptype.value, ErrorCode.PROVIDER_NOT_FOUND, f"No active {ptype.value} provider found"
            )
        _require_token(record)
        return record


def _require_token(record: ProviderRecord) -> None:
    if not record.api_token or not record.api_token.strip():
        raise ProviderError(
            record.type.value,
            ErrorCode.MISSING_CREDENTIALS,
            "Provider API key not configured",
        )


class InMemoryProviderDirectory(ProviderDirectory):
    """
    Thread-safe in-memory directory.

    Every change to a record drops that provider's cached catalogs so the
    next read goes to the vendor with the new configuration.
    """

    def __init__(self, cache: Optional[ProviderResourceCache] = None):
        self.cache = cache
        self._records: Dict[str, ProviderRecord] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_tokens(
        cls,
        tokens: "ProviderTokens",
        cache: Optional[ProviderResourceCache] = None,
    ) -> "InMemoryProviderDirectory":
        """Seed one record per vendor token found in the environment."""
        directory = cls(cache=cache)
        for order, provider_type in enumerate(tokens.available_providers()):
            directory.add(ProviderRecord(
                id=f"{provider_type}-env",
                name=ProviderRegistry.get_provider_class(ProviderType(provider_type)).PROVIDER_NAME,
                type=provider_type,
                api_token=getattr(tokens, provider_type),
                display_order=order,
            ))
        return directory

    def _invalidate(self, provider_id: str) -> None:
        if self.cache is not None:
            self.cache.invalidate(provider_id)

    # =========================================
    # LOOKUPS
    # =========================================

    def get(self, provider_id: str) -> Optional[ProviderRecord]:
        with self._lock:
            return self._records.get(provider_id)

    def find_active_by_type(self, provider_type: ProviderType) -> Optional[ProviderRecord]:
        for record in self.list_active():
            if record.type == ProviderType(provider_type):
                return record
        return None

    def list_active(self) -> List[ProviderRecord]:
        with self._lock:
            records = [r for r in self._records.values() if r.active]
        return sorted(records, key=lambda r: (r.display_order, r.name))

    # =========================================
    # MUTATIONS
    # =========================================

    def add(self, record: ProviderRecord) -> ProviderRecord:
        with self._lock:
            if record.id in self._records:
                raise ValueError(f"Provider already exists: {record.id}")
            self._records[record.id] = record
        logger.info(f"Provider {record.id} added ({record.type.value})", extra={"provider_id": record.id})
        return record

    def update(self, provider_id: str, **changes) -> ProviderRecord:
        """
        Replace fields on a record. The vendor type cannot change.

        Raises:
            ProviderError: PROVIDER_NOT_FOUND
            ValueError: If a type change is requested
        """
        if "type" in changes or "id" in changes:
            raise ValueError("Provider id and type are immutable")

        with self._lock:
            record = self._records.get(provider_id)
            if record is None:
                raise ProviderError(
                    "directory", ErrorCode.PROVIDER_NOT_FOUND, f"Provider not found: {provider_id}"
                )
            updated = replace(record, **changes)
            self._records[provider_id] = updated

        self._invalidate(provider_id)
        logger.info(f"Provider {provider_id} updated: {sorted(changes)}", extra={"provider_id": provider_id})
        return updated

    def set_active(self, provider_id: str, active: bool) -> ProviderRecord:
        return self.update(provider_id, active=active)

    def remove(self, provider_id: str) -> bool:
        with self._lock:
            removed = self._records.pop(provider_id, None) is not None
        if removed:
            self._invalidate(provider_id)
            logger.info(f"Provider {provider_id} removed", extra={"provider_id": provider_id})
        return removed
