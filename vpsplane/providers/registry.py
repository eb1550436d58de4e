"""
VPSPlane Provider Registry
==========================

Maps each ProviderType to the adapter class that implements it. The
ProviderFactory is the only place that chooses an adapter by vendor tag.
"""

from typing import Callable, Dict, List, Optional, Type, TYPE_CHECKING
import logging

from .base import BaseProviderService, ErrorCode, ProviderError, ProviderType
from .cache import ProviderResourceCache

if TYPE_CHECKING:
    from ..config import VendorClientConfig

logger = logging.getLogger(__name__)


# Vendors recognised by the enum but without an adapter yet
RESERVED_PROVIDERS = frozenset({ProviderType.AWS, ProviderType.GCP})


class ProviderRegistry:
    """
    Registry of adapter constructors keyed by ProviderType.

    Adapters register themselves with @register_provider on import.
    """

    _providers: Dict[ProviderType, Type[BaseProviderService]] = {}

    @classmethod
    def register(cls, provider_class: Type[BaseProviderService]) -> None:
        provider_type = ProviderType(provider_class.PROVIDER_TYPE)
        if provider_type in RESERVED_PROVIDERS:
            raise ValueError(f"Provider type '{provider_type.value}' is reserved")
        cls._providers[provider_type] = provider_class

    @classmethod
    def get_provider_class(cls, provider_type: ProviderType) -> Optional[Type[BaseProviderService]]:
        return cls._providers.get(provider_type)

    @classmethod
    def registered(cls) -> List[ProviderType]:
        return [ptype for ptype in ProviderType if ptype in cls._providers]

    @classmethod
    def validate(cls) -> None:
        """
        Check the registry against the ProviderType enum.

        Every non-reserved type needs an adapter and no reserved type may
        have one.

        Raises:
            RuntimeError: If the registry and enum disagree
        """
        missing = [
            ptype.value for ptype in ProviderType
            if ptype not in RESERVED_PROVIDERS and ptype not in cls._providers
        ]
        if missing:
            raise RuntimeError(f"No adapter registered for provider types: {missing}")

        reserved = [ptype.value for ptype in cls._providers if ptype in RESERVED_PROVIDERS]
        if reserved:
            raise RuntimeError(f"Adapters registered for reserved provider types: {reserved}")


def register_provider(provider_class: Type[BaseProviderService]):
    """
    Decorator to register a provider adapter.

    Usage:
        @register_provider
        class LinodeProviderService(BaseProviderService):
            ...
    """
    ProviderRegistry.register(provider_class)
    return provider_class


class ProviderFactory:
    """
    Builds provider adapters from a vendor tag and a credential.

    Usage:
        factory = ProviderFactory(cache)
        provider = factory.create("digitalocean", api_token, provider_id)
        plans = provider.get_plans()
    """

    def __init__(
        self,
        cache: Optional[ProviderResourceCache] = None,
        client_config: Optional["VendorClientConfig"] = None,
        client_factory: Optional[Callable] = None,
    ):
        """
        Args:
            cache: Shared resource cache handed to every adapter
            client_config: Timeout and retry settings for vendor clients
            client_factory: Optional callable(adapter_class, api_token) that
                builds the vendor client; adapters build their own otherwise
        """
        ProviderRegistry.validate()
        self.cache = cache if cache is not None else ProviderResourceCache()
        self.client_config = client_config
        self.client_factory = client_factory

    def create(
        self,
        provider_type: str,
        api_token: str,
        provider_id: Optional[str] = None,
    ) -> BaseProviderService:
        """
        Create a provider adapter.

        Raises:
            ProviderError: UNSUPPORTED_PROVIDER for reserved or unknown tags
        """
        try:
            ptype = ProviderType(provider_type)
        except ValueError:
            raise ProviderError(
                str(provider_type),
                ErrorCode.UNSUPPORTED_PROVIDER,
                f"Unknown provider type: {provider_type}",
            )

        provider_class = ProviderRegistry.get_provider_class(ptype)
        if provider_class is None:
            raise ProviderError(
                ptype.value,
                ErrorCode.UNSUPPORTED_PROVIDER,
                f"Provider type '{ptype.value}' is not yet implemented",
            )

        client = self.client_factory(provider_class, api_token) if self.client_factory else None
        logger.debug(
            f"Creating {provider_class.__name__} for provider {provider_id or 'default'}",
            extra={"provider": ptype.value, "provider_id": provider_id},
        )
        return provider_class(
            api_token,
            provider_id=provider_id,
            cache=self.cache,
            client=client,
            client_config=self.client_config,
        )

    @staticmethod
    def supported_providers() -> List[ProviderType]:
        """Provider types the rest of the system may offer to callers."""
        return ProviderRegistry.registered()

    @classmethod
    def is_supported(cls, provider_type: str) -> bool:
        try:
            return ProviderType(provider_type) in cls.supported_providers()
        except ValueError:
            return False
