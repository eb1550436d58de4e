"""
VPSPlane Vendor Clients
=======================

Thin authenticated REST wrappers around each vendor API using httpx.
They return vendor-native JSON and raise vendor-native errors; adapters
normalize both.

Each client owns its timeout and retry-with-backoff policy and keeps a
per-token request budget so a busy process backs off before the vendor
starts rejecting calls.
"""

from collections import deque
from typing import Any, Deque, Dict, List, Optional, Tuple, TYPE_CHECKING
import hashlib
import logging
import threading
import time

import httpx

from .api_config import ProviderAPIConfig, DIGITALOCEAN_API, LINODE_API

if TYPE_CHECKING:
    from ..config import VendorClientConfig

logger = logging.getLogger(__name__)

# Upper bound on a vendor-supplied Retry-After, in seconds
MAX_RETRY_AFTER = 60.0


class VendorAPIError(Exception):
    """Non-2xx vendor response. ``data`` holds the parsed error body."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        status_text: Optional[str] = None,
        data: Any = None,
    ):
        self.status = status
        self.status_text = status_text
        self.data = data
        super().__init__(message)

    @classmethod
    def from_response(cls, provider: str, response: httpx.Response) -> "VendorAPIError":
        try:
            data = response.json()
        except ValueError:
            data = {"message": response.text} if response.text else None
        return cls(
            f"{provider} API error: {response.status_code} {response.reason_phrase}",
            status=response.status_code,
            status_text=response.reason_phrase or None,
            data=data,
        )


class VendorRateLimitError(VendorAPIError):
    """Raised when retries or the local request budget are exhausted."""

    def __init__(self, message: str, data: Any = None):
        super().__init__(message, status=429, status_text="Too Many Requests", data=data)


class RequestBudget:
    """
    Sliding-window request budget shared by every client using one token.

    Windows are (max_requests, seconds) pairs; a request is refused when
    any window is full.
    """

    _budgets: Dict[Tuple[str, str], "RequestBudget"] = {}
    _registry_lock = threading.Lock()

    def __init__(self, windows: List[Tuple[int, float]], clock=time.monotonic):
        self.windows = windows
        self._clock = clock
        self._lock = threading.Lock()
        horizon = max((seconds for _, seconds in windows), default=0)
        self._horizon = horizon
        self._timestamps: Deque[float] = deque()

    @classmethod
    def for_token(cls, config: ProviderAPIConfig, api_token: str) -> "RequestBudget":
        token_key = hashlib.sha256(api_token.encode()).hexdigest()[:16]
        key = (config.provider_id, token_key)
        with cls._registry_lock:
            budget = cls._budgets.get(key)
            if budget is None:
                cls._prune_idle()
                windows = []
                if config.requests_per_minute:
                    windows.append((config.requests_per_minute, 60.0))
                if config.requests_per_hour:
                    windows.append((config.requests_per_hour, 3600.0))
                budget = cls(windows)
                cls._budgets[key] = budget
            return budget

    @classmethod
    def _prune_idle(cls) -> None:
        # Caller holds _registry_lock
        for key in [k for k, b in cls._budgets.items() if b.is_idle()]:
            del cls._budgets[key]

    def is_idle(self) -> bool:
        """True when no request falls inside any window."""
        with self._lock:
            now = self._clock()
            return not any(ts > now - self._horizon for ts in self._timestamps)

    def acquire(self) -> bool:
        """Record a request. Returns False when a window is full."""
        with self._lock:
            now = self._clock()
            while self._timestamps and self._timestamps[0] <= now - self._horizon:
                self._timestamps.popleft()

            for limit, seconds in self.windows:
                recent = sum(1 for ts in self._timestamps if ts > now - seconds)
                if recent >= limit:
                    return False

            self._timestamps.append(now)
            return True


class VendorClient:
    """
    Base REST client: bearer auth, JSON bodies, retries with backoff.

    Contract: call(method, path, body=None, params=None) -> vendor JSON.
    """

    API_CONFIG: ProviderAPIConfig = None

    def __init__(
        self,
        api_token: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        transport: Optional[httpx.BaseTransport] = None,
        sleep=time.sleep,
        budget: Optional[RequestBudget] = None,
    ):
        config = self.API_CONFIG
        self.api_token = api_token
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep
        self._budget = budget
        self.client = httpx.Client(
            base_url=config.base_url,
            headers={
                config.auth_header: f"{config.token_prefix} {api_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, api_token: str, config: Optional["VendorClientConfig"] = None, **kwargs):
        if config is None:
            return cls(api_token, **kwargs)
        return cls(
            api_token,
            timeout=config.timeout,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            **kwargs,
        )

    @property
    def provider(self) -> str:
        return self.API_CONFIG.provider_id

    @property
    def budget(self) -> RequestBudget:
        # Looked up per call; idle shared budgets may be pruned between calls
        if self._budget is not None:
            return self._budget
        return RequestBudget.for_token(self.API_CONFIG, self.api_token)

    def _backoff(self, attempt: int) -> float:
        return self.retry_delay * (2 ** attempt)

    def _retry_after(self, response: httpx.Response, attempt: int) -> float:
        header = response.headers.get("retry-after")
        if header:
            try:
                return max(0.0, min(float(header), MAX_RETRY_AFTER))
            except ValueError:
                pass
        return self._backoff(attempt)

    def call(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make an authenticated API request."""
        attempt = 0
        while True:
            if not self.budget.acquire():
                raise VendorRateLimitError(
                    f"{self.provider} request budget exhausted for this token"
                )

            try:
                response = self.client.request(method, path, json=body, params=params)
            except httpx.TransportError as e:
                if attempt < self.max_retries:
                    delay = self._backoff(attempt)
                    logger.warning(
                        f"{self.provider} network error on {method} {path}: {e}, "
                        f"retrying in {delay}s (attempt {attempt + 1}/{self.max_retries})",
                        extra={"provider": self.provider},
                    )
                    self._sleep(delay)
                    attempt += 1
                    continue
                raise

            if response.status_code == 429:
                if attempt < self.max_retries:
                    delay = self._retry_after(response, attempt)
                    logger.warning(
                        f"Rate limited by {self.provider}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{self.max_retries})",
                        extra={"provider": self.provider},
                    )
                    self._sleep(delay)
                    attempt += 1
                    continue
                raise VendorRateLimitError(
                    f"{self.provider} rate limit exceeded and max retries reached",
                    data=_safe_json(response),
                )

            if response.status_code >= 500 and attempt < self.max_retries:
                delay = self._backoff(attempt)
                logger.warning(
                    f"{self.provider} server error {response.status_code}, retrying in {delay}s "
                    f"(attempt {attempt + 1}/{self.max_retries})",
                    extra={"provider": self.provider},
                )
                self._sleep(delay)
                attempt += 1
                continue

            if not response.is_success:
                raise VendorAPIError.from_response(self.provider, response)

            if response.status_code == 204 or not response.content:
                return {}
            return response.json()

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


# =========================================
# LINODE
# =========================================

class LinodeClient(VendorClient):
    """Linode API v4."""

    API_CONFIG = LINODE_API

    def _paginate(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page = 1
        while True:
            query = dict(params or {}, page=page, page_size=self.API_CONFIG.page_size)
            data = self.call("GET", path, params=query)
            items.extend(data.get("data", []))
            if page >= data.get("pages", 1):
                return items
            page += 1

    def list_types(self) -> List[Dict[str, Any]]:
        return self._paginate("/linode/types")

    def list_regions(self) -> List[Dict[str, Any]]:
        return self._paginate("/regions")

    def list_images(self) -> List[Dict[str, Any]]:
        return self._paginate("/images")

    def list_instances(self) -> List[Dict[str, Any]]:
        return self._paginate("/linode/instances")

    def get_instance(self, instance_id: int) -> Dict[str, Any]:
        return self.call("GET", f"/linode/instances/{instance_id}")

    def create_instance(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.call("POST", "/linode/instances", body=body)

    def boot_instance(self, instance_id: int, config_id: Optional[int] = None) -> None:
        body = {"config_id": config_id} if config_id else None
        self.call("POST", f"/linode/instances/{instance_id}/boot", body=body)

    def shutdown_instance(self, instance_id: int) -> None:
        self.call("POST", f"/linode/instances/{instance_id}/shutdown")

    def reboot_instance(self, instance_id: int, config_id: Optional[int] = None) -> None:
        body = {"config_id": config_id} if config_id else None
        self.call("POST", f"/linode/instances/{instance_id}/reboot", body=body)

    def delete_instance(self, instance_id: int) -> None:
        self.call("DELETE", f"/linode/instances/{instance_id}")

    def get_profile(self) -> Dict[str, Any]:
        return self.call("GET", "/profile")


# =========================================
# DIGITALOCEAN
# =========================================

class DigitalOceanClient(VendorClient):
    """DigitalOcean API v2."""

    API_CONFIG = DIGITALOCEAN_API

    def _paginate(self, path: str, key: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        query: Optional[Dict[str, Any]] = dict(params or {}, per_page=self.API_CONFIG.page_size)
        url = path
        while url:
            data = self.call("GET", url, params=query)
            items.extend(data.get(key, []))
            url = ((data.get("links") or {}).get("pages") or {}).get("next")
            # next links already carry the query string
            query = None
        return items

    def list_sizes(self) -> List[Dict[str, Any]]:
        return self._paginate("/sizes", "sizes")

    def list_regions(self) -> List[Dict[str, Any]]:
        return self._paginate("/regions", "regions")

    def list_images(self) -> List[Dict[str, Any]]:
        return self._paginate("/images", "images")

    def list_droplets(self) -> List[Dict[str, Any]]:
        return self._paginate("/droplets", "droplets")

    def get_droplet(self, droplet_id: int) -> Dict[str, Any]:
        return self.call("GET", f"/droplets/{droplet_id}")["droplet"]

    def create_droplet(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.call("POST", "/droplets", body=body)["droplet"]

    def droplet_action(self, droplet_id: int, action_type: str) -> Dict[str, Any]:
        body = {"type": action_type}
        return self.call("POST", f"/droplets/{droplet_id}/actions", body=body).get("action", {})

    def delete_droplet(self, droplet_id: int) -> None:
        self.call("DELETE", f"/droplets/{droplet_id}")

    def get_account(self) -> Dict[str, Any]:
        return self.call("GET", "/account").get("account", {})

    def list_one_click_apps(self) -> List[Dict[str, Any]]:
        data = self.call("GET", "/1-clicks", params={"type": "droplet"})
        apps = data.get("1_clicks")
        return apps if isinstance(apps, list) else []
