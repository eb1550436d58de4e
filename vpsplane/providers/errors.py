"""
VPSPlane Error Normalization
============================

Maps vendor-native failures (error payloads, HTTP statuses, exceptions)
to a single ProviderError shape. Every function here is total: it always
returns a ProviderError and never raises.

Rule order:
    1. structured validation list   -> VALIDATION_ERROR
    2. vendor id/message pair       -> ID_UPPERCASED
    3. HTTP status                  -> HTTP_<status>
    4. exception                    -> API_ERROR
    5. anything else                -> UNKNOWN_ERROR
An exhausted rate limit short-circuits to RATE_LIMIT_EXCEEDED.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Tuple
import json
import re

import httpx

from .base import ProviderError, ProviderType, ErrorCode
from .clients import VendorAPIError, VendorRateLimitError


def _status_messages(vendor: str) -> Dict[int, str]:
    return {
        400: "Bad request - invalid parameters",
        401: "Authentication failed - invalid API token",
        403: "Access forbidden - insufficient permissions",
        404: "Resource not found",
        422: "Unprocessable entity - validation failed",
        429: "Rate limit exceeded",
        500: f"{vendor} server error",
        502: f"Bad gateway - {vendor} service unavailable",
        503: f"Service unavailable - {vendor} is down",
        504: f"Gateway timeout - {vendor} request timed out",
    }


LINODE_STATUS_MESSAGES = _status_messages("Linode")
DIGITALOCEAN_STATUS_MESSAGES = _status_messages("DigitalOcean")
GENERIC_STATUS_MESSAGES = _status_messages("Provider")

UNKNOWN_MESSAGE = "An unknown error occurred"


# =========================================
# PAYLOAD EXTRACTION
# =========================================

def _unpack(error: Any) -> Tuple[Optional[Mapping], Optional[int], Optional[str]]:
    """Return (payload, status, status_text) from whatever was raised."""
    if isinstance(error, VendorAPIError):
        payload = error.data if isinstance(error.data, Mapping) else None
        return payload, error.status, error.status_text
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, Mapping):
            payload = None
        return payload, response.status_code, response.reason_phrase or None
    if isinstance(error, Mapping):
        status = error.get("status")
        status_text = error.get("statusText") or error.get("status_text")
        return error, status if isinstance(status, int) else None, status_text
    return None, None, None


def _as_code(identifier: str) -> str:
    return re.sub(r"[-\s]+", "_", identifier.strip()).upper()


def _first(entries: Any) -> Optional[Mapping]:
    if isinstance(entries, list):
        entries = entries[0] if entries else None
    return entries if isinstance(entries, Mapping) else None


def _linode_validation(payload: Mapping) -> Optional[Tuple[str, Optional[str]]]:
    # {"errors": [{"field": "region", "reason": "..."}]}
    entry = _first(payload.get("errors"))
    if entry is None:
        return None
    return entry.get("reason") or "Validation error", entry.get("field")


def _digitalocean_validation(payload: Mapping) -> Optional[Tuple[str, Optional[str]]]:
    # {"errors": [...]} or nested under {"data": {"errors": [...]}}
    for source in (payload, payload.get("data")):
        if isinstance(source, Mapping) and source.get("errors"):
            entry = _first(source["errors"])
            if entry is not None:
                return entry.get("message") or "Validation error", entry.get("field")
    return None


def _id_message(payload: Mapping) -> Optional[Tuple[str, str]]:
    for source in (payload, payload.get("data")):
        if not isinstance(source, Mapping):
            continue
        identifier, message = source.get("id"), source.get("message")
        if not isinstance(identifier, str) or not message:
            continue
        code = _as_code(identifier).strip("_")
        if code:
            return code, str(message)
    return None


def _normalize(
    error: Any,
    provider: str,
    validation: Optional[Callable[[Mapping], Optional[Tuple[str, Optional[str]]]]],
    status_messages: Dict[int, str],
    vendor: str,
) -> ProviderError:
    if isinstance(error, ProviderError):
        return error

    if isinstance(error, VendorRateLimitError):
        return ProviderError(
            provider,
            ErrorCode.RATE_LIMIT_EXCEEDED,
            str(error) or "Rate limit exceeded",
            original_error=error,
        )

    payload, status, status_text = _unpack(error)

    if payload is not None and validation is not None:
        found = validation(payload)
        if found:
            message, field = found
            return ProviderError(
                provider, ErrorCode.VALIDATION_ERROR, message, field=field, original_error=error
            )

    if payload is not None:
        pair = _id_message(payload)
        if pair:
            code, message = pair
            return ProviderError(provider, code, message, original_error=error)

    if status:
        default = status_messages.get(status)
        if default is None and status >= 500:
            default = f"{vendor} service outage"
        message = status_text or default or f"HTTP {status} error"
        return ProviderError(provider, ErrorCode.http(status), message, original_error=error)

    if isinstance(error, BaseException):
        return ProviderError(
            provider,
            ErrorCode.API_ERROR,
            str(error) or error.__class__.__name__,
            original_error=error,
        )

    if payload is not None and isinstance(payload.get("message"), str) and payload["message"]:
        return ProviderError(provider, ErrorCode.API_ERROR, payload["message"], original_error=error)

    return ProviderError(provider, ErrorCode.UNKNOWN_ERROR, UNKNOWN_MESSAGE, original_error=error)


# =========================================
# PER-VENDOR NORMALIZERS
# =========================================

def normalize_linode_error(error: Any, provider: str = ProviderType.LINODE.value) -> ProviderError:
    """Normalize Linode API errors."""
    return _normalize(error, provider, _linode_validation, LINODE_STATUS_MESSAGES, "Linode")


def normalize_digitalocean_error(error: Any, provider: str = ProviderType.DIGITALOCEAN.value) -> ProviderError:
    """Normalize DigitalOcean API errors."""
    return _normalize(
        error, provider, _digitalocean_validation, DIGITALOCEAN_STATUS_MESSAGES, "DigitalOcean"
    )


def normalize_generic_error(error: Any, provider: str) -> ProviderError:
    """Fallback for vendors without a dedicated normalizer."""
    return _normalize(error, provider, None, GENERIC_STATUS_MESSAGES, "Provider")


NORMALIZERS: Dict[ProviderType, Callable[[Any, str], ProviderError]] = {
    ProviderType.LINODE: normalize_linode_error,
    ProviderType.DIGITALOCEAN: normalize_digitalocean_error,
}


def normalize_error(provider_type: str, error: Any) -> ProviderError:
    """Dispatch to the vendor's normalizer, keyed by ProviderType."""
    try:
        ptype = ProviderType(provider_type)
    except ValueError:
        return normalize_generic_error(error, str(provider_type))

    normalizer = NORMALIZERS.get(ptype)
    if normalizer is None:
        return normalize_generic_error(error, ptype.value)
    return normalizer(error, ptype.value)


def error_from_response(response: httpx.Response, provider: str) -> ProviderError:
    """Build a ProviderError from a failed HTTP response."""
    try:
        data = json.loads(response.text)
    except ValueError:
        return ProviderError(
            provider,
            ErrorCode.http(response.status_code),
            response.reason_phrase or f"HTTP {response.status_code} error",
        )

    if provider in {p.value for p in NORMALIZERS}:
        if isinstance(data, Mapping):
            data = dict(data)
            data.setdefault("status", response.status_code)
        return normalize_error(provider, data)

    message = data.get("message") if isinstance(data, Mapping) else None
    return ProviderError(
        provider,
        ErrorCode.http(response.status_code),
        message or response.reason_phrase or f"HTTP {response.status_code} error",
        original_error=data,
    )


# =========================================
# USER-FACING MESSAGES
# =========================================

FRIENDLY_MESSAGES: Dict[str, str] = {
    "MISSING_CREDENTIALS": "API credentials are not configured. Please contact your administrator.",
    "INVALID_CREDENTIALS": "API credentials are invalid. Please contact your administrator.",
    "PROVIDER_NOT_FOUND": "The selected provider is not available.",
    "PROVIDER_INACTIVE": "The selected provider is currently disabled.",
    "INVALID_ACTION": "This action is not supported for this server.",
    "RATE_LIMIT_EXCEEDED": "Rate limit exceeded. Please try again later.",
    "HTTP_401": "Authentication failed. Please contact your administrator.",
    "HTTP_403": "Access forbidden. Please contact your administrator.",
    "HTTP_404": "Resource not found.",
    "HTTP_429": "Rate limit exceeded. Please try again later.",
    "HTTP_500": "Provider service error. Please try again later.",
    "HTTP_503": "Provider service unavailable. Please try again later.",
    "NOT_FOUND": "The requested resource was not found.",
    "UNAUTHORIZED": "Authentication failed. Please contact your administrator.",
}


def get_user_friendly_message(error: ProviderError) -> str:
    """Map an error code to a sentence for display; falls back to the raw message."""
    if error.code == ErrorCode.VALIDATION_ERROR.value:
        return error.message or "Invalid input provided"
    return FRIENDLY_MESSAGES.get(error.code) or error.message or "An error occurred"
