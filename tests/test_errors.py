"""
Tests for Error Normalization
=============================

Every vendor failure shape maps to one ProviderError, by rule priority.
"""

import httpx
import pytest

from vpsplane.providers.base import ErrorCode, ProviderError
from vpsplane.providers.clients import VendorAPIError, VendorRateLimitError
from vpsplane.providers.errors import (
    UNKNOWN_MESSAGE,
    error_from_response,
    get_user_friendly_message,
    normalize_digitalocean_error,
    normalize_error,
    normalize_generic_error,
    normalize_linode_error,
)


def _status_error(status: int, **kwargs) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.example.test/v1/thing")
    response = httpx.Response(status, request=request, **kwargs)
    return httpx.HTTPStatusError("failed", request=request, response=response)


class TestLinodeNormalizer:
    """Linode error shapes."""

    def test_errors_list_is_validation(self):
        err = normalize_linode_error({"errors": [{"field": "region", "reason": "region is not valid"}]})
        assert err.code == "VALIDATION_ERROR"
        assert err.message == "region is not valid"
        assert err.field == "region"
        assert err.provider == "linode"

    def test_errors_list_wins_over_status(self):
        """A structured error list takes priority over the HTTP status."""
        error = VendorAPIError(
            "linode API error: 404 Not Found",
            status=404,
            status_text="Not Found",
            data={"errors": [{"reason": "Not found"}]},
        )
        err = normalize_linode_error(error)
        assert err.code == "VALIDATION_ERROR"
        assert err.message == "Not found"
        assert err.field is None
        assert err.original_error is error

    def test_status_only_uses_table(self):
        err = normalize_linode_error({"status": 401})
        assert err.code == "HTTP_401"
        assert err.message == "Authentication failed - invalid API token"

    def test_status_text_overrides_table(self):
        err = normalize_linode_error({"status": 404, "statusText": "Not Found"})
        assert err.code == "HTTP_404"
        assert err.message == "Not Found"

    def test_unlisted_5xx_is_outage(self):
        err = normalize_linode_error({"status": 599})
        assert err.code == "HTTP_599"
        assert err.message == "Linode service outage"

    def test_unlisted_4xx(self):
        err = normalize_linode_error({"status": 418})
        assert err.message == "HTTP 418 error"

    def test_exception_is_api_error(self):
        err = normalize_linode_error(ConnectionError("connection reset"))
        assert err.code == "API_ERROR"
        assert err.message == "connection reset"

    def test_httpx_status_error(self):
        err = normalize_linode_error(_status_error(403))
        assert err.code == "HTTP_403"
        assert err.message == "Forbidden"


class TestDigitalOceanNormalizer:
    """DigitalOcean error shapes."""

    def test_id_message_pair(self):
        err = normalize_digitalocean_error({"id": "not_found", "message": "The resource could not be found."})
        assert err.code == "NOT_FOUND"
        assert err.message == "The resource could not be found."
        assert err.provider == "digitalocean"

    def test_id_under_data(self):
        err = normalize_digitalocean_error({"data": {"id": "unauthorized", "message": "Unable to authenticate you"}})
        assert err.code == "UNAUTHORIZED"

    def test_id_with_dashes(self):
        err = normalize_digitalocean_error({"id": "too-many-requests", "message": "slow down"})
        assert err.code == "TOO_MANY_REQUESTS"

    @pytest.mark.parametrize("identifier", ["   ", "--", " - "])
    def test_blank_id_falls_through(self, identifier):
        """An id with no usable characters never yields an empty code."""
        err = normalize_digitalocean_error({"id": identifier, "message": "boom", "status": 500})
        assert err.code == "HTTP_500"

        err = normalize_digitalocean_error(VendorAPIError("boom", data={"id": identifier, "message": "boom"}))
        assert err.code == "API_ERROR"
        assert err.message == "boom"

    def test_validation_list(self):
        err = normalize_digitalocean_error({"errors": [{"message": "Name is invalid", "field": "name"}]})
        assert err.code == "VALIDATION_ERROR"
        assert err.field == "name"

    def test_nested_validation_list(self):
        err = normalize_digitalocean_error({"data": {"errors": [{"message": "Size is invalid"}]}})
        assert err.code == "VALIDATION_ERROR"
        assert err.message == "Size is invalid"

    def test_vendor_error_with_body(self):
        error = VendorAPIError(
            "digitalocean API error: 422",
            status=422,
            status_text="Unprocessable Entity",
            data={"id": "unprocessable_entity", "message": "size is not available in region"},
        )
        err = normalize_digitalocean_error(error)
        assert err.code == "UNPROCESSABLE_ENTITY"
        assert err.message == "size is not available in region"

    def test_status_only(self):
        err = normalize_digitalocean_error({"status": 503})
        assert err.code == "HTTP_503"
        assert err.message == "Service unavailable - DigitalOcean is down"

    def test_unlisted_5xx_is_outage(self):
        assert normalize_digitalocean_error({"status": 520}).message == "DigitalOcean service outage"


class TestCommonRules:
    """Rules shared by all normalizers."""

    @pytest.mark.parametrize("normalize", [normalize_linode_error, normalize_digitalocean_error])
    def test_provider_error_passes_through(self, normalize):
        """An already-normalized error is never wrapped again."""
        original = ProviderError("linode", ErrorCode.INVALID_ACTION, "nope")
        assert normalize(original) is original

    @pytest.mark.parametrize("normalize", [normalize_linode_error, normalize_digitalocean_error])
    def test_rate_limit(self, normalize):
        err = normalize(VendorRateLimitError("rate limit exceeded and max retries reached"))
        assert err.code == "RATE_LIMIT_EXCEEDED"

    @pytest.mark.parametrize("normalize", [normalize_linode_error, normalize_digitalocean_error])
    @pytest.mark.parametrize("value", [None, 42, "oops", ["a"], {}, {"status": "401"}])
    def test_unknown_shapes(self, normalize, value):
        """Unrecognised values are UNKNOWN_ERROR and never raise."""
        err = normalize(value)
        assert err.code == "UNKNOWN_ERROR"
        assert err.message == UNKNOWN_MESSAGE

    def test_mapping_with_message(self):
        err = normalize_linode_error({"message": "Something broke"})
        assert err.code == "API_ERROR"
        assert err.message == "Something broke"

    def test_exception_without_message(self):
        err = normalize_digitalocean_error(TimeoutError())
        assert err.code == "API_ERROR"
        assert err.message == "TimeoutError"


class TestDispatcher:
    """normalize_error() selects by ProviderType."""

    def test_linode(self):
        err = normalize_error("linode", {"errors": [{"reason": "bad"}]})
        assert err.code == "VALIDATION_ERROR"
        assert err.provider == "linode"

    def test_digitalocean(self):
        err = normalize_error("digitalocean", {"id": "not_found", "message": "gone"})
        assert err.code == "NOT_FOUND"

    def test_reserved_type_uses_generic(self):
        err = normalize_error("aws", {"status": 500})
        assert err.provider == "aws"
        assert err.message == "Provider server error"

    def test_unknown_type_uses_generic(self):
        err = normalize_error("vultr", RuntimeError("boom"))
        assert err.provider == "vultr"
        assert err.code == "API_ERROR"

    def test_generic_ignores_validation_lists(self):
        err = normalize_generic_error({"errors": [{"reason": "bad"}], "status": 400}, "aws")
        assert err.code == "HTTP_400"


class TestErrorFromResponse:
    def test_json_body_goes_through_vendor_normalizer(self):
        response = httpx.Response(404, json={"id": "not_found", "message": "Droplet not found"})
        err = error_from_response(response, "digitalocean")
        assert err.code == "NOT_FOUND"
        assert err.message == "Droplet not found"

    def test_status_added_when_body_has_no_rule(self):
        response = httpx.Response(401, json={})
        err = error_from_response(response, "linode")
        assert err.code == "HTTP_401"

    def test_non_json_body(self):
        response = httpx.Response(502, text="<html>bad gateway</html>")
        err = error_from_response(response, "linode")
        assert err.code == "HTTP_502"
        assert err.message == "Bad Gateway"

    def test_other_provider(self):
        response = httpx.Response(404, json={"message": "missing"})
        err = error_from_response(response, "aws")
        assert err.code == "HTTP_404"
        assert err.message == "missing"


class TestFriendlyMessages:
    def test_mapped_code(self):
        err = ProviderError("linode", "HTTP_401", "Authentication failed - invalid API token")
        assert get_user_friendly_message(err) == "Authentication failed. Please contact your administrator."

    def test_validation_uses_raw_message(self):
        err = ProviderError("linode", ErrorCode.VALIDATION_ERROR, "region is not valid")
        assert get_user_friendly_message(err) == "region is not valid"

    def test_unknown_code_falls_back(self):
        err = ProviderError("digitalocean", "SOMETHING_NEW", "raw vendor text")
        assert get_user_friendly_message(err) == "raw vendor text"

    def test_to_dict(self):
        err = ProviderError("linode", ErrorCode.VALIDATION_ERROR, "bad", field="region")
        assert err.to_dict() == {
            "code": "VALIDATION_ERROR",
            "message": "bad",
            "provider": "linode",
            "field": "region",
        }
