"""
Tests for the shared HTTP transport helpers.
"""

import ssl

import httpx
import pytest

from cosmosrest.exceptions import ControlPlaneError, RemoteRejectedError, TransportError
from cosmosrest.transport import (
    build_ssl_context,
    create_http_client,
    parse_error_body,
    rejection_from_response,
    send,
)


class TestSSLContext:
    """Tests for the TLS floor."""

    def test_default_is_tls12(self):
        context = build_ssl_context()

        assert context.minimum_version == ssl.TLSVersion.TLSv1_2
        assert context.verify_mode == ssl.CERT_REQUIRED

    def test_tls13(self):
        assert build_ssl_context("1.3").minimum_version == ssl.TLSVersion.TLSv1_3

    def test_unsupported_version(self):
        with pytest.raises(ValueError):
            build_ssl_context("1.0")


class TestErrorParsing:
    """Tests for error body parsing."""

    def test_flat_body(self):
        response = httpx.Response(409, json={"code": "Conflict", "message": "exists"})
        assert parse_error_body(response) == {"code": "Conflict", "message": "exists"}

    def test_nested_body(self):
        response = httpx.Response(403, json={"error": {"code": "AuthorizationFailed", "message": "no"}})
        assert parse_error_body(response) == {"code": "AuthorizationFailed", "message": "no"}

    def test_non_json_body(self):
        response = httpx.Response(502, text="bad gateway")
        assert parse_error_body(response) == {"code": "BadGateway", "message": "bad gateway"}

    def test_rejection_headers(self):
        response = httpx.Response(
            429,
            json={"code": "TooManyRequests", "message": "slow"},
            headers={"x-ms-retry-after-ms": "12.0", "x-ms-activity-id": "a-1"},
        )

        error = rejection_from_response(response)

        assert isinstance(error, RemoteRejectedError)
        assert error.retry_after_ms == 12
        assert error.activity_id == "a-1"

    def test_rejection_custom_class_and_headers(self):
        response = httpx.Response(
            429, json={"error": {"code": "Throttled"}}, headers={"x-ms-request-id": "req-9"}
        )

        error = rejection_from_response(response, ControlPlaneError, activity_header="x-ms-request-id")

        assert isinstance(error, ControlPlaneError)
        assert error.code == "Throttled"
        assert error.activity_id == "req-9"

    def test_unparseable_retry_after_ignored(self):
        response = httpx.Response(429, json={}, headers={"x-ms-retry-after-ms": "soon"})
        assert rejection_from_response(response).retry_after_ms is None


class TestSend:
    """Tests for request sending."""

    @pytest.mark.asyncio
    async def test_passes_response_through(self):
        client = create_http_client(transport=httpx.MockTransport(lambda r: httpx.Response(404)))

        response = await send(client, "GET", "https://acct.documents.azure.com/dbs")

        assert response.status_code == 404
        await client.aclose()

    @pytest.mark.asyncio
    async def test_wraps_transport_failures(self):
        def timeout(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        client = create_http_client(transport=httpx.MockTransport(timeout))

        with pytest.raises(TransportError) as exc_info:
            await send(client, "POST", "https://acct.documents.azure.com/dbs")
        assert isinstance(exc_info.value.cause, httpx.ConnectTimeout)
        await client.aclose()
