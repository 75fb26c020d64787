"""HTTP transport helpers shared by the data-plane and control-plane clients.

Builds the TLS-restricted httpx client, wraps transport failures, and turns
rejected responses into structured errors.
"""

import logging
import ssl
from typing import Any, Dict, Optional, Type

import httpx

from cosmosrest.exceptions import RemoteRejectedError, TransportError

logger = logging.getLogger(__name__)

TLS_VERSIONS = {
    "1.2": ssl.TLSVersion.TLSv1_2,
    "1.3": ssl.TLSVersion.TLSv1_3,
}

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_CONNECTIONS = 100


def build_ssl_context(min_tls_version: str = "1.2") -> ssl.SSLContext:
    """Default-verified SSL context that refuses anything older than min_tls_version."""
    if min_tls_version not in TLS_VERSIONS:
        raise ValueError(
            f"Unsupported TLS version: {min_tls_version}. "
            f"Supported versions: {sorted(TLS_VERSIONS)}"
        )
    context = ssl.create_default_context()
    context.minimum_version = TLS_VERSIONS[min_tls_version]
    return context


def create_http_client(
    timeout: float = DEFAULT_TIMEOUT,
    max_connections: int = DEFAULT_MAX_CONNECTIONS,
    min_tls_version: str = "1.2",
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> httpx.AsyncClient:
    """
    Create the async HTTP client used for all service calls.

    Args:
        timeout: Per-request timeout in seconds
        max_connections: Connection pool size
        min_tls_version: Minimum TLS protocol version ("1.2" or "1.3")
        transport: Optional transport override (tests use httpx.MockTransport)
    """
    limits = httpx.Limits(
        max_connections=max_connections,
        max_keepalive_connections=max_connections,
    )
    return httpx.AsyncClient(
        timeout=timeout,
        limits=limits,
        verify=build_ssl_context(min_tls_version),
        transport=transport,
    )


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any
) -> httpx.Response:
    """Issue a request, converting failures below HTTP into TransportError."""
    try:
        return await client.request(method, url, **kwargs)
    except httpx.TransportError as e:
        logger.warning(f"{method} {url} transport failure: {type(e).__name__}: {e}")
        raise TransportError(method, url, e) from e


def _header_int(headers: httpx.Headers, name: str) -> Optional[int]:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


def parse_error_body(response: httpx.Response) -> Dict[str, str]:
    """
    Extract code and message from an error body.

    Accepts both the flat data-plane shape {"code", "message"} and the
    resource manager shape {"error": {"code", "message"}}. Falls back to the
    HTTP reason phrase when the body is not JSON.
    """
    code = response.reason_phrase.replace(" ", "") or str(response.status_code)
    message = response.text or response.reason_phrase

    try:
        body = response.json()
    except ValueError:
        return {"code": code, "message": message}

    if isinstance(body, dict):
        inner = body.get("error") if isinstance(body.get("error"), dict) else body
        code = str(inner.get("code") or code)
        message = str(inner.get("message") or message)

    return {"code": code, "message": message}


def rejection_from_response(
    response: httpx.Response,
    error_cls: Type[RemoteRejectedError] = RemoteRejectedError,
    retry_after_header: str = "x-ms-retry-after-ms",
    activity_header: str = "x-ms-activity-id"
) -> RemoteRejectedError:
    """Build a structured rejection error from a non-2xx response."""
    parsed = parse_error_body(response)
    return error_cls(
        status_code=response.status_code,
        code=parsed["code"],
        message=parsed["message"],
        retry_after_ms=_header_int(response.headers, retry_after_header),
        activity_id=response.headers.get(activity_header),
    )
