"""
Azure Resource Manager Control Plane.

Talks to the Microsoft.DocumentDB resource provider over HTTPS with a bearer
token. Long-running deletes are followed through the Azure-AsyncOperation or
Location headers until they reach a terminal state.

Reference: https://learn.microsoft.com/en-us/rest/api/cosmos-db-resource-provider/

Author: cosmosrest Team
Date: 2026-10-13
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from .plane import ACCOUNT_TYPE, PROVIDER, ControlPlane, ResourceEntry, type_segments
from ..exceptions import ControlPlaneError, NotFoundError
from ..transport import create_http_client, rejection_from_response, send

logger = logging.getLogger(__name__)

DEFAULT_ARM_ENDPOINT = "https://management.azure.com"
DEFAULT_ARM_API_VERSION = "2023-04-15"
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_OPERATION_TIMEOUT = 30 * 60.0

TERMINAL_SUCCESS = {"succeeded"}
TERMINAL_FAILURE = {"failed", "canceled", "cancelled"}

TokenSource = Union[str, Callable[[], str]]


class ArmControlPlane(ControlPlane):
    """
    Control plane backed by the Azure Resource Manager REST API.

    Args:
        subscription_id: Subscription holding the accounts
        token: Bearer token, or a callable returning a fresh one per request
        endpoint: Resource manager endpoint
        api_version: Microsoft.DocumentDB api-version
        poll_interval: Seconds between long-running operation polls
        operation_timeout: Give up on a long-running operation after this many seconds
        http_client: Optional pre-built httpx.AsyncClient
    """

    def __init__(
        self,
        subscription_id: str,
        token: TokenSource,
        endpoint: str = DEFAULT_ARM_ENDPOINT,
        api_version: str = DEFAULT_ARM_API_VERSION,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        operation_timeout: float = DEFAULT_OPERATION_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.subscription_id = subscription_id
        self._token = token
        self.endpoint = endpoint.rstrip("/")
        self.api_version = api_version
        self.poll_interval = poll_interval
        self.operation_timeout = operation_timeout
        self._owns_http = http_client is None
        self._http = http_client or create_http_client()

    def _headers(self) -> Dict[str, str]:
        token = self._token() if callable(self._token) else self._token
        return {"Authorization": f"Bearer {token}"}

    def resource_url(self, resource_type: str, resource_group: str, name: str) -> str:
        """
        URL of a resource or of a child collection.

        A name with one segment fewer than the type addresses the collection
        of children, e.g. (CONTAINER_TYPE, "acct/db") ->
        .../databaseAccounts/acct/sqlDatabases/db/containers
        """
        segments = type_segments(resource_type)
        parts = name.split("/") if name else []
        if len(parts) not in (len(segments), len(segments) - 1):
            raise ValueError(f"'{name}' does not fit resource type {resource_type}")

        path = "/".join(
            f"{segment}/{part}" for segment, part in zip(segments, parts)
        )
        if len(parts) < len(segments):
            path = f"{path}/{segments[-1]}" if path else segments[-1]

        return (
            f"{self.endpoint}/subscriptions/{self.subscription_id}"
            f"/resourceGroups/{resource_group}/providers/{PROVIDER}/{path}"
        )

    async def _request(
        self, method: str, url: str, resource_type: str, name: str
    ) -> httpx.Response:
        # nextLink URLs carry their own paging token; merge rather than replace the query
        request_url = str(httpx.URL(url).copy_merge_params({"api-version": self.api_version}))
        response = await send(
            self._http,
            method,
            request_url,
            headers=self._headers(),
        )
        if response.status_code == 404:
            kind = resource_type.split("/")[-1]
            raise NotFoundError(kind, name)
        if response.is_error:
            raise rejection_from_response(
                response,
                ControlPlaneError,
                activity_header="x-ms-request-id",
            )
        return response

    async def get_account_keys(self, resource_group: str, account_name: str) -> str:
        url = self.resource_url(ACCOUNT_TYPE, resource_group, account_name) + "/listKeys"
        logger.info(f"Retrieving keys for account '{account_name}' in '{resource_group}'")
        response = await self._request("POST", url, ACCOUNT_TYPE, account_name)

        key = response.json().get("primaryMasterKey")
        if not key:
            raise ControlPlaneError(
                status_code=response.status_code,
                code="MissingKey",
                message=f"listKeys for '{account_name}' returned no primaryMasterKey",
            )
        return key

    async def list_resources(
        self, resource_type: str, resource_group: str, parent_name: str
    ) -> List[ResourceEntry]:
        url: Optional[str] = self.resource_url(resource_type, resource_group, parent_name)
        entries: List[ResourceEntry] = []

        while url:
            response = await self._request("GET", url, resource_type, parent_name)
            body: Dict[str, Any] = response.json()
            entries.extend(ResourceEntry(**item) for item in body.get("value", []))
            url = body.get("nextLink")

        logger.debug(
            f"Control plane listed {len(entries)} {resource_type.split('/')[-1]} under '{parent_name}'"
        )
        return entries

    async def delete_resource(
        self, resource_type: str, resource_group: str, name: str
    ) -> None:
        url = self.resource_url(resource_type, resource_group, name)
        logger.info(f"Deleting {resource_type.split('/')[-1]} '{name}'")
        response = await self._request("DELETE", url, resource_type, name)

        if response.status_code in (200, 204):
            return
        await self._wait_for_operation(response, name)

    async def _wait_for_operation(self, response: httpx.Response, name: str) -> None:
        """Follow a 201/202 response until the operation finishes."""
        async_url = response.headers.get("azure-asyncoperation")
        location_url = response.headers.get("location")
        if not async_url and not location_url:
            return

        deadline = time.monotonic() + self.operation_timeout
        while True:
            if time.monotonic() > deadline:
                raise ControlPlaneError(
                    status_code=408,
                    code="OperationTimedOut",
                    message=f"Operation on '{name}' did not finish within {self.operation_timeout:.0f}s",
                )

            await asyncio.sleep(self._poll_delay(response))
            response = await send(self._http, "GET", async_url or location_url, headers=self._headers())

            if response.is_error:
                raise rejection_from_response(response, ControlPlaneError)

            if async_url:
                status = str(response.json().get("status", "")).lower()
                if status in TERMINAL_SUCCESS:
                    logger.info(f"Operation on '{name}' succeeded")
                    return
                if status in TERMINAL_FAILURE:
                    error = response.json().get("error") or {}
                    raise ControlPlaneError(
                        status_code=response.status_code,
                        code=error.get("code", "OperationFailed"),
                        message=error.get("message", f"Operation on '{name}' ended as {status}"),
                    )
            elif response.status_code != 202:
                logger.info(f"Operation on '{name}' finished")
                return

            logger.debug(f"Operation on '{name}' still running")

    def _poll_delay(self, response: httpx.Response) -> float:
        retry_after = response.headers.get("retry-after")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                logger.debug(f"Ignoring non-numeric retry-after '{retry_after}'")
        return self.poll_interval

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()
