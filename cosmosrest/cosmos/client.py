"""
Cosmos DB Resource Client.

Signed REST calls against the data plane for databases, collections and
documents, plus the context operations that depend on them.

Every request follows the same path:
    Built -> Signed -> Sent -> Succeeded | RemoteRejected | TransportError

There is no retry at this layer. See cosmosrest.resilience for a caller
policy.

Author: cosmosrest Team
Date: 2026-10-14
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import httpx

from .constants import (
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_QUERY,
    DEFAULT_API_VERSION,
    HEADER_AUTHORIZATION,
    HEADER_CONTENT_TYPE,
    HEADER_CONTINUATION,
    HEADER_DATE,
    HEADER_ENABLE_CROSS_PARTITION,
    HEADER_IS_QUERY,
    HEADER_IS_UPSERT,
    HEADER_MAX_ITEM_COUNT,
    HEADER_PARTITION_KEY,
    HEADER_VERSION,
    QUERY_ALL,
    QUERY_BY_ID,
    QUERY_ID_PARAMETER,
    RESOURCE_COLLECTIONS,
    RESOURCE_DATABASES,
    RESOURCE_DOCUMENTS,
)
from .context import ConnectionContext
from .models import (
    Collection,
    CollectionListResult,
    Database,
    DatabaseListResult,
    QueryParameter,
    QueryRequest,
    QueryResult,
)
from .validation import (
    DocumentValidator,
    extract_partition_key_value,
    partition_key_header,
    require_collection,
)
from ..auth.masterkey import format_request_date, sign_request
from ..control.plane import ACCOUNT_TYPE, CONTAINER_TYPE, DATABASE_TYPE, ControlPlane
from ..exceptions import (
    CosmosRestError,
    CredentialUnavailableError,
    NotFoundError,
    RemoteRejectedError,
)
from ..transport import create_http_client, rejection_from_response, send

logger = logging.getLogger(__name__)


@dataclass
class PreparedWrite:
    """
    Request parameters shared by every write of one collection.

    Holds no signature; each send signs with a fresh date.
    """

    url: str
    resource_link: str
    partition_key: Optional[str]
    upsert: bool


class ResourceClient:
    """
    Data-plane client for the Cosmos DB REST API.

    Args:
        control_plane: Optional control-plane collaborator for key retrieval,
                       listing merges and deletes
        http_client: Optional pre-built httpx.AsyncClient
        timeout: Request timeout when the client builds its own HTTP client
        max_connections: Connection pool size for the built HTTP client
        min_tls_version: Minimum TLS version for the built HTTP client
    """

    def __init__(
        self,
        control_plane: Optional[ControlPlane] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        max_connections: int = 100,
        min_tls_version: str = "1.2"
    ):
        self.control_plane = control_plane
        self._owns_http = http_client is None
        self._http = http_client or create_http_client(
            timeout=timeout,
            max_connections=max_connections,
            min_tls_version=min_tls_version,
        )

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()
        if self.control_plane is not None:
            await self.control_plane.close()

    async def __aenter__(self) -> "ResourceClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # ========== Request Pipeline ==========

    def _signed_headers(
        self,
        context: ConnectionContext,
        verb: str,
        resource_type: str,
        resource_link: str
    ) -> Dict[str, str]:
        date = format_request_date()
        signature = sign_request(
            verb,
            resource_link,
            resource_type,
            date,
            context.master_key,
            key_type=context.key_type,
            token_version=context.token_version,
        )
        return {
            HEADER_AUTHORIZATION: signature.token,
            HEADER_DATE: date,
            HEADER_VERSION: context.api_version or DEFAULT_API_VERSION,
        }

    async def _request(
        self,
        context: ConnectionContext,
        verb: str,
        path: str,
        resource_type: str,
        resource_link: str,
        headers: Optional[Dict[str, str]] = None,
        json_body: Any = None
    ) -> httpx.Response:
        """Sign and send one request. Non-2xx responses raise RemoteRejectedError."""
        url = context.uri_for(path)
        request_headers = self._signed_headers(context, verb, resource_type, resource_link)
        if headers:
            request_headers.update(headers)

        logger.debug(f"{verb} {url} signed for {resource_type} '{resource_link}'")
        response = await send(self._http, verb, url, headers=request_headers, json=json_body)

        if response.is_error:
            error = rejection_from_response(response)
            logger.debug(f"{verb} {url} rejected: {response.status_code} {error.code}")
            raise error

        logger.debug(f"{verb} {url} succeeded: {response.status_code}")
        return response

    # ========== Context ==========

    async def open_context(
        self,
        account_name: str,
        resource_group: Optional[str] = None,
        database_name: Optional[str] = None,
        collection_name: Optional[str] = None,
        master_key: Optional[str] = None,
        subscription_id: Optional[str] = None,
        api_version: str = DEFAULT_API_VERSION,
        key_type: str = "master",
        token_version: str = "1.0"
    ) -> ConnectionContext:
        """
        Create a context for an account, optionally selecting a collection.

        Without a master key the key is retrieved from the control plane.

        Raises:
            CredentialUnavailableError: If the key cannot be retrieved
            NotFoundError: If the database or collection does not exist
        """
        if not master_key:
            master_key = await self._retrieve_key(account_name, resource_group)

        context = ConnectionContext(
            account_name=account_name,
            master_key=master_key,
            resource_group=resource_group,
            subscription_id=subscription_id,
            key_type=key_type,
            token_version=token_version,
            api_version=api_version,
        )

        if database_name and collection_name:
            await self.select_collection(context, database_name, collection_name)
        elif database_name:
            context.select(database_name)

        logger.info(f"Opened context for '{context.endpoint}'")
        return context

    async def _retrieve_key(self, account_name: str, resource_group: Optional[str]) -> str:
        if self.control_plane is None:
            raise CredentialUnavailableError(account_name, "no master key and no control plane configured")
        if not resource_group:
            raise CredentialUnavailableError(account_name, "resource group is required to look up keys")
        try:
            return await self.control_plane.get_account_keys(resource_group, account_name.lower())
        except CosmosRestError as e:
            raise CredentialUnavailableError(account_name, e.message) from e

    async def select_collection(
        self,
        context: ConnectionContext,
        database_name: str,
        collection_name: str
    ) -> ConnectionContext:
        """
        Point the context at a collection and load its partition key.

        The context is left untouched when the lookup fails.

        Raises:
            NotFoundError: If the database or collection does not exist
        """
        collections = await self.get_collection(context, database_name, collection_name)
        match = next((c for c in collections if c.id == collection_name), None)
        if match is None:
            raise NotFoundError("collection", f"{database_name}/{collection_name}")

        context.select(database_name, collection_name, match.partition_key_name)
        logger.info(
            f"Selected collection '{database_name}/{collection_name}' "
            f"(partition key: {match.partition_key_name or 'none'})"
        )
        return context

    # ========== Databases & Collections ==========

    async def get_database(self, context: ConnectionContext) -> List[Database]:
        """
        List the databases of the account.

        The control-plane listing is merged with the data-plane listing,
        deduplicated by name, since the former is sometimes incomplete.
        """
        response = await self._request(
            context, "GET", RESOURCE_DATABASES, RESOURCE_DATABASES, RESOURCE_DATABASES
        )
        listed = DatabaseListResult.model_validate(response.json()).databases
        merged: Dict[str, Database] = {db.id: db for db in listed}

        if self.control_plane is not None and context.resource_group:
            try:
                entries = await self.control_plane.list_resources(
                    DATABASE_TYPE, context.resource_group, context.account_name
                )
            except NotFoundError:
                logger.debug(f"Control plane does not know account '{context.account_name}'")
                entries = []
            for entry in entries:
                merged.setdefault(entry.resource_id, Database(id=entry.resource_id))

        return list(merged.values())

    async def get_collection(
        self,
        context: ConnectionContext,
        database_name: str,
        collection_name: Optional[str] = None
    ) -> List[Collection]:
        """
        List collections of a database, or look up one collection.

        Returns an empty list when a named collection does not exist.

        Raises:
            NotFoundError: If the database does not exist
        """
        database_link = f"{RESOURCE_DATABASES}/{database_name}"
        merged: Dict[str, Collection] = {}

        if collection_name:
            link = f"{database_link}/{RESOURCE_COLLECTIONS}/{collection_name}"
            try:
                response = await self._request(context, "GET", link, RESOURCE_COLLECTIONS, link)
                found = Collection.model_validate(response.json())
                merged[found.id] = found
            except RemoteRejectedError as e:
                if e.status_code != 404:
                    raise
        else:
            try:
                response = await self._request(
                    context, "GET", f"{database_link}/{RESOURCE_COLLECTIONS}",
                    RESOURCE_COLLECTIONS, database_link,
                )
            except RemoteRejectedError as e:
                if e.status_code == 404:
                    raise NotFoundError("database", database_name) from e
                raise
            for coll in CollectionListResult.model_validate(response.json()).document_collections:
                merged[coll.id] = coll

        if self.control_plane is not None and context.resource_group:
            try:
                entries = await self.control_plane.list_resources(
                    CONTAINER_TYPE,
                    context.resource_group,
                    f"{context.account_name}/{database_name}",
                )
            except NotFoundError:
                entries = []
            for entry in entries:
                if collection_name and entry.resource_id != collection_name:
                    continue
                merged.setdefault(
                    entry.resource_id,
                    Collection.model_validate(
                        {"id": entry.resource_id, "partitionKey": entry.partition_key}
                    ),
                )

        return list(merged.values())

    # ========== Documents ==========

    def prepare_write(
        self,
        context: ConnectionContext,
        partition_key_value: Any,
        upsert: bool
    ) -> PreparedWrite:
        """Build the per-collection parameters for document writes."""
        require_collection(context, "write documents")
        return PreparedWrite(
            url=f"{context.collection_link}/{RESOURCE_DOCUMENTS}",
            resource_link=context.collection_link,
            partition_key=(
                partition_key_header(partition_key_value)
                if context.partition_key_name else None
            ),
            upsert=upsert,
        )

    async def send_write(
        self,
        context: ConnectionContext,
        prepared: PreparedWrite,
        document: Mapping[str, Any]
    ) -> Dict[str, Any]:
        """POST one document using prepared parameters and a fresh signature."""
        headers = {
            HEADER_CONTENT_TYPE: CONTENT_TYPE_JSON,
            HEADER_IS_UPSERT: "True" if prepared.upsert else "False",
        }
        if prepared.partition_key is not None:
            headers[HEADER_PARTITION_KEY] = prepared.partition_key

        response = await self._request(
            context,
            "POST",
            prepared.url,
            RESOURCE_DOCUMENTS,
            prepared.resource_link,
            headers=headers,
            json_body=dict(document),
        )
        return response.json() if response.content else {}

    async def create_document(
        self,
        context: ConnectionContext,
        document: Mapping[str, Any],
        upsert: bool = False,
        skip_validation: bool = False
    ) -> Dict[str, Any]:
        """
        Create or upsert one document in the selected collection.

        Args:
            context: Context with a selected collection
            document: JSON object with an "id" field
            upsert: Replace an existing document with the same id
            skip_validation: Skip the local id checks

        Returns:
            The stored document as returned by the service

        Raises:
            IncompleteContextError: If no collection is selected
            InvalidDocumentIdError: If the id is invalid
            MissingPartitionKeyError: If the partition-key field is absent
            RemoteRejectedError: If the service rejects the write
        """
        require_collection(context, "create document")
        if not skip_validation:
            DocumentValidator.validate_id(document)

        value = extract_partition_key_value(document, context.partition_key_name)
        prepared = self.prepare_write(context, value, upsert)
        return await self.send_write(context, prepared, document)

    async def query_documents(
        self,
        context: ConnectionContext,
        id_value: Optional[str] = None,
        partition_key_value: Any = None,
        max_item_count: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Query the selected collection, optionally by id.

        All continuation pages are fetched and concatenated.

        Raises:
            IncompleteContextError: If no collection is selected
            RemoteRejectedError: If the service rejects the query
        """
        require_collection(context, "query documents")
        body = build_query(id_value)

        headers = {
            HEADER_CONTENT_TYPE: CONTENT_TYPE_QUERY,
            HEADER_IS_QUERY: "True",
        }
        if partition_key_value is None:
            headers[HEADER_ENABLE_CROSS_PARTITION] = "True"
        else:
            headers[HEADER_PARTITION_KEY] = partition_key_header(partition_key_value)
        if max_item_count is not None:
            headers[HEADER_MAX_ITEM_COUNT] = str(max_item_count)

        documents: List[Dict[str, Any]] = []
        continuation: Optional[str] = None
        pages = 0
        while True:
            page_headers = dict(headers)
            if continuation:
                page_headers[HEADER_CONTINUATION] = continuation

            response = await self._request(
                context,
                "POST",
                f"{context.collection_link}/{RESOURCE_DOCUMENTS}",
                RESOURCE_DOCUMENTS,
                context.collection_link,
                headers=page_headers,
                json_body=body.model_dump(),
            )
            documents.extend(QueryResult.model_validate(response.json()).documents)
            pages += 1

            continuation = response.headers.get(HEADER_CONTINUATION)
            if not continuation:
                break

        logger.debug(f"Query returned {len(documents)} document(s) in {pages} page(s)")
        return documents

    # ========== Deletes (control plane) ==========

    def _require_control_plane(self, context: ConnectionContext) -> ControlPlane:
        if self.control_plane is None or not context.resource_group:
            raise CosmosRestError(
                "Deletes require a control plane and the account's resource group",
                error_code="ControlPlaneUnavailable",
            )
        return self.control_plane

    async def delete_collection(
        self,
        context: ConnectionContext,
        database_name: str,
        collection_name: str
    ) -> None:
        """Delete a collection; clears the selection if it was selected."""
        plane = self._require_control_plane(context)
        await plane.delete_resource(
            CONTAINER_TYPE,
            context.resource_group,
            f"{context.account_name}/{database_name}/{collection_name}",
        )
        if context.database_name == database_name and context.collection_name == collection_name:
            context.select(database_name)

    async def delete_database(self, context: ConnectionContext, database_name: str) -> None:
        """Delete a database; clears the selection if it was selected."""
        plane = self._require_control_plane(context)
        await plane.delete_resource(
            DATABASE_TYPE, context.resource_group, f"{context.account_name}/{database_name}"
        )
        if context.database_name == database_name:
            context.clear_selection()

    async def delete_account(self, context: ConnectionContext) -> None:
        """Delete the whole account and clear the selection."""
        plane = self._require_control_plane(context)
        await plane.delete_resource(ACCOUNT_TYPE, context.resource_group, context.account_name)
        context.clear_selection()


def build_query(id_value: Optional[str] = None) -> QueryRequest:
    """Parameterized query for all documents or for one id."""
    if id_value is None:
        return QueryRequest(query=QUERY_ALL, parameters=[])
    return QueryRequest(
        query=QUERY_BY_ID,
        parameters=[QueryParameter(name=QUERY_ID_PARAMETER, value=id_value)],
    )
