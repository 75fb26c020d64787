"""
Shared fixtures for cosmosrest unit tests.

FakeCosmosService is an httpx.MockTransport handler that behaves like the
data plane of one account: it verifies master-key signatures, serves
database and collection listings, stores documents and answers queries.
"""

import asyncio
import base64
import hmac
import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from cosmosrest.auth.masterkey import sign_request
from cosmosrest.cosmos.client import ResourceClient
from cosmosrest.cosmos.context import ConnectionContext
from cosmosrest.transport import create_http_client

MASTER_KEY = base64.b64encode(b"cosmosrest-unit-test-master-key-" * 2).decode()
ACCOUNT = "testacct"


class FakeCosmosService:
    """In-process Cosmos DB data plane for one account."""

    def __init__(self, key: str = MASTER_KEY):
        self.key = key
        self.databases: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.requests: List[httpx.Request] = []
        self.write_delay = 0.0
        self.fail_ids: Dict[str, int] = {}
        self.delay_ids: Dict[str, float] = {}
        self.throttle_ids: Dict[str, int] = {}
        self.page_size: Optional[int] = None
        self.in_flight = 0
        self.peak_in_flight = 0

    # ========== Setup ==========

    def add_database(self, database: str) -> None:
        self.databases.setdefault(database, {})

    def add_collection(self, database: str, collection: str, partition_key: Optional[str] = None) -> None:
        self.add_database(database)
        self.databases[database][collection] = {"partition_key": partition_key, "documents": {}}

    def documents(self, database: str, collection: str) -> Dict[str, Dict[str, Any]]:
        return self.databases[database][collection]["documents"]

    def writes(self) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == "POST" and "x-ms-documentdb-isquery" not in r.headers
        ]

    # ========== Helpers ==========

    @staticmethod
    def error(status: int, code: str, message: str, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        return httpx.Response(status, json={"code": code, "message": message}, headers=headers)

    def _authorized(self, request: httpx.Request, resource_type: str, resource_link: str) -> bool:
        date = request.headers.get("x-ms-date")
        token = request.headers.get("authorization")
        if not date or not token:
            return False
        expected = sign_request(request.method, resource_link, resource_type, date, self.key).token
        return hmac.compare_digest(token, expected)

    @staticmethod
    def _collection_body(name: str, partition_key: Optional[str]) -> Dict[str, Any]:
        body: Dict[str, Any] = {"id": name, "_rid": f"{name}-rid"}
        if partition_key:
            body["partitionKey"] = {"paths": [f"/{partition_key}"], "kind": "Hash"}
        return body

    @staticmethod
    def _partition_value(document: Dict[str, Any], partition_key: str) -> Any:
        value: Any = document
        for segment in partition_key.split("/"):
            if not isinstance(value, dict) or segment not in value:
                return None
            value = value[segment]
        return value

    # ========== Routing ==========

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.strip("/").split("/")

        if parts == ["dbs"] and request.method == "GET":
            resource_type, link = "dbs", "dbs"
        elif len(parts) in (3, 4) and parts[0] == "dbs" and parts[2] == "colls" and request.method == "GET":
            resource_type, link = "colls", "/".join(parts)
            if len(parts) == 3:
                link = "/".join(parts[:2])
        elif len(parts) == 5 and parts[0] == "dbs" and parts[4] == "docs" and request.method == "POST":
            resource_type, link = "docs", "/".join(parts[:4])
        else:
            return self.error(404, "NotFound", f"No route for {request.method} {request.url.path}")

        if not self._authorized(request, resource_type, link):
            return self.error(401, "Unauthorized", "The input authorization token can't serve the request.")

        if resource_type == "dbs":
            databases = [{"id": name, "_rid": f"{name}-rid"} for name in self.databases]
            return httpx.Response(200, json={"_rid": "", "Databases": databases, "_count": len(databases)})

        database = self.databases.get(parts[1])
        if database is None:
            return self.error(404, "NotFound", f"Database '{parts[1]}' not found")

        if resource_type == "colls" and len(parts) == 3:
            colls = [self._collection_body(n, c["partition_key"]) for n, c in database.items()]
            return httpx.Response(200, json={"DocumentCollections": colls, "_count": len(colls)})

        collection = database.get(parts[3])
        if collection is None:
            return self.error(404, "NotFound", f"Collection '{parts[3]}' not found")

        if resource_type == "colls":
            return httpx.Response(200, json=self._collection_body(parts[3], collection["partition_key"]))

        body = json.loads(request.content)
        if request.headers.get("x-ms-documentdb-isquery") == "True":
            return self._query(request, collection, body)
        return await self._write(request, collection, body)

    def _query(self, request: httpx.Request, collection: Dict[str, Any], body: Dict[str, Any]) -> httpx.Response:
        documents = list(collection["documents"].values())
        for parameter in body.get("parameters", []):
            if parameter["name"] == "@id":
                documents = [d for d in documents if d.get("id") == parameter["value"]]

        header = request.headers.get("x-ms-documentdb-partitionkey")
        if header and collection["partition_key"]:
            wanted = json.loads(header)[0]
            documents = [
                d for d in documents
                if str(self._partition_value(d, collection["partition_key"])) == wanted
            ]

        headers = {}
        if self.page_size:
            start = int(request.headers.get("x-ms-continuation") or 0)
            end = start + self.page_size
            if end < len(documents):
                headers["x-ms-continuation"] = str(end)
            documents = documents[start:end]

        return httpx.Response(
            200, json={"_rid": "", "Documents": documents, "_count": len(documents)}, headers=headers
        )

    async def _write(self, request: httpx.Request, collection: Dict[str, Any], document: Dict[str, Any]) -> httpx.Response:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.write_delay:
                await asyncio.sleep(self.write_delay)

            document_id = document.get("id")
            if document_id in self.delay_ids:
                await asyncio.sleep(self.delay_ids[document_id])
            if self.throttle_ids.get(document_id, 0) > 0:
                self.throttle_ids[document_id] -= 1
                return self.error(
                    429, "TooManyRequests", "Request rate is large",
                    headers={"x-ms-retry-after-ms": "0"},
                )
            if document_id in self.fail_ids:
                return self.error(self.fail_ids[document_id], "BadRequest", f"Rejected '{document_id}'")

            partition_key = collection["partition_key"]
            if partition_key:
                header = request.headers.get("x-ms-documentdb-partitionkey")
                if header is None:
                    return self.error(400, "BadRequest", "PartitionKey value must be supplied for this operation.")
                extracted = self._partition_value(document, partition_key)
                if json.loads(header) != [None if extracted is None else str(extracted)]:
                    return self.error(
                        400, "BadRequest",
                        "PartitionKey extracted from document doesn't match the one specified in the header",
                    )

            documents = collection["documents"]
            upsert = request.headers.get("x-ms-documentdb-is-upsert") == "True"
            if document_id in documents and not upsert:
                return self.error(409, "Conflict", "Entity with the specified id already exists in the system.")

            documents[document_id] = document
            return httpx.Response(201, json={**document, "_rid": f"{document_id}-rid"})
        finally:
            self.in_flight -= 1


@pytest.fixture
def master_key():
    return MASTER_KEY


@pytest.fixture
def fake_service():
    """Data plane with a partitioned 'orders' and an unpartitioned 'audit' collection."""
    service = FakeCosmosService()
    service.add_collection("shop", "orders", partition_key="Country")
    service.add_collection("shop", "audit")
    return service


@pytest.fixture
def http_client(fake_service):
    return create_http_client(transport=httpx.MockTransport(fake_service))


@pytest.fixture
def resource_client(http_client):
    return ResourceClient(http_client=http_client)


@pytest.fixture
def context(master_key):
    """Context pointed at shop/orders, partitioned on Country."""
    ctx = ConnectionContext(account_name=ACCOUNT, master_key=master_key)
    ctx.select("shop", "orders", "Country")
    return ctx
