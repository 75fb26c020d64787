"""
In-Memory Control Plane.

Dictionary-backed stand-in for the resource manager. Useful for local
development and for tests that exercise key retrieval and listing merges
without network access.

Author: cosmosrest Team
Date: 2026-10-13
"""

import asyncio
import base64
import os
from typing import Any, Dict, List, Optional

from .plane import (
    ACCOUNT_TYPE,
    CONTAINER_TYPE,
    DATABASE_TYPE,
    ControlPlane,
    ResourceEntry,
    type_segments,
)
from ..exceptions import ControlPlaneError, NotFoundError


class InMemoryControlPlane(ControlPlane):
    """
    In-memory control plane.

    Storage structure:
        {resource_group: {account: {"key": str, "databases": {db: {container: partition_key}}}}}

    Limitations:
    - Deletes complete immediately
    - Keys are generated locally unless supplied
    """

    def __init__(self):
        self._groups: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    def add_account(
        self,
        resource_group: str,
        account_name: str,
        key: Optional[str] = None,
        readable_keys: bool = True
    ) -> str:
        """Register an account and return its master key."""
        key = key or base64.b64encode(os.urandom(64)).decode()
        self._groups.setdefault(resource_group, {})[account_name.lower()] = {
            "key": key,
            "readable_keys": readable_keys,
            "databases": {},
        }
        return key

    def add_database(self, resource_group: str, account_name: str, database_name: str) -> None:
        account = self._account(resource_group, account_name)
        account["databases"].setdefault(database_name, {})

    def add_container(
        self,
        resource_group: str,
        account_name: str,
        database_name: str,
        container_name: str,
        partition_key_path: Optional[str] = None
    ) -> None:
        self.add_database(resource_group, account_name, database_name)
        account = self._account(resource_group, account_name)
        partition_key = {"paths": [partition_key_path], "kind": "Hash"} if partition_key_path else None
        account["databases"][database_name][container_name] = partition_key

    def _account(self, resource_group: str, account_name: str) -> Dict[str, Any]:
        account = self._groups.get(resource_group, {}).get(account_name.lower())
        if account is None:
            raise NotFoundError("account", account_name)
        return account

    def _databases(self, resource_group: str, account_name: str, database_name: str) -> Dict[str, Any]:
        databases = self._account(resource_group, account_name)["databases"]
        if database_name not in databases:
            raise NotFoundError("database", database_name)
        return databases[database_name]

    async def get_account_keys(self, resource_group: str, account_name: str) -> str:
        async with self._lock:
            account = self._account(resource_group, account_name)
            if not account["readable_keys"]:
                raise ControlPlaneError(
                    status_code=403,
                    code="AuthorizationFailed",
                    message=f"Not authorized to list keys of '{account_name}'",
                )
            return account["key"]

    async def list_resources(
        self, resource_type: str, resource_group: str, parent_name: str
    ) -> List[ResourceEntry]:
        segments = type_segments(resource_type)
        parts = parent_name.split("/")
        if resource_type == ACCOUNT_TYPE or len(parts) != len(segments) - 1:
            raise ValueError(f"'{parent_name}' is not a parent of {resource_type}")

        async with self._lock:
            if resource_type == DATABASE_TYPE:
                databases = self._account(resource_group, parts[0])["databases"]
                return [
                    ResourceEntry(
                        name=name,
                        type=resource_type,
                        properties={"resource": {"id": name}},
                    )
                    for name in databases
                ]

            containers = self._databases(resource_group, parts[0], parts[1])
            entries = []
            for name, partition_key in containers.items():
                resource: Dict[str, Any] = {"id": name}
                if partition_key:
                    resource["partitionKey"] = partition_key
                entries.append(
                    ResourceEntry(name=name, type=CONTAINER_TYPE, properties={"resource": resource})
                )
            return entries

    async def delete_resource(
        self, resource_type: str, resource_group: str, name: str
    ) -> None:
        segments = type_segments(resource_type)
        parts = name.split("/")
        if len(parts) != len(segments):
            raise ValueError(f"'{name}' does not name a {resource_type}")

        async with self._lock:
            if resource_type == ACCOUNT_TYPE:
                self._account(resource_group, parts[0])
                del self._groups[resource_group][parts[0].lower()]
            elif resource_type == DATABASE_TYPE:
                self._databases(resource_group, parts[0], parts[1])
                del self._account(resource_group, parts[0])["databases"][parts[1]]
            else:
                containers = self._databases(resource_group, parts[0], parts[1])
                if parts[2] not in containers:
                    raise NotFoundError("collection", parts[2])
                del containers[parts[2]]
