"""
Abstract Control Plane Interface.

The control plane is the account/database/container management API. The
data-plane client consumes it for key retrieval, for the resource listings
it merges with its own, and for long-running deletes.

Author: cosmosrest Team
Date: 2026-10-13
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

PROVIDER = "Microsoft.DocumentDB"

ACCOUNT_TYPE = f"{PROVIDER}/databaseAccounts"
DATABASE_TYPE = f"{ACCOUNT_TYPE}/sqlDatabases"
CONTAINER_TYPE = f"{DATABASE_TYPE}/containers"

RESOURCE_TYPES = (ACCOUNT_TYPE, DATABASE_TYPE, CONTAINER_TYPE)


def type_segments(resource_type: str) -> List[str]:
    """Child type names of a resource type, e.g. ["databaseAccounts", "sqlDatabases"]."""
    if resource_type not in RESOURCE_TYPES:
        raise ValueError(
            f"Unsupported resource type: {resource_type}. Supported types: {list(RESOURCE_TYPES)}"
        )
    return resource_type[len(PROVIDER) + 1:].split("/")


class ResourceEntry(BaseModel):
    """One resource as reported by the control plane.

    Attributes:
        name: Leaf name of the resource
        type: Resource type string
        id: Fully qualified resource id
        properties: Raw resource properties
    """

    name: str
    type: str = ""
    id: str = ""
    properties: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow")

    @property
    def resource(self) -> Dict[str, Any]:
        return self.properties.get("resource") or {}

    @property
    def resource_id(self) -> str:
        """Cosmos id of the resource (falls back to the leaf name)."""
        return self.resource.get("id") or self.name.split("/")[-1]

    @property
    def partition_key(self) -> Optional[Dict[str, Any]]:
        return self.resource.get("partitionKey")


class ControlPlane(ABC):
    """
    Abstract base class for control-plane collaborators.

    Resource names are slash-joined paths below the resource group:
    "account", "account/database", "account/database/container".
    """

    @abstractmethod
    async def get_account_keys(self, resource_group: str, account_name: str) -> str:
        """
        Retrieve the primary master key of an account.

        Raises:
            NotFoundError: If the account does not exist
            ControlPlaneError: If the keys cannot be read
        """
        pass

    @abstractmethod
    async def list_resources(
        self, resource_type: str, resource_group: str, parent_name: str
    ) -> List[ResourceEntry]:
        """
        List resources of a type below a parent.

        Args:
            resource_type: DATABASE_TYPE or CONTAINER_TYPE
            resource_group: Resource group of the account
            parent_name: "account" for databases, "account/database" for containers

        Returns:
            Resources known to the control plane (may be incomplete)

        Raises:
            NotFoundError: If the parent does not exist
            ControlPlaneError: If the listing fails
        """
        pass

    @abstractmethod
    async def delete_resource(
        self, resource_type: str, resource_group: str, name: str
    ) -> None:
        """
        Delete a resource and wait for the operation to finish.

        Raises:
            NotFoundError: If the resource does not exist
            ControlPlaneError: If the delete fails or times out
        """
        pass

    async def close(self) -> None:
        """Release any held connections."""
        return None
