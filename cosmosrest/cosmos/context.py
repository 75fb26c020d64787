"""
Connection context for one Cosmos DB account.

A ConnectionContext is an explicit record owned by the caller. It holds the
account endpoint, the master key and the currently selected database and
collection. It is passed to every ResourceClient and BulkWriter call; nothing
in the package keeps a module-level copy.

Author: cosmosrest Team
Date: 2026-10-12
"""

import copy
from dataclasses import dataclass, field
from typing import Optional

from cosmosrest.auth.masterkey import DEFAULT_KEY_TYPE, DEFAULT_TOKEN_VERSION

from .constants import (
    DEFAULT_API_VERSION,
    ENDPOINT_TEMPLATE,
    RESOURCE_COLLECTIONS,
    RESOURCE_DATABASES,
    RESOURCE_DOCUMENTS,
)


def endpoint_for_account(account_name: str) -> str:
    """Return the data-plane endpoint for an account name."""
    return ENDPOINT_TEMPLATE.format(account=account_name.lower())


@dataclass
class ConnectionContext:
    """
    Authenticated handle to a Cosmos account, database and collection.

    Not safe for concurrent mutation. Callers sharing a context across
    concurrent work should hand each worker its own clone().

    Attributes:
        account_name: Lowercased account name
        resource_group: Resource group of the account (key resolution only)
        subscription_id: Subscription of the account (key resolution only)
        endpoint: Data-plane endpoint URL
        master_key: Base64 key, kept out of repr
        key_type: "master" or "resource"
        token_version: Authorization token version
        api_version: Value of the x-ms-version header
        database_name: Selected database
        collection_name: Selected collection
        partition_key_name: Partition-key property of the selected collection
        collection_uri: Full URI of the selected collection
    """

    account_name: str
    master_key: str = field(repr=False)
    resource_group: Optional[str] = None
    subscription_id: Optional[str] = None
    endpoint: str = ""
    key_type: str = DEFAULT_KEY_TYPE
    token_version: str = DEFAULT_TOKEN_VERSION
    api_version: str = DEFAULT_API_VERSION
    database_name: Optional[str] = None
    collection_name: Optional[str] = None
    partition_key_name: Optional[str] = None
    collection_uri: Optional[str] = None

    def __post_init__(self) -> None:
        self.account_name = self.account_name.lower()
        if not self.endpoint:
            self.endpoint = endpoint_for_account(self.account_name)
        self.endpoint = self.endpoint.rstrip("/")

    @property
    def has_collection(self) -> bool:
        return bool(self.database_name and self.collection_name)

    @property
    def database_link(self) -> Optional[str]:
        if not self.database_name:
            return None
        return f"{RESOURCE_DATABASES}/{self.database_name}"

    @property
    def collection_link(self) -> Optional[str]:
        if not self.has_collection:
            return None
        return f"{self.database_link}/{RESOURCE_COLLECTIONS}/{self.collection_name}"

    @property
    def documents_uri(self) -> Optional[str]:
        if not self.collection_uri:
            return None
        return f"{self.collection_uri}/{RESOURCE_DOCUMENTS}"

    def uri_for(self, path: str) -> str:
        """Absolute URL for a path relative to the account endpoint."""
        return f"{self.endpoint}/{path.lstrip('/')}"

    def select(
        self,
        database_name: Optional[str],
        collection_name: Optional[str] = None,
        partition_key_name: Optional[str] = None
    ) -> None:
        """
        Replace the database/collection selection in one step.

        The collection URI is recomputed here. A partition-key name without
        a collection is discarded.
        """
        if database_name and collection_name:
            uri = self.uri_for(
                f"{RESOURCE_DATABASES}/{database_name}/{RESOURCE_COLLECTIONS}/{collection_name}"
            )
            pk_name = partition_key_name
        else:
            collection_name = None
            uri = None
            pk_name = None

        (
            self.database_name,
            self.collection_name,
            self.collection_uri,
            self.partition_key_name,
        ) = (database_name, collection_name, uri, pk_name)

    def clear_selection(self) -> None:
        self.select(None)

    def clone(self) -> "ConnectionContext":
        """Independent copy for use by concurrent work."""
        return copy.copy(self)
