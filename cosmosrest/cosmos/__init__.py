"""
Cosmos DB data-plane client.

Connection context, signed resource operations and the bulk writer.
"""

from .bulk import BulkWriter
from .client import PreparedWrite, ResourceClient, build_query
from .context import ConnectionContext, endpoint_for_account
from .models import (
    BulkJob,
    BulkWriteResult,
    Collection,
    Database,
    JobState,
    PartitionKeyDefinition,
    QueryRequest,
)
from .validation import DocumentValidator, extract_partition_key_value

__all__ = [
    "BulkWriter",
    "PreparedWrite",
    "ResourceClient",
    "build_query",
    "ConnectionContext",
    "endpoint_for_account",
    "BulkJob",
    "BulkWriteResult",
    "Collection",
    "Database",
    "JobState",
    "PartitionKeyDefinition",
    "QueryRequest",
    "DocumentValidator",
    "extract_partition_key_value",
]
