"""
cosmosrest: Azure Cosmos DB REST client

Master-key signed data-plane calls, collection discovery and concurrent
bulk document writes over httpx.
"""

__version__ = "0.1.0"

from .cosmos.bulk import BulkWriter
from .cosmos.client import ResourceClient
from .cosmos.context import ConnectionContext
from .exceptions import CosmosRestError

__all__ = [
    "BulkWriter",
    "ConnectionContext",
    "CosmosRestError",
    "ResourceClient",
    "__version__",
]
