"""
Cosmos DB REST Constants

Header names, resource types and protocol defaults.

Author: cosmosrest Team
Date: 2026-10-12
"""

# Protocol defaults
DEFAULT_API_VERSION = "2018-06-18"
ENDPOINT_TEMPLATE = "https://{account}.documents.azure.com"

# Resource types (also the path segment of each collection of resources)
RESOURCE_DATABASES = "dbs"
RESOURCE_COLLECTIONS = "colls"
RESOURCE_DOCUMENTS = "docs"

# Request headers
HEADER_AUTHORIZATION = "authorization"
HEADER_DATE = "x-ms-date"
HEADER_VERSION = "x-ms-version"
HEADER_CONTENT_TYPE = "content-type"
HEADER_PARTITION_KEY = "x-ms-documentdb-partitionkey"
HEADER_IS_UPSERT = "x-ms-documentdb-is-upsert"
HEADER_IS_QUERY = "x-ms-documentdb-isquery"
HEADER_ENABLE_CROSS_PARTITION = "x-ms-documentdb-query-enablecrosspartition"
HEADER_MAX_ITEM_COUNT = "x-ms-max-item-count"
HEADER_CONTINUATION = "x-ms-continuation"

# Response headers
HEADER_RETRY_AFTER_MS = "x-ms-retry-after-ms"
HEADER_ACTIVITY_ID = "x-ms-activity-id"

# Content types
CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_QUERY = "application/query+json"

# Document id rules
MAX_DOCUMENT_ID_LENGTH = 255
FORBIDDEN_ID_CHARACTERS = ("/", "\\", "?", "#")

# Queries
QUERY_ALL = "SELECT * FROM c"
QUERY_BY_ID = "SELECT * FROM c WHERE c.id = @id"
QUERY_ID_PARAMETER = "@id"

# Bulk writes
DEFAULT_MAX_CONCURRENCY = 50
DEFAULT_ADMISSION_TIMEOUT = 60.0
