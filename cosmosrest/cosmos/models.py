"""
Cosmos DB Models.

Pydantic models for the REST envelopes returned by the data plane, the
query request body, and the bookkeeping records of bulk writes.

Author: cosmosrest Team
Date: 2026-10-12
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PartitionKeyDefinition(BaseModel):
    """Partition key definition of a collection.

    Attributes:
        paths: Partition key paths (e.g., ["/Country"])
        kind: Partition key kind (Hash or Range)
        version: Partition key version (1 or 2)
    """

    paths: List[str] = Field(default_factory=list)
    kind: str = "Hash"
    version: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Database(BaseModel):
    """Cosmos DB database as listed by the data plane or the control plane."""

    id: str
    rid: str = Field(default="", alias="_rid")
    ts: int = Field(default=0, alias="_ts")
    self_link: str = Field(default="", alias="_self")
    etag: str = Field(default="", alias="_etag")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Collection(BaseModel):
    """Cosmos DB collection (container).

    Attributes:
        id: Collection identifier
        partition_key: Partition key definition, when the collection is partitioned
        partition_key_name: First partition key path without the leading '/'
    """

    id: str
    partition_key: Optional[PartitionKeyDefinition] = Field(default=None, alias="partitionKey")
    partition_key_name: Optional[str] = None
    rid: str = Field(default="", alias="_rid")
    ts: int = Field(default=0, alias="_ts")
    self_link: str = Field(default="", alias="_self")
    etag: str = Field(default="", alias="_etag")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @model_validator(mode="after")
    def derive_partition_key_name(self) -> "Collection":
        if self.partition_key_name is None and self.partition_key and self.partition_key.paths:
            path = self.partition_key.paths[0]
            self.partition_key_name = path[1:] if path.startswith("/") else path
        return self


class DatabaseListResult(BaseModel):
    """Envelope of GET /dbs."""

    rid: str = Field(default="", alias="_rid")
    databases: List[Database] = Field(default_factory=list, alias="Databases")
    count: int = Field(default=0, alias="_count")

    model_config = ConfigDict(populate_by_name=True)


class CollectionListResult(BaseModel):
    """Envelope of GET /dbs/{db}/colls."""

    rid: str = Field(default="", alias="_rid")
    document_collections: List[Collection] = Field(default_factory=list, alias="DocumentCollections")
    count: int = Field(default=0, alias="_count")

    model_config = ConfigDict(populate_by_name=True)


class QueryParameter(BaseModel):
    """Named parameter of a SQL query."""

    name: str
    value: Any


class QueryRequest(BaseModel):
    """SQL query request body."""

    query: str
    parameters: List[QueryParameter] = Field(default_factory=list)


class QueryResult(BaseModel):
    """One page of query results."""

    rid: str = Field(default="", alias="_rid")
    documents: List[Dict[str, Any]] = Field(default_factory=list, alias="Documents")
    count: int = Field(default=0, alias="_count")

    model_config = ConfigDict(populate_by_name=True)


class JobState(str, Enum):
    """Lifecycle state of one bulk write job."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class BulkJob:
    """An in-flight asynchronous document write."""

    document_id: Any
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: JobState = JobState.QUEUED
    last_state: Optional[JobState] = None
    error: Optional[Exception] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (JobState.COMPLETED, JobState.FAILED)

    def transition(self, state: JobState) -> bool:
        """Move to a new state. Returns True when the state changed."""
        self.last_state = self.state
        self.state = state
        return self.last_state != state


@dataclass
class BulkWriteResult:
    """Outcome of a completed bulk write."""

    total: int
    written: int = 0
    fallback_writes: int = 0
    peak_in_flight: int = 0
    mode: str = "async"
