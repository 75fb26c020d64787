"""
Document Validation

Boundary checks applied to documents before they are sent, and the
partition-key lookup that feeds the x-ms-documentdb-partitionkey header.

Author: cosmosrest Team
Date: 2026-10-13
"""

import json
from typing import Any, Mapping, Optional

from .constants import FORBIDDEN_ID_CHARACTERS, MAX_DOCUMENT_ID_LENGTH
from .context import ConnectionContext
from ..exceptions import (
    IncompleteContextError,
    InvalidDocumentIdError,
    MissingPartitionKeyError,
)

_MISSING = object()


class DocumentValidator:
    """
    Validates documents against the Cosmos DB id rules.

    Rules:
    - The field must be named exactly "id" (lower case)
    - Value must be a non-empty string of at most 255 characters
    - Value must not contain '/', '\\', '?' or '#'
    """

    @classmethod
    def validate_id(cls, document: Mapping[str, Any]) -> str:
        """
        Validate the id of a document.

        Args:
            document: Document body

        Returns:
            The validated id

        Raises:
            InvalidDocumentIdError: If validation fails
        """
        if not isinstance(document, Mapping):
            raise InvalidDocumentIdError(None, "document must be a JSON object")

        if "id" not in document:
            alternates = [k for k in document if isinstance(k, str) and k.lower() == "id"]
            reason = "missing 'id' field"
            if alternates:
                reason += f" (found {alternates[0]!r}; the field name is case-sensitive)"
            raise InvalidDocumentIdError(None, reason)

        document_id = document["id"]

        if not isinstance(document_id, str):
            raise InvalidDocumentIdError(document_id, "id must be a string")

        if not document_id:
            raise InvalidDocumentIdError(document_id, "id cannot be empty")

        if len(document_id) > MAX_DOCUMENT_ID_LENGTH:
            raise InvalidDocumentIdError(
                document_id[:32] + "...",
                f"id exceeds {MAX_DOCUMENT_ID_LENGTH} characters (length: {len(document_id)})"
            )

        bad = [c for c in FORBIDDEN_ID_CHARACTERS if c in document_id]
        if bad:
            raise InvalidDocumentIdError(
                document_id, f"id contains forbidden character(s): {' '.join(bad)}"
            )

        return document_id


def require_collection(context: ConnectionContext, operation: str) -> None:
    """Raise IncompleteContextError unless a database and collection are selected."""
    if not context.has_collection or not context.collection_uri:
        raise IncompleteContextError(operation)


def extract_partition_key_value(
    document: Mapping[str, Any],
    partition_key_name: Optional[str]
) -> Any:
    """
    Look up the partition-key value of a document.

    Nested paths ("address/country") are walked one mapping at a time.
    Returns None when the collection has no partition key.

    Raises:
        MissingPartitionKeyError: If the document lacks the field
    """
    if not partition_key_name:
        return None

    value: Any = document
    for segment in partition_key_name.split("/"):
        if not isinstance(value, Mapping):
            value = _MISSING
            break
        value = value.get(segment, _MISSING)
        if value is _MISSING:
            break

    if value is _MISSING:
        raise MissingPartitionKeyError(partition_key_name, document.get("id"))
    return value


def partition_key_header(value: Any) -> str:
    """Header value for a partition key: a one-element JSON array of its string form.

    A null value is sent as JSON null.
    """
    return json.dumps([None if value is None else str(value)])
