"""
cosmosrest Exception Hierarchy

Error types raised by the signer, the resource client, the bulk writer and
the control-plane collaborators. Every error carries a machine-readable
error code and a details mapping so callers can branch on them.

Author: cosmosrest Team
Date: 2026-10-12
"""

from typing import Any, Dict, Optional


class CosmosRestError(Exception):
    """
    Base exception for all cosmosrest errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., 'NotFound')
        details: Additional context (resource names, counts, etc.)
    """

    error_code: str = "CosmosRestError"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary suitable for logging or output."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# ========== Local Validation Errors ==========

class ValidationFailedError(CosmosRestError):
    """Raised when a request fails local validation before any I/O."""
    error_code = "ValidationFailed"


class InvalidDocumentIdError(ValidationFailedError):
    """Raised when a document id is missing or violates the id rules."""
    error_code = "InvalidDocumentId"

    def __init__(self, document_id: Any, reason: str, message: Optional[str] = None):
        message = message or f"Invalid document id {document_id!r}: {reason}"
        super().__init__(message, details={"document_id": document_id, "reason": reason})
        self.document_id = document_id
        self.reason = reason


class MissingPartitionKeyError(ValidationFailedError):
    """Raised when a document does not carry the collection's partition-key field."""
    error_code = "MissingPartitionKey"

    def __init__(self, partition_key_name: str, document_id: Any = None):
        message = f"Document {document_id!r} has no value for partition key '{partition_key_name}'"
        super().__init__(
            message,
            details={"partition_key_name": partition_key_name, "document_id": document_id}
        )
        self.partition_key_name = partition_key_name
        self.document_id = document_id


class IncompleteContextError(CosmosRestError):
    """Raised when an operation needs a database and collection that are not selected."""
    error_code = "IncompleteContext"

    def __init__(self, operation: str, message: Optional[str] = None):
        message = message or f"Cannot {operation}: database and collection must be selected"
        super().__init__(message, details={"operation": operation})
        self.operation = operation


# ========== Credential Errors ==========

class InvalidCredentialError(CosmosRestError):
    """Raised when the master key cannot be used to build the keyed hash."""
    error_code = "InvalidCredential"


class CredentialUnavailableError(CosmosRestError):
    """Raised when the account key cannot be retrieved from the control plane."""
    error_code = "CredentialUnavailable"

    def __init__(self, account_name: str, reason: str):
        super().__init__(
            f"Cannot obtain keys for account '{account_name}': {reason}",
            details={"account_name": account_name, "reason": reason}
        )
        self.account_name = account_name
        self.reason = reason


# ========== Resource Errors ==========

class NotFoundError(CosmosRestError):
    """Raised when a database, collection or account does not exist."""
    error_code = "NotFound"

    def __init__(self, resource_type: str, resource_name: str, message: Optional[str] = None):
        message = message or f"{resource_type.capitalize()} '{resource_name}' not found"
        super().__init__(
            message,
            details={"resource_type": resource_type, "resource_name": resource_name}
        )
        self.resource_type = resource_type
        self.resource_name = resource_name


class RemoteRejectedError(CosmosRestError):
    """
    Raised when the service answers with a non-2xx status.

    The code and message come from the JSON error body rather than the
    HTTP status line, which loses Cosmos-specific detail.
    """
    error_code = "RemoteRejected"

    THROTTLED_STATUS = 429

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        retry_after_ms: Optional[int] = None,
        activity_id: Optional[str] = None
    ):
        details: Dict[str, Any] = {"status_code": status_code, "code": code}
        if retry_after_ms is not None:
            details["retry_after_ms"] = retry_after_ms
        if activity_id:
            details["activity_id"] = activity_id
        super().__init__(f"{code}: {message}", error_code=code, details=details)
        self.status_code = status_code
        self.code = code
        self.remote_message = message
        self.retry_after_ms = retry_after_ms
        self.activity_id = activity_id

    @property
    def is_throttled(self) -> bool:
        return self.status_code == self.THROTTLED_STATUS or self.code == "TooManyRequests"

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409


class ControlPlaneError(RemoteRejectedError):
    """Raised when a resource manager call returns a non-2xx status."""
    error_code = "ControlPlaneError"


class TransportError(CosmosRestError):
    """Raised for connection and timeout failures below the HTTP layer."""
    error_code = "TransportError"

    def __init__(self, method: str, url: str, cause: Exception):
        super().__init__(
            f"{method} {url} failed: {cause}",
            details={"method": method, "url": url, "cause": str(cause)}
        )
        self.method = method
        self.url = url
        self.cause = cause


# ========== Bulk Errors ==========

class BatchAbortedError(CosmosRestError):
    """Raised when one bulk job failed and the remaining documents were not submitted."""
    error_code = "BatchAborted"

    def __init__(
        self,
        document_id: Any,
        cause: Exception,
        documents_written: int,
        documents_total: int
    ):
        super().__init__(
            f"Bulk write aborted after document {document_id!r} failed: {cause}",
            details={
                "document_id": document_id,
                "cause": str(cause),
                "documents_written": documents_written,
                "documents_total": documents_total,
            }
        )
        self.document_id = document_id
        self.cause = cause
        self.documents_written = documents_written
        self.documents_total = documents_total
