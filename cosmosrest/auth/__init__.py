"""
cosmosrest Authentication Module.

Master key (HMAC-SHA256) authorization tokens for the Cosmos DB REST API.
"""

from cosmosrest.auth.masterkey import (
    AuthSignature,
    build_string_to_sign,
    compute_digest,
    compute_signature,
    format_request_date,
    sign_request,
)

__all__ = [
    "AuthSignature",
    "build_string_to_sign",
    "compute_digest",
    "compute_signature",
    "format_request_date",
    "sign_request",
]
