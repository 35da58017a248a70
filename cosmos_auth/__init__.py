"""Cosmos DB master-key authorization for relay services."""

from .client import CosmosClient
from .config import CosmosAuthConfig, CosmosClientConfig
from .service import CosmosAuthorizationHeaderService
from .signer import (
    InvalidCredentialError,
    SignedToken,
    SigningRequest,
    compute_signature,
    decode_master_key,
    http_date,
    sign,
)

__all__ = [
    "CosmosAuthConfig",
    "CosmosAuthorizationHeaderService",
    "CosmosClient",
    "CosmosClientConfig",
    "InvalidCredentialError",
    "SignedToken",
    "SigningRequest",
    "compute_signature",
    "decode_master_key",
    "http_date",
    "sign",
]
