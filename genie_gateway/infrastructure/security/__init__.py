"""
Security Package
"""
from genie_gateway.infrastructure.security.encryption import (
    CredentialEncryptionService,
    CredentialEncryptionError,
    get_encryption_service,
)

__all__ = ["CredentialEncryptionService", "CredentialEncryptionError", "get_encryption_service"]
