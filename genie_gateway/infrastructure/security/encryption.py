"""
Credential Encryption Service
Encrypts the secret fields of integration credential documents with Fernet
(AES-128-CBC + HMAC-SHA256).

Keys come from the environment, never from the database:
- CONNECTOR_ENCRYPTION_KEY: key used for every new write
- CONNECTOR_ENCRYPTION_KEYS_OLD: comma-separated retired keys, still accepted on read
"""
import os
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional
from cryptography.fernet import Fernet, MultiFernet, InvalidToken

from genie_gateway.domain.models.credential import SECRET_FIELDS

logger = logging.getLogger(__name__)


class CredentialEncryptionError(Exception):
    """Raised when credential encryption/decryption fails"""
    pass


def _configured_keys(key: Optional[str], old_keys: Optional[List[str]]) -> List[str]:
    current = key or os.getenv("CONNECTOR_ENCRYPTION_KEY")
    if not current:
        logger.warning(
            "CONNECTOR_ENCRYPTION_KEY not set, using a throwaway key: "
            "saved integrations become unreadable after restart"
        )
        current = Fernet.generate_key().decode()

    if old_keys is None:
        old_keys = os.getenv("CONNECTOR_ENCRYPTION_KEYS_OLD", "").split(",")

    return [current] + [k.strip() for k in old_keys if k and k.strip()]


class CredentialEncryptionService:
    """
    Encrypt/decrypt provider secrets (API keys, OAuth tokens, SMTP passwords).

    Encryption always uses the first key; any configured key decrypts.
    """

    def __init__(self, key: Optional[str] = None, old_keys: Optional[List[str]] = None):
        keys = _configured_keys(key, old_keys)
        try:
            self._fernet = MultiFernet([Fernet(k.encode()) for k in keys])
        except (ValueError, TypeError) as e:
            raise CredentialEncryptionError(f"Invalid credential encryption key: {e}")
        logger.info(f"Credential encryption ready ({len(keys)} key(s))")

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            return ""
        return self._fernet.encrypt(str(plaintext).encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        if not ciphertext:
            return ""
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            logger.error("Credential decryption failed (unknown key or corrupted value)")
            raise CredentialEncryptionError("Failed to decrypt credential: Invalid token or key")

    def _rotate_value(self, ciphertext: str) -> str:
        if not ciphertext:
            return ""
        try:
            return self._fernet.rotate(ciphertext.encode()).decode()
        except InvalidToken:
            raise CredentialEncryptionError("Failed to rotate credential: Invalid token or key")

    @staticmethod
    def _map_secrets(
        document: Dict[str, Any],
        fields: Iterable[str],
        transform: Callable[[str], str]
    ) -> Dict[str, Any]:
        secret = set(fields)
        return {
            key: transform(value) if key in secret and isinstance(value, str) else value
            for key, value in document.items()
        }

    def encrypt_fields(self, document: Dict[str, Any], fields: Iterable[str] = SECRET_FIELDS) -> Dict[str, Any]:
        """Copy of a credential document with its secret fields encrypted."""
        return self._map_secrets(document, fields, self.encrypt)

    def decrypt_fields(self, document: Dict[str, Any], fields: Iterable[str] = SECRET_FIELDS) -> Dict[str, Any]:
        """Copy of a stored credential document with its secret fields decrypted."""
        return self._map_secrets(document, fields, self.decrypt)

    def rotate_fields(self, document: Dict[str, Any], fields: Iterable[str] = SECRET_FIELDS) -> Dict[str, Any]:
        """Re-encrypt a stored document's secrets under the current key."""
        return self._map_secrets(document, fields, self._rotate_value)


_encryption_service: Optional[CredentialEncryptionService] = None


def get_encryption_service() -> CredentialEncryptionService:
    """Get singleton encryption service instance."""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = CredentialEncryptionService()
    return _encryption_service


def reset_encryption_service() -> None:
    """Reset singleton (tests only)."""
    global _encryption_service
    _encryption_service = None
