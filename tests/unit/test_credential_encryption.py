"""
Tests for Credential Encryption Service
"""
import pytest
from cryptography.fernet import Fernet

from genie_gateway.infrastructure.security import (
    CredentialEncryptionError,
    CredentialEncryptionService,
    get_encryption_service,
)


class TestCredentialEncryption:
    """Tests for Fernet encryption service"""

    def test_encrypt_decrypt_roundtrip(self):
        """Secret survives encrypt/decrypt cycle"""
        service = get_encryption_service()
        encrypted = service.encrypt("pk_live_secret")

        assert encrypted != "pk_live_secret"
        assert service.decrypt(encrypted) == "pk_live_secret"

    def test_empty_string_handling(self):
        service = get_encryption_service()

        assert service.encrypt("") == ""
        assert service.decrypt("") == ""

    def test_decrypt_with_wrong_key_fails(self):
        """Decryption fails with incorrect key"""
        encrypted = CredentialEncryptionService(key=Fernet.generate_key().decode()).encrypt("secret")
        other = CredentialEncryptionService(key=Fernet.generate_key().decode(), old_keys=[])

        with pytest.raises(CredentialEncryptionError):
            other.decrypt(encrypted)

    def test_key_rotation_with_multifernet(self):
        """Values under an old key still decrypt and can be rotated to the new key"""
        old_key = Fernet.generate_key().decode()
        new_key = Fernet.generate_key().decode()

        old_encrypted = CredentialEncryptionService(key=old_key, old_keys=[]).encrypt("token")
        rotating = CredentialEncryptionService(key=new_key, old_keys=[old_key])

        assert rotating.decrypt(old_encrypted) == "token"

        rotated = rotating.rotate_fields({"apiKey": old_encrypted, "tagId": "7"})
        assert rotated["tagId"] == "7"
        assert CredentialEncryptionService(key=new_key, old_keys=[]).decrypt(rotated["apiKey"]) == "token"

    def test_invalid_key_rejected(self):
        with pytest.raises(CredentialEncryptionError):
            CredentialEncryptionService(key="not-a-fernet-key", old_keys=[])

    def test_encrypt_fields_only_touches_secrets(self):
        """apiKey/appPassword/tokens are encrypted; other fields stay readable"""
        service = get_encryption_service()
        document = {"email": "me@gmail.com", "appPassword": "abcdabcdabcdabcd", "port": 587}

        encrypted = service.encrypt_fields(document)

        assert encrypted["email"] == "me@gmail.com"
        assert encrypted["port"] == 587
        assert encrypted["appPassword"] != "abcdabcdabcdabcd"
        assert service.decrypt_fields(encrypted) == document
