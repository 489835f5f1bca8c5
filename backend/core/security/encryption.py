"""
Refresh-token encryption using Fernet symmetric encryption.
"""

import base64
import hashlib
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken


class CredentialCipher:
    """Encrypts OAuth refresh tokens at rest."""

    def __init__(self, secret_key: str):
        # Fernet wants 32 url-safe base64 bytes; derive them from the app secret
        key_bytes = hashlib.sha256(secret_key.encode()).digest()
        self.fernet = Fernet(base64.urlsafe_b64encode(key_bytes))

    def encrypt(self, value: str) -> str:
        if not value:
            return ""
        return self.fernet.encrypt(value.encode()).decode()

    def decrypt(self, encrypted_value: str) -> str:
        """
        Decrypt a stored token.

        Raises:
            ValueError: If the value was not produced with this key
        """
        if not encrypted_value:
            return ""

        try:
            return self.fernet.decrypt(encrypted_value.encode()).decode()
        except InvalidToken as e:
            raise ValueError("Failed to decrypt credential") from e


@lru_cache(maxsize=4)
def _cipher(secret_key: str) -> CredentialCipher:
    return CredentialCipher(secret_key)


def encrypt_credential(value: str, secret_key: str) -> str:
    """Encrypt a credential value with the application secret."""
    return _cipher(secret_key).encrypt(value)


def decrypt_credential(encrypted_value: str, secret_key: str) -> str:
    """
    Decrypt a credential value with the application secret.

    Raises:
        ValueError: If decryption fails
    """
    return _cipher(secret_key).decrypt(encrypted_value)
