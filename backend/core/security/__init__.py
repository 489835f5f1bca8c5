"""
Security utilities: credential encryption and webhook signing.
"""

from .encryption import CredentialCipher, decrypt_credential, encrypt_credential
from .signing import SIGNATURE_HEADER, sign_payload, verify_signature

__all__ = [
    "CredentialCipher",
    "encrypt_credential",
    "decrypt_credential",
    "SIGNATURE_HEADER",
    "sign_payload",
    "verify_signature",
]
