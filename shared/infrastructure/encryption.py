"""
Encryption utilities

Symmetric encryption (Fernet) for sensitive guest data such as identity
document numbers.
"""

import base64
import hashlib

from cryptography.fernet import Fernet
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


def get_encryption_key() -> bytes:
    """
    Get encryption key from settings

    Any string is accepted and stretched to a 32-byte URL-safe base64
    key with SHA-256, so a raw Fernet key and a passphrase both work.
    """
    key = getattr(settings, 'ENCRYPTION_KEY', None)

    if not key:
        raise ImproperlyConfigured(
            "ENCRYPTION_KEY not configured in settings. "
            "Generate one with: python -c 'from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())'"
        )

    if isinstance(key, str):
        key = base64.urlsafe_b64encode(hashlib.sha256(key.encode()).digest())

    return key


def get_fernet() -> Fernet:
    return Fernet(get_encryption_key())


def encrypt_string(plaintext: str) -> str:
    if not plaintext:
        return ''
    return get_fernet().encrypt(plaintext.encode()).decode()


def decrypt_string(encrypted: str) -> str:
    """Raises cryptography.fernet.InvalidToken for tampered or foreign ciphertext."""
    if not encrypted:
        return ''
    return get_fernet().decrypt(encrypted.encode()).decode()
