"""Encryption of configuration secrets at rest.

Values such as the push gateway key may be stored Fernet-encrypted
(AES-128-CBC) with a key derived from SECRET_KEY.
"""

import base64
import hashlib

from cryptography.fernet import Fernet

from ..config import settings

_FERNET_PREFIX = "gAAAAA"


def _derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet key from the app SECRET_KEY using SHA-256."""
    digest = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(digest)


def encrypt_value(plaintext: str) -> str:
    """Encrypt a string value using the app's SECRET_KEY."""
    f = Fernet(_derive_fernet_key(settings.secret_key))
    return f.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str) -> str:
    """Decrypt a string value using the app's SECRET_KEY."""
    f = Fernet(_derive_fernet_key(settings.secret_key))
    return f.decrypt(ciphertext.encode()).decode()


def reveal(value: str) -> str:
    """Return the plaintext of a setting that may or may not be encrypted."""
    if value.startswith(_FERNET_PREFIX):
        return decrypt_value(value)
    return value
