"""
Field encryption and hashing.

Sensitive complaint text is stored as Fernet tokens. Hashing is plain,
unsalted SHA-256 so that a digest can be recomputed and compared directly
(commitments, PIN verification).
"""

import base64
import binascii
import hashlib
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken

from whistlebox.core.exceptions import DecryptionError

# Stored in place of a ciphertext when the field was empty
EMPTY_SENTINEL = ""


def build_cipher(key: str) -> Fernet:
    """
    Accept a urlsafe-base64 Fernet key as-is; otherwise derive one from the
    passphrase.
    """
    if not key:
        raise ValueError("ENCRYPTION_KEY must not be empty")
    try:
        return Fernet(key.encode("utf-8"))
    except (ValueError, binascii.Error):
        derived = hashlib.sha256(key.encode("utf-8")).digest()
        return Fernet(base64.urlsafe_b64encode(derived))


def encrypt_field(plaintext: Optional[str], cipher: Fernet) -> str:
    if not plaintext:
        return EMPTY_SENTINEL
    return cipher.encrypt(plaintext.encode("utf-8")).decode("ascii")


def decrypt_field(ciphertext: Optional[str], cipher: Fernet) -> str:
    if not ciphertext:
        return ""
    try:
        return cipher.decrypt(ciphertext.encode("ascii")).decode("utf-8")
    except (InvalidToken, UnicodeError) as e:
        raise DecryptionError(f"Field could not be decrypted: {type(e).__name__}") from e


def sha256_hex(data: Union[str, bytes]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()
