"""AES-GCM protection for provider credentials at rest.

Ciphertexts are serialized as ``base64(iv) + ":" + base64(ciphertext)`` with a
12-byte random IV. The key is raw key material supplied by the caller as base64.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

IV_LENGTH = 12
_SEPARATOR = ":"


class CredentialCryptoError(Exception):
    """Base error for credential encryption failures."""

    error_code: str = "credential_error"


class CiphertextFormatError(CredentialCryptoError):
    """Raised when a stored ciphertext does not have the iv:data shape."""

    error_code = "invalid_ciphertext"


class CredentialDecryptionError(CredentialCryptoError):
    """Raised when the ciphertext fails authentication under the given key."""

    error_code = "decryption_failed"


def _load_key(key_b64: str) -> AESGCM:
    try:
        raw = base64.b64decode(key_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CredentialCryptoError("Encryption key is not valid base64") from exc
    try:
        return AESGCM(raw)
    except ValueError as exc:
        raise CredentialCryptoError("Encryption key must be 16, 24 or 32 bytes") from exc


def encrypt_bytes(plaintext: bytes, key_b64: str) -> str:
    iv = os.urandom(IV_LENGTH)
    ciphertext = _load_key(key_b64).encrypt(iv, plaintext, None)
    return f"{base64.b64encode(iv).decode()}{_SEPARATOR}{base64.b64encode(ciphertext).decode()}"


def decrypt_bytes(token: str, key_b64: str) -> bytes:
    iv_part, sep, data_part = token.partition(_SEPARATOR)
    if not sep or not iv_part or not data_part:
        raise CiphertextFormatError("Invalid ciphertext format")
    try:
        iv = base64.b64decode(iv_part, validate=True)
        data = base64.b64decode(data_part, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CiphertextFormatError("Invalid ciphertext format") from exc
    if len(iv) != IV_LENGTH:
        raise CiphertextFormatError("Invalid ciphertext format")
    try:
        return _load_key(key_b64).decrypt(iv, data, None)
    except InvalidTag as exc:
        raise CredentialDecryptionError("Ciphertext could not be decrypted") from exc


def encrypt(plaintext: str, key_b64: str) -> str:
    """Encrypt a UTF-8 string (typically an API key)."""
    return encrypt_bytes(plaintext.encode("utf-8"), key_b64)


def decrypt(token: str, key_b64: str) -> str:
    """Decrypt a token produced by :func:`encrypt`."""
    return decrypt_bytes(token, key_b64).decode("utf-8")
