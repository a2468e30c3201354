"""
Encryption of third-party API tokens at rest.

Envelope layout (hex encoded): version (1 byte) + nonce (12 bytes) + AES-256-GCM
ciphertext with its tag.
"""

import os
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

ENVELOPE_VERSION = 1
NONCE_LENGTH = 12
KEY_LENGTH = 32


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""
    pass


def _key_bytes(key_hex: str) -> bytes:
    if not key_hex:
        raise EncryptionError("Encryption key is not configured")
    try:
        key = bytes.fromhex(key_hex)
    except ValueError as e:
        raise EncryptionError(f"Invalid encryption key format: {e}") from e
    if len(key) != KEY_LENGTH:
        raise EncryptionError("Encryption key must be 32 bytes (256 bits)")
    return key


def encrypt_token(token: str, key_hex: str) -> str:
    """
    Encrypt a token with AES-256-GCM.

    Args:
        token: Plaintext token.
        key_hex: 64-character hex key.

    Returns:
        Hex-encoded envelope.
    """
    aesgcm = AESGCM(_key_bytes(key_hex))
    nonce = os.urandom(NONCE_LENGTH)
    ciphertext = aesgcm.encrypt(nonce, token.encode("utf-8"), None)
    return (bytes([ENVELOPE_VERSION]) + nonce + ciphertext).hex()


def decrypt_token(envelope_hex: str, key_hex: str) -> str:
    """
    Decrypt an envelope produced by :func:`encrypt_token`.

    Raises:
        EncryptionError: On a bad key, unknown version, truncated or tampered data.
    """
    key = _key_bytes(key_hex)
    try:
        envelope = bytes.fromhex(envelope_hex)
    except ValueError as e:
        raise EncryptionError(f"Invalid encrypted data format: {e}") from e

    if len(envelope) < 1 + NONCE_LENGTH + 16:
        raise EncryptionError("Invalid encrypted data: too short")
    if envelope[0] != ENVELOPE_VERSION:
        raise EncryptionError(f"Unsupported envelope version {envelope[0]}")

    nonce = envelope[1:1 + NONCE_LENGTH]
    ciphertext = envelope[1 + NONCE_LENGTH:]
    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise EncryptionError("Decryption failed: authentication tag mismatch") from e
    return plaintext.decode("utf-8")


def generate_encryption_key() -> str:
    """Generate a new 64-character hex encryption key."""
    return secrets.token_hex(KEY_LENGTH)


def validate_encryption_key(key: str | None) -> bool:
    """Validate that an encryption key is properly formatted."""
    if not key or len(key) != KEY_LENGTH * 2:
        return False
    try:
        bytes.fromhex(key)
        return True
    except ValueError:
        return False
