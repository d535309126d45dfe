"""Encryption of stored Plaid access tokens.

Envelope format: ``enc:v1:<iv_hex>:<tag_hex>:<ciphertext_hex>`` using
AES-256-GCM with a 12-byte IV. Rows written before encryption was turned on
hold the bare token; those are passed through unchanged.
"""

import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from finsync.config import get_settings

ENCRYPTION_PREFIX = "enc:v1"
IV_BYTES = 12
TAG_BYTES = 16


def _key(key_hex: str | None) -> bytes:
    key_hex = key_hex or get_settings().encryption_key
    if not key_hex:
        raise ValueError("ENCRYPTION_KEY is not configured")
    return bytes.fromhex(key_hex)


def is_encrypted(payload: str) -> bool:
    return payload.startswith(f"{ENCRYPTION_PREFIX}:")


def encrypt_secret(plaintext: str, key_hex: str | None = None) -> str:
    """Encrypt a secret into the versioned envelope."""
    iv = os.urandom(IV_BYTES)
    # AESGCM appends the 16-byte tag to the ciphertext.
    sealed = AESGCM(_key(key_hex)).encrypt(iv, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
    return ":".join([ENCRYPTION_PREFIX, iv.hex(), tag.hex(), ciphertext.hex()])


def decrypt_secret(payload: str, key_hex: str | None = None) -> str:
    """Decrypt an envelope produced by :func:`encrypt_secret`.

    Legacy values without the prefix are returned as-is.

    Raises:
        ValueError: If the envelope is malformed
        cryptography.exceptions.InvalidTag: If the key or tag does not match
    """
    if not is_encrypted(payload):
        return payload

    parts = payload[len(ENCRYPTION_PREFIX) + 1 :].split(":")
    if len(parts) != 3:
        raise ValueError("Invalid encrypted payload format")

    iv_hex, tag_hex, ciphertext_hex = parts
    iv = bytes.fromhex(iv_hex)
    tag = bytes.fromhex(tag_hex)
    ciphertext = bytes.fromhex(ciphertext_hex)
    plaintext = AESGCM(_key(key_hex)).decrypt(iv, ciphertext + tag, None)
    return plaintext.decode("utf-8")
