"""Authenticated encryption of the Azure DevOps PAT.

The PAT is encrypted with AES-256-GCM under a key that is generated once,
persisted Base64-encoded under its own versioned storage slot, and never
rotated automatically.

Wire format of an encrypted token (all segments standard Base64)::

    nonce:tag:ciphertext

A string that does not split into exactly three segments is rejected before
any cryptographic work is attempted.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import os
import re

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from adosync.config.storage import KeyValueStorage
from adosync.utils.errors import CipherKeyError

logger = logging.getLogger(__name__)

# Versioned so a format change can force a fresh key instead of misreading old data
KEY_STORAGE_NAME = "pbi_plugin_encryption_key_v2"

KEY_SIZE_BYTES = 32  # AES-256
NONCE_SIZE_BYTES = 12  # 96-bit GCM nonce
TAG_SIZE_BYTES = 16  # 128-bit authentication tag

SEGMENT_SEPARATOR = ":"

# Azure DevOps PATs are 52 characters of Base64 alphabet
_PAT_FORMAT_PATTERN = re.compile(r"^[A-Za-z0-9+/]{52}$")


def base64_encode(text: str) -> str:
    """Base64-encode a UTF-8 string (used for Basic auth header values)."""
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _b64decode_strict(segment: str) -> bytes:
    return base64.b64decode(segment.encode("ascii"), validate=True)


class CredentialCipher:
    """Encrypts and decrypts the PAT with a persisted AES-256-GCM key.

    Key Lifecycle:
        The key is read-or-created on first use and cached for the rest of
        the process. Creation is serialized with an asyncio.Lock, so
        concurrent first users observe one key instead of racing to persist
        two different ones.

    Attributes:
        _storage: Storage backend holding the Base64 key
        _key: Cached raw key bytes (None until first use)
    """

    def __init__(self, storage: KeyValueStorage, key_name: str = KEY_STORAGE_NAME) -> None:
        self._storage = storage
        self._key_name = key_name
        self._key: bytes | None = None
        self._key_lock = asyncio.Lock()

    async def derive_or_create_key(self) -> bytes:
        """Return the persisted key, generating and persisting it if absent.

        Returns:
            Raw 32-byte key

        Raises:
            CipherKeyError: If the persisted key cannot be read or is not 32
                bytes of Base64
        """
        if self._key is not None:
            return self._key

        async with self._key_lock:
            # Another coroutine may have loaded the key while we waited
            if self._key is not None:
                return self._key

            try:
                stored = await self._storage.get(self._key_name)
            except (OSError, UnicodeDecodeError) as e:
                raise CipherKeyError(f"Persisted encryption key is unreadable: {e}") from e
            if stored:
                try:
                    key = _b64decode_strict(stored.strip())
                except (binascii.Error, ValueError) as e:
                    raise CipherKeyError("Persisted encryption key is not valid Base64") from e
                if len(key) != KEY_SIZE_BYTES:
                    raise CipherKeyError(
                        f"Persisted encryption key has {len(key)} bytes, expected {KEY_SIZE_BYTES}"
                    )
            else:
                key = os.urandom(KEY_SIZE_BYTES)
                await self._storage.set(self._key_name, base64.b64encode(key).decode("ascii"))
                logger.info("Generated new encryption key")

            self._key = key
            return key

    async def destroy_key(self) -> None:
        """Delete the persisted key. Every token encrypted under it becomes undecryptable."""
        async with self._key_lock:
            await self._storage.delete(self._key_name)
            self._key = None
        logger.info("Encryption key destroyed")

    async def encrypt(self, plaintext: str) -> str:
        """Encrypt plaintext under the persisted key with a fresh nonce.

        Returns:
            ``b64(nonce):b64(tag):b64(ciphertext)``

        Raises:
            CipherKeyError: If the persisted key is unusable
        """
        key = await self.derive_or_create_key()
        nonce = os.urandom(NONCE_SIZE_BYTES)

        # AESGCM appends the tag to the ciphertext
        sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_SIZE_BYTES], sealed[-TAG_SIZE_BYTES:]

        return SEGMENT_SEPARATOR.join(
            base64.b64encode(part).decode("ascii") for part in (nonce, tag, ciphertext)
        )

    async def decrypt(self, token: str) -> str | None:
        """Decrypt a ``nonce:tag:ciphertext`` token.

        Returns:
            The plaintext, or None when the token is malformed, was tampered
            with, was produced under another key, or the key is unusable.
        """
        if not isinstance(token, str) or SEGMENT_SEPARATOR not in token:
            return None

        parts = token.split(SEGMENT_SEPARATOR)
        if len(parts) != 3:
            return None

        try:
            nonce, tag, ciphertext = (_b64decode_strict(part) for part in parts)
        except (binascii.Error, ValueError):
            logger.debug("Encrypted token has a non-Base64 segment")
            return None

        if len(nonce) != NONCE_SIZE_BYTES or len(tag) != TAG_SIZE_BYTES:
            return None

        try:
            key = await self.derive_or_create_key()
        except CipherKeyError as e:
            logger.warning("Cannot decrypt token: %s", e)
            return None

        try:
            plaintext = AESGCM(key).decrypt(nonce, ciphertext + tag, None)
        except InvalidTag:
            logger.warning("Decryption authentication failed")
            return None

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            return None

    @staticmethod
    def validate_format(token: str) -> bool:
        """Check that token looks like an Azure DevOps PAT (52 Base64-alphabet chars)."""
        if not isinstance(token, str):
            return False
        return _PAT_FORMAT_PATTERN.fullmatch(token) is not None


__all__ = [
    "KEY_STORAGE_NAME",
    "KEY_SIZE_BYTES",
    "NONCE_SIZE_BYTES",
    "TAG_SIZE_BYTES",
    "CredentialCipher",
    "base64_encode",
]
