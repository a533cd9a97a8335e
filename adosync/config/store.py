"""Encrypted persistence of the Azure DevOps connection settings.

The whole configuration lives in one JSON blob under a fixed storage key::

    {
      "encryptedToken": "b64nonce:b64tag:b64ciphertext",
      "organization": "acme",
      "acPattern": "",
      "visibleFields": {"assignee": true, ...},
      "lastBaseUrl": "https://dev.azure.com/acme/...",
      "createdAt": "2026-01-01T12:00:00+00:00"
    }

The PAT never touches storage in plaintext. Corrupted, foreign or
undecryptable state reads back as "no config" instead of raising.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from adosync.config.storage import KeyValueStorage
from adosync.utils.errors import ConfigValidationError
from adosync.utils.logging import mask_secret

if TYPE_CHECKING:
    from adosync.security.cipher import CredentialCipher

logger = logging.getLogger(__name__)

CONFIG_STORAGE_KEY = "azure_devops_config"


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string")
    return value


def _visible_fields(value: Any) -> dict[str, bool] | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise TypeError("visibleFields must be an object")
    if not all(isinstance(flag, bool) for flag in value.values()):
        raise TypeError("visibleFields values must be booleans")
    return {str(name): flag for name, flag in value.items()}


@dataclass(frozen=True)
class StoredConfig:
    """The persisted blob, with the PAT still encrypted."""

    organization: str
    encrypted_token: str
    created_at: datetime
    ac_pattern: str = ""
    visible_fields: dict[str, bool] | None = None
    last_base_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "encryptedToken": self.encrypted_token,
            "organization": self.organization,
            "acPattern": self.ac_pattern,
            "createdAt": self.created_at.isoformat(),
        }
        if self.visible_fields is not None:
            data["visibleFields"] = dict(self.visible_fields)
        if self.last_base_url is not None:
            data["lastBaseUrl"] = self.last_base_url
        return data

    @classmethod
    def from_dict(cls, data: Any) -> StoredConfig:
        """Validate an untyped JSON payload field by field.

        Raises:
            TypeError: If data or a field has the wrong type
            KeyError: If a required field is missing
            ValueError: If createdAt is not an ISO-8601 timestamp
        """
        if not isinstance(data, dict):
            raise TypeError("config blob must be a JSON object")

        organization = data["organization"]
        encrypted_token = data["encryptedToken"]
        if not isinstance(organization, str) or not isinstance(encrypted_token, str):
            raise TypeError("organization and encryptedToken must be strings")

        created_raw = data.get("createdAt")
        created_at = datetime.fromisoformat(created_raw) if created_raw else datetime.now(UTC)

        return cls(
            organization=organization,
            encrypted_token=encrypted_token,
            created_at=created_at,
            ac_pattern=_optional_str(data, "acPattern") or "",
            visible_fields=_visible_fields(data.get("visibleFields")),
            last_base_url=_optional_str(data, "lastBaseUrl"),
        )


@dataclass(frozen=True)
class ResolvedConfig:
    """Stored configuration with the PAT decrypted."""

    organization: str
    pat: str = field(repr=False)
    ac_pattern: str = ""
    visible_fields: dict[str, bool] | None = None
    last_base_url: str | None = None


@dataclass(frozen=True)
class ConfigInfo:
    """Non-sensitive view of the stored configuration.

    Attributes:
        has_token: Whether the stored PAT decrypts under the current key
    """

    organization: str
    has_token: bool
    ac_pattern: str = ""
    visible_fields: dict[str, bool] | None = None
    last_base_url: str | None = None


class ConfigStore:
    """Stores organization, encrypted PAT and display preferences.

    Attributes:
        _storage: Storage backend for the JSON blob
        _cipher: CredentialCipher used to protect the PAT
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        cipher: CredentialCipher,
        storage_key: str = CONFIG_STORAGE_KEY,
    ) -> None:
        self._storage = storage
        self._cipher = cipher
        self._storage_key = storage_key

    async def _load(self) -> StoredConfig | None:
        """Read and validate the blob; None when absent, unreadable or malformed."""
        try:
            raw = await self._storage.get(self._storage_key)
            if not raw:
                return None
            return StoredConfig.from_dict(json.loads(raw))
        except (OSError, UnicodeDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable stored config: %s", type(e).__name__)
            return None

    async def _save(self, config: StoredConfig) -> None:
        await self._storage.set(self._storage_key, json.dumps(config.to_dict()))

    async def store(
        self,
        organization: str,
        pat: str | None = None,
        ac_pattern: str | None = None,
        visible_fields: Mapping[str, bool] | None = None,
    ) -> None:
        """Persist the configuration, replacing the previous blob.

        Without a PAT the stored encrypted token is carried forward, which
        lets callers update preferences only.

        Raises:
            ConfigValidationError: If the organization is empty, the PAT has
                the wrong format, or no PAT is given and none is stored.
                Nothing is written in these cases.
        """
        organization = (organization or "").strip()
        if not organization:
            raise ConfigValidationError("Organization is required.")

        if pat and not self._cipher.validate_format(pat):
            raise ConfigValidationError(
                "Invalid PAT format. Azure DevOps PATs are 52 characters long."
            )

        existing = await self._load()

        if pat:
            logger.debug("Encrypting new PAT %s", mask_secret(pat))
            encrypted_token = await self._cipher.encrypt(pat)
        elif existing is not None and existing.encrypted_token:
            encrypted_token = existing.encrypted_token
        else:
            raise ConfigValidationError("PAT is required.")

        config = StoredConfig(
            organization=organization,
            encrypted_token=encrypted_token,
            created_at=datetime.now(UTC),
            ac_pattern=ac_pattern or "",
            visible_fields=dict(visible_fields) if visible_fields is not None else None,
            last_base_url=existing.last_base_url if existing is not None else None,
        )
        await self._save(config)
        logger.info("Stored configuration for organization %s", organization)

    async def store_last_base_url(self, url: str) -> None:
        """Remember the last work item URL the user opened.

        Creates a placeholder blob (no token) when nothing is stored yet.
        Failures are logged and never raised.
        """
        try:
            existing = await self._load()
            if existing is None:
                existing = StoredConfig(
                    organization="",
                    encrypted_token="",
                    created_at=datetime.now(UTC),
                )
            await self._save(
                StoredConfig(
                    organization=existing.organization,
                    encrypted_token=existing.encrypted_token,
                    created_at=existing.created_at,
                    ac_pattern=existing.ac_pattern,
                    visible_fields=existing.visible_fields,
                    last_base_url=url,
                )
            )
        except OSError as e:
            logger.warning("Failed to store last base URL: %s", e)

    async def retrieve(self) -> ResolvedConfig | None:
        """Return the configuration with the PAT decrypted.

        Returns:
            ResolvedConfig, or None when nothing usable is stored
        """
        stored = await self._load()
        if stored is None:
            return None

        pat = await self._cipher.decrypt(stored.encrypted_token)
        if not pat:
            logger.warning("Failed to decrypt stored PAT")
            return None

        return ResolvedConfig(
            organization=stored.organization,
            pat=pat,
            ac_pattern=stored.ac_pattern,
            visible_fields=stored.visible_fields,
            last_base_url=stored.last_base_url,
        )

    async def get_info(self) -> ConfigInfo | None:
        """Return configuration metadata without exposing the PAT."""
        stored = await self._load()
        if stored is None:
            return None

        has_token = bool(await self._cipher.decrypt(stored.encrypted_token))
        return ConfigInfo(
            organization=stored.organization,
            has_token=has_token,
            ac_pattern=stored.ac_pattern,
            visible_fields=stored.visible_fields,
            last_base_url=stored.last_base_url,
        )

    async def clear(self) -> None:
        """Delete the stored blob outright."""
        await self._storage.delete(self._storage_key)
        logger.info("Cleared stored configuration")


__all__ = [
    "CONFIG_STORAGE_KEY",
    "StoredConfig",
    "ResolvedConfig",
    "ConfigInfo",
    "ConfigStore",
]
