"""Configuration: runtime settings, key-value storage and the encrypted config store."""

from adosync.config.settings import Settings
from adosync.config.storage import FileStorage, InMemoryStorage, KeyValueStorage
from adosync.config.store import (
    CONFIG_STORAGE_KEY,
    ConfigInfo,
    ConfigStore,
    ResolvedConfig,
    StoredConfig,
)

__all__ = [
    "CONFIG_STORAGE_KEY",
    "ConfigInfo",
    "ConfigStore",
    "FileStorage",
    "InMemoryStorage",
    "KeyValueStorage",
    "ResolvedConfig",
    "Settings",
    "StoredConfig",
]
