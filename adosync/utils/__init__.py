"""Shared utilities: exit codes, base errors, logging and console output."""

from adosync.utils.errors import (
    AdoSyncError,
    CipherKeyError,
    ConfigValidationError,
    ExitCode,
    NotConfiguredError,
    UserCancelledError,
)
from adosync.utils.logging import get_logger, log_message, mask_secret, setup_logging

__all__ = [
    "AdoSyncError",
    "CipherKeyError",
    "ConfigValidationError",
    "ExitCode",
    "NotConfiguredError",
    "UserCancelledError",
    "get_logger",
    "log_message",
    "mask_secret",
    "setup_logging",
]
