"""Custom exceptions and exit codes for adosync.

This module defines the exit codes and the base exception hierarchy used
throughout the application. Remote API failures have their own coded
taxonomy in ``adosync.integrations.errors``; those errors derive from
``AdoSyncError`` as well so the CLI can map every failure to an exit code.
"""

from enum import IntEnum
from typing import ClassVar


class ExitCode(IntEnum):
    """Process exit codes used by the CLI.

    These codes are used for consistent error reporting and can be
    checked by calling scripts or CI systems.
    """

    SUCCESS = 0
    GENERAL_ERROR = 1
    NOT_CONFIGURED = 2
    INVALID_INPUT = 3
    REMOTE_ERROR = 4
    USER_CANCELLED = 5


class AdoSyncError(Exception):
    """Base exception for adosync errors.

    Each exception type has an associated exit code for proper error reporting.
    """

    _default_exit_code: ClassVar[ExitCode] = ExitCode.GENERAL_ERROR

    def __init__(self, message: str, exit_code: ExitCode | None = None) -> None:
        """Initialize the exception."""
        super().__init__(message)
        self._exit_code = exit_code

    @property
    def exit_code(self) -> ExitCode:
        """Get the exit code for this exception."""
        if self._exit_code is not None:
            return self._exit_code
        return self.__class__._default_exit_code


class NotConfiguredError(AdoSyncError):
    """No usable stored configuration.

    Raised when:
    - No config blob has been stored yet
    - The stored config is corrupted or unparseable
    - The stored PAT can no longer be decrypted with the current key
    """

    _default_exit_code: ClassVar[ExitCode] = ExitCode.NOT_CONFIGURED


class ConfigValidationError(AdoSyncError):
    """Configuration input was rejected and nothing was persisted.

    Raised when:
    - The supplied PAT does not have the Azure DevOps PAT format
    - No PAT was supplied and none is stored yet
    - The organization name is empty
    """

    _default_exit_code: ClassVar[ExitCode] = ExitCode.INVALID_INPUT


class CipherKeyError(AdoSyncError):
    """The persisted encryption key exists but is unusable."""

    pass


class UserCancelledError(AdoSyncError):
    """User cancelled the operation (Ctrl+C or declined a prompt)."""

    _default_exit_code: ClassVar[ExitCode] = ExitCode.USER_CANCELLED


__all__ = [
    "ExitCode",
    "AdoSyncError",
    "NotConfiguredError",
    "ConfigValidationError",
    "CipherKeyError",
    "UserCancelledError",
]
