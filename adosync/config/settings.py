"""Settings dataclass for adosync configuration.

Runtime settings come from environment variables; credentials and display
preferences are stored separately by ``ConfigStore``.

Environment Variables:
    ADOSYNC_BASE_URL: Azure DevOps (or proxy) base URL
    ADOSYNC_TIMEOUT: Request timeout in seconds (max 10)
    ADOSYNC_BATCH_SIZE: Concurrent requests per validation group (1-10)
    ADOSYNC_DATA_DIR: Directory for the persisted key and config blob
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://dev.azure.com"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_BATCH_SIZE = 3

# Upper bounds - the remote call must never outlive its 10s window, and large
# batch groups trip Azure DevOps rate limiting.
MAX_TIMEOUT_SECONDS = 10.0
MAX_BATCH_SIZE = 10


@dataclass
class Settings:
    """Runtime settings for adosync.

    Attributes:
        base_url: Base URL requests are issued against (no trailing slash)
        timeout_seconds: Upper bound for one remote request
        batch_size: Number of concurrent validations per group
        data_dir: Directory holding the encryption key and config blob

    Values are clamped in __post_init__ using simple assignment (not frozen).
    """

    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    batch_size: int = DEFAULT_BATCH_SIZE
    data_dir: Path = field(default_factory=lambda: Path.home() / ".adosync")

    def __post_init__(self) -> None:
        """Normalize the base URL and clamp numeric values to safe bounds."""
        self.base_url = (self.base_url or DEFAULT_BASE_URL).strip().rstrip("/")

        if self.timeout_seconds <= 0:
            logger.warning(
                f"timeout_seconds ({self.timeout_seconds}) must be positive, "
                f"using {DEFAULT_TIMEOUT_SECONDS}"
            )
            self.timeout_seconds = DEFAULT_TIMEOUT_SECONDS
        elif self.timeout_seconds > MAX_TIMEOUT_SECONDS:
            logger.warning(
                f"timeout_seconds ({self.timeout_seconds}) exceeds max "
                f"({MAX_TIMEOUT_SECONDS}), clamping to max"
            )
            self.timeout_seconds = MAX_TIMEOUT_SECONDS

        if self.batch_size < 1:
            logger.warning(f"batch_size ({self.batch_size}) must be at least 1, clamping to 1")
            self.batch_size = 1
        elif self.batch_size > MAX_BATCH_SIZE:
            logger.warning(
                f"batch_size ({self.batch_size}) exceeds max ({MAX_BATCH_SIZE}), clamping to max"
            )
            self.batch_size = MAX_BATCH_SIZE

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ADOSYNC_* environment variables.

        Malformed numeric values are logged and replaced by the defaults.

        Args:
            environ: Mapping to read from (defaults to os.environ)
        """
        env = os.environ if environ is None else environ

        timeout = _parse_number(env.get("ADOSYNC_TIMEOUT"), float, DEFAULT_TIMEOUT_SECONDS)
        batch_size = _parse_number(env.get("ADOSYNC_BATCH_SIZE"), int, DEFAULT_BATCH_SIZE)

        data_dir_value = env.get("ADOSYNC_DATA_DIR", "").strip()
        data_dir = Path(data_dir_value).expanduser() if data_dir_value else Path.home() / ".adosync"

        return cls(
            base_url=env.get("ADOSYNC_BASE_URL", DEFAULT_BASE_URL),
            timeout_seconds=timeout,
            batch_size=batch_size,
            data_dir=data_dir,
        )


def _parse_number(value: str | None, kind: type, default: float | int) -> float | int:
    if value is None or not value.strip():
        return default
    try:
        return kind(value.strip())
    except ValueError:
        logger.warning("Ignoring malformed numeric setting %r, using %s", value, default)
        return default


__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_BATCH_SIZE",
    "MAX_TIMEOUT_SECONDS",
    "MAX_BATCH_SIZE",
    "Settings",
]
