"""Logging configuration for adosync.

Logging is off by default and controlled by environment variables, so the
service layer can be embedded in a host without writing anywhere.

Environment Variables:
    ADOSYNC_LOG: Set to "true" to enable logging (default: "false")
    ADOSYNC_LOG_FILE: Path to log file (default: ~/.adosync.log)
"""

import logging
import os
from pathlib import Path

# Environment variable configuration
LOG_ENABLED = os.environ.get("ADOSYNC_LOG", "false").lower() == "true"
LOG_FILE = Path(os.environ.get("ADOSYNC_LOG_FILE", str(Path.home() / ".adosync.log")))

# Module-level logger instance
_logger: logging.Logger | None = None


def setup_logging() -> logging.Logger:
    """Configure the package logger based on environment variables.

    Creates a logger that writes to the configured log file when
    ADOSYNC_LOG is set to "true". Otherwise, uses a NullHandler
    to suppress all log output.

    Child loggers created with ``logging.getLogger(__name__)`` inside the
    package propagate to this logger.

    Returns:
        Configured logger instance
    """
    global _logger

    if _logger is not None:
        return _logger

    logger = logging.getLogger("adosync")

    # Clear any existing handlers
    logger.handlers.clear()

    if LOG_ENABLED:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.FileHandler(LOG_FILE)
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
    else:
        logger.addHandler(logging.NullHandler())

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Get the configured logger instance.

    Returns:
        The configured logger, creating it if necessary
    """
    global _logger
    if _logger is None:
        return setup_logging()
    return _logger


def log_message(message: str) -> None:
    """Log a message if logging is enabled.

    Args:
        message: Message to log
    """
    logger = get_logger()
    logger.info(message)


def mask_secret(value: str, visible: int = 4) -> str:
    """Mask a secret for log output, keeping only its length and a short tail.

    Args:
        value: The secret value
        visible: Number of trailing characters left readable

    Returns:
        Masked representation such as ``"<52 chars, ...abcd>"``
    """
    if not value:
        return "<empty>"
    if len(value) <= visible * 2:
        return f"<{len(value)} chars>"
    return f"<{len(value)} chars, ...{value[-visible:]}>"


__all__ = [
    "LOG_ENABLED",
    "LOG_FILE",
    "setup_logging",
    "get_logger",
    "log_message",
    "mask_secret",
]
