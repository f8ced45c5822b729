"""Utility functions related to environment-based configuration."""

import logging
import os
from pathlib import Path
from typing import Final, Tuple

logger = logging.getLogger("msa-auth.utils.environment")

DEFAULT_HTTP_TIMEOUT: Final[Tuple[float, float]] = (5.0, 20.0)


def env_str(key: str, default: str | None = None) -> str | None:
    """Return the stripped value of ``key`` or *default* when unset/blank."""
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def storage_dir() -> Path:
    """
    Return the base directory for persisted preferences.

    ``MSA_AUTH_STORAGE_DIR`` wins; otherwise ``~/.msa-auth`` is used.
    """
    return Path(env_str("MSA_AUTH_STORAGE_DIR") or Path.home() / ".msa-auth").expanduser()


def http_timeout() -> Tuple[float, float]:
    """
    Return the ``(connect, read)`` timeout handed to the HTTP transport.

    ``MSA_AUTH_HTTP_TIMEOUT`` accepts either one number (used for both) or
    ``connect,read``.  Malformed values fall back to the default with a warning.
    """
    raw = env_str("MSA_AUTH_HTTP_TIMEOUT")
    if not raw:
        return DEFAULT_HTTP_TIMEOUT
    try:
        parts = [float(p) for p in raw.split(",")]
    except ValueError:
        logger.warning("Ignoring malformed MSA_AUTH_HTTP_TIMEOUT=%r", raw)
        return DEFAULT_HTTP_TIMEOUT
    if len(parts) == 1:
        return parts[0], parts[0]
    if len(parts) == 2:
        return parts[0], parts[1]
    logger.warning("Ignoring malformed MSA_AUTH_HTTP_TIMEOUT=%r", raw)
    return DEFAULT_HTTP_TIMEOUT
