"""Structured logging helpers for authentication components.

This module purposefully restricts **which** contextual attributes are attached
to log records in order to avoid accidentally leaking secrets.  The adapter
ONLY injects the following *non-sensitive* fields:

- ``client_id``      – Application identifier (first 8 chars kept)
- ``flow_id``        – Identifier of the interactive login flow
- ``correlation_id`` – Placeholder, to be wired by the host application

Access tokens, refresh tokens, authorization codes and cookie values must never
be passed to a logger; use :func:`mask_sensitive` for identifiers that may
appear in messages.

Usage
-----
>>> from msa_auth.auth.log_utils import get_auth_logger
>>> log = get_auth_logger(
...     base_logger_name="msa-auth.auth.flow",
...     client_id="000000004C12AE6F",
...     flow_id="3f2a9c",
... )
>>> log.info("Opening login surface")
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping


def mask_sensitive(value: str | None, keep_chars: int = 4) -> str:
    """Return *value* truncated to ``keep_chars`` followed by ``****``."""
    if not value:
        return ""
    if len(value) <= keep_chars:
        return "*" * len(value)
    return f"{value[:keep_chars]}****"


class _AuthLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted auth context into log records."""

    extra_keys = ("client_id", "flow_id", "correlation_id")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if k == "client_id" and extra and extra.get("client_id"):
                extra_clean[k] = str(extra["client_id"])[:8]
            elif extra and k in extra and extra[k] is not None:
                extra_clean[k] = extra[k]
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if "extra" not in kwargs or kwargs["extra"] is None:
            kwargs["extra"] = {}
        # call-site extras win
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        return msg, kwargs


def get_auth_logger(
    *,
    base_logger_name: str = "msa-auth.auth",
    client_id: str | None = None,
    flow_id: str | None = None,
    correlation_id: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with auth context."""
    logger = logging.getLogger(base_logger_name)
    return _AuthLoggerAdapter(
        logger,
        {
            "client_id": client_id,
            "flow_id": flow_id,
            "correlation_id": correlation_id,
        },
    )
