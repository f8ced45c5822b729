"""Clock abstraction for testable expiry handling.

Session expiry and token lifetimes are computed against an injected ``Clock``
rather than calling ``time.time()`` directly, so tests can freeze or advance
time without patching the standard library.

Example
-------
>>> from msa_auth.auth.clock import default_clock
>>> isinstance(default_clock(), float)
True
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Callable protocol returning *seconds* since the UNIX epoch."""

    def __call__(self) -> float: ...


def default_clock() -> float:
    """Return ``time.time()``."""
    return time.time()
