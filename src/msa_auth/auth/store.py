"""Durable key-value preference storage.

The client persists exactly two entries:

``refresh_token``
    The most recent non-empty refresh token.
``cookie_keys``
    Comma-joined *names* of the cookies the login pages set on the logout
    domain.  Cookie values are never persisted.

This module introduces the narrow :class:`PreferenceStore` interface plus two
implementations:

* :class:`DiskPreferenceStore` – one JSON file per preference set; writes use
  *temp-file + os.replace* under an advisory lock.
* :class:`MemoryPreferenceStore` – process-local dict, for tests and for hosts
  that bring their own persistence.

Environment variables
---------------------
MSA_AUTH_STORAGE_DIR
    Base directory for persisted preferences.  Defaults to ``~/.msa-auth``.
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Final, Iterable, Protocol, runtime_checkable

from msa_auth.utils.environment import storage_dir

_LOG = logging.getLogger("msa-auth.auth.store")

PREFERENCES_NAME: Final[str] = "com.microsoft.live"
REFRESH_TOKEN_KEY: Final[str] = "refresh_token"
COOKIES_KEY: Final[str] = "cookie_keys"
COOKIE_DELIMITER: Final[str] = ","

# --------------------------------------------------------------------------- #
# helpers                                                                     #
# --------------------------------------------------------------------------- #


def _slug(text: str, max_len: int = 80) -> str:
    """Filesystem-safe slug."""
    text = (text or "").strip().lower()
    text = re.sub(r"[^a-z0-9._-]+", "-", text)
    text = re.sub(r"-{2,}", "-", text).strip("-")
    return text[:max_len] or "unknown"


def _atomic_write(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        json.dump(data, fh, separators=(",", ":"), sort_keys=True)
    os.replace(tmp, path)  # atomic on POSIX


@contextmanager
def _file_lock(lock_path: Path, retries: int = 25, delay: float = 0.05):  # noqa: D401
    """Advisory file lock using ``os.O_EXCL`` temp-file creation."""
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    for attempt in range(retries + 1):
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_RDWR)
            os.close(fd)
            break
        except FileExistsError:
            if attempt == retries:
                raise TimeoutError(f"Could not acquire lock {lock_path}") from None
            time.sleep(delay)
    try:
        yield
    finally:
        lock_path.unlink(missing_ok=True)


# --------------------------------------------------------------------------- #
# public interface                                                            #
# --------------------------------------------------------------------------- #


@runtime_checkable
class PreferenceStore(Protocol):
    """Minimal durable key-value contract."""

    def get(self, key: str, default: str | None = None) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryPreferenceStore(PreferenceStore):
    """Dict-backed :class:`PreferenceStore`."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str, default: str | None = None) -> str | None:
        with self._lock:
            return self._data.get(key, default)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._data)


class DiskPreferenceStore(PreferenceStore):
    """JSON-file implementation of :class:`PreferenceStore`."""

    def __init__(
        self,
        base_dir: str | os.PathLike | None = None,
        *,
        name: str = PREFERENCES_NAME,
    ) -> None:
        self.base_dir = Path(base_dir or storage_dir()).expanduser()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.base_dir / f"{_slug(name)}.json"
        self._lock_path = self.path.with_suffix(".lock")

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open(encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError):
            _LOG.warning("Preference file %s is unreadable; treating as empty", self.path.name)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._read().get(key, default)

    def put(self, key: str, value: str) -> None:
        with _file_lock(self._lock_path):
            data = self._read()
            data[key] = value
            _atomic_write(self.path, data)

    def remove(self, key: str) -> None:
        with _file_lock(self._lock_path):
            data = self._read()
            if data.pop(key, None) is not None:
                _atomic_write(self.path, data)


# --------------------------------------------------------------------------- #
# Entry helpers                                                               #
# --------------------------------------------------------------------------- #


def load_refresh_token(store: PreferenceStore) -> str | None:
    return store.get(REFRESH_TOKEN_KEY) or None


def save_refresh_token(store: PreferenceStore, refresh_token: str) -> None:
    if not refresh_token:
        raise ValueError("refresh_token must not be empty")
    store.put(REFRESH_TOKEN_KEY, refresh_token)
    _LOG.debug("Persisted refresh token")


def clear_refresh_token(store: PreferenceStore) -> None:
    store.remove(REFRESH_TOKEN_KEY)
    _LOG.debug("Cleared persisted refresh token")


def load_cookie_keys(store: PreferenceStore) -> set[str]:
    value = store.get(COOKIES_KEY, "") or ""
    return {k for k in value.split(COOKIE_DELIMITER) if k}


def merge_cookie_keys(store: PreferenceStore, names: Iterable[str]) -> set[str]:
    """Union *names* with the persisted cookie names and write the result back.

    A cookie sent during an earlier login may be absent from a later one, so
    the stored set only ever grows until logout.
    """
    merged = load_cookie_keys(store) | {n for n in names if n}
    store.put(COOKIES_KEY, COOKIE_DELIMITER.join(sorted(merged)))
    return merged


_default_store: DiskPreferenceStore | None = None


def default_store() -> DiskPreferenceStore:
    """Return a process-wide singleton :class:`DiskPreferenceStore`."""
    global _default_store  # noqa: PLW0603
    if _default_store is None:
        _default_store = DiskPreferenceStore()
    return _default_store
