"""
Unit tests for preference stores and the persisted-entry helpers.

Coverage:
* DiskPreferenceStore atomic write (no lingering *.tmp) and reload
* File-lock exclusivity (single writer)
* Cookie-name union across logins
* Refresh-token helpers
"""

from __future__ import annotations

import json
import threading
import time
from pathlib import Path

import pytest

from msa_auth.auth.store import (
    COOKIES_KEY,
    REFRESH_TOKEN_KEY,
    DiskPreferenceStore,
    MemoryPreferenceStore,
    _file_lock,
    clear_refresh_token,
    load_cookie_keys,
    load_refresh_token,
    merge_cookie_keys,
    save_refresh_token,
)


def _build_store(tmp_path: Path) -> DiskPreferenceStore:
    return DiskPreferenceStore(base_dir=tmp_path)


# --------------------------------------------------------------------------- #
# Disk store                                                                  #
# --------------------------------------------------------------------------- #
def test_disk_store_atomic_write_and_reload(tmp_path: Path) -> None:
    store = _build_store(tmp_path)
    store.put(REFRESH_TOKEN_KEY, "rt-1")

    assert store.path.exists()
    assert not list(tmp_path.glob("*.tmp"))
    with store.path.open() as fh:
        assert json.load(fh) == {REFRESH_TOKEN_KEY: "rt-1"}

    reopened = _build_store(tmp_path)
    assert reopened.get(REFRESH_TOKEN_KEY) == "rt-1"

    reopened.remove(REFRESH_TOKEN_KEY)
    assert store.get(REFRESH_TOKEN_KEY) is None
    assert store.get("missing", "fallback") == "fallback"


def test_disk_store_uses_environment_directory(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("MSA_AUTH_STORAGE_DIR", str(tmp_path / "prefs"))
    store = DiskPreferenceStore()
    assert store.path.parent == tmp_path / "prefs"
    assert store.path.name == "com.microsoft.live.json"


def test_disk_store_treats_corrupt_file_as_empty(tmp_path: Path) -> None:
    store = _build_store(tmp_path)
    store.path.write_text("{not json", encoding="utf-8")
    assert store.get(REFRESH_TOKEN_KEY) is None
    store.put(REFRESH_TOKEN_KEY, "rt")
    assert store.get(REFRESH_TOKEN_KEY) == "rt"


def test_disk_store_lock_single_holder(tmp_path: Path) -> None:
    store = _build_store(tmp_path)
    lock_path = store.path.with_suffix(".lock")

    def holder() -> None:
        with _file_lock(lock_path, retries=0, delay=0):
            time.sleep(0.3)

    t = threading.Thread(target=holder)
    t.start()
    time.sleep(0.05)

    with pytest.raises(TimeoutError):
        with _file_lock(lock_path, retries=0, delay=0):
            pass

    t.join()
    store.put(REFRESH_TOKEN_KEY, "after-release")
    assert store.get(REFRESH_TOKEN_KEY) == "after-release"
    assert not lock_path.exists()


# --------------------------------------------------------------------------- #
# Entry helpers                                                               #
# --------------------------------------------------------------------------- #
def test_cookie_keys_union_across_logins() -> None:
    store = MemoryPreferenceStore()
    merge_cookie_keys(store, {"a", "b"})
    merge_cookie_keys(store, {"b", "c"})

    assert load_cookie_keys(store) == {"a", "b", "c"}
    assert store.get(COOKIES_KEY) == "a,b,c"


def test_cookie_keys_empty_store() -> None:
    assert load_cookie_keys(MemoryPreferenceStore()) == set()


def test_refresh_token_helpers(tmp_path: Path) -> None:
    store = _build_store(tmp_path)
    assert load_refresh_token(store) is None

    save_refresh_token(store, "rt")
    assert load_refresh_token(store) == "rt"

    clear_refresh_token(store)
    assert load_refresh_token(store) is None

    with pytest.raises(ValueError):
        save_refresh_token(store, "")
