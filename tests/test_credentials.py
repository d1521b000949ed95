import json
import os
import stat
import sys

import pytest

from canvas_cli.credentials import CREDENTIALS_FILE, Credential, CredentialStore

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")


@pytest.fixture
def store(tmp_path):
    return CredentialStore(tmp_path / "canvas-cli")


@pytest.mark.parametrize(
    "token, domain",
    [
        ("7~AbCdEf123", "canvas.instructure.com"),
        ("x", "y"),
        ("tøken with spaces & ünïcode", "school.example.edu"),
    ],
)
def test_store_then_load_round_trip(store, token, domain):
    store.store(token, domain)
    loaded = store.load()
    assert isinstance(loaded, Credential)
    assert (loaded.token, loaded.domain) == (token, domain)
    assert loaded.saved_at is not None


def test_token_is_not_written_in_clear(store):
    store.store("7~plain-secret", "canvas.test")
    text = store.path.read_text()
    record = json.loads(text)
    assert "7~plain-secret" not in text
    assert set(record) == {"token", "domain", "savedAt"}
    assert record["domain"] == "canvas.test"


def test_store_overwrites(store):
    store.store("old", "a.test")
    store.store("new", "b.test")
    loaded = store.load()
    assert (loaded.token, loaded.domain) == ("new", "b.test")


@posix_only
def test_permissions_are_owner_only(store):
    store.store("t", "d")
    assert stat.S_IMODE(os.stat(store.config_dir).st_mode) == 0o700
    assert stat.S_IMODE(os.stat(store.path).st_mode) == 0o600


@posix_only
def test_existing_file_permissions_are_tightened(store):
    store.config_dir.mkdir(mode=0o700)
    store.path.write_text("{}")
    os.chmod(store.path, 0o644)
    store.store("t", "d")
    assert stat.S_IMODE(os.stat(store.path).st_mode) == 0o600


def test_load_without_file_is_none(store):
    assert not store.exists()
    assert store.load() is None


def test_clear_then_load_is_none(store):
    store.store("t", "d")
    assert store.exists()
    store.clear()
    assert not store.exists()
    assert store.load() is None


def test_clear_missing_file_is_fine(store):
    store.clear()
    store.clear()


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[]",
        json.dumps({"domain": "d"}),
        json.dumps({"token": "garbage", "domain": "d"}),
        json.dumps({"token": 42, "domain": "d"}),
    ],
)
def test_corrupt_record_loads_as_none(store, content):
    store.config_dir.mkdir(parents=True)
    (store.config_dir / CREDENTIALS_FILE).write_text(content)
    assert store.exists()
    assert store.load() is None


def test_record_with_invalid_utf8_loads_as_none(store):
    store.config_dir.mkdir(parents=True)
    (store.config_dir / CREDENTIALS_FILE).write_bytes(b'{"token": "\xff\xfe", "domain": "d"}')
    assert store.load() is None


def test_default_location_is_home_dir():
    assert CredentialStore().path.parent.name == ".canvas-cli"
