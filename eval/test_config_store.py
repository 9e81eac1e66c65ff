"""Tests for the persisted profile configuration and its bootstrap merge."""
import json
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from pb.config import (
    DEMO_PASSWORD, DEMO_PROFILE_NAME, DEMO_URL, DEMO_USERNAME, ConfigStore,
)
from pb.errors import ConfigError, DefaultProfileMissing, ProfileNotFound
from pb.models import Configuration, Profile


# ── Helpers ─────────────────────────────────────────────────────────


def _write_raw(store: ConfigStore, data) -> None:
    store.path.parent.mkdir(parents=True, exist_ok=True)
    with open(store.path, "w", encoding="utf-8") as f:
        json.dump(data, f)


def _work_profile() -> Profile:
    return Profile(name="work", url="https://logs.example.com", username="ops", password="s3cret")


# ── Load / save ─────────────────────────────────────────────────────


def test_load_missing_file_is_not_an_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        config, found = ConfigStore(Path(tmpdir)).load()
        assert found is False
        assert config == Configuration()


def test_load_corrupt_file_raises():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        store.path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError):
            store.load()


def test_load_wrong_shape_raises():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        _write_raw(store, {"profiles": ["demo"]})
        with pytest.raises(ConfigError):
            store.load()


def test_load_rejects_dangling_default():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        _write_raw(store, {"profiles": {}, "default_profile": "ghost"})
        with pytest.raises(DefaultProfileMissing):
            store.load()
        config, found = store.load(validate=False)
        assert found
        assert config.default_profile == "ghost"


def test_save_then_load_round_trip():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        config = Configuration(
            profiles={"work": _work_profile()},
            default_profile="work",
        )
        store.save(config)
        loaded, found = store.load()
        assert found
        assert loaded == config


def test_unknown_keys_survive_read_modify_write():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        _write_raw(store, {
            "profiles": {
                "work": {"url": "https://logs.example.com", "username": "ops",
                         "password": "x", "tls_ca": "/etc/ca.pem"},
            },
            "default_profile": "work",
            "theme": "dark",
        })
        store.bootstrap()
        with open(store.path, encoding="utf-8") as f:
            data = json.load(f)
        assert data["theme"] == "dark"
        assert data["profiles"]["work"]["tls_ca"] == "/etc/ca.pem"


def test_save_is_private_to_user():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        store.save(Configuration(profiles={"work": _work_profile()}, default_profile="work"))
        assert os.stat(store.path).st_mode & 0o777 == 0o600


def test_failed_save_keeps_previous_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        original = Configuration(profiles={"work": _work_profile()}, default_profile="work")
        store.save(original)
        before = store.path.read_bytes()

        with patch("pb.config.os.fsync", side_effect=OSError("disk full")):
            with pytest.raises(ConfigError):
                store.save(Configuration())

        assert store.path.read_bytes() == before
        leftovers = [p for p in Path(tmpdir).iterdir() if p.name != store.path.name]
        assert leftovers == []


def test_add_profile_rejects_invalid_url():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        with pytest.raises(ConfigError):
            store.add_profile(Profile(name="bad", url="not a url"))
        assert not store.path.exists()


@pytest.mark.parametrize("name", ["", "   "])
def test_add_profile_rejects_empty_name(name):
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        with pytest.raises(ConfigError, match="must not be empty"):
            store.add_profile(Profile(name=name, url="https://logs.example.com"))
        assert not store.path.exists()


def test_invalid_url_on_disk_does_not_block_other_writes():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        _write_raw(store, {
            "profiles": {
                "bad": {"url": "logs.example.com", "username": "", "password": ""},
                "work": {"url": "https://logs.example.com", "username": "ops", "password": "s3cret"},
            },
            "default_profile": "bad",
        })

        config = store.bootstrap()
        assert config.profiles["bad"].url == "logs.example.com"
        assert config.default_profile == "bad"

        store.set_default("work")
        config = store.remove_profile("bad")
        assert "bad" not in config.profiles
        assert config.default_profile == "work"


# ── Bootstrap ───────────────────────────────────────────────────────


def test_bootstrap_creates_demo_profile():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        config = store.bootstrap()

        assert list(config.profiles) == [DEMO_PROFILE_NAME]
        assert config.default_profile == DEMO_PROFILE_NAME
        demo = config.profiles[DEMO_PROFILE_NAME]
        assert (demo.url, demo.username, demo.password) == (DEMO_URL, DEMO_USERNAME, DEMO_PASSWORD)
        assert store.path.exists()


def test_bootstrap_twice_is_idempotent():
    with tempfile.TemporaryDirectory() as tmpdir:
        first = ConfigStore(Path(tmpdir)).bootstrap()
        second = ConfigStore(Path(tmpdir)).bootstrap()
        assert first == second
        assert list(second.profiles) == [DEMO_PROFILE_NAME]
        assert second.default_profile == DEMO_PROFILE_NAME


def test_bootstrap_preserves_user_profiles_and_default():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        _write_raw(store, {
            "profiles": {
                "demo": {"url": "http://old-demo.local", "username": "u", "password": "p"},
                "work": {"url": "https://logs.example.com", "username": "ops", "password": "s3cret"},
            },
            "default_profile": "work",
        })

        config = store.bootstrap()

        assert config.profiles["work"] == _work_profile()
        demo = config.profiles["demo"]
        assert (demo.url, demo.username, demo.password) == (DEMO_URL, DEMO_USERNAME, DEMO_PASSWORD)
        assert config.default_profile == "work"

        reloaded, _ = store.load()
        assert reloaded == config


def test_bootstrap_reinserts_missing_demo_as_default():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        store.save(Configuration(profiles={"work": _work_profile()}, default_profile="work"))

        config = store.bootstrap()

        assert set(config.profiles) == {"work", DEMO_PROFILE_NAME}
        assert config.default_profile == DEMO_PROFILE_NAME
        assert config.profiles["work"] == _work_profile()


def test_ensure_bootstrapped_writes_once():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        with patch.object(store, "save", wraps=store.save) as save:
            store.ensure_bootstrapped()
            store.ensure_bootstrapped()
        assert save.call_count == 1


# ── Profile management ──────────────────────────────────────────────


def test_add_profile_keeps_existing_default():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        store.bootstrap()
        config = store.add_profile(_work_profile())
        assert config.default_profile == DEMO_PROFILE_NAME
        assert config.profiles["work"] == _work_profile()


def test_add_profile_becomes_default_when_none_set():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        config = store.add_profile(_work_profile())
        assert config.default_profile == "work"


def test_add_duplicate_profile_requires_replace():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        store.add_profile(_work_profile())
        with pytest.raises(ConfigError):
            store.add_profile(_work_profile())
        updated = Profile(name="work", url="https://new.example.com")
        config = store.add_profile(updated, replace=True)
        assert config.profiles["work"].url == "https://new.example.com"


def test_remove_default_profile_clears_default():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        store.add_profile(_work_profile())
        config = store.remove_profile("work")
        assert config.profiles == {}
        assert config.default_profile == ""


def test_remove_and_default_unknown_profile_raise():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        store.bootstrap()
        with pytest.raises(ProfileNotFound):
            store.remove_profile("missing")
        with pytest.raises(ProfileNotFound):
            store.set_default("missing")


def test_set_default_updates_bootstrapped_view():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ConfigStore(Path(tmpdir))
        store.ensure_bootstrapped()
        store.add_profile(_work_profile())
        store.set_default("work")
        assert store.ensure_bootstrapped().default_profile == "work"
