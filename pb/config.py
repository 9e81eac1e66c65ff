"""Persisted profile configuration: load, atomic save, bootstrap and edits.

The file lives at ``<config dir>/config.json``:

    {
      "profiles": {
        "demo": {"url": "https://demo.parseable.com", "username": "admin", "password": "admin"}
      },
      "default_profile": "demo"
    }

Keys this version does not recognise are carried through every
read-modify-write cycle.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pb.errors import ConfigError, DefaultProfileMissing, ProfileNotFound
from pb.models import Configuration, Profile

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"

DEMO_PROFILE_NAME = "demo"
DEMO_URL = "https://demo.parseable.com"
DEMO_USERNAME = "admin"
DEMO_PASSWORD = "admin"


def demo_profile() -> Profile:
    """The well-known public demo target, refreshed on every bootstrap."""
    return Profile(
        name=DEMO_PROFILE_NAME,
        url=DEMO_URL,
        username=DEMO_USERNAME,
        password=DEMO_PASSWORD,
    )


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Write ``data`` to ``path`` so readers see either the old or new file.

    Raises OSError/TypeError/ValueError; the caller decides how to report it.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        # Credentials live in here.
        os.chmod(temp_path, 0o600)
        temp_path.replace(path)
    except BaseException:
        if temp_path.exists():
            temp_path.unlink()
        raise


class ConfigStore:
    """Reads and writes the set of named profiles."""

    def __init__(self, config_dir: Path) -> None:
        self.path = Path(config_dir) / CONFIG_FILENAME
        self._bootstrapped: Configuration | None = None

    def load(self, validate: bool = True) -> tuple[Configuration, bool]:
        """Return ``(config, found)``.

        A missing file is the normal first-run state and yields an empty
        configuration with ``found=False``. Anything else that stops the file
        from being read raises ConfigError. With ``validate`` set, a default
        profile that names a missing entry raises DefaultProfileMissing.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            return Configuration(), False
        except json.JSONDecodeError as e:
            raise ConfigError(f"config file {self.path} is not valid JSON: {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"failed to read config file {self.path}: {e}") from e

        config = Configuration.from_dict(raw)
        if validate and config.dangling_default():
            raise DefaultProfileMissing(config.default_profile)
        return config, True

    def save(self, config: Configuration) -> None:
        """Persist ``config``; on failure the previous file is left untouched.

        Profiles are written as given. Callers that introduce or change a
        profile validate it first, so an entry already on disk with a bad URL
        never blocks an unrelated write such as removing it.
        """
        try:
            write_json_atomic(self.path, config.to_dict())
        except (OSError, TypeError, ValueError) as e:
            raise ConfigError(f"failed to write config file {self.path}: {e}") from e
        logger.debug("Saved %d profile(s) to %s", len(config.profiles), self.path)
        if self._bootstrapped is not None:
            self._bootstrapped = config

    def bootstrap(self) -> Configuration:
        """Create the config on first run, or refresh the demo profile.

        Only the demo entry is touched. Every other profile and the current
        default survive as they are, unless the demo entry had to be
        re-created, in which case it also becomes the default.
        """
        config, found = self.load(validate=False)
        if not found:
            logger.debug("No config at %s, creating one with the demo profile", self.path)
            config = Configuration(
                profiles={DEMO_PROFILE_NAME: demo_profile()},
                default_profile=DEMO_PROFILE_NAME,
            )
        else:
            existing = config.profiles.get(DEMO_PROFILE_NAME)
            if existing is not None:
                existing.url = DEMO_URL
                existing.username = DEMO_USERNAME
                existing.password = DEMO_PASSWORD
            else:
                config.profiles[DEMO_PROFILE_NAME] = demo_profile()
                config.default_profile = DEMO_PROFILE_NAME
        config.profiles[DEMO_PROFILE_NAME].validate()
        self.save(config)
        self._bootstrapped = config
        return config

    def ensure_bootstrapped(self) -> Configuration:
        """Run bootstrap once per store and return the cached result."""
        if self._bootstrapped is None:
            self.bootstrap()
        return self._bootstrapped

    # ── Profile management ────────────────────────────────────────────

    def add_profile(self, profile: Profile, replace: bool = False) -> Configuration:
        profile.validate()
        config, _ = self.load(validate=False)
        if profile.name in config.profiles and not replace:
            raise ConfigError(
                f"profile '{profile.name}' already exists; remove it first or use --replace"
            )
        config.profiles[profile.name] = profile
        if not config.default_profile or config.dangling_default():
            config.default_profile = profile.name
        self.save(config)
        return config

    def remove_profile(self, name: str) -> Configuration:
        config, _ = self.load(validate=False)
        if name not in config.profiles:
            raise ProfileNotFound(name)
        del config.profiles[name]
        if config.default_profile == name:
            config.default_profile = ""
        self.save(config)
        return config

    def set_default(self, name: str) -> Configuration:
        config, _ = self.load(validate=False)
        if name not in config.profiles:
            raise ProfileNotFound(name)
        config.default_profile = name
        self.save(config)
        return config
