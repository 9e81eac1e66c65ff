from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from pb.errors import ConfigError

_PROFILE_KEYS = ("url", "username", "password")
_CONFIG_KEYS = ("profiles", "default_profile")


@dataclass
class Profile:
    """One named Parseable target.

    ``extra`` holds keys found on disk that this version does not know about.
    They are written back unchanged so newer clients sharing the file keep
    their data.
    """
    name: str
    url: str
    username: str = ""
    password: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """Raise ConfigError unless the name is set and ``url`` is an http(s) URL with a host."""
        if not self.name or not self.name.strip():
            raise ConfigError("profile name must not be empty")
        parsed = urlparse(self.url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigError(
                f"profile '{self.name}' has an invalid url {self.url!r}; "
                "expected something like https://parseable.example.com"
            )

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data["url"] = self.url
        data["username"] = self.username
        data["password"] = self.password
        return data

    @classmethod
    def from_dict(cls, name: str, data: Any) -> Profile:
        if not isinstance(data, dict):
            raise ConfigError(f"profile '{name}' must be a table, got {type(data).__name__}")
        values = {}
        for key in _PROFILE_KEYS:
            value = data.get(key, "")
            if not isinstance(value, str):
                raise ConfigError(f"profile '{name}': '{key}' must be a string")
            values[key] = value
        extra = {k: v for k, v in data.items() if k not in _PROFILE_KEYS}
        return cls(name=name, extra=extra, **values)


@dataclass
class Configuration:
    """Everything stored in config.json."""
    profiles: dict[str, Profile] = field(default_factory=dict)
    default_profile: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def dangling_default(self) -> bool:
        return bool(self.default_profile) and self.default_profile not in self.profiles

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data["profiles"] = {name: p.to_dict() for name, p in self.profiles.items()}
        data["default_profile"] = self.default_profile
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Configuration:
        if not isinstance(data, dict):
            raise ConfigError("config must be a JSON object")
        raw_profiles = data.get("profiles", {})
        if raw_profiles is None:
            raw_profiles = {}
        if not isinstance(raw_profiles, dict):
            raise ConfigError("'profiles' must be an object keyed by profile name")
        default = data.get("default_profile", "") or ""
        if not isinstance(default, str):
            raise ConfigError("'default_profile' must be a string")
        profiles = {
            str(name): Profile.from_dict(str(name), body)
            for name, body in raw_profiles.items()
        }
        extra = {k: v for k, v in data.items() if k not in _CONFIG_KEYS}
        return cls(profiles=profiles, default_profile=default, extra=extra)


@dataclass(frozen=True)
class TelemetryTask:
    """Immutable snapshot of one command run, handed to the telemetry pool."""
    command: str
    category: str
    args: tuple[str, ...] = ()
    flags: tuple[str, ...] = ()
