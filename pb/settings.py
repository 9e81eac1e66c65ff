"""Process settings read from the environment.

Read once when the AppContext is built so every component sees the same
values for the lifetime of the process.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import click

APP_NAME = "pb"

DEFAULT_ANALYTICS_URL = "https://analytics.parseable.io:80/pb"


@dataclass(frozen=True)
class Settings:
    config_dir: Path
    analytics_enabled: bool = True
    analytics_url: str = DEFAULT_ANALYTICS_URL

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        config_dir = env.get("PB_CONFIG_DIR") or click.get_app_dir(APP_NAME)
        return cls(
            config_dir=Path(config_dir).expanduser(),
            # Only the exact value "disable" opts out.
            analytics_enabled=env.get("PB_ANALYTICS", "") != "disable",
            analytics_url=env.get("PB_ANALYTICS_URL") or DEFAULT_ANALYTICS_URL,
        )
