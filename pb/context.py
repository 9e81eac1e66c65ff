"""Process-wide state, built once at startup and passed explicitly.

Tests build their own AppContext around a temporary directory and a stub
sink instead of touching the user's real config.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from pb.config import ConfigStore
from pb.lifecycle import CommandLifecycle
from pb.profile import ProfileResolver
from pb.settings import Settings
from pb.telemetry.coordinator import TelemetryCoordinator
from pb.telemetry.session import SessionIdentity
from pb.telemetry.share import HTTPTelemetrySink, TelemetrySink


@dataclass
class AppContext:
    settings: Settings
    store: ConfigStore
    resolver: ProfileResolver
    session: SessionIdentity
    telemetry: TelemetryCoordinator
    lifecycle: CommandLifecycle

    @classmethod
    def build(
        cls,
        settings: Settings,
        sink: TelemetrySink | None = None,
        lifecycle: CommandLifecycle | None = None,
    ) -> AppContext:
        store = ConfigStore(settings.config_dir)
        session = SessionIdentity(settings.config_dir)
        telemetry = TelemetryCoordinator(
            sink=sink if sink is not None else HTTPTelemetrySink(settings.analytics_url),
            session_id=session.ensure,
            enabled=settings.analytics_enabled,
        )
        return cls(
            settings=settings,
            store=store,
            resolver=ProfileResolver(store),
            session=session,
            telemetry=telemetry,
            lifecycle=lifecycle if lifecycle is not None else CommandLifecycle(),
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppContext:
        return cls.build(Settings.from_env(environ))

    @classmethod
    def for_directory(cls, config_dir: Path, sink: TelemetrySink | None = None,
                      analytics_enabled: bool = True) -> AppContext:
        """Context rooted at ``config_dir``; used by tests and embedding callers."""
        return cls.build(
            Settings(config_dir=Path(config_dir), analytics_enabled=analytics_enabled),
            sink=sink,
        )
