"""One-way usage ping. POST only, response bodies are never parsed.

The status is logged at debug level and never affects the command that
triggered it.
"""
from __future__ import annotations

import json
import logging
import platform
import sys
import urllib.error
import urllib.request
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Protocol

from pb.models import TelemetryTask

logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 5


class TelemetrySink(Protocol):
    def emit(self, task: TelemetryTask, session_id: str) -> bool:
        """Deliver one task. Returns True if it was accepted."""


def build_event(task: TelemetryTask, session_id: str) -> dict[str, Any]:
    """Flatten a task plus client identity into the JSON body of a ping."""
    from pb import __commit__, __version__

    event = asdict(task)
    event["args"] = list(task.args)
    event["flags"] = list(task.flags)
    event.update(
        session_id=session_id,
        cli_version=__version__,
        cli_commit=__commit__,
        os=sys.platform,
        arch=platform.machine(),
        py=f"{sys.version_info.major}.{sys.version_info.minor}",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
    return event


class HTTPTelemetrySink:
    """Posts each task as JSON to the analytics endpoint."""

    def __init__(self, endpoint: str, timeout: float = TIMEOUT_SECONDS) -> None:
        self.endpoint = endpoint
        self.timeout = timeout

    def emit(self, task: TelemetryTask, session_id: str) -> bool:
        try:
            body = json.dumps(build_event(task, session_id)).encode("utf-8")
        except (TypeError, ValueError) as e:
            logger.debug("Dropping telemetry for '%s': %s", task.command, e)
            return False
        return self._send(body, task.command)

    def _send(self, body: bytes, command: str) -> bool:
        req = urllib.request.Request(
            self.endpoint,
            data=body,
            headers={"Content-Type": "application/json", "User-Agent": "pb-cli"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                status = resp.status
        except urllib.error.HTTPError as e:
            logger.debug("Analytics rejected '%s': HTTP %d", command, e.code)
            return False
        except (urllib.error.URLError, OSError, ValueError) as e:
            logger.debug("Analytics unreachable for '%s': %s", command, e)
            return False
        logger.debug("Analytics accepted '%s': HTTP %d", command, status)
        return 200 <= status < 300
