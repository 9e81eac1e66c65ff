"""Anonymous per-installation identifier used to correlate usage pings."""
from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path

from pb.config import write_json_atomic
from pb.errors import SessionError

logger = logging.getLogger(__name__)

SESSION_FILENAME = "session.json"


class SessionIdentity:
    """Creates the identifier once and reads it back on every later run."""

    def __init__(self, config_dir: Path) -> None:
        self.path = Path(config_dir) / SESSION_FILENAME
        self._value: str | None = None

    def ensure(self) -> str:
        """Return the stored identifier, creating it only if the file is absent."""
        if self._value is not None:
            return self._value

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            data = None
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SessionError(f"failed to read session file {self.path}: {e}") from e

        if data is None:
            value = uuid.uuid4().hex
            try:
                write_json_atomic(self.path, {"session_id": value})
            except OSError as e:
                raise SessionError(f"failed to create session file {self.path}: {e}") from e
            logger.debug("Created session id in %s", self.path)
        else:
            value = data.get("session_id") if isinstance(data, dict) else None
            if not isinstance(value, str) or not value:
                raise SessionError(f"session file {self.path} has no session_id")

        self._value = value
        return value
