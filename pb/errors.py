"""Exception hierarchy for the pb CLI.

Every error a user can see derives from PbError. The CLI turns these into a
single ``Error: ...`` line and a non-zero exit code.
"""
from __future__ import annotations


class PbError(Exception):
    """Base class for user-facing pb failures."""


class ConfigError(PbError):
    """Raised when the config file cannot be read, parsed or written."""


class SessionError(PbError):
    """Raised when the session identity file cannot be read or created."""


class ClientError(PbError):
    """Raised when a request to a Parseable server fails."""


class ResolutionError(PbError):
    """Raised when no target profile can be chosen for a command."""


class ProfileNotFound(ResolutionError):
    def __init__(self, name: str) -> None:
        super().__init__(f"profile '{name}' does not exist")
        self.name = name


class NoDefaultProfile(ResolutionError):
    def __init__(self) -> None:
        super().__init__(
            "no default profile is set; pass --profile or run 'pb profile default <name>'"
        )


class DefaultProfileMissing(ResolutionError, ConfigError):
    """The default profile names an entry that is not in the config."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"default profile '{name}' is not defined; "
            "run 'pb profile default <name>' to pick another one"
        )
        self.name = name
