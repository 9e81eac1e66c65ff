"""pb - command line interface for Parseable."""

__version__ = "0.5.0"

# Stamped by the release build; "unknown" for source checkouts.
__commit__ = "unknown"
