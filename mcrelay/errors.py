"""Exception hierarchy for mcrelay."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all mcrelay errors."""


class ConfigError(RelayError):
    """Required configuration is missing or malformed."""


class QueueFullError(RelayError):
    """Outbound queue is at capacity and the caller asked not to wait."""


class QueueClosedError(RelayError):
    """Outbound queue was closed; no further lines are accepted or produced."""


class RelayStoppedError(RelayError):
    """The relay background task is no longer running."""
