"""Exception types raised by quotagate.

Exceeding a quota is not an error: the limiter returns ``False`` for that.
"""

from __future__ import annotations


class QuotagateError(Exception):
    """Base class for all quotagate failures."""


class ConfigurationError(QuotagateError, ValueError):
    """Raised when a rule or policy is invalid. Raised at construction time."""


class IdentityResolutionError(QuotagateError):
    """Raised when a request does not carry the data needed to identify its caller."""

    def __init__(self, message: str, parameter: str | None = None) -> None:
        self.parameter = parameter
        super().__init__(message)


class StoreError(QuotagateError):
    """Raised when the counter store fails, times out or is unreachable."""

    def __init__(self, message: str, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)
