"""Exception types raised while executing upstream join attempts."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for failures raised inside one upstream attempt."""


class AttemptTimeout(RelayError, TimeoutError):
    """Raised when an attempt's deadline is used up."""


class UnsupportedTarget(RelayError, ValueError):
    """Raised for upstream targets that are not http(s) URLs."""


class TooManyRedirects(RelayError):
    """Raised when an upstream keeps redirecting past the hop limit."""


__all__ = [
    "AttemptTimeout",
    "RelayError",
    "TooManyRedirects",
    "UnsupportedTarget",
]
