"""Exception hierarchy shared by the registry, resolver and preload layers."""
from __future__ import annotations

from typing import Optional


class GemhavenError(Exception):
    """Base class for all errors raised by gemhaven."""


class TransportError(GemhavenError):
    """An HTTP call failed: connection error, timeout or non-success status."""

    def __init__(self, message: str, *, url: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class MarshalError(GemhavenError):
    """A Marshal payload is malformed, truncated or uses an unsupported tag."""


class SpecsDecodeError(MarshalError):
    """An index snapshot could not be decoded into (name, version, platform) triples."""


class ResolverError(GemhavenError):
    """Dependency resolution failed."""


class DependencyFetchError(ResolverError):
    """The upstream dependency query failed; nothing was cached."""

    def __init__(self, message: str, names=()):
        super().__init__(message)
        self.names = tuple(sorted(names))


class ConfigError(GemhavenError):
    """Configuration file is unreadable or invalid."""
