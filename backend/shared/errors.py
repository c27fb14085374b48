"""
Error taxonomy for GamePulse.

Platform and enrichment failures are absorbed at component boundaries and
turned into empty results. Only CacheUnavailable is meant to reach callers.
A platform reporting "no such game" is not an error: clients return None
or an empty list.
"""
from __future__ import annotations

from typing import Optional


class GamePulseError(Exception):
    """Base class for all GamePulse errors."""


class AuthenticationFailure(GamePulseError):
    """Credential exchange was rejected or returned a malformed body."""

    def __init__(self, platform: str, reason: str) -> None:
        self.platform = platform
        self.reason = reason
        super().__init__(f"Authentication with '{platform}' failed: {reason}")


class TimeoutFailure(GamePulseError):
    """A gateway call exceeded its deadline and was cancelled."""

    def __init__(self, url: str, timeout_s: float) -> None:
        self.url = url
        self.timeout_s = timeout_s
        super().__init__(f"Request to {url} timed out after {timeout_s:.1f}s")


class GatewayError(GamePulseError):
    """Transport-level failure other than a timeout (DNS, connection reset, ...)."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Request to {url} failed: {reason}")


class PlatformAPIError(GamePulseError):
    """A platform data endpoint answered with a non-2xx status or an error envelope."""

    def __init__(self, platform: str, status: Optional[int], reason: str = "") -> None:
        self.platform = platform
        self.status = status
        self.reason = reason
        super().__init__(f"{platform} API error (status={status}): {reason}")


class EnrichmentUnavailable(GamePulseError):
    """The external game catalog could not supply alternate names."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Enrichment for '{name}' unavailable: {reason}")


class CacheUnavailable(GamePulseError):
    """The durable cache could not be reached. Surfaces to callers."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Durable cache unavailable during {operation}: {reason}")
