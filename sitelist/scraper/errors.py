from __future__ import annotations

from typing import Optional

from .error_codes import ErrorCode


class ScrapeError(Exception):
    def __init__(self, error_code: str, message: str, *, page: Optional[int] = None) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.page = page


class RateLimitedError(ScrapeError):
    """The source refused further pages for this IP address."""

    def __init__(self, message: str = "IP limit exceeded", *, page: Optional[int] = None) -> None:
        super().__init__(ErrorCode.RATE_LIMITED, message, page=page)


class RenewalFailed(ScrapeError):
    """Expired credentials could not be renewed."""

    def __init__(self, message: str, *, page: Optional[int] = None) -> None:
        super().__init__(ErrorCode.RENEWAL_FAILED, message, page=page)


class SinkUnavailable(ScrapeError):
    """The output file could not be created."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.SINK_UNAVAILABLE, message)


class OptionError(ValueError):
    """A filter value is not present in its option catalog."""

    def __init__(self, kind: str, value: str) -> None:
        super().__init__(f"unknown {kind} '{value}'")
        self.kind = kind
        self.value = value


__all__ = [
    "ScrapeError",
    "RateLimitedError",
    "RenewalFailed",
    "SinkUnavailable",
    "OptionError",
]
