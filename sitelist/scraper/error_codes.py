from __future__ import annotations

"""Centralised error code taxonomy for scraper failures.

These codes are attached to page results, retry decisions and the run's
terminal error, and show up in structured logs so that a failed run can be
explained after the fact. Keep them stable.
"""


class ErrorCode:
    SESSION_EXPIRED = "session_expired"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient_error"
    RENEWAL_FAILED = "renewal_failed"
    SINK_UNAVAILABLE = "sink_unavailable"
    NETWORK = "network_error"
    HTTP_4XX = "http_4xx"
    HTTP_5XX = "http_5xx"
    INTERNAL = "internal_error"


# Codes that end the whole run rather than a single page.
RUN_FATAL_ERROR_CODES = frozenset(
    {
        ErrorCode.RATE_LIMITED,
        ErrorCode.RENEWAL_FAILED,
        ErrorCode.SINK_UNAVAILABLE,
    }
)


__all__ = ["ErrorCode", "RUN_FATAL_ERROR_CODES"]
