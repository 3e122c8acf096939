from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from . import config
from .error_codes import RUN_FATAL_ERROR_CODES, ErrorCode
from .logging_utils import _scraper_event

# Every page-local failure, including any non-200 reply, is retried.
RETRYABLE_ERROR_CODES = {
    ErrorCode.TRANSIENT,
    ErrorCode.NETWORK,
    ErrorCode.HTTP_4XX,
    ErrorCode.HTTP_5XX,
    ErrorCode.INTERNAL,
    ErrorCode.SESSION_EXPIRED,
}

NON_RETRYABLE_ERROR_CODES = set(RUN_FATAL_ERROR_CODES)


@dataclass(frozen=True)
class RetryDecision:
    requeue: bool
    delay_seconds: float = 0.0


GIVE_UP = RetryDecision(requeue=False)


def compute_backoff_seconds(attempt_index: int) -> float:
    """Return a capped linear backoff for the given attempt (1-based)."""

    return float(
        min(max(1, attempt_index) * config.RETRY_BACKOFF_SECONDS, config.RETRY_BACKOFF_CAP_SECONDS)
    )


def decide_retry(
    page: int,
    retry_count: int,
    max_retries: int = config.SCRAPER_MAX_RETRIES,
    *,
    error_code: Optional[str] = None,
) -> RetryDecision:
    """Decide whether a failed page should be fetched again.

    ``retry_count`` is the number of requeues the page has already had; the
    page is requeued while it is below ``max_retries``.
    """

    code = (error_code or ErrorCode.TRANSIENT).strip()

    if code in NON_RETRYABLE_ERROR_CODES or code not in RETRYABLE_ERROR_CODES:
        _scraper_event(
            "state",
            phase="retry_decision",
            kind="non_retryable",
            page=page,
            error_code=code,
            attempt=retry_count,
            max_retries=max_retries,
            will_retry=False,
        )
        return GIVE_UP

    if retry_count >= max_retries:
        _scraper_event(
            "state",
            phase="retry_decision",
            kind="capped",
            page=page,
            error_code=code,
            attempt=retry_count,
            max_retries=max_retries,
            will_retry=False,
        )
        return GIVE_UP

    # Session renewals already waited on a human; no extra backoff needed.
    delay = 0.0 if code == ErrorCode.SESSION_EXPIRED else compute_backoff_seconds(retry_count + 1)
    _scraper_event(
        "state",
        phase="retry_decision",
        kind="retryable",
        page=page,
        error_code=code,
        attempt=retry_count,
        max_retries=max_retries,
        will_retry=True,
        backoff_seconds=delay,
    )
    return RetryDecision(requeue=True, delay_seconds=delay)


__all__ = [
    "RetryDecision",
    "GIVE_UP",
    "decide_retry",
    "compute_backoff_seconds",
    "RETRYABLE_ERROR_CODES",
    "NON_RETRYABLE_ERROR_CODES",
]
