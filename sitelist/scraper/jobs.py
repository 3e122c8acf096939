"""Value types passed between the scheduler, its workers and the fetcher."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .error_codes import ErrorCode


@dataclass(frozen=True)
class Credentials:
    """Session cookies plus the proxy identity they were issued to.

    A renewal produces a new value with a higher ``version``; existing values
    are never modified, so a job keeps using the snapshot it was dispatched
    with.
    """

    cookies: Tuple[Tuple[str, str], ...] = ()
    proxy_url: Optional[str] = None
    version: int = 1

    @classmethod
    def from_mapping(
        cls, cookies: Mapping[str, str], *, proxy_url: Optional[str] = None, version: int = 1
    ) -> "Credentials":
        return cls(
            cookies=tuple(sorted((str(k), str(v)) for k, v in cookies.items())),
            proxy_url=proxy_url,
            version=version,
        )

    def cookie_dict(self) -> Dict[str, str]:
        return dict(self.cookies)

    def renewed(self, cookies: Mapping[str, str]) -> "Credentials":
        merged = self.cookie_dict()
        merged.update(cookies)
        return Credentials.from_mapping(
            merged, proxy_url=self.proxy_url, version=self.version + 1
        )


@dataclass(frozen=True)
class PageJob:
    page: int
    retry_count: int = 0
    credentials: Credentials = field(default_factory=Credentials)
    backoff_seconds: float = 0.0

    def requeued(self, credentials: Credentials, backoff_seconds: float = 0.0) -> "PageJob":
        """Return the follow-up attempt for this page."""

        return replace(
            self,
            retry_count=self.retry_count + 1,
            credentials=credentials,
            backoff_seconds=max(0.0, backoff_seconds),
        )


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    SESSION_EXPIRED = "session_expired"
    RATE_LIMITED = "rate_limited"
    TRANSIENT_ERROR = "transient_error"


@dataclass(frozen=True)
class FetchOutcome:
    kind: OutcomeKind
    records: Tuple[str, ...] = ()
    detail: str = ""
    error_code: Optional[str] = None

    @classmethod
    def success(cls, records: Iterable[str]) -> "FetchOutcome":
        return cls(OutcomeKind.SUCCESS, tuple(records))

    @classmethod
    def empty(cls) -> "FetchOutcome":
        return cls(OutcomeKind.EMPTY)

    @classmethod
    def session_expired(cls, detail: str = "cookies expired - human verification required") -> "FetchOutcome":
        return cls(OutcomeKind.SESSION_EXPIRED, detail=detail, error_code=ErrorCode.SESSION_EXPIRED)

    @classmethod
    def rate_limited(cls, detail: str = "IP limit exceeded") -> "FetchOutcome":
        return cls(OutcomeKind.RATE_LIMITED, detail=detail, error_code=ErrorCode.RATE_LIMITED)

    @classmethod
    def transient(cls, detail: str, error_code: str = ErrorCode.TRANSIENT) -> "FetchOutcome":
        """A page-local failure; ``error_code`` drives the retry decision."""

        return cls(OutcomeKind.TRANSIENT_ERROR, detail=detail, error_code=error_code)


@dataclass(frozen=True)
class PageResult:
    job: PageJob
    outcome: FetchOutcome
    worker_id: int = 0

    @property
    def page(self) -> int:
        return self.job.page


@dataclass
class RunState:
    pages_dispatched: int = 0
    pages_completed: int = 0
    total_records: int = 0
    retry_counts: Dict[int, int] = field(default_factory=dict)
    pages_given_up: List[int] = field(default_factory=list)
    renewals: int = 0
    # Most jobs in flight (running plus queued) at any one time.
    peak_in_flight: int = 0

    def as_dict(self) -> Dict[str, object]:
        return {
            "pages_dispatched": self.pages_dispatched,
            "pages_completed": self.pages_completed,
            "total_records": self.total_records,
            "pages_retried": len(self.retry_counts),
            "pages_given_up": list(self.pages_given_up),
            "renewals": self.renewals,
            "peak_in_flight": self.peak_in_flight,
        }


__all__ = [
    "Credentials",
    "PageJob",
    "OutcomeKind",
    "FetchOutcome",
    "PageResult",
    "RunState",
]
