"""Bounded worker pool that turns a page range into fetch jobs.

One control thread (the caller of :meth:`JobScheduler.run`) owns every piece
of mutable run state: the page cursor, the in-flight table, retry counters,
the current credentials and the halt flags. Worker threads only see the
immutable :class:`PageJob` they take from the job queue and hand back a
:class:`PageResult` on the result queue.
"""
from __future__ import annotations

import queue
import threading
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

from . import config
from .error_codes import ErrorCode
from .errors import RateLimitedError, RenewalFailed, ScrapeError, SinkUnavailable
from .jobs import Credentials, FetchOutcome, OutcomeKind, PageJob, PageResult, RunState
from .logging_utils import _scraper_event
from .retry_policy import decide_retry
from .utils import log_line, short_text

FetchFn = Callable[[int, Credentials], FetchOutcome]
# Called as renew(current, page=<page whose fetch hit the expiry>).
RenewCallable = Callable[..., Credentials]
# (page, records on the page, running total)
ProgressFn = Callable[[int, int, int], None]

# Put on the job queue once per worker to make it exit.
_CLOSE = None


@dataclass
class RunResult:
    total_records: int
    error: Optional[ScrapeError]
    state: RunState

    @property
    def ok(self) -> bool:
        return self.error is None


def rate_limit_advice(workers: int) -> List[str]:
    lines = [
        "IP address has been rate limited. Please:",
        "1. Use a proxy or VPN to change your IP address",
        "2. If using mobile internet, turn airplane mode on/off to get a new IP",
        "3. Wait some time before trying again",
        "4. Try reducing the scraping speed or page count",
    ]
    if workers > 1:
        lines.append("5. Reduce the number of workers with --workers flag")
    return lines


class JobScheduler:
    def __init__(
        self,
        fetch: FetchFn,
        renew: Optional[RenewCallable] = None,
        *,
        workers: int = config.DEFAULT_WORKERS,
        delay_seconds: float = 0.0,
        max_retries: int = config.SCRAPER_MAX_RETRIES,
        sink: Optional[Any] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> None:
        if workers < 1:
            raise ValueError(f"workers must be at least 1 (current: {workers})")
        if delay_seconds < 0:
            raise ValueError(f"delay must be non-negative (current: {delay_seconds})")
        self._fetch = fetch
        self._renew = renew
        self.workers = workers
        self.delay_seconds = float(delay_seconds)
        self.max_retries = max(0, max_retries)
        self.capacity = workers * 2
        self._sink = sink
        self._on_progress = on_progress
        self._reset(Credentials(), start_page=1, max_pages=0)

    def _reset(self, credentials: Credentials, *, start_page: int, max_pages: int) -> None:
        self.state = RunState()
        self._credentials = credentials
        self._jobs: "queue.Queue[Optional[PageJob]]" = queue.Queue(maxsize=self.capacity + self.workers)
        self._results: "queue.Queue[PageResult]" = queue.Queue(maxsize=self.capacity)
        self._deferred: Deque[PageResult] = deque()
        self._in_flight: Dict[int, PageJob] = {}
        self._cursor = start_page
        self._end: Optional[int] = start_page + max_pages if max_pages > 0 else None
        self._halted = False
        self._renewing = False
        self._end_page: Optional[int] = None
        self._fatal: Optional[ScrapeError] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def in_flight_pages(self) -> List[int]:
        return sorted(self._in_flight)

    def run(
        self,
        start_page: int,
        max_pages: int = 0,
        credentials: Optional[Credentials] = None,
    ) -> RunResult:
        """Fetch pages from ``start_page`` until the range or the results end.

        ``max_pages == 0`` means no upper bound: the run stops at the first
        empty page. Run-fatal conditions are returned in ``RunResult.error``
        once every in-flight job has drained.
        """

        if start_page < 1:
            raise ValueError(f"start page must be a positive integer (current: {start_page})")
        if max_pages < 0:
            raise ValueError(f"max pages must be non-negative (current: {max_pages})")

        self._reset(credentials or Credentials(), start_page=start_page, max_pages=max_pages)
        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="page-worker")
        workers = [executor.submit(self._worker, worker_id) for worker_id in range(1, self.workers + 1)]

        try:
            for _ in range(self.workers):
                if not self._dispatch_next_page():
                    break

            while self._in_flight:
                result = self._next_result()
                self._process(result)
                self._dispatch_next_page()
                if self._run_complete():
                    break
        finally:
            self._close(executor, workers)

        _scraper_event(
            "state",
            phase="scheduler",
            kind="finished",
            error_code=self._fatal.error_code if self._fatal else None,
            **self.state.as_dict(),
        )
        return RunResult(
            total_records=self.state.total_records,
            error=self._fatal,
            state=self.state,
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _range_exhausted(self) -> bool:
        return self._end is not None and self._cursor >= self._end

    def _run_complete(self) -> bool:
        if self._in_flight:
            return False
        return self._halted or self._range_exhausted()

    def _dispatch(self, job: PageJob) -> None:
        if job.page in self._in_flight:
            raise RuntimeError(f"page {job.page} is already in flight")
        self._in_flight[job.page] = job
        self.state.pages_dispatched += 1
        self.state.peak_in_flight = max(self.state.peak_in_flight, len(self._in_flight))
        self._jobs.put(job)

    def _dispatch_next_page(self) -> bool:
        if self._halted or self._renewing or self._range_exhausted():
            return False
        if len(self._in_flight) >= self.capacity:
            return False
        self._dispatch(PageJob(page=self._cursor, credentials=self._credentials))
        self._cursor += 1
        return True

    def _next_result(self) -> PageResult:
        if self._deferred:
            return self._deferred.popleft()
        return self._results.get()

    def _close(self, executor: ThreadPoolExecutor, workers: List[Future]) -> None:
        # Jobs still queued here mean the loop was interrupted; drop them.
        while True:
            try:
                self._jobs.get_nowait()
            except queue.Empty:
                break
        for _ in workers:
            self._jobs.put(_CLOSE)
        pending = set(workers)
        while pending:
            _, pending = wait(pending, timeout=config.RESULT_POLL_SECONDS)
            # A worker blocked on a full result queue must still exit.
            while True:
                try:
                    self._results.get_nowait()
                except queue.Empty:
                    break
        executor.shutdown(wait=True)
        for future in workers:
            exc = future.exception()
            if exc is not None:
                log_line(f"[scheduler] worker stopped with error: {short_text(repr(exc))}")

    # ------------------------------------------------------------------
    # Result handling (control thread only)
    # ------------------------------------------------------------------

    def _process(self, result: PageResult) -> None:
        job = self._in_flight.pop(result.page)
        self.state.pages_completed += 1
        outcome = result.outcome

        if outcome.kind is OutcomeKind.SUCCESS:
            self._record_success(job, outcome)
        elif outcome.kind is OutcomeKind.EMPTY:
            log_line(f"Page {job.page}: No domains found, assuming end of results")
            self._halt(end_page=job.page)
        elif outcome.kind is OutcomeKind.RATE_LIMITED:
            log_line(f"Page {job.page}: Error: {outcome.detail}")
            if self._fatal is None:
                for line in rate_limit_advice(self.workers):
                    log_line(line)
            self._set_fatal(RateLimitedError(outcome.detail or "IP limit exceeded", page=job.page))
        elif outcome.kind is OutcomeKind.SESSION_EXPIRED:
            self._handle_session_expired(job)
        else:
            log_line(f"Page {job.page}: Error: {outcome.detail}")
            self._retry(job, error_code=outcome.error_code or ErrorCode.TRANSIENT)

    def _record_success(self, job: PageJob, outcome: FetchOutcome) -> None:
        records = list(outcome.records)
        if self._sink is not None:
            try:
                self._sink.write(records)
            except OSError as exc:
                self._set_fatal(SinkUnavailable(f"error writing output file: {exc}"))
                return
        self.state.total_records += len(records)
        log_line(
            f"Page {job.page}: Found {len(records)} domains (Total: {self.state.total_records})"
        )
        if self._on_progress is not None:
            self._on_progress(job.page, len(records), self.state.total_records)

    def _halt(self, *, end_page: Optional[int] = None) -> None:
        if end_page is not None:
            self._end_page = end_page if self._end_page is None else min(self._end_page, end_page)
        if not self._halted:
            _scraper_event(
                "state",
                phase="scheduler",
                kind="halt",
                end_page=self._end_page,
                in_flight=len(self._in_flight),
            )
        self._halted = True

    def _set_fatal(self, error: ScrapeError) -> None:
        if self._fatal is None:
            self._fatal = error
            _scraper_event(
                "error",
                phase="scheduler",
                kind="fatal",
                error_code=error.error_code,
                page=error.page,
                error=short_text(str(error)),
                in_flight=len(self._in_flight),
            )
        self._halt()

    def _give_up(self, job: PageJob, reason: str) -> None:
        self.state.pages_given_up.append(job.page)
        log_line(f"Giving up on page {job.page} after {job.retry_count} retries ({reason})")

    def _retry(self, job: PageJob, *, error_code: str) -> None:
        if self._fatal is not None:
            self._give_up(job, "run is stopping")
            return
        if self._end_page is not None and job.page > self._end_page:
            self._give_up(job, "past end of results")
            return

        decision = decide_retry(job.page, job.retry_count, self.max_retries, error_code=error_code)
        if not decision.requeue:
            self._give_up(job, error_code)
            return

        follow_up = job.requeued(self._credentials, decision.delay_seconds)
        self.state.retry_counts[job.page] = follow_up.retry_count
        log_line(
            f"Retrying page {job.page} (attempt {follow_up.retry_count}/{self.max_retries})"
        )
        self._dispatch(follow_up)

    def _handle_session_expired(self, job: PageJob) -> None:
        if self._fatal is not None:
            self._give_up(job, "run is stopping")
            return
        if job.credentials.version < self._credentials.version:
            # Fetched with credentials that have since been replaced.
            self._retry(job, error_code=ErrorCode.SESSION_EXPIRED)
            return

        log_line(f"Page {job.page}: Cookies have expired. Attempting to solve captcha...")
        try:
            fresh = self._await_renewal(job)
        except RenewalFailed as exc:
            log_line(f"Failed to solve captcha: {exc}")
            log_line("Please restart the program and try again.")
            self._set_fatal(exc)
            return

        self._credentials = fresh
        self.state.renewals += 1
        log_line("Retrying with fresh cookies...")
        self._retry(job, error_code=ErrorCode.SESSION_EXPIRED)

    def _await_renewal(self, job: PageJob) -> Credentials:
        """Run the renewal on a helper thread while buffering worker results."""

        if self._renew is None:
            raise RenewalFailed("no credential renewal configured", page=job.page)

        renew = self._renew
        current = self._credentials
        page = job.page
        outcome: Dict[str, Any] = {}
        finished = threading.Event()

        def _target() -> None:
            try:
                outcome["value"] = renew(current, page=page)
            except BaseException as exc:  # noqa: BLE001
                outcome["error"] = exc
            finally:
                finished.set()

        self._renewing = True
        try:
            threading.Thread(target=_target, name="renewal-wait", daemon=True).start()
            while not finished.is_set():
                try:
                    result = self._results.get(timeout=config.RESULT_POLL_SECONDS)
                except queue.Empty:
                    continue
                self._deferred.append(result)
        finally:
            self._renewing = False

        error = outcome.get("error")
        if isinstance(error, RenewalFailed):
            raise error
        if error is not None:
            raise RenewalFailed(f"credential renewal failed: {error}", page=job.page) from error
        fresh = outcome.get("value")
        if not isinstance(fresh, Credentials):
            raise RenewalFailed("renewal returned no credentials", page=job.page)
        return fresh

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def _worker(self, worker_id: int) -> None:
        while True:
            job = self._jobs.get()
            if job is _CLOSE:
                return

            pause = self.delay_seconds + job.backoff_seconds
            if pause > 0:
                time.sleep(pause)

            if self.workers > 1:
                log_line(f"Worker {worker_id} fetching page {job.page}...")
            else:
                log_line(f"Fetching page {job.page}...")

            try:
                outcome = self._fetch(job.page, job.credentials)
            except Exception as exc:  # noqa: BLE001
                outcome = FetchOutcome.transient(
                    f"{ErrorCode.INTERNAL}: {short_text(repr(exc))}", error_code=ErrorCode.INTERNAL
                )
            if not isinstance(outcome, FetchOutcome):
                outcome = FetchOutcome.transient(
                    f"{ErrorCode.INTERNAL}: fetch returned {type(outcome).__name__}",
                    error_code=ErrorCode.INTERNAL,
                )

            self._results.put(PageResult(job=job, outcome=outcome, worker_id=worker_id))


__all__ = ["JobScheduler", "RunResult", "rate_limit_advice", "FetchFn", "RenewCallable", "ProgressFn"]
