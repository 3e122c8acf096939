from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from . import config
from .errors import RenewalFailed
from .jobs import Credentials
from .logging_utils import _scraper_event
from .utils import log_line, short_text

RenewFn = Callable[[Credentials], Credentials]


class RenewalCoordinator:
    """Serialise credential renewals and bound how long each may take.

    ``renew_fn`` receives the expired credentials and returns fresh ones or
    raises. It may block on a human for a long time, so it runs on a daemon
    thread and is abandoned once ``timeout_seconds`` elapse. If ``renew_fn``
    has a ``cancel()`` method it is called on timeout.
    """

    def __init__(
        self,
        renew_fn: RenewFn,
        *,
        timeout_seconds: float = config.RENEWAL_TIMEOUT_SECONDS,
        max_renewals: Optional[int] = config.MAX_RENEWALS,
    ) -> None:
        self._renew_fn = renew_fn
        self.timeout_seconds = max(0.0, float(timeout_seconds))
        self.max_renewals = max_renewals
        self.renewals = 0
        self._lock = threading.Lock()

    def renew(self, current: Credentials, *, page: Optional[int] = None) -> Credentials:
        with self._lock:
            if self.max_renewals is not None and self.renewals >= self.max_renewals:
                _scraper_event(
                    "error",
                    phase="renewal",
                    kind="exhausted",
                    page=page,
                    renewals=self.renewals,
                    max_renewals=self.max_renewals,
                )
                raise RenewalFailed(
                    f"renewal attempts exhausted ({self.renewals}/{self.max_renewals})",
                    page=page,
                )
            self.renewals += 1
            attempt = self.renewals

            _scraper_event(
                "state",
                phase="renewal",
                kind="start",
                page=page,
                attempt=attempt,
                credentials_version=current.version,
                timeout_seconds=self.timeout_seconds,
            )
            fresh = self._run_with_timeout(current, page=page)

            if not isinstance(fresh, Credentials):
                raise RenewalFailed("renewal returned no credentials", page=page)
            if fresh.version <= current.version:
                fresh = replace(fresh, version=current.version + 1)

            _scraper_event(
                "state",
                phase="renewal",
                kind="renewed",
                page=page,
                attempt=attempt,
                credentials_version=fresh.version,
            )
            return fresh

    def _run_with_timeout(self, current: Credentials, *, page: Optional[int]) -> Any:
        outcome: Dict[str, Any] = {}
        finished = threading.Event()

        def _target() -> None:
            try:
                outcome["value"] = self._renew_fn(current)
            except BaseException as exc:  # noqa: BLE001
                outcome["error"] = exc
            finally:
                finished.set()

        threading.Thread(target=_target, name="credential-renewal", daemon=True).start()

        if not finished.wait(self.timeout_seconds):
            cancel = getattr(self._renew_fn, "cancel", None)
            if callable(cancel):
                try:
                    cancel()
                except Exception as exc:  # noqa: BLE001
                    log_line(f"[RENEWAL] Cancel hook failed: {exc}")
            _scraper_event("error", phase="renewal", kind="timeout", page=page)
            raise RenewalFailed(
                f"credential renewal timed out after {self.timeout_seconds:g}s", page=page
            )

        error = outcome.get("error")
        if isinstance(error, RenewalFailed):
            _scraper_event("error", phase="renewal", kind="failed", page=page, error=str(error))
            raise error
        if error is not None:
            _scraper_event(
                "error",
                phase="renewal",
                kind="failed",
                page=page,
                error=short_text(repr(error)),
            )
            raise RenewalFailed(f"credential renewal failed: {error}", page=page) from error
        return outcome.get("value")


__all__ = ["RenewalCoordinator", "RenewFn"]
