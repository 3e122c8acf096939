from __future__ import annotations

import threading
from typing import Any, Callable, List, Optional

import requests

from . import config
from .error_codes import ErrorCode
from .jobs import Credentials, FetchOutcome
from .logging_utils import _scraper_event
from .parser import extract_domains, is_rate_limited, is_session_expired
from .utils import log_debug, short_text

SessionFactory = Callable[[], Any]


def _classify_http_status(status: int) -> str:
    if 400 <= status < 500:
        return ErrorCode.HTTP_4XX
    if status >= 500:
        return ErrorCode.HTTP_5XX
    return ErrorCode.INTERNAL


def classify_page(html: str) -> FetchOutcome:
    """Turn a 200 response body into a fetch outcome.

    Rows win over markers: a page that lists domains is a success even if it
    also mentions one of the block phrases.
    """

    domains = extract_domains(html)
    if domains:
        return FetchOutcome.success(domains)
    if is_session_expired(html):
        return FetchOutcome.session_expired()
    if is_rate_limited(html):
        return FetchOutcome.rate_limited(
            "IP limit exceeded - you have exceeded page visit limit"
        )
    log_debug(f"[FETCH] No rows in response: {short_text(html, 500)}")
    return FetchOutcome.empty()


def proxies_for(credentials: Credentials) -> Optional[dict[str, str]]:
    if not credentials.proxy_url:
        return None
    return {"http": credentials.proxy_url, "https": credentials.proxy_url}


class PageFetcher:
    """Fetch one page of the sites table per call.

    Each worker thread gets its own HTTP session. No retries happen here;
    failures are reported as outcomes and the scheduler decides what to do.
    """

    def __init__(
        self,
        url_template: str,
        *,
        timeout: float = config.REQUEST_TIMEOUT_SECONDS,
        verify_tls: bool = config.VERIFY_TLS,
        session_factory: SessionFactory = requests.Session,
    ) -> None:
        if config.PAGE_PLACEHOLDER not in url_template:
            raise ValueError(f"URL template has no {config.PAGE_PLACEHOLDER} placeholder: {url_template}")
        self.url_template = url_template
        self.timeout = timeout
        self.verify_tls = verify_tls
        self._session_factory = session_factory
        self._local = threading.local()
        self._sessions: List[Any] = []
        self._lock = threading.Lock()

    def page_url(self, page: int) -> str:
        return self.url_template.replace(config.PAGE_PLACEHOLDER, str(int(page)))

    def _session(self) -> Any:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            session.headers.update(config.COMMON_HEADERS)
            self._local.session = session
            with self._lock:
                self._sessions.append(session)
        return session

    def fetch(self, page: int, credentials: Credentials) -> FetchOutcome:
        url = self.page_url(page)
        try:
            response = self._session().post(
                url,
                data=config.PAGE_FORM_DATA,
                cookies=credentials.cookie_dict(),
                proxies=proxies_for(credentials),
                timeout=self.timeout,
                verify=self.verify_tls,
            )
        except requests.RequestException as exc:
            _scraper_event(
                "fetch",
                page=page,
                error_code=ErrorCode.NETWORK,
                error=short_text(str(exc)),
            )
            return FetchOutcome.transient(
                f"{ErrorCode.NETWORK}: {short_text(str(exc))}", error_code=ErrorCode.NETWORK
            )

        status = response.status_code
        if status == 429:
            return FetchOutcome.rate_limited("HTTP 429 Too Many Requests")
        if status != 200:
            error_code = _classify_http_status(status)
            _scraper_event("fetch", page=page, error_code=error_code, http_status=status)
            return FetchOutcome.transient(f"HTTP {status}", error_code=error_code)

        return classify_page(response.text)

    def close(self) -> None:
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            try:
                session.close()
            except Exception:  # noqa: BLE001
                continue


__all__ = ["PageFetcher", "classify_page", "proxies_for"]
