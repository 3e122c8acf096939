from __future__ import annotations

import threading
from typing import Any, Dict, List

import pytest
import requests

from sitelist.scraper import config
from sitelist.scraper.error_codes import ErrorCode
from sitelist.scraper.fetcher import PageFetcher, classify_page, proxies_for
from sitelist.scraper.jobs import Credentials, OutcomeKind

ROWS = "<td class='row_name'><a href='/x'>example.com</a></td><td class='row_name'><a>example.org</a></td>"


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "") -> None:
        self.status_code = status_code
        self.text = text


class FakeSession:
    def __init__(self, response: Any = None) -> None:
        self.headers: Dict[str, str] = {}
        self.response = response if response is not None else FakeResponse(text=ROWS)
        self.posts: List[Dict[str, Any]] = []
        self.closed = False

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        self.posts.append({"url": url, **kwargs})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def close(self) -> None:
        self.closed = True


def _fetcher(session: FakeSession) -> PageFetcher:
    return PageFetcher(config.AJAX_TABLE_URL, session_factory=lambda: session)


def test_classify_page_prefers_rows_over_markers():
    html = ROWS + "Human Verification"
    outcome = classify_page(html)
    assert outcome.kind is OutcomeKind.SUCCESS
    assert outcome.records == ("example.com", "example.org")


@pytest.mark.parametrize(
    "html, kind",
    [
        ("<h1>Human Verification</h1>", OutcomeKind.SESSION_EXPIRED),
        ("You have exceeded page visit limit", OutcomeKind.RATE_LIMITED),
        ("<table></table>", OutcomeKind.EMPTY),
    ],
)
def test_classify_page_markers(html: str, kind: OutcomeKind):
    assert classify_page(html).kind is kind


def test_fetch_posts_form_with_credentials():
    session = FakeSession()
    fetcher = _fetcher(session)
    credentials = Credentials.from_mapping(
        {"PHPSESSID": "abc"}, proxy_url="http://proxy.example.com:8080"
    )

    outcome = fetcher.fetch(3, credentials)

    assert outcome.kind is OutcomeKind.SUCCESS
    call = session.posts[0]
    assert call["url"] == "https://myip.ms/ajax_table/sites/3"
    assert call["data"] == {"getpage": "yes", "lang": "en"}
    assert call["cookies"] == {"PHPSESSID": "abc"}
    assert call["proxies"] == {
        "http": "http://proxy.example.com:8080",
        "https": "http://proxy.example.com:8080",
    }
    assert call["timeout"] == config.REQUEST_TIMEOUT_SECONDS
    assert session.headers["X-Requested-With"] == "XMLHttpRequest"


@pytest.mark.parametrize(
    "status, kind, error_code",
    [
        (429, OutcomeKind.RATE_LIMITED, ErrorCode.RATE_LIMITED),
        (500, OutcomeKind.TRANSIENT_ERROR, ErrorCode.HTTP_5XX),
        (503, OutcomeKind.TRANSIENT_ERROR, ErrorCode.HTTP_5XX),
        (403, OutcomeKind.TRANSIENT_ERROR, ErrorCode.HTTP_4XX),
        (404, OutcomeKind.TRANSIENT_ERROR, ErrorCode.HTTP_4XX),
    ],
)
def test_fetch_http_status_outcomes(status: int, kind: OutcomeKind, error_code: str):
    fetcher = _fetcher(FakeSession(FakeResponse(status_code=status)))
    outcome = fetcher.fetch(1, Credentials())
    assert outcome.kind is kind
    assert outcome.error_code == error_code
    if kind is OutcomeKind.TRANSIENT_ERROR:
        assert outcome.detail == f"HTTP {status}"


def test_fetch_network_error_is_transient():
    fetcher = _fetcher(FakeSession(requests.ConnectionError("connection refused")))
    outcome = fetcher.fetch(1, Credentials())
    assert outcome.kind is OutcomeKind.TRANSIENT_ERROR
    assert outcome.detail.startswith("network_error:")
    assert outcome.error_code == ErrorCode.NETWORK


def test_each_thread_gets_its_own_session():
    created: List[FakeSession] = []

    def factory() -> FakeSession:
        session = FakeSession()
        created.append(session)
        return session

    fetcher = PageFetcher(config.AJAX_TABLE_URL, session_factory=factory)
    fetcher.fetch(1, Credentials())
    fetcher.fetch(2, Credentials())
    thread = threading.Thread(target=fetcher.fetch, args=(3, Credentials()))
    thread.start()
    thread.join(timeout=5)

    assert len(created) == 2
    fetcher.close()
    assert all(session.closed for session in created)


def test_template_without_placeholder_is_rejected():
    with pytest.raises(ValueError):
        PageFetcher("https://myip.ms/ajax_table/sites/1")


def test_proxies_for_without_proxy():
    assert proxies_for(Credentials()) is None
