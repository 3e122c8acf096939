"""Human-solved captcha flow that renews an expired session.

The site asks for a text captcha once a session has made too many requests.
Solving it re-validates the session cookies server-side, after which page
fetches work again. The human part is delegated to a solver object so the
same loop can drive a terminal prompt or a small local web page.
"""
from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

import requests

from . import config
from .errors import RenewalFailed
from .fetcher import proxies_for
from .jobs import Credentials
from .logging_utils import _scraper_event
from .parser import extract_captcha_token, extract_captcha_url, has_captcha_form
from .utils import log_line

INITIAL_FORM: dict[str, str] = {
    "x": "150",
    "y": "58",
    "g_recaptcha_loaded": "no",
    "captcha_token": "",
    "g_recaptcha_response": "",
}


@dataclass(frozen=True)
class CaptchaChallenge:
    token: str
    image_url: str
    image: bytes


class CaptchaClient:
    """HTTP side of the captcha flow, bound to one session's cookies."""

    def __init__(
        self,
        credentials: Credentials,
        *,
        timeout: float = config.CAPTCHA_REQUEST_TIMEOUT_SECONDS,
        verify_tls: bool = config.VERIFY_TLS,
        session: Optional[Any] = None,
    ) -> None:
        self.credentials = credentials
        self.timeout = timeout
        self.verify_tls = verify_tls
        self.session = session if session is not None else requests.Session()
        self.session.headers.update(
            {
                "User-Agent": config.COMMON_HEADERS["User-Agent"],
                "Accept": "*/*",
            }
        )
        proxies = proxies_for(credentials)
        if proxies:
            self.session.proxies.update(proxies)
        for name, value in credentials.cookies:
            self.session.cookies.set(name, value)

    def _post(self, url: str, data: dict[str, str]) -> str:
        response = self.session.post(url, data=data, timeout=self.timeout, verify=self.verify_tls)
        response.raise_for_status()
        return response.text

    def _download_image(self, url: str) -> bytes:
        response = self.session.get(url, timeout=self.timeout, verify=self.verify_tls)
        if response.status_code != 200:
            raise RenewalFailed(f"HTTP {response.status_code} when downloading captcha image")
        return response.content

    def challenge_from_html(self, html: str) -> Optional[CaptchaChallenge]:
        token = extract_captcha_token(html)
        image_url = extract_captcha_url(html)
        if not token or not image_url:
            return None
        return CaptchaChallenge(token=token, image_url=image_url, image=self._download_image(image_url))

    def fetch_challenge(self) -> CaptchaChallenge:
        html = self._post(config.CAPTCHA_TARGET_URL, INITIAL_FORM)
        challenge = self.challenge_from_html(html)
        if challenge is None:
            raise RenewalFailed("no captcha image URL or token found")
        return challenge

    def submit_answer(self, challenge: CaptchaChallenge, answer: str) -> Tuple[bool, str]:
        form = {
            "x": "0",
            "y": "0",
            "g_recaptcha_loaded": "no",
            "captcha_token": challenge.token,
            "p_captcha_response": answer,
        }
        body = self._post(config.CAPTCHA_FINAL_URL, form)
        return not has_captcha_form(body.strip()), body

    def renewed_credentials(self) -> Credentials:
        cookies = {cookie.name: cookie.value for cookie in self.session.cookies}
        return self.credentials.renewed(cookies)

    def close(self) -> None:
        self.session.close()


class TerminalCaptchaSolver:
    """Save the captcha image to disk and read the answer from stdin."""

    def __init__(self, input_fn: Callable[[str], str] = input) -> None:
        self._input = input_fn

    def ask(self, challenge: CaptchaChallenge) -> Optional[str]:
        path = config.CAPTCHA_IMAGE_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(challenge.image)
        log_line(f"Captcha image downloaded as: {path}")
        log_line(f"Image size: {len(challenge.image)} bytes")
        log_line("Please check the captcha image and enter the captcha text:")
        return self._input("Enter captcha: ").strip()

    def report(self, ok: bool, message: str, *, retrying: bool = False) -> None:
        log_line(message)


class WebCaptchaSolver:
    """Hand the captcha to a browser page served by :mod:`sitelist.main`.

    The renewal thread blocks in :meth:`ask` until the page submits an answer
    or asks for a new image; the page in turn waits for :meth:`report` to
    learn whether the answer was accepted.
    """

    def __init__(
        self,
        *,
        host: str = config.CAPTCHA_WEB_HOST,
        port: int = config.CAPTCHA_WEB_PORT,
        answer_timeout: float = config.RENEWAL_TIMEOUT_SECONDS,
        verdict_timeout: float = config.CAPTCHA_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.host = host
        self.port = port
        self.answer_timeout = answer_timeout
        self.verdict_timeout = verdict_timeout
        self._lock = threading.Lock()
        self._challenge: Optional[CaptchaChallenge] = None
        self._challenge_ready = threading.Event()
        self._answers: "queue.Queue[Optional[str]]" = queue.Queue()
        self._verdicts: "queue.Queue[Tuple[bool, str, bool]]" = queue.Queue()
        self._server: Optional[Any] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/"

    # Renewal-thread side ------------------------------------------------

    def start(self) -> None:
        if self._server is not None:
            return
        from werkzeug.serving import make_server

        from sitelist.main import create_captcha_app

        self._server = make_server(self.host, self.port, create_captcha_app(self), threaded=True)
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="captcha-web", daemon=True
        )
        self._thread.start()
        log_line(f"Open {self.url} in your browser to solve the captcha.")

    def stop(self) -> None:
        server, self._server = self._server, None
        if server is not None:
            server.shutdown()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def cancel(self) -> None:
        self._answers.put("")
        self.stop()

    def ask(self, challenge: CaptchaChallenge) -> Optional[str]:
        with self._lock:
            self._challenge = challenge
        self._challenge_ready.set()
        try:
            return self._answers.get(timeout=self.answer_timeout)
        except queue.Empty as exc:
            raise RenewalFailed("timed out waiting for a captcha answer") from exc

    def report(self, ok: bool, message: str, *, retrying: bool = False) -> None:
        self._verdicts.put((ok, message, retrying))

    # Browser side -------------------------------------------------------

    def current_image(self) -> Optional[bytes]:
        with self._lock:
            return self._challenge.image if self._challenge is not None else None

    def submit(self, answer: str) -> Tuple[bool, str]:
        answer = (answer or "").strip()
        if not answer:
            return False, "Please enter the captcha text."
        self._challenge_ready.clear()
        self._answers.put(answer)
        try:
            ok, message, retrying = self._verdicts.get(timeout=self.verdict_timeout)
        except queue.Empty:
            return False, "Timed out waiting for captcha verification."
        if retrying:
            # The page reloads the image next; wait until the new one is set.
            self._challenge_ready.wait(self.verdict_timeout)
        return ok, message

    def refresh(self) -> Tuple[bool, str]:
        self._challenge_ready.clear()
        self._answers.put(None)
        if self._challenge_ready.wait(self.verdict_timeout):
            return True, "Captcha image refreshed."
        return False, "Timed out waiting for a new captcha image."


def solve_captcha(client: CaptchaClient, solver: Any, *, max_attempts: int = config.CAPTCHA_MAX_ATTEMPTS) -> None:
    """Drive one challenge/answer exchange until the site accepts an answer.

    ``solver.ask`` returns the answer text, ``None`` to request a fresh image,
    or an empty string to abandon the renewal.
    """

    log_line("Starting captcha solving process...")
    challenge = client.fetch_challenge()
    attempts = 0
    while True:
        answer = solver.ask(challenge)
        if answer is None:
            challenge = client.fetch_challenge()
            continue
        if not answer:
            raise RenewalFailed("no captcha response provided")

        attempts += 1
        ok, body = client.submit_answer(challenge, answer)
        _scraper_event("state", phase="captcha", attempt=attempts, accepted=ok)
        if ok:
            solver.report(True, "Captcha solving process completed successfully!")
            return

        if attempts >= max_attempts:
            solver.report(False, "Captcha verification failed.")
            raise RenewalFailed(f"captcha rejected {attempts} times")
        solver.report(False, "Captcha verification failed. Retrying...", retrying=True)
        challenge = client.challenge_from_html(body) or client.fetch_challenge()


class CaptchaRenewer:
    """Renewal callable for :class:`~sitelist.scraper.renewal.RenewalCoordinator`."""

    def __init__(
        self,
        solver: Any,
        *,
        max_attempts: int = config.CAPTCHA_MAX_ATTEMPTS,
        client_factory: Callable[[Credentials], CaptchaClient] = CaptchaClient,
    ) -> None:
        self.solver = solver
        self.max_attempts = max_attempts
        self._client_factory = client_factory

    def __call__(self, current: Credentials) -> Credentials:
        start = getattr(self.solver, "start", None)
        if callable(start):
            start()
        client = self._client_factory(current)
        try:
            solve_captcha(client, self.solver, max_attempts=self.max_attempts)
            return client.renewed_credentials()
        except requests.RequestException as exc:
            raise RenewalFailed(f"error during captcha exchange: {exc}") from exc
        finally:
            client.close()

    def cancel(self) -> None:
        cancel = getattr(self.solver, "cancel", None)
        if callable(cancel):
            cancel()

    def close(self) -> None:
        stop = getattr(self.solver, "stop", None)
        if callable(stop):
            stop()


__all__ = [
    "CaptchaChallenge",
    "CaptchaClient",
    "TerminalCaptchaSolver",
    "WebCaptchaSolver",
    "CaptchaRenewer",
    "solve_captcha",
]
