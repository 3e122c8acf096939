"""Configuration constants for the sitelist domain scraper."""
from __future__ import annotations

import os
from pathlib import Path

DATA_DIR: Path = Path(os.getenv("SITELIST_DATA_DIR", "data"))
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
CAPTCHA_IMAGE_PATH: Path = Path(os.getenv("SITELIST_CAPTCHA_IMAGE", "captcha_image.png"))
OPTIONS_FILE: Path = Path(
    os.getenv("SITELIST_OPTIONS_FILE", str(DATA_DIR / "options.json"))
)

BASE_URL: str = "https://myip.ms"
AJAX_TABLE_URL: str = BASE_URL + "/ajax_table/sites/{page}"
CAPTCHA_TARGET_URL: str = BASE_URL + "/ajax_table/sites/1"
CAPTCHA_FINAL_URL: str = BASE_URL + "/browse/sites/1"
PAGE_PLACEHOLDER: str = "{page}"

DEFAULT_OUTPUT: str = os.getenv("SITELIST_OUTPUT", "domains.txt")
DEFAULT_WORKERS: int = int(os.getenv("SITELIST_WORKERS", "3"))
MAX_WORKERS: int = 10
DEFAULT_DELAY_MS: int = int(os.getenv("SITELIST_DELAY_MS", "500"))
SCRAPER_MAX_RETRIES: int = int(os.getenv("SITELIST_MAX_RETRIES", "3"))


def _parse_seconds(env_var: str, default: float, *, minimum: float = 0.0) -> float:
    """Parse a duration in seconds from the environment with a lower bound."""

    try:
        value = float(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


# Linear transient-error backoff: attempt * RETRY_BACKOFF_SECONDS, capped.
RETRY_BACKOFF_SECONDS: float = _parse_seconds("SITELIST_RETRY_BACKOFF_SECONDS", 1.0)
RETRY_BACKOFF_CAP_SECONDS: float = _parse_seconds("SITELIST_RETRY_BACKOFF_CAP_SECONDS", 30.0)

REQUEST_TIMEOUT_SECONDS: float = _parse_seconds("SITELIST_REQUEST_TIMEOUT", 30.0, minimum=1.0)
CAPTCHA_REQUEST_TIMEOUT_SECONDS: float = _parse_seconds(
    "SITELIST_CAPTCHA_REQUEST_TIMEOUT", 60.0, minimum=1.0
)
VERIFY_TLS: bool = os.getenv("SITELIST_VERIFY_TLS", "1").strip().lower() not in {"0", "false"}

# Credential renewal (captcha) limits.
RENEWAL_TIMEOUT_SECONDS: float = _parse_seconds("SITELIST_RENEWAL_TIMEOUT", 600.0, minimum=1.0)
MAX_RENEWALS: int = int(os.getenv("SITELIST_MAX_RENEWALS", "3"))
CAPTCHA_MAX_ATTEMPTS: int = int(os.getenv("SITELIST_CAPTCHA_MAX_ATTEMPTS", "3"))
CAPTCHA_WEB_HOST: str = os.getenv("SITELIST_CAPTCHA_HOST", "127.0.0.1")
CAPTCHA_WEB_PORT: int = int(os.getenv("SITELIST_CAPTCHA_PORT", "8080"))

# How long the control loop blocks on the result queue while a renewal runs.
RESULT_POLL_SECONDS: float = 0.1

SESSION_EXPIRED_MARKER: str = "Human Verification"
RATE_LIMIT_MARKER: str = "You have exceeded page visit limit"
CAPTCHA_TOKEN_FIELD: str = "captcha_token"

COMMON_HEADERS: dict[str, str] = {
    "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
    "X-Requested-With": "XMLHttpRequest",
    "Origin": BASE_URL,
    "Referer": BASE_URL + "/browse/sites/1",
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/132.0.0.0 Safari/537.36"
    ),
    "Accept": "*/*",
}

PAGE_FORM_DATA: dict[str, str] = {
    "getpage": "yes",
    "lang": "en",
}

# Session seeded into the first Credentials of a run; renewal validates it.
DEFAULT_COOKIES: dict[str, str] = {
    "PHPSESSID": "le6doi5fo94hv5k2ouqmopd47k",
    "s2_csrf_cookie_name": "cf0b4574d2c27713afd4b26879597e5d",
    "s2_theme_ui": "red",
    "s2_uGoo": "w6a162dd67b1968e6349944bcff010fdd63ee724",
    "s2_uLang": "en",
    "sh": "72",
    "sw": "95.4",
}
