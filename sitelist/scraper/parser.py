"""HTML helpers for the sites table and the human-verification page."""
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from . import config

_ROW_NAME_PATTERN = re.compile(
    r"<td class=['\"]row_name['\"][^>]*><a[^>]*>([^<]+)</a>", re.IGNORECASE
)
_CAPTCHA_IMAGE_PATTERN = re.compile(r"captcha\.php", re.IGNORECASE)


def extract_domains(html: str) -> list[str]:
    """Return the domain names listed in a sites table fragment, in page order."""

    domains: list[str] = []
    for match in _ROW_NAME_PATTERN.finditer(html or ""):
        domain = match.group(1).strip()
        if domain:
            domains.append(domain)
    return domains


def is_session_expired(html: str) -> bool:
    return config.SESSION_EXPIRED_MARKER in (html or "")


def is_rate_limited(html: str) -> bool:
    return config.RATE_LIMIT_MARKER in (html or "")


def has_captcha_form(html: str) -> bool:
    """Return True while the verification form is still being served."""

    return config.CAPTCHA_TOKEN_FIELD in (html or "")


def extract_captcha_token(html: str) -> Optional[str]:
    """Return the hidden ``captcha_token`` value of the verification form."""

    soup = BeautifulSoup(html or "", "html5lib")
    field = soup.find("input", attrs={"name": config.CAPTCHA_TOKEN_FIELD})
    if field is None:
        return None
    value = (field.get("value") or "").strip()
    return value or None


def extract_captcha_url(html: str, *, base_url: str = config.BASE_URL) -> Optional[str]:
    """Return the absolute URL of the captcha image, if the page has one."""

    soup = BeautifulSoup(html or "", "html5lib")
    image = soup.find("img", src=_CAPTCHA_IMAGE_PATTERN)
    if image is None:
        return None
    src = (image.get("src") or "").strip()
    if not src:
        return None
    return urljoin(base_url + "/", src)


__all__ = [
    "extract_domains",
    "is_session_expired",
    "is_rate_limited",
    "has_captcha_form",
    "extract_captcha_token",
    "extract_captcha_url",
]
