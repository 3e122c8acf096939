from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, replace
from typing import Optional, Tuple
from urllib.parse import quote, unquote, urlsplit

from . import config
from .errors import OptionError
from .filters import Filter
from .logging_utils import _scraper_event
from .options import OptionCatalogs
from .utils import log_line

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m)?\s*$", re.IGNORECASE)
_PROXY_SCHEMES = {"http", "https", "socks5", "socks5h"}


@dataclass(frozen=True)
class ScrapeConfig:
    """User options for one scraping run."""

    owner: str = ""
    country: str = ""
    host: str = ""
    dns: str = ""
    url: str = ""
    rank: str = ""
    ip: str = ""
    visitors: str = ""
    output: str = config.DEFAULT_OUTPUT
    max_pages: int = 0
    start_page: int = 1
    proxy: str = ""
    workers: int = config.DEFAULT_WORKERS
    delay_seconds: float = config.DEFAULT_DELAY_MS / 1000.0
    max_retries: int = config.SCRAPER_MAX_RETRIES
    captcha_mode: str = "prompt"


def _raise_config_error(message: str, *, error: str, field: str) -> None:
    _scraper_event(
        "error",
        phase="config",
        context="scrape_validation",
        error=error,
        field=field,
    )
    log_line(f"[CONFIG] {message}")
    raise ValueError(message)


def parse_int_range(value: str) -> Tuple[int, int]:
    """Parse ``"from-to"``; an empty string means no range ``(0, 0)``."""

    if not value:
        return 0, 0
    parts = value.split("-")
    if len(parts) != 2:
        raise ValueError("invalid range format, expected 'from-to' (e.g., '10-20')")
    try:
        low = int(parts[0].strip())
    except ValueError as exc:
        raise ValueError(f"invalid 'from' value: {exc}") from exc
    try:
        high = int(parts[1].strip())
    except ValueError as exc:
        raise ValueError(f"invalid 'to' value: {exc}") from exc
    if low <= 0 or high <= 0:
        raise ValueError("range values must be positive integers")
    if low > high:
        raise ValueError(f"'from' value ({low}) cannot be greater than 'to' value ({high})")
    return low, high


def parse_ip_range(value: str) -> Tuple[str, str]:
    """Parse ``"a.b.c.d-e.f.g.h"`` or CIDR notation into first/last addresses."""

    if not value:
        return "", ""
    if "/" in value:
        try:
            network = ipaddress.ip_network(value.strip(), strict=False)
        except ValueError as exc:
            raise ValueError(f"invalid CIDR notation: {exc}") from exc
        return str(network.network_address), str(network.broadcast_address)

    parts = value.split("-")
    if len(parts) != 2:
        raise ValueError(
            "invalid IP range format, expected 'from-to' (e.g., '104.16.0.0-104.16.255.255') "
            "or CIDR notation (e.g., '192.168.0.0/24')"
        )
    bounds = []
    for label, raw in (("from", parts[0].strip()), ("to", parts[1].strip())):
        try:
            bounds.append(str(ipaddress.ip_address(raw)))
        except ValueError as exc:
            raise ValueError(f"invalid IP address format for '{label}': {raw}") from exc
    return bounds[0], bounds[1]


def parse_proxy_url(value: str) -> Tuple[str, str, str]:
    """Split ``scheme://[user:pass@]host:port`` into base URL, user and password."""

    parts = urlsplit(value.strip())
    scheme = (parts.scheme or "").lower()
    if scheme not in _PROXY_SCHEMES:
        raise ValueError(
            f"proxy URL must use http, https, or socks5 scheme (current: {parts.scheme or 'none'})"
        )
    if not parts.hostname:
        raise ValueError(f"invalid proxy URL format: {value}")

    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    base_url = f"{scheme}://{host}"
    if parts.port:
        base_url += f":{parts.port}"
    if parts.path and parts.path != "/":
        base_url += parts.path
    return base_url, unquote(parts.username or ""), unquote(parts.password or "")


def proxy_with_auth(base_url: str, user: str, password: str) -> str:
    if not user:
        return base_url
    scheme, rest = base_url.split("://", 1)
    credentials = quote(user, safe="")
    if password:
        credentials += ":" + quote(password, safe="")
    return f"{scheme}://{credentials}@{rest}"


def parse_duration(value: str) -> float:
    """Return seconds for ``"500ms"``, ``"1.5s"``, ``"2m"`` or bare milliseconds."""

    match = _DURATION_PATTERN.match(str(value))
    if not match:
        raise ValueError(f"invalid duration '{value}' (e.g., 500ms, 2s)")
    amount = float(match.group(1))
    unit = (match.group(2) or "ms").lower()
    if unit == "ms":
        return amount / 1000.0
    if unit == "m":
        return amount * 60.0
    return amount


def _lookup(kind: str, value: str, catalogs: OptionCatalogs):
    table = catalogs.for_kind(kind)
    if value not in table:
        _scraper_event("error", phase="config", context="option_lookup", kind=kind, value=value)
        raise OptionError(kind, value)
    return table[value]


def validate_scrape_config(
    cfg: ScrapeConfig, catalogs: Optional[OptionCatalogs] = None
) -> Tuple[ScrapeConfig, Filter]:
    """Check ``cfg`` and resolve its filters.

    Returns the config with a normalised proxy URL and the resolved filter.
    Raises ``ValueError`` (or :class:`OptionError` for catalog misses).
    """

    catalogs = catalogs or OptionCatalogs()

    if cfg.start_page < 1:
        _raise_config_error(
            f"start page must be a positive integer (current: {cfg.start_page})",
            error="start_page_invalid",
            field="start_page",
        )
    if cfg.max_pages < 0:
        _raise_config_error(
            f"pages must be non-negative (current: {cfg.max_pages})",
            error="max_pages_invalid",
            field="max_pages",
        )
    if cfg.workers < 1:
        _raise_config_error(
            f"workers count must be at least 1 (current: {cfg.workers})",
            error="workers_too_low",
            field="workers",
        )
    if cfg.workers > config.MAX_WORKERS:
        _raise_config_error(
            f"workers count should not exceed {config.MAX_WORKERS} to avoid server overload "
            f"(current: {cfg.workers})",
            error="workers_too_high",
            field="workers",
        )
    if cfg.delay_seconds < 0:
        _raise_config_error(
            f"delay must be non-negative (current: {cfg.delay_seconds})",
            error="delay_invalid",
            field="delay",
        )
    if cfg.max_retries < 0:
        _raise_config_error(
            f"max retries must be non-negative (current: {cfg.max_retries})",
            error="max_retries_invalid",
            field="max_retries",
        )

    proxy = ""
    if cfg.proxy:
        base_url, user, password = parse_proxy_url(cfg.proxy)
        proxy = proxy_with_auth(base_url, user, password)

    fields: dict = {}
    if cfg.dns:
        fields.update(dns_name=cfg.dns, dns_id=int(_lookup("DNS record", cfg.dns, catalogs)))
    if cfg.host:
        fields.update(host_name=cfg.host, host_id=int(_lookup("host", cfg.host, catalogs)))
    if cfg.owner:
        fields.update(owner_name=cfg.owner, owner_id=int(_lookup("owner", cfg.owner, catalogs)))
    if cfg.country:
        fields.update(
            country_name=cfg.country, country_code=str(_lookup("country", cfg.country, catalogs))
        )
    if cfg.url:
        fields["url_filter"] = cfg.url

    rank_from, rank_to = parse_int_range(cfg.rank)
    visitors_from, visitors_to = parse_int_range(cfg.visitors)
    ip_from, ip_to = parse_ip_range(cfg.ip)
    fields.update(
        rank_from=rank_from,
        rank_to=rank_to,
        visitors_from=visitors_from,
        visitors_to=visitors_to,
        ip_from=ip_from,
        ip_to=ip_to,
    )

    return replace(cfg, proxy=proxy), Filter(**fields)


__all__ = [
    "ScrapeConfig",
    "validate_scrape_config",
    "parse_int_range",
    "parse_ip_range",
    "parse_proxy_url",
    "proxy_with_auth",
    "parse_duration",
]
