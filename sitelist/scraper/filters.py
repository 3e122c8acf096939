"""Resolved listing filters and the page URL they produce."""
from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from . import config


@dataclass(frozen=True)
class Filter:
    owner_name: str = ""
    owner_id: int = 0
    country_code: str = ""
    country_name: str = ""
    host_name: str = ""
    host_id: int = 0
    dns_name: str = ""
    dns_id: int = 0
    url_filter: str = ""
    rank_from: int = 0
    rank_to: int = 0
    ip_from: str = ""
    ip_to: str = ""
    visitors_from: int = 0
    visitors_to: int = 0

    @property
    def is_default(self) -> bool:
        return not any(
            (
                self.dns_id,
                self.host_id,
                self.owner_id,
                self.country_code,
                self.url_filter,
                self.rank_from,
                self.ip_from,
                self.visitors_from,
            )
        )


def build_url_template(flt: Filter) -> str:
    """Return the sites-table URL for ``flt`` with a ``{page}`` placeholder."""

    url = config.AJAX_TABLE_URL

    if flt.url_filter:
        url += f"/url/{quote(flt.url_filter, safe='')}"
    if flt.country_code:
        url += f"/countryID/{flt.country_code}"
    if flt.rank_from > 0 and flt.rank_to > 0:
        url += f"/rank/{flt.rank_from}/rankii/{flt.rank_to}"
    if flt.ip_from and flt.ip_to:
        url += f"/ipID/{flt.ip_from}/ipIDii/{flt.ip_to}"
    if flt.owner_id:
        url += f"/own/{flt.owner_id}"
    if flt.host_id:
        url += f"/hostID/{flt.host_id}"
    if flt.dns_id:
        url += f"/dns/{flt.dns_id}"
    if flt.visitors_from > 0 and flt.visitors_to > 0:
        url += f"/cntVisitors/{flt.visitors_from}/cntVisitorsii/{flt.visitors_to}"

    return url


def describe_filter(flt: Filter) -> str:
    """One-line human description of the active filters."""

    if flt.dns_name:
        return f"DNS ({flt.dns_name} - ID: {flt.dns_id})"
    if flt.host_name:
        return f"Host ({flt.host_name} - ID: {flt.host_id})"
    if flt.is_default:
        return "Top Domains (default)"

    parts = []
    if flt.url_filter:
        parts.append(f"URL ({flt.url_filter})")
    if flt.country_code:
        parts.append(f"Country ({flt.country_name} - {flt.country_code})")
    if flt.rank_from > 0 and flt.rank_to > 0:
        parts.append(f"Rank ({flt.rank_from}-{flt.rank_to})")
    if flt.ip_from and flt.ip_to:
        parts.append(f"IP Range ({flt.ip_from}-{flt.ip_to})")
    if flt.visitors_from > 0 and flt.visitors_to > 0:
        parts.append(f"Visitors ({flt.visitors_from}-{flt.visitors_to})")
    if flt.owner_name:
        parts.append(f"Owner ({flt.owner_name} - ID: {flt.owner_id})")
    return " + ".join(parts)


__all__ = ["Filter", "build_url_template", "describe_filter"]
