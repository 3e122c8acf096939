"""Option catalogs for the named filters and fuzzy lookup over them.

The catalogs map display names to the site's numeric (or country code)
identifiers. They are read from a JSON file shaped like::

    {"countries": {"Japan": "JPN"}, "owners": {"Cloudflare, Inc": 4150},
     "hosts": {...}, "dns": {...}}
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from . import config
from .utils import log_line

CatalogValue = Union[int, str]

# kind -> (catalog attribute, plural label)
CATALOG_KINDS: Dict[str, tuple[str, str]] = {
    "country": ("countries", "countries"),
    "owner": ("owners", "owners"),
    "host": ("hosts", "hosts"),
    "DNS record": ("dns", "DNS records"),
}


@dataclass
class OptionCatalogs:
    countries: Dict[str, str] = field(default_factory=dict)
    owners: Dict[str, int] = field(default_factory=dict)
    hosts: Dict[str, int] = field(default_factory=dict)
    dns: Dict[str, int] = field(default_factory=dict)

    def for_kind(self, kind: str) -> Dict[str, CatalogValue]:
        attr, _label = CATALOG_KINDS[kind]
        return getattr(self, attr)


def load_catalogs(path: Optional[Path] = None) -> OptionCatalogs:
    """Load option catalogs, returning empty ones when the file is missing."""

    path = Path(path or config.OPTIONS_FILE)
    if not path.exists():
        return OptionCatalogs()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log_line(f"[OPTIONS] Failed to read option catalogs from {path}: {exc}")
        return OptionCatalogs()
    if not isinstance(raw, dict):
        log_line(f"[OPTIONS] Ignoring {path}: expected a JSON object")
        return OptionCatalogs()

    def _section(name: str, cast) -> Dict:
        section = raw.get(name)
        if not isinstance(section, dict):
            return {}
        result = {}
        for key, value in section.items():
            try:
                result[str(key)] = cast(value)
            except (TypeError, ValueError):
                continue
        return result

    return OptionCatalogs(
        countries=_section("countries", str),
        owners=_section("owners", int),
        hosts=_section("hosts", int),
        dns=_section("dns", int),
    )


def levenshtein_distance(a: str, b: str) -> int:
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def find_best_matches(value: str, options: Iterable[str], limit: int = 3) -> List[str]:
    """Return up to ``limit`` option names that look like ``value``.

    An exact (case-insensitive) match is returned alone. Substring matches
    rank first, then names within half their length in edit distance.
    """

    needle = value.lower()
    scored: List[tuple[int, str]] = []
    for option in options:
        candidate = option.lower()
        if candidate == needle:
            return [option]
        if needle in candidate:
            scored.append((0, option))
            continue
        distance = levenshtein_distance(needle, candidate)
        if distance <= max(len(value), len(option)) // 2:
            scored.append((distance, option))

    scored.sort(key=lambda item: item[0])
    return [option for _distance, option in scored[:limit]]


def suggest_options(kind: str, value: str, catalogs: OptionCatalogs) -> str:
    """Build the "Did you mean" text shown after an unknown option."""

    _attr, label = CATALOG_KINDS[kind]
    matches = find_best_matches(value, catalogs.for_kind(kind), 3)
    lines: List[str] = []
    if matches:
        lines.append("Did you mean one of these?")
        lines.extend(f"  {index}. {match}" for index, match in enumerate(matches, start=1))
    else:
        lines.append(f"No similar {label} found.")
    lines.append("")
    lines.append("Use --list to see all available options.")
    return "\n".join(lines)


def format_options_listing(catalogs: OptionCatalogs, kinds: Optional[Iterable[str]] = None) -> str:
    """Render catalogs for ``--list``; all of them when ``kinds`` is empty."""

    titles = {
        "country": "COUNTRIES",
        "owner": "OWNERS/HOSTING PROVIDERS",
        "host": "HOSTS",
        "DNS record": "DNS RECORDS",
    }
    selected = list(kinds or [])
    show_all = not selected
    lines: List[str] = []
    for kind in CATALOG_KINDS:
        if not show_all and kind not in selected:
            continue
        items = catalogs.for_kind(kind)
        title = titles[kind]
        lines.append(f"{title}:")
        lines.append("-" * (len(title) + 1))
        lines.extend(f"  {name}" for name in sorted(items))
        if not show_all:
            lines.append("")
            lines.append(f"Total: {len(items)} {title.lower()}")
        lines.append("")

    if show_all:
        lines.append(
            f"Total: {len(catalogs.countries)} countries, {len(catalogs.owners)} owners, "
            f"{len(catalogs.hosts)} hosts, {len(catalogs.dns)} DNS records"
        )
    return "\n".join(lines)


__all__ = [
    "OptionCatalogs",
    "CATALOG_KINDS",
    "load_catalogs",
    "levenshtein_distance",
    "find_best_matches",
    "suggest_options",
    "format_options_listing",
]
