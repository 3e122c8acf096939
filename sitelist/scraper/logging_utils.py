from __future__ import annotations

from typing import Any

from .utils import log_line


def _scraper_event(label: str, *, phase: str | None = None, **fields: Any) -> None:
    """Write one ``[SCRAPER][LABEL] key=value, ...`` line to the run log.

    ``label`` is the event family (fetch, state, error, renewal, run_summary)
    and ``phase`` the component that emitted it. Keys are sorted and values
    written with ``repr``.
    """

    try:
        if phase:
            fields["phase"] = phase
        payload = ", ".join(f"{key}={value!r}" for key, value in sorted(fields.items()))
        log_line(f"[SCRAPER][{label.upper()}] {payload}")
    except Exception:
        # Never let logging break the scraper.
        return


__all__ = ["_scraper_event"]
