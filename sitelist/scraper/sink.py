from __future__ import annotations

from pathlib import Path
from typing import IO, Iterable, Optional

from .errors import SinkUnavailable
from .logging_utils import _scraper_event


class RecordSink:
    """Line-per-record output file, truncated when opened.

    Records are written in the order pages complete, not page order.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._handle: Optional[IO[str]] = None
        self.records_written = 0

    def open(self) -> "RecordSink":
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = self.path.open("w", encoding="utf-8")
        except OSError as exc:
            _scraper_event("error", phase="sink", path=str(self.path), error=str(exc))
            raise SinkUnavailable(f"error creating output file: {exc}") from exc
        self.records_written = 0
        return self

    def write(self, records: Iterable[str]) -> int:
        if self._handle is None:
            raise SinkUnavailable(f"output file {self.path} is not open")
        count = 0
        for record in records:
            self._handle.write(f"{record}\n")
            count += 1
        self._handle.flush()
        self.records_written += count
        return count

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "RecordSink":
        if self._handle is None:
            self.open()
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


__all__ = ["RecordSink"]
