from pathlib import Path

import pytest

from sitelist.scraper.errors import SinkUnavailable
from sitelist.scraper.sink import RecordSink


def test_sink_truncates_and_writes_one_record_per_line(tmp_path: Path):
    path = tmp_path / "out" / "domains.txt"
    path.parent.mkdir()
    path.write_text("stale.example\n", encoding="utf-8")

    with RecordSink(path) as sink:
        assert sink.write(["a.com", "b.com"]) == 2
        assert sink.write([]) == 0
        assert sink.write(["c.com"]) == 1

    assert path.read_text(encoding="utf-8") == "a.com\nb.com\nc.com\n"
    assert sink.records_written == 3


def test_sink_creates_parent_directories(tmp_path: Path):
    path = tmp_path / "nested" / "dir" / "domains.txt"
    sink = RecordSink(path).open()
    sink.close()
    assert path.exists()


def test_unwritable_output_raises_sink_unavailable(tmp_path: Path):
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(SinkUnavailable, match="error creating output file"):
        RecordSink(blocker / "domains.txt").open()


def test_write_before_open_fails(tmp_path: Path):
    with pytest.raises(SinkUnavailable):
        RecordSink(tmp_path / "domains.txt").write(["a.com"])
