from __future__ import annotations

from pathlib import Path

import pytest

from sitelist.scraper import config, utils


@pytest.fixture(autouse=True)
def _configure_temp_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    data_dir = tmp_path / "data"
    monkeypatch.setattr(config, "DATA_DIR", data_dir)
    monkeypatch.setattr(config, "LOG_DIR", data_dir / "logs")
    monkeypatch.setattr(config, "LOG_FILE", data_dir / "logs" / "latest.log")
    monkeypatch.setattr(config, "OPTIONS_FILE", data_dir / "options.json")
    monkeypatch.setattr(config, "CAPTCHA_IMAGE_PATH", tmp_path / "captcha_image.png")
    monkeypatch.setattr(utils, "_LOGGER_INITIALISED", False)
    yield
    for handler in list(utils.LOGGER.handlers):
        utils.LOGGER.removeHandler(handler)
        handler.close()


@pytest.fixture
def no_backoff(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "RETRY_BACKOFF_SECONDS", 0.0)
    monkeypatch.setattr(config, "RESULT_POLL_SECONDS", 0.01)
