import logging

import pytest

from claim_calendar.claims.tracker import ClaimTracker
from claim_calendar.logging_config.logging_config import setup_logging
from claim_calendar.main import build_tracker, load_config
from claim_calendar.monday.client import DEFAULT_BOARD_ID


CONFIG_VARS = [
    "MONDAY_API_KEY",
    "MONDAY_BOARD_ID",
    "MONDAY_API_URL",
    "MONDAY_API_VERSION",
    "WEEK_DAYS",
    "DATA_DIR",
    "API_HOST",
    "API_PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for var in CONFIG_VARS:
        monkeypatch.delenv(var, raising=False)


def test_load_config_defaults() -> None:
    config = load_config()

    assert config["MONDAY_BOARD_ID"] == DEFAULT_BOARD_ID
    assert config["MONDAY_API_KEY"] is None
    assert config["WEEK_DAYS"] == 7
    assert config["API_PORT"] == 8000


def test_load_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MONDAY_API_KEY", "abc")
    monkeypatch.setenv("MONDAY_BOARD_ID", "123")
    monkeypatch.setenv("WEEK_DAYS", "5")

    config = load_config()

    assert config["MONDAY_API_KEY"] == "abc"
    assert config["MONDAY_BOARD_ID"] == "123"
    assert config["WEEK_DAYS"] == 5


def test_load_config_rejects_bad_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("API_PORT", "eighty")
    with pytest.raises(OSError):
        load_config()


def test_load_config_rejects_empty_required_var(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MONDAY_API_URL", "")
    with pytest.raises(OSError, match="MONDAY_API_URL"):
        load_config()


def test_build_tracker_wires_storage(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("MONDAY_API_KEY", "abc")
    monkeypatch.setenv("WEEK_DAYS", "5")

    tracker = build_tracker(load_config())

    assert isinstance(tracker, ClaimTracker)
    assert tracker.monday_client.api_key == "abc"
    assert len(tracker.week_dates) == 5
    assert (tmp_path / "db" / "claim-calendar.db").exists()


def test_setup_logging_writes_log_files(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    root_logger = logging.getLogger()
    previous_level = root_logger.level

    try:
        setup_logging(app_name="test-app", level="INFO")
        setup_logging(app_name="test-app", level="INFO")
        ours = [h for h in root_logger.handlers if getattr(h, "_claim_calendar", False)]
        logging.getLogger("claim_calendar.test").error("boom")

        assert len(ours) == 3
        for handler in ours:
            handler.flush()
        assert "boom" in (tmp_path / "test-app-error.log").read_text(encoding="utf-8")
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in [h for h in root_logger.handlers if getattr(h, "_claim_calendar", False)]:
            root_logger.removeHandler(handler)
            handler.close()
        root_logger.setLevel(previous_level)
