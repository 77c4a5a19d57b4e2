"""Tests for logging setup."""

import logging

import pytest

from server.logging_config import get_logger, setup_logging, teardown_logging


@pytest.fixture
def clean_logging():
    access = logging.getLogger("uvicorn.access")
    access_level = access.level
    yield
    teardown_logging()
    access.setLevel(access_level)


def test_setup_writes_to_configured_file(tmp_path, clean_logging):
    log_file = tmp_path / "logs" / "newtab.log"

    setup_logging(log_file, "WARNING")
    get_logger("newtab.test").debug("written to file only")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "written to file only" in log_file.read_text(encoding="utf-8")
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("uvicorn.access").level == logging.WARNING


def test_setup_is_idempotent(tmp_path, clean_logging):
    before = len(logging.getLogger().handlers)

    setup_logging(tmp_path / "a.log")
    setup_logging(tmp_path / "b.log")

    assert len(logging.getLogger().handlers) == before + 2
    assert not (tmp_path / "b.log").exists()


def test_access_log_opt_in(tmp_path, clean_logging):
    setup_logging(tmp_path / "newtab.log", access_log=True)
    assert logging.getLogger("uvicorn.access").level == logging.INFO


def test_teardown_removes_handlers(tmp_path):
    before = len(logging.getLogger().handlers)
    setup_logging(tmp_path / "newtab.log")
    teardown_logging()
    assert len(logging.getLogger().handlers) == before
