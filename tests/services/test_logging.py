# tests/services/test_logging.py
import logging
import sys

import pytest
from loguru import logger

from rapidprompt.config.paths import HOME_ENV_VAR
from rapidprompt.services.logging import NOISY_LIBRARIES, setup_logging


@pytest.fixture(autouse=True)
def restore_loguru(tmp_path, monkeypatch):
    monkeypatch.setenv(HOME_ENV_VAR, str(tmp_path))
    yield
    logger.remove()
    logger.add(sys.stderr)


def test_console_only_creates_no_log_dir(tmp_path, capsys):
    setup_logging(level="INFO", log_to_file=False)
    logger.info("hello from the test")
    captured = capsys.readouterr()
    assert "hello from the test" in captured.err
    assert "hello from the test" not in captured.out
    assert not (tmp_path / "logs").exists()


def test_file_logging_uses_user_log_dir(tmp_path):
    setup_logging(verbose=True)
    logger.debug("to file")
    logger.complete()
    assert (tmp_path / "logs").is_dir()


def test_library_loggers_are_quieted():
    setup_logging(log_to_file=False)
    for name in NOISY_LIBRARIES:
        assert logging.getLogger(name).level == logging.WARNING
