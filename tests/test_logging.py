"""Tests for logging setup."""

import logging

import pytest

from kindler import logging_config


@pytest.fixture
def fresh_logging(monkeypatch):
    """Let setup_logging run again and drop its handlers afterwards."""
    monkeypatch.setattr(logging_config, "_logging_initialized", False)
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in before:
            handler.close()
            root.removeHandler(handler)
    root.setLevel(level)


def test_log_file_written_to_given_dir(tmp_path, fresh_logging):
    log_dir = tmp_path / "data"
    logging_config.setup_logging(log_dir, "WARNING")

    logging_config.get_logger("kindler.test").debug("debug reaches the file")
    for handler in logging.getLogger().handlers:
        handler.flush()

    content = (log_dir / "kindler.log").read_text(encoding="utf-8")
    assert "debug reaches the file" in content
    assert "kindler.test" in content


def test_setup_runs_once(tmp_path, fresh_logging):
    root = logging.getLogger()
    count = len(root.handlers)

    logging_config.setup_logging(tmp_path)
    logging_config.setup_logging(tmp_path)

    assert len(root.handlers) == count + 2
