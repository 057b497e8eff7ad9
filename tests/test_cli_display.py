"""Tests for the CLI file logger."""

import logging

import pytest

from hunkwise.cli_display import log, setup_logger


@pytest.fixture
def bare_logger():
    """Detach existing handlers for the test, closing any it adds."""
    saved = list(log.handlers)
    for handler in saved:
        log.removeHandler(handler)
    yield log
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()
    for handler in saved:
        log.addHandler(handler)


def test_file_handler_attached(tmp_path, bare_logger):
    setup_logger(str(tmp_path / "logs"))

    handlers = [h for h in bare_logger.handlers
                if isinstance(h, logging.FileHandler)]
    assert len(handlers) == 1
    assert handlers[0].baseFilename.startswith(str(tmp_path / "logs"))


def test_repeated_setup_reuses_handler(tmp_path, bare_logger):
    setup_logger(str(tmp_path / "logs"))
    setup_logger(str(tmp_path / "logs"))
    setup_logger(str(tmp_path / "other"))

    handlers = [h for h in bare_logger.handlers
                if isinstance(h, logging.FileHandler)]
    assert len(handlers) == 1
    assert len(list((tmp_path / "logs").iterdir())) == 1
    assert not (tmp_path / "other").exists()
