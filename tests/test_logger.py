"""Tests for logging setup."""

import json
import logging
from pathlib import Path
from typing import Iterator

import pytest
from rich.logging import RichHandler

from redirect_sync.config import LoggingConfig
from redirect_sync.utils.logger import configure_from_settings, logger, setup_logging


@pytest.fixture(autouse=True)
def reset_handlers() -> Iterator[None]:
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_rich_console_by_default(self) -> None:
        setup_logging()
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)
        assert logger.level == logging.INFO

    def test_repeated_setup_replaces_handlers(self) -> None:
        setup_logging(format_style="simple")
        setup_logging(format_style="simple")
        assert len(logger.handlers) == 1

    def test_json_file_carries_run_context(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "sync.log"
        setup_logging(level="DEBUG", log_file=log_file, format_style="json")

        logging.getLogger("redirect_sync.core.executor").debug(
            "Batch %d/%d committed",
            1, 2,
            extra={"operation": "imports", "fingerprint": "abc", "checkpoint": 1},
        )

        record = json.loads(log_file.read_text().splitlines()[-1])
        assert record["message"] == "Batch 1/2 committed"
        assert record["level"] == "DEBUG"
        assert record["logger"] == "redirect_sync.core.executor"
        assert record["operation"] == "imports"
        assert record["checkpoint"] == 1

    def test_plain_file_below_level_is_dropped(self, tmp_path: Path) -> None:
        log_file = tmp_path / "sync.log"
        setup_logging(level="WARNING", log_file=log_file, format_style="simple")

        logging.getLogger("redirect_sync.core.engine").info("quiet")
        logging.getLogger("redirect_sync.core.engine").warning("loud")

        content = log_file.read_text()
        assert "loud" in content
        assert "quiet" not in content
        assert "| WARNING  |" in content


def test_configure_from_settings_level_override(tmp_path: Path) -> None:
    config = LoggingConfig(level="INFO", format="simple", file=tmp_path / "x.log")
    configure_from_settings(config, level="DEBUG")
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2
