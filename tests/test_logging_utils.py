from __future__ import annotations

import json
import logging
from pathlib import Path

from stockmeta.logging_utils import LOGGER_NAME, configure_logging


def test_configure_logging_writes_json_file(tmp_path: Path) -> None:
    logger = configure_logging(
        {"console_level": "WARNING", "file_level": "INFO", "json_logs": True, "log_dir": tmp_path}
    )
    logger.info("Dispatching batch of %d item(s).", 5)
    for handler in logger.handlers:
        handler.flush()

    line = (tmp_path / "stockmeta.log").read_text(encoding="utf-8").strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["message"] == "Dispatching batch of 5 item(s)."
    assert payload["level"] == "INFO"
    assert payload["logger"] == LOGGER_NAME


def test_configure_logging_replaces_handlers_and_defaults_level() -> None:
    configure_logging({"console_level": "nonsense"})
    logger = configure_logging({})

    assert len(logger.handlers) == 1
    assert logger.handlers[0].level == logging.INFO
