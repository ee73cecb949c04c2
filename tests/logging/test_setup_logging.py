import json
import logging

import pytest

from tabpretrain.training.loggers import JSONLLogger, setup_logging


@pytest.fixture(autouse=True)
def _reset_handlers():
    yield
    logger = logging.getLogger("tabpretrain")
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()


def test_file_handler_captures_child_loggers(tmp_path):
    log_path = setup_logging(tmp_path / "logs")
    logging.getLogger("tabpretrain.training.trainer").info("hello from trainer")
    for h in logging.getLogger("tabpretrain").handlers:
        h.flush()
    assert log_path.name == "tabpretrain.log"
    text = log_path.read_text(encoding="utf-8")
    assert "hello from trainer" in text
    assert "tabpretrain.training.trainer" in text


def test_repeated_setup_does_not_duplicate_handlers(tmp_path):
    setup_logging(tmp_path)
    setup_logging(tmp_path)
    assert len(logging.getLogger("tabpretrain").handlers) == 2


def test_jsonl_logger_appends_events(tmp_path):
    log_file = tmp_path / "nested" / "events.jsonl"
    jsonl = JSONLLogger(log_file)
    jsonl.info(event="epoch_end", epoch=1, train_loss=0.5)
    jsonl.write({"event": "train_end"})

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["event"] == "epoch_end"
    assert first["level"] == "INFO"
    assert json.loads(lines[1]) == {"event": "train_end"}
