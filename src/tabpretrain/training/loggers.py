from __future__ import annotations

import json
import logging
import logging.handlers
import time
from pathlib import Path
from typing import Any, Dict

from .utils import ensure_dir

PACKAGE_LOGGER = "tabpretrain"

CONSOLE_FORMAT = logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s", "%H:%M:%S")
FILE_FORMAT = logging.Formatter(
    "%(asctime)s | %(levelname)s | %(name)s | %(filename)s:%(lineno)d | %(message)s",
    "%Y-%m-%d %H:%M:%S",
)


def setup_logging(log_dir: Path | str, name: str = PACKAGE_LOGGER, level: int = logging.INFO) -> Path:
    """
    Attach a console handler and a rotating ``<name>.log`` file handler to the
    package logger, so every ``tabpretrain.*`` module logger reaches both.
    Calling it again replaces the handlers of the previous call.
    """
    log_path = ensure_dir(log_dir) / f"{name}.log"
    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    pkg_logger.setLevel(level)

    for h in list(pkg_logger.handlers):
        pkg_logger.removeHandler(h)
        h.close()

    console = logging.StreamHandler()
    console.setFormatter(CONSOLE_FORMAT)
    run_file = logging.handlers.RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
    run_file.setFormatter(FILE_FORMAT)
    for handler in (console, run_file):
        handler.setLevel(level)
        pkg_logger.addHandler(handler)
    return log_path


class JSONLLogger:
    """
    Append-only stream of training events, one JSON object per line.
    ``info`` stamps each event with a level and a wall-clock time.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        ensure_dir(self.path.parent)

    def write(self, event: Dict[str, Any]) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(event, default=str) + "\n")

    def info(self, **fields: Any) -> None:
        fields.setdefault("level", "INFO")
        fields.setdefault("time", round(time.time(), 3))
        self.write(fields)
