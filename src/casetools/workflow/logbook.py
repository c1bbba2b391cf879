from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer

LOGGER_NAME = "casetools"

# Between INFO and WARNING; shown green on the console
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

WORKFLOW_LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
WORKFLOW_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

LEVEL_COLORS = {
    logging.DEBUG: None,
    logging.INFO: typer.colors.BLUE,
    SUCCESS: typer.colors.GREEN,
    logging.WARNING: typer.colors.YELLOW,
    logging.ERROR: typer.colors.RED,
}


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter("[casetools] %(message)s"))
        logger.addHandler(h)
        logger.setLevel(logging.INFO)
    return logger


class EchoHandler(logging.Handler):
    """Console handler for the CLIs: one colour per level, on stderr."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            typer.secho(msg, fg=LEVEL_COLORS.get(record.levelno), err=True)
        except Exception:
            self.handleError(record)


def configure_console(logger: Optional[logging.Logger] = None) -> logging.Logger:
    """Swap the default stream handler for colour echo output."""
    logger = logger or logging.getLogger(LOGGER_NAME)
    for h in list(logger.handlers):
        if not isinstance(h, logging.FileHandler):
            logger.removeHandler(h)
    logger.addHandler(EchoHandler())
    logger.setLevel(logging.INFO)
    return logger


def workflow_log_path(log_dir: Path, when: Optional[float] = None) -> Path:
    stamp = time.strftime("%Y%m%d_%H%M%S", time.localtime(when))
    return Path(log_dir) / f"workflow_{stamp}.log"


@contextmanager
def workflow_log(logger: logging.Logger, path: Path) -> Iterator[Path]:
    """
    Attach an append-only file handler for the duration of one invocation.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(WORKFLOW_LOG_FORMAT, datefmt=WORKFLOW_LOG_DATEFMT))
    logger.addHandler(handler)
    try:
        yield path
    finally:
        logger.removeHandler(handler)
        handler.close()
