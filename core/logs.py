from __future__ import annotations

import logging
from typing import Callable

# Journalisation partagée : callback `log(msg, level)` comme MainWindow.logln, branché sur logging.

LogFn = Callable[..., None]

LOGGER_NAME = "livetv"

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "WARNING": 30, "ERROR": 40}


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=_LEVELS.get((level or "INFO").strip().upper(), 20),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("werkzeug").setLevel(logging.ERROR)


def default_log(msg: str, level: str = "INFO") -> None:
    """Écrit une ligne (ou plusieurs) sur le logger du projet."""
    if msg is None:
        return
    level_num = _LEVELS.get((level or "INFO").strip().upper(), 20)
    logger = logging.getLogger(LOGGER_NAME)
    for raw_line in str(msg).splitlines() or [""]:
        logger.log(level_num, raw_line.rstrip())


def resolve_log(log: LogFn | None) -> LogFn:
    return log or default_log
