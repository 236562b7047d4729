"""Logging helpers for echoflow.

Everything logs below the ``echoflow`` logger; ``setup_logger`` owns its
handlers. Task invocations run on pool threads, so the file format carries
the thread name.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Union

__all__ = ["setup_logger", "get_logger", "configure_logging"]

LogTarget = Union[str, Path, bool, None]

DEFAULT_LOG_FILE = Path("~/.echoflow/logs/echoflow.log").expanduser()
CONSOLE_FORMAT = "[%(levelname).1s] %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3

QUIET_LOGGERS = ("litellm", "LiteLLM", "httpx")
_DISABLED_WORDS = ("off", "false", "none", "no")


def _attach(logger: logging.Logger, handler: logging.Handler, level: int, fmt: str):
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)


def setup_logger(
    name: str = "echoflow",
    verbose: bool = False,
    log_file: LogTarget = None,
) -> logging.Logger:
    """Configure and return the package logger.

    Args:
        name: Logger name. Loggers from ``get_logger(__name__)`` inside the
            package inherit this configuration.
        verbose: INFO when true, WARNING otherwise.
        log_file: ``None``/``True`` for the default file, ``False`` for no
            file, or an explicit path.
    """
    logger = logging.getLogger(name)
    level = logging.INFO if verbose else logging.WARNING

    while logger.handlers:
        old = logger.handlers[0]
        logger.removeHandler(old)
        old.close()
    logger.setLevel(level)
    logger.propagate = False

    _attach(logger, logging.StreamHandler(), level, CONSOLE_FORMAT)

    path = _resolve_log_path(log_file)
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
        )
        _attach(logger, rotating, level, FILE_FORMAT)

    for noisy in QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _resolve_log_path(log_file: LogTarget) -> Path | None:
    if log_file is False:
        return None
    if log_file is None or log_file is True:
        return DEFAULT_LOG_FILE
    return Path(log_file).expanduser()


def configure_logging(config) -> logging.Logger:
    """Set up the package logger from a loaded ``Config``.

    ``log-file`` accepts ``off`` (no file), ``default`` or empty (standard
    location), or a path.
    """
    raw = (getattr(config, "log_file", "") or "").strip()
    if raw.lower() in _DISABLED_WORDS:
        target: LogTarget = False
    elif raw.lower() in ("", "default"):
        target = None
    else:
        target = raw
    return setup_logger("echoflow", verbose=getattr(config, "verbose", False), log_file=target)
