"""
Logging Configuration Module
Stdout + rotating file logging, with every line prefixed by the sync step
(e.g. "[extract toggl]") that was running when it was emitted.
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator, Optional

from ternity_sync.config_manager import ConfigManager

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(sync_step)s%(message)s'

_current_step: ContextVar[Optional[str]] = ContextVar('sync_step', default=None)


def current_sync_step() -> Optional[str]:
    return _current_step.get()


@contextmanager
def sync_step(name: str) -> Iterator[None]:
    """Tag log records emitted inside the block with a step name."""
    token = _current_step.set(name)
    try:
        yield
    finally:
        _current_step.reset(token)


class SyncStepFilter(logging.Filter):
    """Sets record.sync_step to '[step] ', or '' outside any step."""

    def filter(self, record: logging.LogRecord) -> bool:
        step = _current_step.get()
        record.sync_step = f"[{step}] " if step else ''
        return True


def _attach(root: logging.Logger, handler: logging.Handler, level: int, formatter: logging.Formatter) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(SyncStepFilter())
    root.addHandler(handler)


def setup_logging() -> None:
    """
    Configure the root logger once per process (scripts, service, web app).

    Reads level, format, file and rotation sizes from the `logging` config section.
    """
    log_config = ConfigManager().get_logging_config()

    log_level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)
    log_file = Path(log_config.get('file', './logs/ternity_sync.log'))
    log_file.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(log_config.get('format', DEFAULT_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    _attach(root_logger, logging.StreamHandler(sys.stdout), log_level, formatter)
    _attach(
        root_logger,
        RotatingFileHandler(
            log_file,
            maxBytes=int(log_config.get('max_bytes', 10485760)),  # 10MB
            backupCount=int(log_config.get('backup_count', 5)),
            encoding='utf-8'
        ),
        log_level,
        formatter
    )

    # Per-request lines from the HTTP stack and the scheduler's job chatter
    for noisy in ('urllib3', 'requests', 'sqlalchemy.engine', 'apscheduler'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LoggerMixin:
    """Gives a class a `logger` named after its module and class."""

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")
