"""Logging setup.

Routes every log record (ours, uvicorn's, SQLAlchemy's) through loguru and
provides named loggers for each subsystem.
"""

import inspect
import logging
import sys

from app.config import settings

from loguru import logger

__all__ = ["log", "logger", "system_logger"]


class InterceptHandler(logging.Handler):
    """Forward standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _format(record) -> str:
    name = record["extra"].get("name")
    prefix = f"<cyan>[{name}]</cyan> " if name else ""
    return (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
        + prefix.replace("{", "{{").replace("}", "}}")
        + "<level>{message}</level>\n{exception}"
    )


logger.remove()
logger.add(
    sys.stderr,
    level=settings.log_level,
    format=_format,
    colorize=True,
    backtrace=settings.debug,
    diagnose=settings.debug,
)

logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
for _name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi", "apscheduler"):
    _logger = logging.getLogger(_name)
    _logger.handlers = [InterceptHandler()]
    _logger.propagate = False
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def log(name: str):
    """Get a logger bound to a subsystem name."""
    return logger.bind(name=name)


def system_logger(name: str):
    return logger.bind(name=f"System:{name}")
