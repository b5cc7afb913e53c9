"""
Logging Configuration
=====================
loguru setup for the song library.

- Development: colored console plus a daily rotating file under ``logs/``
- Anything else: one JSON record per line on stdout
- uvicorn, httpx and botocore standard-library loggers are routed into loguru
- Access tokens that leak into messages or bound extras (signed URL query
  strings, Authorization headers) are masked before any sink sees them
"""

import logging
import re
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from song_library.core.config import settings


INTERCEPTED_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "fastapi",
    "httpx",
    "botocore",
    "aiobotocore",
)

# Chatty at INFO/DEBUG, and httpx logs full request URLs
QUIET_LOGGERS = ("httpx", "botocore", "aiobotocore")

TOKEN_PATTERN = re.compile(
    r"(?i)(authorization=|x-amz-signature=|x-amz-credential=|authorization:\s*(?:(?:basic|bearer)\s+)?)"
    r"([^&\s\"']+)"
)

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[logger_name]}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[logger_name]}:{function}:{line} | {message}"


def mask_tokens(text: str) -> str:
    """Replace token values in ``text`` with ``***``"""
    return TOKEN_PATTERN.sub(lambda m: m.group(1) + "***", text)


def _mask_value(value):
    if isinstance(value, str):
        return mask_tokens(value)
    if isinstance(value, dict):
        return {k: _mask_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_mask_value(v) for v in value]
    return value


def _patch_record(record) -> None:
    extra = record["extra"]
    for name, value in list(extra.items()):
        extra[name] = _mask_value(value)
    extra.setdefault("logger_name", record["name"])
    record["message"] = mask_tokens(record["message"])


class InterceptHandler(logging.Handler):
    """Forward standard-library log records to loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).bind(
            logger_name=record.name
        ).log(level, record.getMessage())


def _add_console_sink() -> None:
    if settings.is_development:
        logger.add(
            sys.stdout,
            format=CONSOLE_FORMAT,
            level="DEBUG" if settings.DEBUG else "INFO",
            colorize=True,
            backtrace=True,
            diagnose=settings.DEBUG,
        )
    else:
        logger.add(
            sys.stdout,
            format="{message}",
            level="DEBUG" if settings.DEBUG else "INFO",
            serialize=True,
            backtrace=False,
            diagnose=False,
        )


def _add_file_sink() -> None:
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)
    logger.add(
        log_dir / "song_library_{time:YYYY-MM-DD}.log",
        rotation="00:00",
        retention="7 days",
        compression="zip",
        level="DEBUG",
        format=FILE_FORMAT,
    )


def _intercept_stdlib() -> None:
    for name in INTERCEPTED_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False
        std_logger.setLevel(logging.WARNING if name in QUIET_LOGGERS else logging.INFO)


def setup_logging() -> None:
    """Install sinks for the current environment; safe to call repeatedly"""
    logger.remove()
    logger.configure(patcher=_patch_record)

    _add_console_sink()
    if settings.is_development:
        _add_file_sink()
    _intercept_stdlib()

    logger.bind(logger_name=__name__).info(
        f"Logging configured for {settings.ENVIRONMENT} environment"
    )


def get_logger(name: Optional[str] = None):
    """
    Logger bound to a module name.

    The name shows up as ``extra.logger_name`` in JSON output and in the
    console format.
    """
    if name:
        return logger.bind(logger_name=name)
    return logger
