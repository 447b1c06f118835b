from contextvars import ContextVar
from datetime import datetime, timezone
from enum import StrEnum
import logging
import os
import re
import sys
from typing import TYPE_CHECKING

from loguru import logger as loguru_logger


if TYPE_CHECKING:
    from loguru import Logger as LoguruLogger

from src.platform.config.core_setting import settings
from src.platform.constant.path import LOG_DIR
from src.platform.logging.service_context import get_service_context


LOG_DIR = os.environ.get('TEST_LOG_DIR', LOG_DIR)

# Payment and credential fields never written to a log line
SENSITIVE_KEYWORDS = {
    'password',
    'card_number',
    'stripe_token',
    'client_secret',
    'api_key',
    'access_token',
    'stream_access_token',
    'transfer_code',
}
DEPTH_LINE = '│ '

chain_start_time_var: ContextVar[float] = ContextVar('first_time_var', default=0)
call_depth_var: ContextVar[int] = ContextVar('call_depth_var', default=0)


class ExtraField(StrEnum):
    SERVICE_CONTEXT = 'service_context'
    CHAIN_START_TIME = 'chain_start_time'
    CALL_TARGET = 'call_target'


# Stdlib loggers that only add noise below WARNING
QUIET_LOGGERS = ('aiosqlite', 'asyncio', 'httpcore', 'httpx', 'stripe', 'sqlalchemy.pool')

# '127.0.0.1:5123 - "POST /api/checkout/complete HTTP/1.1" 200' (uvicorn access log)
_ACCESS_LOG_STATUS = re.compile(r'"[A-Z]+ \S+ HTTP/[\d.]+"\s+-?\s*(\d{3})\b')


def access_log_level(message: str) -> str | None:
    """Log level for an access-log line, taken from its HTTP status."""
    match = _ACCESS_LOG_STATUS.search(message)
    if match is None:
        return None
    status_code = int(match.group(1))
    if status_code >= 500:
        return 'CRITICAL'
    if status_code >= 400:
        return 'WARNING'
    if status_code >= 200:
        return 'SUCCESS'
    return 'INFO'


def _bind_defaults() -> 'LoguruLogger':
    return loguru_logger.bind(
        **{
            ExtraField.SERVICE_CONTEXT: get_service_context(),
            ExtraField.CHAIN_START_TIME: '',
            ExtraField.CALL_TARGET: '',
        }
    )


class InterceptHandler(logging.Handler):
    """Route stdlib logging (uvicorn, sqlalchemy, httpx) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        if record.levelno < logging.WARNING and record.name.startswith(QUIET_LOGGERS):
            return

        message = record.getMessage()
        level: str | int | None = access_log_level(message)
        if level is None:
            try:
                level = loguru_logger.level(record.levelname).name
            except ValueError:
                level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore
            depth += 1

        intercept_logger.opt(depth=depth, exception=record.exc_info).log(level, message)


io_log_format = ' | '.join(
    (
        f'<c>{{extra[{ExtraField.SERVICE_CONTEXT}]}}</>',
        '<lvl>{level:<8}</>',
        f'<c>{{file}}::{{function}}:{{line}}</>=><y>{{extra[{ExtraField.CALL_TARGET}]}}</>',
        '{message}',
        '<lk>{elapsed}</>',
        f'<lk>{{extra[{ExtraField.CHAIN_START_TIME}]:<18}}</>',
    )
)


def _min_log_level() -> str:
    if settings.LOG_LEVEL:
        return settings.LOG_LEVEL.upper()
    return 'DEBUG' if settings.DEBUG else 'INFO'


def _log_file_path() -> str:
    stamp = datetime.now(timezone.utc).strftime('%Y-%m-%d_%H')
    prefix = 'test_' if os.environ.get('TEST_LOG_DIR') else ''
    return f'{LOG_DIR}/{prefix}{stamp}.log'


def configure_sinks(target: 'LoguruLogger') -> None:
    """Stdout always; a rotating file in DEBUG or when LOG_FILE_ENABLED is set."""
    level = _min_log_level()
    target.add(sys.stdout, format=io_log_format, level=level, enqueue=True)
    if settings.DEBUG or settings.LOG_FILE_ENABLED:
        target.add(
            _log_file_path(),
            format=io_log_format,
            rotation=settings.LOG_FILE_ROTATION,
            retention=settings.LOG_FILE_RETENTION,
            compression='gz',
            enqueue=True,
            level=level,
        )


loguru_logger.remove()
custom_logger = _bind_defaults()
intercept_logger = _bind_defaults()
configure_sinks(custom_logger)

logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
