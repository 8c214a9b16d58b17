"""Logging for the commerce domain.

Records flow through stdlib handlers (stdout plus two rotating files) and are
rendered by structlog: JSON in production and staging, a rich console
elsewhere. Payment credentials never reach a handler; `mask_secrets` replaces
them before rendering.
"""

import logging
import logging.handlers
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import structlog

LEVELS_BY_ENV = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

SECRET_KEYS = frozenset({"card_token", "signature", "webhook_secret", "secret", "authorization"})

_MAX_BYTES = 10 * 1024 * 1024
_BACKUPS = 5


def current_env() -> str:
    for var in ("ENV", "ENVIRONMENT", "PROTEAN_ENV"):
        value = os.getenv(var)
        if value:
            return value.lower()
    return "development"


def get_log_level(default: str | None = None) -> str:
    """LOG_LEVEL wins, then the explicit default, then the environment's level."""
    return os.getenv("LOG_LEVEL") or default or LEVELS_BY_ENV.get(current_env(), "INFO")


def mask_secrets(_logger, _method_name: str, event_dict: dict) -> dict:
    """structlog processor replacing credential values with a fixed marker."""
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key] is not None:
            event_dict[key] = "***"
    return event_dict


def _rotating_handler(path: Path, level: int | str) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path, maxBytes=_MAX_BYTES, backupCount=_BACKUPS, encoding="utf-8"
    )
    handler.setLevel(level)
    return handler


def setup_stdlib_logging(level: str | None = None, log_dir: str = "logs", log_file_prefix: str = "commerce") -> None:
    log_level = get_log_level(level)

    directory = Path(os.getenv("LOG_DIR", log_dir))
    directory.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(log_level)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers = [
        console,
        _rotating_handler(directory / f"{log_file_prefix}.log", log_level),
        _rotating_handler(directory / f"{log_file_prefix}_error.log", logging.ERROR),
    ]

    # Library chatter stays out of commerce logs unless it is a warning.
    for noisy in ("urllib3", "asyncio", "httpx", "protean"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _renderer(log_format: str):
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=2),
    )


def setup_structlog(log_format: str | None = None) -> None:
    log_format = log_format or os.getenv("LOG_FORMAT")
    if log_format is None:
        log_format = "json" if current_env() in ("production", "staging") else "console"

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            ),
            mask_secrets,
            _renderer(log_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(level: str | None = None, log_dir: str = "logs", log_file_prefix: str = "commerce") -> None:
    setup_stdlib_logging(level=level, log_dir=log_dir, log_file_prefix=log_file_prefix)
    setup_structlog()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def add_context(**kwargs: Any) -> None:
    """Bind values to every log line emitted later in this context."""
    structlog.contextvars.bind_contextvars(**{key: value for key, value in kwargs.items() if value is not None})


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def request_context(**kwargs: Any) -> Iterator[None]:
    """Bind request details for the duration of the block, then drop them."""
    add_context(**kwargs)
    try:
        yield
    finally:
        clear_context()
