"""structlog on top of stdlib logging: one event stream, rendered to stdout and a rotating file."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

import structlog

LOG_FILENAME = "checkgate.log"

# Shared by structlog-native events and foreign stdlib records (uvicorn, sqlalchemy)
_PRE_CHAIN = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
]


def _formatter(renderer) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_PRE_CHAIN,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def setup_logging(
    debug: bool = False,
    log_dir: Optional[str] = "logs",
    log_max_bytes: int = 10_000_000,
    log_backup_count: int = 5,
) -> Optional[str]:
    """Route every CheckGate event through the root logger.

    stdout gets JSON lines, or console lines in debug mode. The rotating file
    under ``log_dir`` always gets JSON with rendered tracebacks. Returns the
    log file path, or None when the directory cannot be written.
    """
    log_level = logging.DEBUG if debug else logging.INFO

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_PRE_CHAIN,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    # Reconfiguring replaces handlers instead of stacking them
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(
        _formatter(structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer())
    )
    root_logger.addHandler(console)

    if not log_dir:
        return None
    try:
        os.makedirs(log_dir, exist_ok=True)
        log_path = os.path.join(log_dir, LOG_FILENAME)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=log_max_bytes,
            backupCount=log_backup_count,
            encoding="utf-8",
        )
    except OSError:
        # Read-only filesystem: stdout only
        return None
    file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
    root_logger.addHandler(file_handler)
    return log_path


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
