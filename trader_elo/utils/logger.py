"""
Logging for Trader ELO

Calculators only call get_logger(). Handlers (rich console, optional
rotating file, per-module levels) are installed once by the caller through
setup_logging() or setup_logging_from_config().
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOG_FILE = "logs/trader_elo.log"
DEFAULT_MAX_BYTES = 10_485_760  # 10MB
DEFAULT_BACKUP_COUNT = 5


def setup_logging(
    log_file: Optional[str] = DEFAULT_LOG_FILE,
    log_level: str = "INFO",
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    module_levels: Optional[dict] = None
) -> logging.Logger:
    """
    Replace the root handlers with a rich console handler and, when
    log_file is set, a rotating file handler.

    Args:
        log_file: Path to log file (None = console only)
        log_level: Handler level name
        max_bytes: Rotation size
        backup_count: Rotated files kept
        module_levels: Logger name -> level name
                       (e.g. {'trader_elo.scorer.metric_calculator': 'DEBUG'})

    Returns:
        Root logger
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers filter
    root_logger.handlers.clear()

    if log_file:
        root_logger.addHandler(_file_handler(log_file, level, max_bytes, backup_count))
    root_logger.addHandler(_console_handler(level))

    for module_name, module_level in (module_levels or {}).items():
        logging.getLogger(module_name).setLevel(getattr(logging, module_level.upper()))

    get_logger("trader_elo.setup").info(
        f"Logging ready: level={log_level}, file={log_file or 'disabled'}, "
        f"modules={module_levels or {}}"
    )

    return root_logger


def setup_logging_from_config(config) -> logging.Logger:
    """Install handlers from the 'logging' section of a loaded Config."""
    return setup_logging(
        log_file=config.get('logging.file', DEFAULT_LOG_FILE),
        log_level=config.get('logging.level', 'INFO'),
        max_bytes=config.get('logging.max_bytes', DEFAULT_MAX_BYTES),
        backup_count=config.get('logging.backup_count', DEFAULT_BACKUP_COUNT),
        module_levels=config.get('logging.modules')
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _file_handler(log_file: str, level: int, max_bytes: int, backup_count: int) -> logging.Handler:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def _console_handler(level: int) -> logging.Handler:
    # stderr keeps CLI stdout (tables, --json) clean
    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_time=False,
        show_path=False
    )
    handler.setLevel(level)
    return handler
