"""Logging configuration and utilities."""

import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "prompt_hub"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    log_to_console: bool = True,
    max_file_size: int = 5 * 1024 * 1024,  # 5MB
    backup_count: int = 3
) -> logging.Logger:
    """Setup logging for the prompt_hub logger tree.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (optional)
        log_to_console: Whether to log to stderr
        max_file_size: Maximum size of log file before rotation
        backup_count: Number of rotated log files to keep

    Returns:
        Configured logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file else level)

    # Re-running setup must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)  # Always log everything to file
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger below the prompt_hub namespace.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class TimedOperation:
    """Log how long a block took; failures are logged at ERROR with the cause.

    The elapsed time is available as ``duration`` once the block exits.
    """

    def __init__(self, logger: logging.Logger, operation_name: str, log_level: str = "INFO"):
        self.logger = logger
        self.operation_name = operation_name
        self.level = logging.getLevelName(log_level.upper())
        self.duration: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self) -> "TimedOperation":
        self._started = time.monotonic()
        self.logger.log(self.level, f"▶️ {self.operation_name} started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.duration = time.monotonic() - self._started
        if exc_type is None:
            self.logger.log(self.level, f"Completed {self.operation_name} in {self.duration:.2f}s")
        else:
            self.logger.error(f"Failed {self.operation_name} after {self.duration:.2f}s: {exc_val}")
        return False
