"""
Centralized logging configuration for the recovery service
"""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler


# Log format configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Default log directory
LOG_DIR = Path(__file__).parent.parent.parent / "logs"


def parse_log_level(value: str | None, default: int = logging.INFO) -> int:
    """
    Turn a level name such as "debug" or "WARNING" into a logging constant.

    Unknown names fall back to the default instead of failing startup.
    """
    if not value:
        return default
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else default


def get_logger(name: str) -> logging.Logger:
    """
    Get or create a logger instance.

    Handlers are configured once on the root logger by
    configure_app_logging(); module loggers only propagate to it.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def configure_app_logging(
    level: int = logging.INFO,
    log_to_file: bool = True,
    log_file: str = "recovery.log",
) -> None:
    """
    Configure application-wide logging settings.

    This should be called once at application startup.

    Args:
        level: Root logging level (default: INFO)
        log_to_file: Whether to enable file logging (default: True)
        log_file: Log file name (default: "recovery.log")
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_to_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_DIR / log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
