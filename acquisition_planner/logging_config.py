"""
Logging configuration using loguru.
"""
import os
import sys
from loguru import logger


def setup_logging(level: str = "INFO", log_to_file: bool = False, log_dir: str = "logs") -> None:
    """
    Configure application-wide logging with loguru.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Also write a rotating log file under ``log_dir``
        log_dir: Directory for the log file
    """
    # Remove default handler
    logger.remove()

    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level.upper(),
        colorize=True
    )

    if log_to_file:
        os.makedirs(log_dir, exist_ok=True)
        logger.add(
            os.path.join(log_dir, "app.log"),
            rotation="50 MB",
            retention="10 days",
            level=level.upper(),
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
        )

    logger.info(f"Logging configured: level={level}, file={log_to_file}")


def get_logger(name: str):
    """
    Get a logger instance. With loguru, this returns the same logger.

    Args:
        name: Module name (for context)

    Returns:
        Logger instance
    """
    return logger.bind(name=name)
