"""
Logging configuration for the Streamlit app
"""
from pathlib import Path
from typing import Optional, Union
import logging

from app import config

LOGGER_NAME = "app"


def setup_logging(
    level: Union[int, str] = config.LOG_LEVEL,
    log_file: Optional[Path] = None,
    name: str = LOGGER_NAME,
) -> logging.Logger:
    """
    Set up logging for the app package.

    Creates a console handler and, when log_file is given, a file handler.
    Streamlit reruns the script on every interaction, so existing handlers
    are replaced rather than added to.

    Args:
        level: Logging level (int or name such as "INFO")
        log_file: Optional path of a log file
        name: Logger name

    Returns:
        Configured logger
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        level = resolved

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers
    logger.handlers = []

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        logger.addHandler(file_handler)

    return logger
