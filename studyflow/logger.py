import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

ENV_LOG_DIR = "STUDYFLOW_LOG_DIR"
FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name: str = "studyflow", level: int = logging.INFO, log_dir: Optional[str] = None) -> logging.Logger:
    """Configures and returns the package logger.

    Console output always; a rotating file (5MB x 5) when log_dir or
    STUDYFLOW_LOG_DIR is set. Calling it again returns the configured logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Prevent duplicate handlers if function is called multiple times
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    log_dir = log_dir or os.getenv(ENV_LOG_DIR)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "studyflow.log"), maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setFormatter(logging.Formatter(FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    return logger
