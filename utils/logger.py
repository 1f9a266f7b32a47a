"""Logging configuration for BlogBench."""

import logging
from pathlib import Path
from typing import Optional

# Log file location
LOG_FILE = Path(__file__).parent.parent / "blogbench.log"


def setup_logger(
    name: Optional[str] = None,
    level: int = logging.DEBUG,
    log_file: Path = LOG_FILE,
) -> logging.Logger:
    """Set up and return a logger that writes to file (not stdout to avoid Rich conflicts).

    Configures the root logger by default so every module logger propagates to it.
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    logger.setLevel(level)

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file, mode='w')
    file_handler.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s.%(msecs)03d | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%H:%M:%S'
    )
    file_handler.setFormatter(formatter)

    logger.addHandler(file_handler)

    return logger


def log_exception(msg: str = "Exception occurred", name: Optional[str] = None):
    """Log an exception with full traceback."""
    logging.getLogger(name).exception(msg)
