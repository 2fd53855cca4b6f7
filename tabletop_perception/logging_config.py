"""
Application logging configuration.

Library modules only call logging.getLogger(__name__); entry points (CLI,
Streamlit demo) call setup_logging() once at startup.
"""

import logging
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """
    Configure the root logger with a stderr handler and, optionally, a file
    handler that captures everything at DEBUG level.

    Args:
        level: Minimum log level for the stderr handler
        log_file: Optional path of a log file (parent directories are created)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if log_file else level)

    # Calling twice (e.g. Streamlit reruns) must not duplicate output
    for handler in list(root_logger.handlers):
        if getattr(handler, "_tabletop_perception", False):
            root_logger.removeHandler(handler)
            handler.close()

    stderr_handler = logging.StreamHandler()
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    stderr_handler._tabletop_perception = True
    root_logger.addHandler(stderr_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        file_handler._tabletop_perception = True
        root_logger.addHandler(file_handler)
