"""
Logging utilities for the acute stay project.

Provides functions to configure and retrieve logger instances based on the
'logging' section of the project's configuration file (`config.yaml`): log
level, optional timestamped file output under 'logs/', and console output.
"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional

# Config functions are imported inside the functions below to avoid a circular
# import while the utils package initialises.

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _logging_section() -> Dict[str, Any]:
    from .config import load_config

    return load_config().get("logging", {}) or {}


def get_log_level_from_config() -> int:
    """
    Get the logging level (e.g., logging.INFO, logging.DEBUG) from the configuration file.

    Reads the 'logging.level' setting. Defaults to logging.INFO if the setting
    is missing, invalid, or if the config file cannot be loaded.

    Returns:
        int: The logging level constant.
    """
    try:
        level_str = str(_logging_section().get("level", "INFO")).upper()
    except Exception as e:
        print(
            f"WARNING: Could not load log level from config ({e}). Defaulting to INFO."
        )
        return logging.INFO

    if level_str not in _LOG_LEVELS:
        print(f"WARNING: Invalid log level '{level_str}' in config. Defaulting to INFO.")
    return _LOG_LEVELS.get(level_str, logging.INFO)


def setup_logger(
    name: str = "acute_los",
    log_level: Optional[int] = None,
    log_file: Optional[str] = None,
    console_output: bool = True,
) -> logging.Logger:
    """
    Set up and configure a logger instance.

    Args:
        name (str, optional): Name of the logger. Defaults to "acute_los".
        log_level (Optional[int], optional): Logging level. If None, determined by
                                             `get_log_level_from_config()`.
        log_file (Optional[str], optional): Explicit path to the log file. An empty
                                            string disables file logging; None creates
                                            a timestamped file in 'logs/'.
        console_output (bool, optional): Whether to log to stdout. Defaults to True.

    Returns:
        logging.Logger: The configured logger instance.
    """
    if log_level is None:
        log_level = get_log_level_from_config()

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Reconfiguring replaces any existing handlers
    if logger.handlers:
        logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if log_file != "":
        log_path = log_file
        if log_path is None:
            try:
                from .config import get_project_root

                logs_dir = get_project_root() / "logs"
                logs_dir.mkdir(exist_ok=True)
                timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
                log_path = str(logs_dir / f"{name}_{timestamp}.log")
            except Exception as e:
                print(f"ERROR: Could not create default log file path: {e}")
                log_path = None

        if log_path:
            try:
                file_handler = logging.FileHandler(log_path, encoding="utf-8")
                file_handler.setLevel(log_level)
                file_handler.setFormatter(formatter)
                logger.addHandler(file_handler)
            except OSError as e:
                print(f"ERROR: Could not set up file handler for {log_path}: {e}")

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    logger.propagate = False

    return logger


def get_logger(name: str = "acute_los") -> logging.Logger:
    """
    Get a logger instance by name, configuring it from the project config on first use.

    Args:
        name (str, optional): Name of the logger. Defaults to "acute_los".

    Returns:
        logging.Logger: The logger instance.
    """
    logger_instance = logging.getLogger(name)
    if logger_instance.handlers:
        return logger_instance

    try:
        log_config = _logging_section()
        return setup_logger(
            name,
            log_level=get_log_level_from_config(),
            log_file=None if log_config.get("file_output", False) else "",
            console_output=log_config.get("console_output", True),
        )
    except Exception as e:
        print(f"WARNING: Error setting up logger from config ({e}). Using default setup.")
        return setup_logger(name, log_level=logging.INFO, log_file="")


def is_debug_enabled() -> bool:
    """
    Check if DEBUG logging level is enabled based on the configuration.

    Returns:
        bool: True if the configured log level is DEBUG or lower.
    """
    return get_log_level_from_config() <= logging.DEBUG
