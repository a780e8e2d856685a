"""
Utility functions for the acute stay project.
"""

from .config import get_data_path, get_project_root, get_stay_settings, load_config
from .logger import get_logger, is_debug_enabled, setup_logger

__all__ = [
    "load_config",
    "get_project_root",
    "get_data_path",
    "get_stay_settings",
    "setup_logger",
    "get_logger",
    "is_debug_enabled",
]
