"""
Configuration utilities for the acute stay project.

Provides functions to:
- Get the project root directory.
- Load and validate the main configuration file (`config.yaml`).
- Construct absolute paths to data files based on the configuration.
- Resolve the stay engine settings (lag threshold, worker count, progress bar).
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import yaml
from yaml.parser import ParserError
from yaml.scanner import ScannerError

# Define expected configuration structure (top-level keys and required sub-keys)
CONFIG_SCHEMA: Dict[str, Set[str]] = {
    "logging": {"level", "file_output", "console_output"},
    "data": {"raw", "processed", "external"},
    "stays": {"lag_hours"},
}

# Engine defaults, overridden by the 'stays' section of the config
DEFAULT_STAY_SETTINGS: Dict[str, Any] = {
    "lag_hours": 24.0,
    "workers": None,  # None means os.cpu_count()
    "show_progress": True,
}

# Define project root at the module level for efficiency
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def get_project_root() -> Path:
    """
    Get the absolute path to the project root directory.

    Assumes the script is located within a standard project structure
    (e.g., src/utils/config.py).

    Returns:
        Path: Path object representing the project root directory.
    """
    return PROJECT_ROOT


def validate_config_structure(
    config: Dict[str, Any], schema: Dict[str, Set[str]], path: str = ""
) -> List[str]:
    """
    Validate the structure of a configuration dictionary against a schema.

    Checks for missing required sections and subsections defined in the schema.

    Args:
        config (Dict[str, Any]): Configuration dictionary to validate.
        schema (Dict[str, Set[str]]): Schema dictionary where keys are section names
                                      and values are sets of required subsection keys.
        path (str, optional): Current path in the configuration for error messages.
                              Defaults to "".

    Returns:
        List[str]: A list of validation error messages. Empty if the structure is valid.
    """
    errors: List[str] = []
    current_path_prefix = f"{path}." if path else ""

    for section in schema:
        if section not in config:
            errors.append(f"Missing required section '{current_path_prefix}{section}'")

    for section, value in config.items():
        if section not in schema:
            continue
        if isinstance(value, dict):
            for subsection in schema[section]:
                if subsection not in value:
                    errors.append(
                        f"Missing required subsection '{subsection}' in '{current_path_prefix}{section}'"
                    )
        else:
            errors.append(
                f"Section '{current_path_prefix}{section}' should be a dictionary, but found {type(value).__name__}"
            )

    return errors


@lru_cache(maxsize=None)  # Cache the result to avoid repeated file reads and parsing
def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML file, validate its structure, and cache the result.

    Args:
        config_path (Optional[str], optional): Path to the configuration file.
            If None, uses the default 'configs/config.yaml' relative to the project root.
            Defaults to None.

    Returns:
        Dict[str, Any]: The loaded and validated configuration dictionary.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If the configuration file is empty or malformed (not valid YAML
                    or not a dictionary).
    """
    if config_path is None:
        config_path_obj = get_project_root() / "configs" / "config.yaml"
    else:
        config_path_obj = Path(config_path)

    config_path_str = str(config_path_obj.resolve())

    if not config_path_obj.exists():
        # Cannot use logger here reliably due to potential recursion during startup
        print(f"ERROR: Configuration file not found: {config_path_str}")
        raise FileNotFoundError(f"Configuration file not found: {config_path_str}")

    try:
        with config_path_obj.open("r", encoding="utf-8") as f:
            config = yaml.safe_load(f)

        if config is None:
            raise ValueError(f"Configuration file is empty: {config_path_str}")
        if not isinstance(config, dict):
            raise ValueError(
                f"Configuration must be a dictionary, got {type(config).__name__} in {config_path_str}"
            )

        errors = validate_config_structure(config, CONFIG_SCHEMA)
        if errors:
            error_msg = "Configuration validation errors:\n" + "\n".join(
                f"- {e}" for e in errors
            )
            print(f"WARNING: Config validation: {error_msg}")

        return config

    except (ParserError, ScannerError) as e:
        error_msg = (
            f"YAML syntax error in configuration file {config_path_str}: {str(e)}"
        )
        print(f"ERROR: Config loading: {error_msg}")
        raise ValueError(error_msg) from e


def get_data_path(
    data_type: str,
    dataset: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Construct the absolute path to a data file or directory based on the configuration.

    Resolves paths relative to the project root if they are not absolute in the config.

    Args:
        data_type (str): Type of data ('raw', 'processed', or 'external').
        dataset (Optional[str], optional): Specific dataset key within the data_type section
                                           (e.g., 'inpatient', 'transfers', 'stays').
                                           If None, returns the 'base_path' for the data_type.
                                           Defaults to None.
        config (Optional[Dict[str, Any]], optional): Configuration dictionary.
                                                     If None, loads the default configuration.
                                                     Defaults to None.

    Returns:
        str: Absolute path to the data file or directory.

    Raises:
        ValueError: If `data_type` is not 'raw', 'processed', or 'external'.
        KeyError: If the 'data' section, the specified `data_type` section, or the
                  requested `dataset` key (or 'base_path') is not found in the configuration.
    """
    if config is None:
        config = load_config()

    valid_data_types = ["raw", "processed", "external"]
    if data_type not in valid_data_types:
        raise ValueError(
            f"data_type must be one of {valid_data_types}, got '{data_type}'"
        )

    if "data" not in config:
        raise KeyError("'data' section not found in configuration")

    if data_type not in config["data"]:
        raise KeyError(f"'{data_type}' section not found in data configuration")

    lookup_key = dataset if dataset is not None else "base_path"

    try:
        path_str = config["data"][data_type][lookup_key]
        path = Path(path_str)
    except KeyError:
        raise KeyError(
            f"Dataset key '{lookup_key}' not found in configuration for '{data_type}' data"
        )
    except TypeError as e:
        raise KeyError(
            f"Configuration for '{data_type}' data is not structured correctly: {e}"
        ) from e

    if not path.is_absolute():
        path = get_project_root() / path

    return str(path.resolve())


def get_stay_settings(config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Resolve the stay engine settings from the 'stays' config section.

    Missing keys fall back to DEFAULT_STAY_SETTINGS. A missing or null worker
    count resolves to the number of available cores.

    Args:
        config (Optional[Dict[str, Any]], optional): Configuration dictionary.
            If None, loads the default configuration. Defaults to None.

    Returns:
        Dict[str, Any]: Settings with 'lag_hours' (float), 'workers' (int) and
                        'show_progress' (bool).

    Raises:
        ValueError: If the lag threshold is not a positive number or the worker
                    count is below 1.
    """
    if config is None:
        config = load_config()

    settings = dict(DEFAULT_STAY_SETTINGS)
    settings.update(
        {k: v for k, v in (config.get("stays") or {}).items() if v is not None}
    )

    try:
        lag_hours = float(settings["lag_hours"])
    except (TypeError, ValueError) as e:
        raise ValueError(
            f"stays.lag_hours must be a number, got {settings['lag_hours']!r}"
        ) from e
    if lag_hours <= 0:
        raise ValueError(f"stays.lag_hours must be > 0, got {lag_hours}")

    workers = settings.get("workers")
    if workers is None:
        workers = os.cpu_count() or 1
    workers = int(workers)
    if workers < 1:
        raise ValueError(f"stays.workers must be >= 1, got {workers}")

    return {
        "lag_hours": lag_hours,
        "workers": workers,
        "show_progress": bool(settings.get("show_progress", True)),
    }
