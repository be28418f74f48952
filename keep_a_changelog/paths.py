"""Centralized path configuration for the application."""

import os
from pathlib import Path

CONFIG_ENV_VAR = "KEEP_A_CHANGELOG_CONFIG"

def get_project_root() -> Path:
    """
    Get the root directory changelog lookups are relative to.

    Respects the KEEP_A_CHANGELOG_ROOT environment variable.
    If not set, defaults to the current working directory.
    """
    env_path = os.getenv("KEEP_A_CHANGELOG_ROOT")
    if env_path:
        return Path(env_path)
    return Path(".")

def get_config_file() -> Path:
    """Get the path to the parser configuration file."""
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return get_project_root() / "config" / "changelog.yaml"
