"""Configuration management for the price/climate report."""

from pathlib import Path
from typing import Optional, Union

from .manager import ConfigurationError, ConfigurationManager, DEFAULTS_PATH

_config_manager: Optional[ConfigurationManager] = None


def get_config(config_path: Optional[Union[str, Path]] = None, reload: bool = False) -> ConfigurationManager:
    """Return the process-wide configuration manager, creating it on first use."""
    global _config_manager
    if _config_manager is None or reload or config_path is not None:
        _config_manager = ConfigurationManager(config_path)
    return _config_manager


__all__ = [
    "ConfigurationError",
    "ConfigurationManager",
    "DEFAULTS_PATH",
    "get_config",
]
