# price_forecaster_src/config_utils.py

import logging
from pathlib import Path
from typing import Optional, Union

from config import ConfigurationError, get_config

logger = logging.getLogger(__name__)

# Global configuration manager, populated by initialize_config()
config_manager = None


def initialize_config(config_path: Optional[Union[str, Path]] = None):
    """
    Initializes the global configuration manager.

    Loads the packaged defaults and, when ``config_path`` is given, merges the
    user file on top. Validation problems are logged as warnings; an unreadable
    user file is an error and propagates as ConfigurationError.
    """
    global config_manager
    if config_manager is None or config_path is not None:
        config_manager = get_config(config_path, reload=config_path is not None)
        logger.info("Configuration loaded: %s", config_manager.get_configuration_summary())
        validation_errors = config_manager.validate_configuration()
        if validation_errors:
            logger.warning("Configuration validation warnings: %s", validation_errors)
    return config_manager


def get_config_value(key_path: str, default=None, args=None, cli_param=None):
    """
    Retrieves a configuration value, providing support for command-line overrides.
    The function prioritizes values in the following order:
    1. CLI argument (if provided)
    2. Configuration file
    3. Default value
    """
    # First priority: CLI argument
    if args is not None and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    # Second priority: Configuration file
    manager = config_manager
    if manager is None:
        try:
            manager = initialize_config()
        except ConfigurationError as e:
            logger.error("Failed to initialize configuration: %s. Using defaults.", e)
            manager = None
    if manager is not None:
        config_value = manager.get(key_path, None)
        if config_value is not None:
            return config_value

    # Third priority: Default value
    return default
