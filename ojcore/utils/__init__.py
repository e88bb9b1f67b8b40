"""
Utility modules for ojcore.

This module contains configuration and logging helpers.
"""

from .config_manager import ConfigManager, get_config, set_config
from .logger_config import ColoredFormatter, get_logger, setup_logging, setup_logging_from_config

__all__ = [
    "ConfigManager", "get_config", "set_config",
    "ColoredFormatter", "get_logger", "setup_logging", "setup_logging_from_config",
]
