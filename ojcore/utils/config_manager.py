"""
Configuration management for the ojcore server.

Configuration is layered: built-in defaults, then a JSON file, then
OJCORE_* environment variables. Command-line overrides are applied on top
with ``set``.
"""

import copy
import json
import os
from typing import Any, Dict, Optional

from .logger_config import get_logger

logger = get_logger("config_manager")


class ConfigManager:
    """Centralized configuration management for the ojcore server"""

    def __init__(self, config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration manager

        Args:
            config_path: Path to configuration file (optional)
            overrides: Nested dict merged after the file and environment (optional)
        """
        self.config_path = config_path or "config/ojcore_config.json"
        self._config: Dict[str, Any] = {}
        self._load_config()
        if overrides:
            self._merge_config(overrides)

    def _load_config(self) -> None:
        """Load configuration from file and environment variables"""
        self._config = self._get_default_config()

        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    file_config = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Failed to load config file {self.config_path}: {e}")
            else:
                self._merge_config(file_config)
                logger.info(f"Loaded configuration from {self.config_path}")

        self._load_from_env()

        logger.debug("Configuration loaded successfully")

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values"""
        return {
            "server": {
                "host": "127.0.0.1",
                "port": 12345
            },
            "logging": {
                "level": "INFO",
                "directory": None,
                "enable_colors": True
            },
            "execution_engine": {
                "endpoint": "http://localhost:10086/compile-and-execute",
                "timeout": 60,
                "max_workers": 4
            },
            "database": {
                "path": "data/ojcore.duckdb"
            },
            "admission": {
                "always_enforce_time_window": False
            },
            "users": {
                "bootstrap_root": True
            },
            "languages": [],
            "problems": []
        }

    def _merge_config(self, new_config: Dict[str, Any]) -> None:
        """Merge new configuration into existing config"""
        def merge_dict(target: Dict[str, Any], source: Dict[str, Any]) -> None:
            for key, value in source.items():
                if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                    merge_dict(target[key], value)
                else:
                    target[key] = value

        merge_dict(self._config, new_config)

    def _load_from_env(self) -> None:
        """Load configuration from environment variables"""
        env_mappings = {
            "OJCORE_HOST": ("server", "host"),
            "OJCORE_PORT": ("server", "port"),
            "OJCORE_LOG_LEVEL": ("logging", "level"),
            "OJCORE_LOG_DIR": ("logging", "directory"),
            "OJCORE_ENGINE_ENDPOINT": ("execution_engine", "endpoint"),
            "OJCORE_ENGINE_TIMEOUT": ("execution_engine", "timeout"),
            "OJCORE_MAX_WORKERS": ("execution_engine", "max_workers"),
            "OJCORE_DB_PATH": ("database", "path"),
        }

        for env_var, config_path in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                self._set_nested_value(config_path, self._parse_env_value(value))

    def _set_nested_value(self, path: tuple, value: Any) -> None:
        """Set a nested configuration value"""
        current = self._config
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def _parse_env_value(self, value: str) -> Any:
        """Parse environment variable value to appropriate type"""
        if value.lower() in ('true', 'yes', 'on'):
            return True
        if value.lower() in ('false', 'no', 'off'):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation

        Args:
            key: Configuration key (e.g., "logging.level")
            default: Default value if key not found

        Returns:
            Configuration value
        """
        current = self._config
        for k in key.split('.'):
            if isinstance(current, dict) and k in current:
                current = current[k]
            else:
                return default
        return current

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation

        Args:
            key: Configuration key (e.g., "logging.level")
            value: Value to set
        """
        self._set_nested_value(tuple(key.split('.')), value)

    def get_section(self, section: str) -> Any:
        """
        Get entire configuration section

        Args:
            section: Section name (e.g., "logging")

        Returns:
            Configuration section (a dict, or a list for "languages"/"problems")
        """
        return self._config.get(section, {})

    def to_dict(self) -> Dict[str, Any]:
        """Get complete configuration as dictionary"""
        return copy.deepcopy(self._config)

    def save(self, path: Optional[str] = None) -> None:
        """
        Save current configuration to file

        Args:
            path: File path to save to (uses default if not specified)
        """
        save_path = path or self.config_path
        directory = os.path.dirname(save_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(save_path, 'w', encoding='utf-8') as f:
            json.dump(self._config, f, indent=2, ensure_ascii=False)

        logger.info(f"Configuration saved to {save_path}")


# Global configuration instance
_global_config: Optional[ConfigManager] = None


def get_config(config_path: Optional[str] = None) -> ConfigManager:
    """
    Get or create global configuration instance

    Args:
        config_path: Configuration file path (optional)

    Returns:
        Global configuration manager instance
    """
    global _global_config
    if _global_config is None:
        _global_config = ConfigManager(config_path)
    return _global_config


def set_config(config_manager: ConfigManager) -> None:
    """Set global configuration instance"""
    global _global_config
    _global_config = config_manager
