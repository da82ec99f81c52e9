"""
Configuration Loader

Handles loading, parsing, and merging configuration from YAML files and
environment variables.

Author: Scheduled Copy Project
License: MIT
"""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any
from dotenv import load_dotenv

from .schema import Config


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class ConfigLoader:
    """
    Configuration loader and manager.

    Loads configuration from a YAML file, merges environment variables over
    it and validates the result.
    """

    # (environment variable, section, key, converter)
    ENV_OVERRIDES = (
        ("APP_LOG_LEVEL", "app", "log_level", str),
        ("APP_LOG_TO_FILE", "app", "log_to_file", _env_bool),
        ("APP_LOG_FILE", "app", "log_file_path", str),
        ("APP_LOG_JSON", "app", "json_logs", _env_bool),
        ("STORAGE_DIRECTORY", "storage", "directory", str),
        ("SCHEDULER_TICK_SECONDS", "scheduling", "tick_seconds", float),
        ("SCHEDULER_MAX_WORKERS", "scheduling", "max_workers", int),
        ("SCHEDULER_SHUTDOWN_GRACE", "scheduling", "shutdown_grace_seconds", float),
        ("COPY_BUFFER_SIZE", "copy", "buffer_size", int),
        ("COPY_HASH_ALGORITHM", "copy", "hash_algorithm", str),
    )

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration loader.

        Args:
            config_path: Path to the configuration file. If None, uses
                ``CONFIG_PATH`` or ``config/config.yaml``.
        """
        # Load environment variables from .env if present
        load_dotenv()

        self.config_path = config_path or os.getenv(
            "CONFIG_PATH",
            "config/config.yaml"
        )
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """
        Load and validate configuration.

        Returns:
            Validated Config object

        Raises:
            ValueError: If YAML parsing or configuration validation fails
        """
        config_data = self._load_yaml()
        config_data = self._merge_env_vars(config_data)

        self._config = Config(**config_data)
        return self._config

    def _load_yaml(self) -> Dict[str, Any]:
        """
        Load YAML configuration file.

        Returns:
            Dictionary with configuration data
        """
        config_file = Path(self.config_path)

        if not config_file.exists():
            return self._create_default_config()

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse YAML config: {e}")

        if not isinstance(data, dict):
            raise ValueError(f"Config root must be a mapping: {self.config_path}")
        return data

    def _create_default_config(self) -> Dict[str, Any]:
        """
        Create default configuration structure.

        Returns:
            Default configuration dictionary
        """
        return {
            "app": {
                "log_level": "INFO",
                "log_to_file": False
            },
            "storage": {
                "directory": "data",
                "tasks_file": "tasks.json",
                "schedules_file": "schedules.json"
            },
            "scheduling": {
                "tick_seconds": 30,
                "lookahead": 10,
                "low_water_mark": 3,
                "max_workers": 4,
                "shutdown_grace_seconds": 10
            },
            "copy": {
                "buffer_size": 81920,
                "max_rename_attempts": 1000,
                "hash_algorithm": "sha256"
            }
        }

    def _merge_env_vars(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge environment variables into configuration.

        Environment variables override config file values.

        Args:
            config_data: Configuration dictionary from file

        Returns:
            Merged configuration dictionary
        """
        for env_name, section, key, convert in self.ENV_OVERRIDES:
            raw = os.getenv(env_name)
            if raw is None or raw == "":
                continue
            try:
                value = convert(raw)
            except ValueError:
                raise ValueError(f"Invalid value for {env_name}: {raw!r}")
            config_data.setdefault(section, {})[key] = value

        return config_data

    def save(self, config: Config, path: Optional[str] = None) -> None:
        """
        Save configuration to YAML file.

        Args:
            config: Config object to save
            path: Path to save to (uses default if None)
        """
        save_path = Path(path or self.config_path)
        save_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = config.model_dump(mode="json", by_alias=True)

        with open(save_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)

    def reload(self) -> Config:
        """
        Reload configuration from file.

        Returns:
            Reloaded Config object
        """
        return self.load()

    @property
    def config(self) -> Optional[Config]:
        """Get the current configuration object."""
        return self._config


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Convenience function to load configuration.

    Args:
        config_path: Optional path to config file

    Returns:
        Loaded and validated Config object
    """
    loader = ConfigLoader(config_path)
    return loader.load()
