"""
Scheduled Copy Configuration Module

This module handles configuration loading, validation, and management. It
supports YAML-based configuration with environment variable overrides.

Author: Scheduled Copy Project
License: MIT
"""

from .schema import Config, AppConfig, StorageConfig, SchedulingConfig, CopyConfig, LogLevel
from .config_loader import ConfigLoader, load_config

__all__ = [
    'Config', 'AppConfig', 'StorageConfig', 'SchedulingConfig', 'CopyConfig',
    'LogLevel', 'ConfigLoader', 'load_config'
]
