"""Configuration module for the signal rules core."""

from .settings import (
    Settings,
    AppConfig,
    EngineConfig,
    LoggingConfig,
    ConfigLoader,
    load_config,
    get_settings,
)
from .validation import ConfigValidationError, validate_config

__all__ = [
    'Settings',
    'AppConfig',
    'EngineConfig',
    'LoggingConfig',
    'ConfigLoader',
    'load_config',
    'get_settings',
    'ConfigValidationError',
    'validate_config',
]
