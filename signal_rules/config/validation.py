from typing import Any, Dict, List

from signal_rules.config.limits import MIN_SNAPSHOT_WINDOW


class ConfigValidationError(Exception):
    """Exception raised for configuration validation errors."""
    pass


VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def validate_config(config: Dict[str, Any]) -> None:
    """Validate the configuration values."""
    errors = []

    # Validate app settings
    errors.extend(_validate_app_config(config.get('app', {})))

    # Validate engine settings
    errors.extend(_validate_engine_config(config.get('engine', {})))

    # Validate logging settings
    errors.extend(_validate_logging_config(config.get('logging', {})))

    if errors:
        raise ConfigValidationError("Configuration validation failed:\n" + "\n".join(errors))


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _validate_app_config(app: Dict[str, Any]) -> List[str]:
    """Validate app configuration."""
    errors = []

    if 'log_level' in app:
        if not isinstance(app['log_level'], str) or app['log_level'].upper() not in VALID_LOG_LEVELS:
            errors.append(f"app.log_level must be one of {', '.join(VALID_LOG_LEVELS)}")

    return errors


def _validate_engine_config(engine: Dict[str, Any]) -> List[str]:
    """Validate engine configuration."""
    errors = []

    if 'snapshot_window' in engine:
        window = engine['snapshot_window']
        if not _is_positive_int(window) or window < MIN_SNAPSHOT_WINDOW:
            errors.append(
                f"engine.snapshot_window must be an integer of at least {MIN_SNAPSHOT_WINDOW} "
                f"(deepest bar offset plus one bar for crossovers)"
            )

    return errors


def _validate_logging_config(logging_config: Dict[str, Any]) -> List[str]:
    """Validate logging configuration."""
    errors = []

    if 'level' in logging_config:
        level = logging_config['level']
        if not isinstance(level, str) or level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"logging.level must be one of {', '.join(VALID_LOG_LEVELS)}")

    file_config = logging_config.get('file', {})
    if 'backup_count' in file_config:
        count = file_config['backup_count']
        if not isinstance(count, int) or count < 0:
            errors.append("logging.file.backup_count must be a non-negative integer")

    return errors
