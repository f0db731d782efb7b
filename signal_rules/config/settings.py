"""
Configuration management for the signal rules core.

Settings are layered: ``config/default.yaml``, then
``config/environment/<SIGNAL_RULES_ENV>.yaml``, then environment variables
(``.env`` files are read first through python-dotenv). The merged dict is
validated and exposed as typed dataclasses.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from signal_rules.config.limits import MIN_SNAPSHOT_WINDOW
from signal_rules.config.validation import validate_config


logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_ENVIRONMENT = "development"
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class AppConfig:
    """Application-level configuration."""
    log_level: str = "INFO"


@dataclass
class EngineConfig:
    snapshot_window: int = MIN_SNAPSHOT_WINDOW


@dataclass
class LoggingConfig:
    """Logging configuration, flattened from the nested YAML section."""
    level: str = "INFO"
    format: str = DEFAULT_LOG_FORMAT
    file_enabled: bool = False
    file_path: str = "logs/signal_rules.log"
    file_backup_count: int = 5
    console_enabled: bool = True
    console_level: str = "INFO"


@dataclass
class Settings:
    """Main settings container with all configuration sections."""
    app: AppConfig = field(default_factory=AppConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    _raw_config: Dict[str, Any] = field(default_factory=dict, repr=False)

    def get(self, key: str, default: Any = None) -> Any:
        """Raw value by dot-separated key, e.g. ``logging.file.path``."""
        node: Any = self._raw_config
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node


def parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# Environment variable -> (config path, parser)
ENV_OVERRIDES: Dict[str, Tuple[Tuple[str, ...], Callable[[str], Any]]] = {
    "LOG_LEVEL": (("app", "log_level"), str.upper),
    "SIGNAL_RULES_SNAPSHOT_WINDOW": (("engine", "snapshot_window"), int),
    "SIGNAL_RULES_LOG_FILE_ENABLED": (("logging", "file", "enabled"), parse_bool),
}


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _section(cls, data: Dict[str, Any]):
    """Build a dataclass section from the keys it declares, ignoring the rest."""
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


class ConfigLoader:
    """Reads the YAML layers and environment into a Settings object."""

    def __init__(self, config_dir: Optional[Path] = None):
        override_dir = os.getenv("SIGNAL_RULES_CONFIG_DIR")
        self.config_dir = Path(override_dir) if override_dir else Path(config_dir or PROJECT_ROOT / "config")

        extra_dotenv = os.getenv("SIGNAL_RULES_DOTENV_PATH")
        if extra_dotenv:
            load_dotenv(dotenv_path=extra_dotenv)
        load_dotenv(dotenv_path=PROJECT_ROOT / ".env")

    @property
    def environment(self) -> str:
        return os.getenv("SIGNAL_RULES_ENV", DEFAULT_ENVIRONMENT)

    def load(self) -> Settings:
        """Merge, override and validate; return typed settings."""
        raw = deep_merge(
            self._read_yaml("default.yaml"),
            self._read_yaml(f"environment/{self.environment}.yaml"),
        )
        self._apply_env_overrides(raw)
        validate_config(raw)
        return self._build(raw)

    def _read_yaml(self, relative_path: str) -> Dict[str, Any]:
        path = self.config_dir / relative_path
        if not path.is_file():
            return {}
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}

    def _apply_env_overrides(self, raw: Dict[str, Any]) -> None:
        for env_key, (path, parse) in ENV_OVERRIDES.items():
            value = os.getenv(env_key)
            if value is None:
                continue
            try:
                value = parse(value)
            except ValueError:
                # Left as text so validation names the offending key
                logger.warning(f"{env_key}={value!r} could not be parsed")

            node = raw
            for part in path[:-1]:
                node = node.setdefault(part, {})
            node[path[-1]] = value

    def _build(self, raw: Dict[str, Any]) -> Settings:
        app = _section(AppConfig, raw.get("app", {}))

        log_raw = raw.get("logging", {})
        file_raw = log_raw.get("file", {})
        console_raw = log_raw.get("console", {})
        log_values = {
            "level": log_raw.get("level", app.log_level),
            "format": log_raw.get("format"),
            "file_enabled": file_raw.get("enabled"),
            "file_path": file_raw.get("path"),
            "file_backup_count": file_raw.get("backup_count"),
            "console_enabled": console_raw.get("enabled"),
            "console_level": console_raw.get("level"),
        }

        return Settings(
            app=app,
            engine=_section(EngineConfig, raw.get("engine", {})),
            logging=_section(LoggingConfig, {k: v for k, v in log_values.items() if v is not None}),
            _raw_config=raw,
        )


def load_config(config_dir: Optional[Path] = None) -> Settings:
    """Load configuration and return Settings object.

    Args:
        config_dir: Optional path to config directory. Defaults to project's config/ folder.

    Raises:
        ConfigValidationError: If any configured value is invalid.
    """
    loader = ConfigLoader(config_dir)
    settings = loader.load()
    logger.debug(f"Configuration loaded from {loader.config_dir} ({loader.environment})")
    return settings


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings(force_reload: bool = False) -> Settings:
    """Cached settings; loaded on first access or when ``force_reload`` is set."""
    global _settings
    if _settings is None or force_reload:
        _settings = load_config()
    return _settings
