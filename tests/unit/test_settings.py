"""
Unit Tests for Configuration and Logging Setup
"""

import logging
import logging.handlers

import pytest

from signal_rules.config.limits import MIN_SNAPSHOT_WINDOW
from signal_rules.config.settings import ConfigLoader, Settings, deep_merge, get_settings, load_config
from signal_rules.config.validation import ConfigValidationError, validate_config
from signal_rules.utils.logger import ROOT_LOGGER_NAME, Logger, get_logger, setup_logging


# ============================================================================
# Loading
# ============================================================================

class TestConfigLoading:
    """YAML files, environment overlays and overrides."""

    def test_defaults_without_files(self, reset_settings):
        settings = load_config()

        assert isinstance(settings, Settings)
        assert settings.engine.snapshot_window == MIN_SNAPSHOT_WINDOW == 6
        assert settings.logging.level == "INFO"

    def test_default_yaml(self, reset_settings):
        (reset_settings / "default.yaml").write_text(
            "engine:\n  snapshot_window: 10\nlogging:\n  level: WARNING\n  file:\n    backup_count: 2\n"
        )

        settings = load_config()

        assert settings.engine.snapshot_window == 10
        assert settings.logging.level == "WARNING"
        assert settings.logging.file_backup_count == 2

    def test_environment_overlay_is_deep_merged(self, reset_settings, monkeypatch):
        (reset_settings / "default.yaml").write_text("logging:\n  level: WARNING\n  console:\n    level: ERROR\n")
        (reset_settings / "environment").mkdir()
        (reset_settings / "environment" / "staging.yaml").write_text("logging:\n  level: DEBUG\n")
        monkeypatch.setenv("SIGNAL_RULES_ENV", "staging")

        settings = load_config()

        assert settings.logging.level == "DEBUG"
        assert settings.logging.console_level == "ERROR"

    def test_env_var_overrides(self, reset_settings, monkeypatch):
        monkeypatch.setenv("SIGNAL_RULES_SNAPSHOT_WINDOW", "8")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        settings = load_config()

        assert settings.engine.snapshot_window == 8
        assert settings.app.log_level == "DEBUG"
        assert settings.logging.level == "DEBUG"

    def test_dotted_get(self, reset_settings):
        (reset_settings / "default.yaml").write_text("logging:\n  console:\n    level: ERROR\n")

        settings = load_config()

        assert settings.get("logging.console.level") == "ERROR"
        assert settings.get("logging.missing.key", "x") == "x"

    def test_invalid_config_raises(self, reset_settings):
        (reset_settings / "default.yaml").write_text("engine:\n  snapshot_window: 3\n")

        with pytest.raises(ConfigValidationError, match="snapshot_window"):
            load_config()

    def test_get_settings_is_cached(self, reset_settings, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("SIGNAL_RULES_SNAPSHOT_WINDOW", "9")

        assert get_settings() is first
        assert get_settings(force_reload=True).engine.snapshot_window == 9

    def test_bool_override(self, reset_settings, monkeypatch):
        monkeypatch.setenv("SIGNAL_RULES_LOG_FILE_ENABLED", "yes")

        settings = load_config()

        assert settings.logging.file_enabled is True
        assert settings.get("logging.file.enabled") is True

    def test_unparseable_override_fails_validation(self, reset_settings, monkeypatch):
        monkeypatch.setenv("SIGNAL_RULES_SNAPSHOT_WINDOW", "wide")

        with pytest.raises(ConfigValidationError, match="engine.snapshot_window"):
            load_config()

    def test_explicit_config_dir_loses_to_env(self, reset_settings, tmp_path_factory):
        other = tmp_path_factory.mktemp("other")

        assert ConfigLoader(other).config_dir == reset_settings

    def test_structural_limits_are_not_settings(self, reset_settings):
        """Depth, rule count and bar offset limits live in config.limits only."""
        (reset_settings / "default.yaml").write_text("rules:\n  max_depth: 9\n")

        settings = load_config()

        assert not hasattr(settings, "rules")
        assert not hasattr(settings.app, "rules_dir")
        assert settings.get("rules.max_depth") == 9

    def test_deep_merge(self):
        merged = deep_merge({"a": {"b": 1, "c": 2}, "d": 1}, {"a": {"b": 3}, "e": 4})

        assert merged == {"a": {"b": 3, "c": 2}, "d": 1, "e": 4}


# ============================================================================
# Validation
# ============================================================================

class TestConfigValidation:
    """Value checks on the raw config dict."""

    def test_empty_config_is_valid(self):
        validate_config({})

    @pytest.mark.parametrize("config, message", [
        ({"app": {"log_level": "LOUD"}}, "app.log_level"),
        ({"engine": {"snapshot_window": 1}}, "snapshot_window must be an integer of at least 6"),
        ({"engine": {"snapshot_window": MIN_SNAPSHOT_WINDOW - 1}}, "engine.snapshot_window"),
        ({"engine": {"snapshot_window": True}}, "engine.snapshot_window"),
        ({"logging": {"level": "TRACE"}}, "logging.level"),
        ({"logging": {"file": {"backup_count": -1}}}, "backup_count"),
    ])
    def test_invalid_values(self, config, message):
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_config(config)

        assert message in str(exc_info.value)

    def test_all_errors_reported(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_config({"engine": {"snapshot_window": 0}, "logging": {"level": "TRACE"}})

        assert "engine.snapshot_window" in str(exc_info.value)
        assert "logging.level" in str(exc_info.value)


# ============================================================================
# Logging
# ============================================================================

class TestLogger:
    """Package logger configured from settings."""

    @pytest.fixture(autouse=True)
    def fresh_logger(self, reset_settings):
        Logger.reset()
        yield
        Logger.reset()

    def test_singleton(self):
        assert Logger() is Logger()

    def test_level_and_console_handler_from_settings(self, reset_settings):
        (reset_settings / "default.yaml").write_text("logging:\n  level: WARNING\n")

        root = Logger().logger

        assert root.name == ROOT_LOGGER_NAME
        assert root.level == logging.WARNING
        assert any(isinstance(h, logging.StreamHandler) for h in root.handlers)

    def test_file_handler(self, reset_settings):
        log_path = reset_settings / "logs" / "rules.log"
        (reset_settings / "default.yaml").write_text(
            f"logging:\n  file:\n    enabled: true\n    path: {log_path.as_posix()}\n  console:\n    enabled: false\n"
        )

        get_logger("engine").warning("rule failed")

        assert log_path.parent.is_dir()
        assert any(isinstance(h, logging.handlers.TimedRotatingFileHandler) for h in Logger().logger.handlers)

    def test_module_loggers_are_children(self):
        assert get_logger("signal_rules.rules.engine").name == "signal_rules.rules.engine"
        assert get_logger("replay").name == "signal_rules.replay"

    def test_setup_logging(self):
        setup_logging(level=logging.DEBUG)

        assert logging.getLogger(ROOT_LOGGER_NAME).level == logging.DEBUG


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
