import logging
import logging.handlers
import sys
from pathlib import Path
from typing import List, Optional

from signal_rules.config.settings import DEFAULT_LOG_FORMAT, LoggingConfig, get_settings


ROOT_LOGGER_NAME = "signal_rules"


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _build_handlers(config: LoggingConfig) -> List[logging.Handler]:
    """Daily-rotated file and stdout handlers, as enabled in ``config``."""
    formatter = logging.Formatter(config.format)
    handlers: List[logging.Handler] = []

    if config.file_enabled:
        path = Path(config.file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.TimedRotatingFileHandler(
            path,
            when='midnight',
            backupCount=config.file_backup_count,
            encoding='utf-8',
        )
        rotating.suffix = "%Y-%m-%d"
        rotating.setLevel(_level(config.level))
        handlers.append(rotating)

    if config.console_enabled:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(_level(config.console_level))
        handlers.append(console)

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


class Logger:
    """Process-wide logging setup for the ``signal_rules`` logger tree.

    Module loggers created with ``logging.getLogger(__name__)`` inside the
    package propagate to the handlers installed here.
    """

    _instance: Optional['Logger'] = None
    _logger: Optional[logging.Logger] = None

    def __new__(cls) -> 'Logger':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def _configure(cls) -> logging.Logger:
        config = get_settings().logging
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(_level(config.level))
        root.handlers.clear()
        for handler in _build_handlers(config):
            root.addHandler(handler)
        cls._logger = root
        return root

    @property
    def logger(self) -> logging.Logger:
        return self._logger or self._configure()

    def get_logger(self, name: str) -> logging.Logger:
        """Logger for ``name``; names outside the package become children of it."""
        root = self.logger
        if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
            return logging.getLogger(name)
        return root.getChild(name)

    @classmethod
    def reset(cls) -> None:
        """Close handlers and forget the setup so the next use re-reads settings."""
        if cls._logger is not None:
            for handler in list(cls._logger.handlers):
                handler.close()
                cls._logger.removeHandler(handler)
        cls._logger = None
        cls._instance = None


def get_logger(name: str) -> logging.Logger:
    return Logger().get_logger(name)


def setup_logging(level: int = logging.INFO, format_str: Optional[str] = None) -> None:
    """
    Plain stdout logging without reading settings, for scripts and tests.

    Args:
        level: Logging level (e.g., logging.DEBUG)
        format_str: Custom format string (package default if None)
    """
    logging.basicConfig(
        level=level,
        format=format_str or DEFAULT_LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)
