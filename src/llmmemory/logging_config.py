# src/llmmemory/logging_config.py
"""
Unified Logging Configuration for llmmemory.

Every module logs through ``logging.getLogger(__name__)``; this module
decides where those records go. It supports:

- Console logging with display-level gating (see DisplayFilter)
- File logging with configurable directory, filename patterns, and rotation
- Per-component log level overrides (``llmmemory``, ``redis``, ...)
- Consistent formatting across all components

Key concepts:

    **Display filter**: When ``console_enabled=False`` (the default), the
    console handler still exists but only passes through log records that
    carry ``extra={"display": True}``.  This lets operational messages
    (e.g. "Memory store backend 'redis' ready") reach the user even in
    "silent" mode, while normal debug/info chatter stays file-only.

    **File rotation**: ``file_mode="single"`` uses a
    ``RotatingFileHandler`` with configurable max size and backup count.
    The default ``file_mode="per_run"`` creates a new timestamped file
    each invocation.

Configuration comes from, in order of preference: an explicit dictionary,
the ``[logging]`` table of a TOML file, or ``DEFAULT_LOGGING_CONFIG``.

Usage:
    from llmmemory.logging_config import configure_logging, log_display

    configure_logging(app_name="memory-worker")

    import logging
    logger = logging.getLogger("memory-worker.startup")
    log_display(logger, logging.INFO, "Loaded %d collections", count)
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

# ---------------------------------------------------------------------------
# Default logging configuration
# ---------------------------------------------------------------------------
# NOTE: console_enabled defaults to False.  The console handler is still
# created (for display=True records) but normal records are blocked by
# DisplayFilter.  Set console_enabled=True for verbose/debug sessions.
# ---------------------------------------------------------------------------

DEFAULT_LOGGING_CONFIG: dict[str, Any] = {
    "console_enabled": False,
    "console_level": "WARNING",
    "console_format": "%(levelname)s - %(message)s",
    "file_enabled": True,
    "file_level": "DEBUG",
    "file_directory": "~/.local/share/llmmemory/logs",
    "file_mode": "per_run",
    "file_name_pattern": "{app}_{timestamp:%Y%m%d_%H%M%S}.log",
    "file_single_name": "{app}.log",
    "file_format": "%(asctime)s [%(levelname)-8s] %(name)-30s - %(message)s (%(filename)s:%(lineno)d)",
    "rotation_max_bytes": 10 * 1024 * 1024,  # 10 MB
    "rotation_backup_count": 5,
    "display_min_level": "INFO",
    "components": {
        "llmmemory": "INFO",
        "redis": "WARNING",
        "urllib3": "WARNING",
    },
}


def _resolve_level(level: str | int, default: int) -> int:
    """Turn a level name or number into a logging level, falling back to *default*."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else default


# ---------------------------------------------------------------------------
# DisplayFilter
# ---------------------------------------------------------------------------


class DisplayFilter(logging.Filter):
    """Controls which log records pass through to the console handler.

    Behavior matrix::

        +------------------------+--------------+-----------------+
        | console_global         | display=True | display=False/  |
        |                        |              | absent          |
        +------------------------+--------------+-----------------+
        | True  (verbose)        | PASS         | PASS            |
        | False (default/quiet)  | PASS*        | BLOCK           |
        +------------------------+--------------+-----------------+

        * subject to display_min_level

    The ``display=True`` flag does **not** bypass the minimum display
    level.  A DEBUG record with ``display=True`` will not show on console
    unless ``display_min_level`` is DEBUG.
    """

    def __init__(
        self,
        console_globally_enabled: bool = False,
        display_min_level: int = logging.INFO,
    ) -> None:
        super().__init__()
        self.console_globally_enabled = console_globally_enabled
        self.display_min_level = display_min_level

    def filter(self, record: logging.LogRecord) -> bool:
        """Determine if the record should pass to console."""
        if self.console_globally_enabled:
            return True  # Verbose mode: handler-level filtering suffices

        if getattr(record, "display", False):
            return record.levelno >= self.display_min_level

        return False


# ---------------------------------------------------------------------------
# UnifiedLoggingManager
# ---------------------------------------------------------------------------


class UnifiedLoggingManager:
    """
    Singleton manager for unified logging configuration.

    Ensures logging is only configured once and provides methods
    for runtime adjustment of log levels.
    """

    _instance: Optional["UnifiedLoggingManager"] = None
    _configured: bool = False
    _log_file_path: Path | None = None
    _console_handler: logging.Handler | None = None
    _file_handler: logging.Handler | None = None
    _display_filter: DisplayFilter | None = None

    def __new__(cls) -> "UnifiedLoggingManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def get_instance(cls) -> "UnifiedLoggingManager":
        """Get the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def is_configured(cls) -> bool:
        return cls._configured

    @classmethod
    def get_log_file_path(cls) -> Path | None:
        return cls._log_file_path

    def configure(
        self,
        app_name: str = "llmmemory",
        config: dict[str, Any] | None = None,
        config_file_path: str | Path | None = None,
        force_reconfigure: bool = False,
    ) -> Path | None:
        """
        Configure unified logging for the application.

        Args:
            app_name: Name of the application (used in log filename)
            config: Pre-loaded configuration dictionary (logging section)
            config_file_path: TOML file with a ``[logging]`` table (if config not provided)
            force_reconfigure: If True, reconfigure even if already configured

        Returns:
            Path to the log file, or None if file logging is disabled.
        """
        if UnifiedLoggingManager._configured and not force_reconfigure:
            return UnifiedLoggingManager._log_file_path

        log_config = self._load_config(config, config_file_path)

        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()

        root_logger.setLevel(logging.DEBUG)

        # --- Console handler (always created, gated by DisplayFilter) ---
        console_globally_enabled = bool(log_config.get("console_enabled", False))
        display_min_level = _resolve_level(log_config.get("display_min_level", "INFO"), logging.INFO)

        self._display_filter = DisplayFilter(
            console_globally_enabled=console_globally_enabled,
            display_min_level=display_min_level,
        )
        self._console_handler = self._create_console_handler(log_config)
        if not console_globally_enabled:
            # Filter is the sole gate while the console is "off".
            self._console_handler.setLevel(logging.DEBUG)
        self._console_handler.addFilter(self._display_filter)
        root_logger.addHandler(self._console_handler)

        # --- File handler ---
        self._file_handler, log_file_path = None, None
        if log_config.get("file_enabled", True):
            self._file_handler, log_file_path = self._create_file_handler(log_config, app_name)
            if self._file_handler:
                root_logger.addHandler(self._file_handler)

        components = dict(log_config.get("components", DEFAULT_LOGGING_CONFIG["components"]))
        # "component_levels" is an alias; it wins over "components" on conflicts.
        components.update(log_config.get("component_levels") or {})
        for component_name, level_str in components.items():
            logging.getLogger(component_name).setLevel(_resolve_level(level_str, logging.INFO))

        UnifiedLoggingManager._configured = True
        UnifiedLoggingManager._log_file_path = log_file_path

        if log_file_path:
            logging.getLogger("llmmemory.logging_config").debug(
                f"Unified logging configured. Log file: {log_file_path}"
            )

        return log_file_path

    def _load_config(
        self, config: dict[str, Any] | None, config_file_path: str | Path | None
    ) -> dict[str, Any]:
        """Load logging configuration from the given dict, a TOML file, or defaults."""
        if config is not None:
            return {**DEFAULT_LOGGING_CONFIG, **config}

        if config_file_path is not None:
            import tomllib

            path = Path(config_file_path).expanduser()
            try:
                with open(path, "rb") as f:
                    logging_section = tomllib.load(f).get("logging", {})
            except (OSError, tomllib.TOMLDecodeError) as e:
                sys.stderr.write(f"Warning: Cannot read logging config {path}: {e}\n")
                logging_section = {}
            if logging_section:
                return {**DEFAULT_LOGGING_CONFIG, **logging_section}

        return DEFAULT_LOGGING_CONFIG.copy()

    def _create_console_handler(self, config: dict[str, Any]) -> logging.Handler:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(_resolve_level(config.get("console_level", "WARNING"), logging.WARNING))
        fmt = config.get("console_format", DEFAULT_LOGGING_CONFIG["console_format"])
        handler.setFormatter(logging.Formatter(fmt))
        return handler

    def _create_file_handler(
        self, config: dict[str, Any], app_name: str
    ) -> tuple[logging.Handler | None, Path | None]:
        """Create and configure the file handler.

        Supports two modes:

        - ``"per_run"`` (default): creates a new timestamped file each
          invocation using :class:`logging.FileHandler`.
        - ``"single"``: uses a persistent file with
          :class:`~logging.handlers.RotatingFileHandler` for automatic
          rotation when the file exceeds ``rotation_max_bytes``.
        """
        dir_str = config.get("file_directory", DEFAULT_LOGGING_CONFIG["file_directory"])
        log_dir = Path(os.path.expanduser(dir_str))

        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            sys.stderr.write(f"Warning: Cannot create log directory {log_dir}: {e}\n")
            return None, None

        handler: logging.Handler
        if config.get("file_mode", "per_run") == "single":
            name_pattern = config.get("file_single_name", "{app}.log")
            try:
                filename = name_pattern.format(app=app_name)
            except (KeyError, ValueError):
                filename = f"{app_name}.log"

            log_file_path = log_dir / filename
            try:
                handler = RotatingFileHandler(
                    log_file_path,
                    maxBytes=config.get("rotation_max_bytes", 10 * 1024 * 1024),
                    backupCount=config.get("rotation_backup_count", 5),
                    encoding="utf-8",
                )
            except OSError as e:
                sys.stderr.write(f"Warning: Cannot create log file {log_file_path}: {e}\n")
                return None, None
        else:
            pattern = config.get("file_name_pattern", DEFAULT_LOGGING_CONFIG["file_name_pattern"])
            timestamp = datetime.now()
            try:
                filename = pattern.format(app=app_name, timestamp=timestamp)
            except (KeyError, ValueError):
                filename = f"{app_name}_{timestamp.strftime('%Y%m%d_%H%M%S')}.log"

            log_file_path = log_dir / filename
            try:
                handler = logging.FileHandler(log_file_path, encoding="utf-8")
            except OSError as e:
                sys.stderr.write(f"Warning: Cannot create log file {log_file_path}: {e}\n")
                return None, None

        handler.setLevel(_resolve_level(config.get("file_level", "DEBUG"), logging.DEBUG))
        handler.setFormatter(logging.Formatter(config.get("file_format", DEFAULT_LOGGING_CONFIG["file_format"])))
        return handler, log_file_path

    def set_console_level(self, level: str | int) -> None:
        """Change the console handler's log level at runtime."""
        if self._console_handler is not None:
            self._console_handler.setLevel(_resolve_level(level, self._console_handler.level))

    def set_component_level(self, component: str, level: str | int) -> None:
        """Change a specific component's log level at runtime."""
        component_logger = logging.getLogger(component)
        component_logger.setLevel(_resolve_level(level, component_logger.level))


# ---------------------------------------------------------------------------
# Public module-level functions
# ---------------------------------------------------------------------------


def configure_logging(
    app_name: str = "llmmemory",
    config: dict[str, Any] | None = None,
    config_file_path: str | Path | None = None,
    force_reconfigure: bool = False,
) -> Path | None:
    """
    Configure unified logging for the application.

    Call this early in application startup. The library calls it only from
    create_memory_store(), and only when the configuration carries a
    non-empty ``logging`` section. Otherwise records propagate to whatever
    handlers the host set up.

    Example:
        configure_logging(
            app_name="memory-worker",
            config={
                "console_enabled": False,
                "file_level": "DEBUG",
                "file_directory": "/var/log/memory-worker",
            },
        )

        # Or from the loaded memory configuration:
        memory_config = load_memory_config("config.toml")
        configure_logging(config=memory_config.logging or None)
    """
    return UnifiedLoggingManager.get_instance().configure(
        app_name=app_name,
        config=config,
        config_file_path=config_file_path,
        force_reconfigure=force_reconfigure,
    )


def log_display(
    logger: logging.Logger,
    level: int,
    msg: str,
    *args: Any,
    **kwargs: Any,
) -> None:
    """Log a message that also appears on console even in silent mode.

    Convenience wrapper around ``logger.log()`` that sets
    ``extra={"display": True}``.  The ``extra`` kwarg is merged (not
    replaced) to preserve the caller's extra data.
    """
    extra = kwargs.pop("extra", None) or {}
    extra["display"] = True
    kwargs["extra"] = extra
    logger.log(level, msg, *args, **kwargs)


def get_log_file_path() -> Path | None:
    """Get the current log file path."""
    return UnifiedLoggingManager.get_log_file_path()


def set_console_level(level: str | int) -> None:
    """Change console log level at runtime."""
    UnifiedLoggingManager.get_instance().set_console_level(level)


def set_component_level(component: str, level: str | int) -> None:
    """Change a specific component's log level at runtime."""
    UnifiedLoggingManager.get_instance().set_component_level(component, level)
