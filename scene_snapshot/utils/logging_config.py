"""
Logging setup for Scene Snapshot

Modules log through logging.getLogger(__name__). Hosts call
LoggingConfig.setup_logging() once to attach console and daily file
handlers to the package logger. The level can be forced through the
SCENE_SNAPSHOT_LOG_LEVEL environment variable.
"""

import logging
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

PACKAGE_LOGGER = 'scene_snapshot'


def _resolve_level(level: Union[int, str]) -> int:
    """Environment override first, then the given level name or number."""
    from ..config import Config

    requested = os.environ.get(Config.LOG_LEVEL_ENV) or level
    if isinstance(requested, int):
        return requested
    resolved = logging.getLevelName(str(requested).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


class LoggingConfig:
    """
    Package logging configuration

    Class-level state only; setup may be called again to reconfigure.
    """

    _initialized = False
    _log_file: Optional[Path] = None

    @classmethod
    def setup_logging(
        cls,
        log_dir: Optional[Path] = None,
        level: Union[int, str] = logging.INFO,
        log_to_file: bool = True,
        log_to_console: bool = True
    ) -> logging.Logger:
        """
        Attach handlers to the scene_snapshot logger

        Args:
            log_dir: Folder for daily log files (default: Config logs directory)
            level: Level number or name, overridden by SCENE_SNAPSHOT_LOG_LEVEL
            log_to_file: Write snapshot_YYYYMMDD.log in log_dir
            log_to_console: Echo to stdout

        Returns:
            The package logger
        """
        from ..config import Config

        level = _resolve_level(level)
        logger = logging.getLogger(PACKAGE_LOGGER)
        logger.setLevel(level)

        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        cls._log_file = None

        formatter = logging.Formatter(Config.LOG_FORMAT, datefmt=Config.LOG_DATE_FORMAT)
        handlers: List[logging.Handler] = []
        file_error = None
        if log_to_console:
            handlers.append(logging.StreamHandler(sys.stdout))

        if log_to_file:
            try:
                log_dir = Path(log_dir) if log_dir is not None else Config.get_logs_directory()
                log_dir.mkdir(parents=True, exist_ok=True)
                cls._log_file = log_dir / f"{Config.LOG_FILE_PREFIX}{datetime.now():%Y%m%d}.log"
                handlers.append(logging.FileHandler(cls._log_file, encoding='utf-8'))
            except OSError as e:
                cls._log_file = None
                file_error = e

        for handler in handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
            logger.addHandler(handler)

        if file_error is not None:
            logger.warning(f"Could not set up file logging: {file_error}")
        elif cls._log_file is not None:
            removed = cls.prune_old_logs(cls._log_file.parent)
            if removed:
                logger.debug(f"Removed {removed} old log file(s)")

        cls._initialized = True
        return logger

    @classmethod
    def prune_old_logs(cls, log_dir: Path, max_age_days: Optional[int] = None) -> int:
        """Delete snapshot_*.log files older than the retention window"""
        from ..config import Config

        if max_age_days is None:
            max_age_days = Config.LOG_RETENTION_DAYS
        cutoff = time.time() - max_age_days * 86400
        removed = 0
        for path in Path(log_dir).glob(f"{Config.LOG_FILE_PREFIX}*.log"):
            if path == cls._log_file:
                continue
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except OSError:
                continue
        return removed

    @classmethod
    def current_log_file(cls) -> Optional[Path]:
        return cls._log_file

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._initialized


__all__ = ['LoggingConfig', 'PACKAGE_LOGGER']
