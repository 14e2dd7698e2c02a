#!/usr/bin/env python3
"""
Run log setup for shrink_videos.

The run log (this module) is the diagnostic trail: commands, ffmpeg output,
warnings. The processed log (processed_log.py) is the separate per-file
record used for resuming.
"""

import logging
import logging.handlers
import os
import sys
import tempfile
from pathlib import Path

DEFAULT_LOG_FILE_NAME = 'shrink_videos.log'
LOG_FILE_ENV_VAR = 'SHRINK_VIDEOS_LOG_FILE'
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')
DEFAULT_LOG_LEVEL = 'INFO'
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def default_log_file_path():
    return os.path.join(tempfile.gettempdir(), DEFAULT_LOG_FILE_NAME)


def resolve_log_file_path(cli_path=None, config_path=None):
    """Pick the run log location.

    Priority: --log-file, then the SHRINK_VIDEOS_LOG_FILE environment
    variable, then logging.log_file from the config file. None means the
    temp directory default.
    """
    return cli_path or os.environ.get(LOG_FILE_ENV_VAR) or config_path or None


def parse_log_level(level):
    """Return the logging module constant for a level name like 'info'.

    Raises:
        ValueError: for anything outside LOG_LEVELS
    """
    if level is None:
        return getattr(logging, DEFAULT_LOG_LEVEL)
    name = str(level).strip().upper()
    if name not in LOG_LEVELS:
        raise ValueError(f"unknown log level {level!r}, expected one of {', '.join(LOG_LEVELS)}")
    return getattr(logging, name)


def _usable_log_path(log_file_path):
    """Create the log directory, falling back to the temp directory.

    Returns the usable log path, or None when no file logging is possible.
    """
    for candidate in (log_file_path, default_log_file_path()):
        try:
            Path(candidate).parent.mkdir(parents=True, exist_ok=True)
            return candidate
        except OSError as e:
            print(f"Warning: Cannot create log directory for {candidate}: {e}", file=sys.stderr)
    print("Logging to console only", file=sys.stderr)
    return None


def _reset_handlers(root_logger):
    # setup_logging runs twice per start: before and after the config is loaded
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)


def _add_file_handler(root_logger, log_file_path, formatter, level):
    try:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file_path,
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding='utf-8'
        )
    except OSError as e:
        root_logger.warning(f"Cannot create log file at {log_file_path}: {e}")
        root_logger.warning("Logging to console only")
        return None

    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)
    root_logger.info(f"Logging to file: {log_file_path}")
    return log_file_path


def setup_logging(log_file_path=None, level=DEFAULT_LOG_LEVEL):
    """Send the run log to stdout and to a rotating file.

    Args:
        log_file_path: Resolved path (see resolve_log_file_path). None uses
            the temp directory.
        level: Level name from LOG_LEVELS, applied to both handlers

    Returns:
        str: Path to the log file being used, or None for console-only logging
    """
    level = parse_log_level(level)
    log_file_path = _usable_log_path(log_file_path or default_log_file_path())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    _reset_handlers(root_logger)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file_path:
        log_file_path = _add_file_handler(root_logger, log_file_path, formatter, level)
    else:
        root_logger.info("Logging to console only (file logging unavailable)")

    return str(log_file_path) if log_file_path else None
