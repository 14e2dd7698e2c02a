#!/usr/bin/env python3
"""
Locate and validate the external ffmpeg/ffprobe executables
"""
import logging
import shutil
import subprocess
from pathlib import Path

import subprocess_utils

REQUIRED_DEPENDENCIES = ('ffmpeg', 'ffprobe')

logger = logging.getLogger(__name__)


def find_dependency_path(dependency_name, config_path=None):
    """Find the path to a dependency executable.

    Searches in this order:
    1. If config_path is provided and is an absolute path that exists, use it directly
    2. If config_path (or dependency_name) resolves through PATH, use the resolved path
    3. Otherwise return config_path or dependency_name unchanged

    Args:
        dependency_name: Name of the dependency (e.g., 'ffmpeg', 'ffprobe')
        config_path: Optional path from configuration

    Returns:
        str: Path to the dependency executable
    """
    if config_path:
        config_path_obj = Path(config_path)
        if config_path_obj.is_absolute() and config_path_obj.exists():
            logger.debug(
                f"Using absolute config path for {dependency_name}: {config_path}")
            return str(config_path)

    command = config_path if config_path else dependency_name
    resolved = shutil.which(command)
    if resolved:
        logger.debug(f"Resolved {dependency_name} via PATH: {resolved}")
        return resolved

    logger.debug(f"Using unresolved path for {dependency_name}: {command}")
    return command


def check_single_dependency(command):
    """Check if a single dependency command is available.

    Args:
        command: Command name or path to check

    Returns:
        tuple: (success: bool, error_message: str or None)
               - (True, None) if command is valid
               - (False, "not_found") if command not found
               - (False, "invalid") if command exists but is not valid
               - (False, "timeout") if command timed out
    """
    try:
        subprocess_utils.run_command([command, '-version'], check=True, timeout=5)
        return True, None
    except FileNotFoundError:
        return False, "not_found"
    except subprocess.CalledProcessError:
        return False, "invalid"
    except subprocess.TimeoutExpired:
        return False, "timeout"
    except OSError:
        return False, "invalid"


def validate_dependencies(dependency_paths=None):
    """Check that ffmpeg and ffprobe are installed and runnable.

    Args:
        dependency_paths: Optional dict with 'ffmpeg' and 'ffprobe' keys
                          specifying paths to executables. If None, uses default names.

    Returns:
        bool: True when every dependency is usable
    """
    if dependency_paths is None:
        dependency_paths = {}

    missing = []
    for name in REQUIRED_DEPENDENCIES:
        path = dependency_paths.get(name, name)
        is_valid, reason = check_single_dependency(path)
        if not is_valid:
            missing.append(f"{name} (path: {path}, reason: {reason})")

    if missing:
        logger.error(f"Missing dependencies: {', '.join(missing)}")
        logger.error(
            "Please install ffmpeg (which provides ffprobe) and make sure it is on PATH, "
            "or set dependencies.ffmpeg / dependencies.ffprobe in the config file.")

    return not missing
