#!/usr/bin/env python3
"""
Configuration manager
"""

import logging
import os
import re
from pathlib import Path

import yaml

import dependencies_utils
import logging_utils

# Constants
SUPPORTED_CONTAINERS = ['mkv', 'mp4']
DEFAULT_EXTENSIONS = ['mp4', 'avi', 'mov', 'mpg', 'flv', 'wmv', 'webm', 'm4v']
DEFAULT_MIN_SIZE_MB = 1200
DEFAULT_PROCESSED_LOG_NAME = 'shrink_videos_processed.log'
AUDIO_BITRATE_PATTERN = re.compile(r'^\d+k$', re.IGNORECASE)
NESTED_SECTIONS = ('encoding', 'dependencies', 'logging')

logger = logging.getLogger(__name__)


def validate_container(container):
    """Validate that the output container is supported."""
    return container in SUPPORTED_CONTAINERS


def validate_quality(quality):
    """Validate that the quality value is in the valid range (0-51)."""
    if isinstance(quality, bool):
        return False
    try:
        quality_int = int(quality)
        return 0 <= quality_int <= 51
    except (TypeError, ValueError):
        return False


def validate_audio_bitrate(bitrate):
    """Validate an ffmpeg audio bitrate such as '192k'."""
    return isinstance(bitrate, str) and bool(AUDIO_BITRATE_PATTERN.match(bitrate))


def validate_timeout(timeout):
    """A timeout is either unset (None) or a positive number of seconds."""
    if timeout is None:
        return True
    if isinstance(timeout, bool):
        return False
    return isinstance(timeout, (int, float)) and timeout > 0


def parse_min_size_mb(value):
    """Parse the minimum size threshold in megabytes."""
    if isinstance(value, bool):
        raise ValueError(f"Minimum size must be a number of megabytes: {value!r}")
    try:
        size = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError(f"Minimum size must be a number of megabytes: {value!r}")
    if size < 0:
        raise ValueError(f"Minimum size must be non-negative: {size}")
    return size


def normalize_extensions(extensions):
    """Normalize an extension list ('mp4', '.MP4', 'mp4,avi') to lower-case names without dots."""
    if isinstance(extensions, str):
        extensions = extensions.split(',')
    if not isinstance(extensions, (list, tuple)):
        raise ValueError(f"Extensions must be a list or comma-separated string: {extensions!r}")

    normalized = []
    for ext in extensions:
        if not isinstance(ext, str) or not ext.strip().lstrip('.'):
            raise ValueError(f"Invalid extension entry: {ext!r}")
        name = ext.strip().lstrip('.').lower()
        if name not in normalized:
            normalized.append(name)
    if not normalized:
        raise ValueError("At least one extension is required")
    return normalized


def prepare_default_config():
    return {
        'directory': None,  # None means current working directory
        'min_size_mb': DEFAULT_MIN_SIZE_MB,
        'container': 'mkv',
        'extensions': list(DEFAULT_EXTENSIONS),
        'processed_log': None,  # None means <directory>/shrink_videos_processed.log
        'dry_run': False,
        'encoding': {
            'hwaccel': 'cuda',
            'gpu_encoder': 'h264_nvenc',
            'cpu_encoder': 'libx264',
            'gpu_quality': 28,
            'cpu_quality': 23,
            'audio_bitrate': '192k',
            'timeout': None
        },
        'dependencies': {
            'ffmpeg': 'ffmpeg',
            'ffprobe': 'ffprobe'
        },
        'logging': {
            'log_file': None,  # None means default to temp directory
            'level': logging_utils.DEFAULT_LOG_LEVEL
        }
    }


def merge_user_config(default_config, user_config):
    """Merge a parsed YAML mapping over the defaults.

    Nested sections are merged key by key; a section set to null or to a
    non-mapping value falls back to its defaults.
    """
    config = {**default_config, **user_config}
    for section in NESTED_SECTIONS:
        if section not in user_config:
            continue
        user_section = user_config[section]
        if isinstance(user_section, dict):
            config[section] = {**default_config[section], **user_section}
        else:
            if user_section is not None:
                logger.warning(
                    f"Ignoring invalid '{section}' section in config (expected a mapping)")
            config[section] = default_config[section]
    return config


def _resolve_log_file(config, args):
    config['logging']['log_file'] = logging_utils.resolve_log_file_path(
        getattr(args, 'log_file', None) if args else None,
        config['logging'].get('log_file'))


def _apply_arg_overrides(config, args):
    if not args:
        return
    if getattr(args, 'directory', None):
        config['directory'] = args.directory
    if getattr(args, 'dry_run', False):
        config['dry_run'] = True
    if getattr(args, 'min_size_mb', None) is not None:
        config['min_size_mb'] = args.min_size_mb
    if getattr(args, 'container', None):
        config['container'] = args.container
    if getattr(args, 'processed_log', None):
        config['processed_log'] = args.processed_log


def post_process_configuration(config, args):
    """Apply CLI overrides, resolve paths and validate.

    Returns:
        tuple: (config, validation_issues) where validation_issues is a list of strings
    """
    _apply_arg_overrides(config, args)
    _resolve_log_file(config, args)

    for name in dependencies_utils.REQUIRED_DEPENDENCIES:
        config['dependencies'][name] = dependencies_utils.find_dependency_path(
            name, config['dependencies'].get(name))

    validation_issues = []

    directory = config.get('directory') or os.getcwd()
    if not os.path.isdir(directory):
        validation_issues.append(f"Error: '{directory}' is not a valid directory.")
    config['directory'] = os.path.abspath(directory)

    try:
        config['min_size_mb'] = parse_min_size_mb(config.get('min_size_mb'))
    except ValueError as e:
        validation_issues.append(f"Invalid min_size_mb in config: {e}")

    container = str(config.get('container') or '').lstrip('.').lower()
    if not validate_container(container):
        validation_issues.append(
            f"Unsupported container: {config.get('container')!r}. Supported: {', '.join(SUPPORTED_CONTAINERS)}")
    config['container'] = container

    try:
        config['extensions'] = normalize_extensions(config.get('extensions'))
    except ValueError as e:
        validation_issues.append(f"Invalid extensions in config: {e}")

    encoding = config['encoding']
    for key in ('gpu_quality', 'cpu_quality'):
        if not validate_quality(encoding.get(key)):
            validation_issues.append(
                f"Invalid {key} value: {encoding.get(key)!r}. Must be an integer between 0 and 51.")
        else:
            encoding[key] = int(encoding[key])
    if not validate_audio_bitrate(encoding.get('audio_bitrate')):
        validation_issues.append(
            f"Invalid audio_bitrate value: {encoding.get('audio_bitrate')!r}. Expected e.g. '192k'.")
    if not validate_timeout(encoding.get('timeout')):
        validation_issues.append(
            f"Invalid timeout value: {encoding.get('timeout')!r}. Must be a positive number of seconds.")
    for key in ('hwaccel', 'gpu_encoder', 'cpu_encoder'):
        if not encoding.get(key) or not isinstance(encoding.get(key), str):
            validation_issues.append(f"Missing encoding.{key} in config")

    level = config['logging'].get('level') or logging_utils.DEFAULT_LOG_LEVEL
    try:
        logging_utils.parse_log_level(level)
        config['logging']['level'] = str(level).strip().upper()
    except ValueError as e:
        validation_issues.append(f"Invalid logging.level in config: {e}")

    if not config.get('processed_log'):
        config['processed_log'] = os.path.join(
            config['directory'], DEFAULT_PROCESSED_LOG_NAME)

    config['dry_run'] = bool(config.get('dry_run', False))

    return config, validation_issues


def load_config(config_path=None, args=None):
    """Load configuration from YAML file.

    Missing files fall back to defaults; unreadable or malformed files are
    reported and also fall back to defaults. CLI arguments in args override
    file values.

    Returns:
        tuple: (config, validation_issues)
    """
    default_config = prepare_default_config()

    if config_path is None:
        config_path = Path('config.yaml')
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        logger.debug(f"Config file not found: {config_path}, using defaults")
        config = default_config
    else:
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                user_config = yaml.safe_load(f)
            if not isinstance(user_config, dict):
                user_config = {}

            config = merge_user_config(default_config, user_config)
            logger.info(f"Loaded configuration from {config_path}")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config file {config_path}: {e}")
            config = prepare_default_config()

    return post_process_configuration(config, args)
