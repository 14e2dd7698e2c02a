#!/usr/bin/env python3
"""
Subprocess utilities for running ffmpeg/ffprobe with logged output.

Every external invocation goes through run_command() so that the command line,
its (truncated) output and exit code end up in the run log.
"""

import logging
import subprocess

logger = logging.getLogger(__name__)

# Maximum length for logged output to prevent huge log files
MAX_OUTPUT_LENGTH = 2000


def _truncate(text):
    """Strip and truncate command output for logging."""
    stripped = text.strip()
    if len(stripped) > MAX_OUTPUT_LENGTH:
        return (f"(truncated to {MAX_OUTPUT_LENGTH} chars): {stripped[:MAX_OUTPUT_LENGTH]}... "
                f"[output truncated, total length: {len(stripped)} chars]")
    return stripped


def _log_output(stream_name, text, level):
    if text:
        logger.log(level, f"Command {stream_name}: {_truncate(text)}")


def run_command(command_args, **kwargs):
    """Run a subprocess command and log all details.

    Args:
        command_args: List of command arguments
        **kwargs: Additional arguments to pass to subprocess.run
                 Note: stdout and stderr will be set to PIPE for logging unless
                       explicitly set by the caller. Output is decoded as
                       UTF-8 with undecodable bytes replaced.

    Returns:
        subprocess.CompletedProcess: Result of the command execution

    Raises:
        subprocess.CalledProcessError: if check=True and the command failed
        subprocess.TimeoutExpired: if a timeout was given and exceeded
        OSError: if the executable could not be started
    """
    logger.info(
        f"Running command: {' '.join(str(arg) for arg in command_args)}")

    kwargs.setdefault('stdout', subprocess.PIPE)
    kwargs.setdefault('stderr', subprocess.PIPE)
    kwargs.setdefault('text', True)
    # ffmpeg echoes file names and tags in whatever encoding they were written in
    kwargs.setdefault('encoding', 'utf-8')
    kwargs.setdefault('errors', 'replace')

    try:
        result = subprocess.run(command_args, **kwargs)
    except subprocess.CalledProcessError as e:
        logger.error(f"Command failed with exit code {e.returncode}")
        _log_output('stdout', e.stdout, logging.ERROR)
        _log_output('stderr', e.stderr, logging.ERROR)
        raise
    except subprocess.TimeoutExpired as e:
        logger.error(f"Command timed out after {e.timeout} seconds")
        raise
    except Exception as e:
        logger.error(f"Command execution error: {type(e).__name__}: {e}")
        raise

    _log_output('stdout', result.stdout, logging.INFO)
    # ffmpeg writes its normal progress output to stderr
    stderr_level = logging.INFO if result.returncode == 0 else logging.ERROR
    _log_output('stderr', result.stderr, stderr_level)

    logger.info(f"Command exit code: {result.returncode}")
    return result
