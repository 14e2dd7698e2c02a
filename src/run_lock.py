#!/usr/bin/env python3
"""
Lock file preventing two runs from working on the same directory at once.
"""

import logging
import os
from pathlib import Path

LOCK_FILE_NAME = '.shrink_videos.lock'

logger = logging.getLogger(__name__)


class RunLockError(Exception):
    """Another run holds the lock for this directory."""


class RunLock:
    """Exclusive lock file in the root directory, holding the owner's PID.

    A lock left behind by a crashed run has to be deleted by hand; the error
    message names the file and the PID that created it.
    """

    def __init__(self, directory):
        self.path = Path(directory) / LOCK_FILE_NAME
        self.acquired = False

    def _read_owner(self):
        try:
            return self.path.read_text(encoding='utf-8').strip() or 'unknown'
        except OSError:
            return 'unknown'

    def acquire(self):
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            raise RunLockError(
                f"Another run (pid {self._read_owner()}) is already processing this directory. "
                f"If no run is active, delete {self.path}")
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(str(os.getpid()))
        self.acquired = True
        logger.info(f"Acquired run lock: {self.path}")

    def release(self):
        if not self.acquired:
            return
        try:
            self.path.unlink()
            logger.info(f"Released run lock: {self.path}")
        except FileNotFoundError:
            logger.warning(f"Run lock already removed: {self.path}")
        except OSError as e:
            logger.error(f"Failed to remove run lock {self.path}: {e}")
        self.acquired = False

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.release()
        return False
