#!/usr/bin/env python3
"""
Append-only processed log.

Every file that reaches a terminal state gets one "<Status>: <path>" line;
a replacement also records the path it wrote as "Encoded output". The log
doubles as the resume set: on startup all paths recorded with one of
RESUME_STATUSES are loaded and skipped for the rest of the run.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)

BANNER_MARKER = '====='


class Status(Enum):
    REPLACED = 'Replaced'
    KEPT_ORIGINAL = 'Kept original'
    FAILED = 'FAILED'
    SKIPPED_SMALL = 'Skipped (small {size_mb} MB)'
    ENCODED_OUTPUT = 'Encoded output'

    def label(self, **details):
        return self.value.format(**details)


# Statuses whose paths are never reprocessed. ENCODED_OUTPUT names the file a
# replacement produced, so a later run does not pick it up as a new candidate.
RESUME_STATUSES = (Status.REPLACED, Status.KEPT_ORIGINAL, Status.FAILED, Status.ENCODED_OUTPUT)

PROCESSING_LABEL = 'Processing'
SUBTITLE_INFO_LABEL = 'Subtitle info ({detail})'


@dataclass(frozen=True)
class ProcessedLogEntry:
    status: Status
    path: str


def parse_line(line):
    """Parse a terminal status line.

    Returns:
        ProcessedLogEntry for Replaced / Kept original / FAILED / Encoded output lines, None otherwise
    """
    line = line.rstrip('\r\n')
    for status in RESUME_STATUSES:
        prefix = f"{status.value}: "
        if line.startswith(prefix):
            path = line[len(prefix):]
            if path:
                return ProcessedLogEntry(status, path)
    return None


class ProcessedLog:
    """Append-only text sink for per-file classifications."""

    def __init__(self, path):
        self.path = Path(path)

    def load_resume_set(self):
        """Return the frozenset of paths already terminally classified.

        A missing log means a first run and yields an empty set. Duplicate
        entries collapse; only presence matters.
        """
        if not self.path.exists():
            logger.info(f"No processed log at {self.path}, starting fresh")
            return frozenset()

        paths = set()
        with open(self.path, 'r', encoding='utf-8', errors='replace') as f:
            for line in f:
                entry = parse_line(line)
                if entry:
                    paths.add(entry.path)

        logger.info(f"Loaded {len(paths)} already processed paths from {self.path}")
        return frozenset(paths)

    def _append(self, text):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(text + '\n')

    def append(self, label, path):
        self._append(f"{label}: {path}")

    def record(self, status, path, **details):
        """Append a terminal classification for path."""
        self.append(status.label(**details), path)

    def processing(self, path):
        self.append(PROCESSING_LABEL, path)

    def subtitle_info(self, path, detail):
        self.append(SUBTITLE_INFO_LABEL.format(detail=detail), path)

    def write_banner(self, started_at=None):
        started_at = started_at or datetime.now()
        self._append(
            f"{BANNER_MARKER} Run started {started_at:%Y-%m-%d %H:%M:%S} {BANNER_MARKER}")

    def write_summary(self, counters, finished_at=None):
        finished_at = finished_at or datetime.now()
        self._append('\n'.join([
            f"{BANNER_MARKER} Run finished {finished_at:%Y-%m-%d %H:%M:%S} {BANNER_MARKER}",
            f"  Succeeded: {counters.succeeded}",
            f"  Skipped: {counters.skipped}",
            f"  Failed: {counters.failed}",
            f"  GPU fallbacks: {counters.gpu_fallbacks}",
        ]))
