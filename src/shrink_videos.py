#!/usr/bin/env python3
"""
Shrink large video files by re-encoding them to H.264/AAC in a Matroska container.

For every candidate file this module will:
1. Skip it if a previous run already classified it (resume set from the processed log)
2. Skip it if it is below the minimum size threshold
3. Pick a subtitle policy (convert mov_text to SRT, otherwise copy)
4. Encode on the GPU, falling back to a CPU encode if that fails
5. Keep the encoded file only if it is strictly smaller than the original
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from processed_log import Status

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 ** 2
LEGACY_SUBTITLE_CODEC = 'mov_text'
TEMP_MARKER = '.temp.'


class EncodeMode(Enum):
    GPU = 'GPU'
    CPU = 'CPU'


class SubtitlePolicy(Enum):
    COPY = 'copy'
    CONVERT_TO_SRT = 'srt'


class FilesystemFailure(Exception):
    """Deleting or renaming files during disposition failed."""


@dataclass(frozen=True)
class CandidateFile:
    path: str
    size_bytes: int

    @classmethod
    def from_path(cls, path):
        path = Path(path).absolute()
        return cls(str(path), path.stat().st_size)


@dataclass(frozen=True)
class EncodeOutcome:
    output_path: Path = None

    @classmethod
    def success(cls, output_path):
        return cls(Path(output_path))

    @classmethod
    def failure(cls):
        return cls(None)

    @property
    def succeeded(self):
        return self.output_path is not None


@dataclass
class RunCounters:
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    gpu_fallbacks: int = 0

    @property
    def total(self):
        return self.succeeded + self.skipped + self.failed


@dataclass
class RunContext:
    """State threaded through every process_file() call of one run."""
    encoder: object
    processed_log: object
    resume_set: frozenset = frozenset()
    min_size_mb: int = 1200
    container: str = 'mkv'
    dry_run: bool = False
    counters: RunCounters = field(default_factory=RunCounters)


def create_run_context(config, encoder, processed_log):
    """Build a RunContext from a loaded configuration, loading the resume set once."""
    return RunContext(
        encoder=encoder,
        processed_log=processed_log,
        resume_set=processed_log.load_resume_set(),
        min_size_mb=config['min_size_mb'],
        container=config['container'],
        dry_run=config['dry_run'],
    )


def size_in_mb(size_bytes):
    """Size in megabytes, rounded half up to the nearest integer."""
    return (size_bytes + BYTES_PER_MB // 2) // BYTES_PER_MB


def final_output_path(input_path, container):
    return Path(input_path).with_suffix(f'.{container}')


def temp_output_path(final_path, container):
    final_path = Path(final_path)
    return final_path.with_name(f"{final_path.name}{TEMP_MARKER}{container}")


def detect_subtitle_policy(subtitle_codecs):
    if any(codec == LEGACY_SUBTITLE_CODEC for codec in subtitle_codecs):
        return SubtitlePolicy.CONVERT_TO_SRT
    return SubtitlePolicy.COPY


def find_candidate_files(target_dir, extensions):
    """Find all files under target_dir whose extension is in extensions.

    Args:
        target_dir: Directory to scan recursively
        extensions: Extension names without dots (e.g. ['mp4', 'avi'])

    Returns:
        list of CandidateFile, largest first
    """
    wanted = {f".{ext.lower()}" for ext in extensions}
    candidates = []

    logger.info(f"Scanning directory: {target_dir}")

    for file_path in Path(target_dir).absolute().rglob('*'):
        if file_path.suffix.lower() not in wanted:
            continue
        # Leftovers of an interrupted encode
        if TEMP_MARKER in file_path.name:
            continue
        try:
            if not file_path.is_file():
                continue
            candidates.append(CandidateFile.from_path(file_path))
        except OSError:
            logger.exception(f"Error reading {file_path}")

    candidates.sort(key=lambda c: c.size_bytes, reverse=True)
    logger.info(f"Found {len(candidates)} candidate files")
    return candidates


class TemporaryOutput:
    """Scoped temporary encode target, removed on exit unless preserved."""

    def __init__(self, path):
        self.path = Path(path)
        self.preserved = False

    def remove(self):
        """Best-effort delete; failures are logged, never raised."""
        try:
            if self.path.exists():
                self.path.unlink()
        except OSError as e:
            logger.error(f"Failed to cleanup temp file {self.path}: {e}")

    def preserve(self):
        self.preserved = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if not self.preserved:
            self.remove()
        return False


def _encode_with_fallback(candidate, policy, temp, context):
    encoder = context.encoder

    temp.remove()
    outcome = encoder.encode(candidate.path, EncodeMode.GPU, policy, temp.path)
    if outcome.succeeded:
        return outcome

    logger.warning(f"GPU encode failed, falling back to CPU: {candidate.path}")
    context.counters.gpu_fallbacks += 1
    temp.remove()
    return encoder.encode(candidate.path, EncodeMode.CPU, policy, temp.path)


def _replace_original(original, encoded, final, temp):
    """Delete original and move encoded into final.

    Raises:
        FilesystemFailure: if any step fails. When the original is already gone
        the encoded file is preserved for manual recovery.
    """
    if final != original and final.exists():
        raise FilesystemFailure(
            f"Output path already exists, original left untouched: {final}")

    try:
        original.unlink()
    except OSError as e:
        raise FilesystemFailure(f"Could not delete original {original}: {e}") from e

    try:
        encoded.rename(final)
    except OSError as e:
        temp.preserve()
        raise FilesystemFailure(
            f"Original {original} was deleted but {encoded} could not be renamed to {final}: {e}. "
            f"Encoded file kept at {encoded} for manual recovery") from e


def _dispose(candidate, outcome, final, temp, context):
    log = context.processed_log
    counters = context.counters
    encoded = outcome.output_path

    try:
        encoded_size = encoded.stat().st_size
        if encoded_size < candidate.size_bytes:
            _replace_original(Path(candidate.path), encoded, final, temp)
        else:
            temp.remove()
    except (FilesystemFailure, OSError) as e:
        logger.error(f"Filesystem error for {candidate.path}: {e}")
        log.record(Status.FAILED, candidate.path)
        counters.failed += 1
        return

    if encoded_size < candidate.size_bytes:
        logger.info(
            f"Replaced ({size_in_mb(candidate.size_bytes)} MB -> {size_in_mb(encoded_size)} MB): {final}")
        log.record(Status.REPLACED, candidate.path)
        if str(final) != candidate.path:
            log.record(Status.ENCODED_OUTPUT, str(final))
        counters.succeeded += 1
    else:
        logger.info(
            f"Encoded file is not smaller ({size_in_mb(encoded_size)} MB >= "
            f"{size_in_mb(candidate.size_bytes)} MB), keeping original: {candidate.path}")
        log.record(Status.KEPT_ORIGINAL, candidate.path)
        counters.skipped += 1


def process_file(candidate, context):
    """Run one candidate file through the pipeline.

    Exactly one counter is incremented per call. Every state except the
    resume skip appends exactly one terminal line to the processed log.
    """
    path = candidate.path
    log = context.processed_log
    counters = context.counters

    if path in context.resume_set:
        logger.info(f"Already processed, skipping: {path}")
        counters.skipped += 1
        return

    size_mb = size_in_mb(candidate.size_bytes)
    if size_mb < context.min_size_mb:
        logger.info(f"Skipping small file ({size_mb} MB < {context.min_size_mb} MB): {path}")
        log.record(Status.SKIPPED_SMALL, path, size_mb=size_mb)
        counters.skipped += 1
        return

    final = final_output_path(path, context.container)

    if context.dry_run:
        logger.info(f"[Dry Run] Would encode ({size_mb} MB): {path} -> {final}")
        counters.skipped += 1
        return

    logger.info(f"Processing ({size_mb} MB): {path}")
    log.processing(path)

    policy = detect_subtitle_policy(context.encoder.probe_subtitle_codecs(path))
    if policy is SubtitlePolicy.CONVERT_TO_SRT:
        logger.info(f"Converting {LEGACY_SUBTITLE_CODEC} subtitles to SRT: {path}")
        log.subtitle_info(path, f"{LEGACY_SUBTITLE_CODEC} -> srt")

    with TemporaryOutput(temp_output_path(final, context.container)) as temp:
        outcome = _encode_with_fallback(candidate, policy, temp, context)
        if not outcome.succeeded:
            logger.warning(f"Encoding failed on both GPU and CPU: {path}")
            log.record(Status.FAILED, path)
            counters.failed += 1
            return

        _dispose(candidate, outcome, final, temp, context)


def run(candidates, context):
    """Process every candidate sequentially and write the run summary.

    Unexpected errors for one file are logged and classified as FAILED; they
    never stop the remaining files. The summary is written on every exit path.

    Returns:
        RunCounters
    """
    log = context.processed_log
    counters = context.counters
    log.write_banner()

    try:
        for candidate in candidates:
            try:
                process_file(candidate, context)
            except Exception:
                logger.exception(f"Unexpected error while processing {candidate.path}")
                counters.failed += 1
                try:
                    log.record(Status.FAILED, candidate.path)
                except OSError as e:
                    logger.error(f"Could not record failure for {candidate.path}: {e}")
    finally:
        logger.info(
            f"Run summary: succeeded={counters.succeeded}, skipped={counters.skipped}, "
            f"failed={counters.failed}, gpu_fallbacks={counters.gpu_fallbacks}")
        try:
            log.write_summary(counters)
        except OSError as e:
            logger.error(f"Could not write run summary to processed log: {e}")

    return counters
