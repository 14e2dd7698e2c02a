#!/usr/bin/env python3
"""
Probe and encode collaborators backed by ffprobe / ffmpeg.

FfmpegEncoder is the production implementation of the encoder capability the
pipeline driver is given; tests substitute a fake with the same two methods.
"""

import logging
import subprocess
from pathlib import Path

import subprocess_utils
from shrink_videos import EncodeMode, EncodeOutcome, SubtitlePolicy

logger = logging.getLogger(__name__)


def subtitle_codec_for(policy, container):
    """ffmpeg subtitle codec argument for a policy and target container."""
    if policy is SubtitlePolicy.CONVERT_TO_SRT:
        # mp4 cannot carry SRT; mov_text is its only text subtitle format
        return 'srt' if container == 'mkv' else 'mov_text'
    return 'copy'


class FfmpegEncoder:
    """Runs ffprobe/ffmpeg according to the encoding and dependency config."""

    def __init__(self, encoding_config, dependency_config=None, container='mkv'):
        self.encoding = encoding_config
        dependency_config = dependency_config or {}
        self.ffmpeg_path = dependency_config.get('ffmpeg', 'ffmpeg')
        self.ffprobe_path = dependency_config.get('ffprobe', 'ffprobe')
        self.container = container
        self.timeout = encoding_config.get('timeout')

    def probe_subtitle_codecs(self, path):
        """Return the codec name of every subtitle stream in path.

        Probe errors are logged and reported as "no subtitle streams" so the
        copy policy is used.
        """
        command_args = [self.ffprobe_path, '-v', 'error', '-select_streams', 's',
                        '-show_entries', 'stream=codec_name',
                        '-of', 'csv=p=0', str(path)]
        try:
            result = subprocess_utils.run_command(
                command_args, check=True, timeout=self.timeout)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            logger.error(f"Error probing subtitle streams for {path}: {e}")
            return []

        return [line.strip().rstrip(',') for line in (result.stdout or '').splitlines()
                if line.strip()]

    def build_command(self, input_path, mode, subtitle_policy, output_path):
        cmd = [self.ffmpeg_path, '-hide_banner', '-nostdin', '-y']
        if mode is EncodeMode.GPU:
            cmd.extend(['-hwaccel', self.encoding['hwaccel']])
        cmd.extend(['-i', str(input_path),
                    # Optional maps: a missing stream type must not fail the job
                    '-map', '0:v?', '-map', '0:a?', '-map', '0:s?'])

        if mode is EncodeMode.GPU:
            cmd.extend(['-c:v', self.encoding['gpu_encoder'],
                        '-rc', 'vbr', '-cq', str(self.encoding['gpu_quality'])])
        else:
            cmd.extend(['-c:v', self.encoding['cpu_encoder'],
                        '-preset', 'medium', '-crf', str(self.encoding['cpu_quality'])])

        cmd.extend(['-c:a', 'aac', '-b:a', self.encoding['audio_bitrate'],
                    '-c:s', subtitle_codec_for(subtitle_policy, self.container),
                    str(output_path)])
        return cmd

    def encode(self, input_path, mode, subtitle_policy, output_path):
        """Encode input_path to output_path.

        Success requires a zero exit code and the output file existing;
        anything else, including a timeout, is a Failure.
        """
        output_path = Path(output_path)
        cmd = self.build_command(input_path, mode, subtitle_policy, output_path)
        try:
            result = subprocess_utils.run_command(cmd, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"{mode.value} encode timed out after {self.timeout}s: {input_path}")
            return EncodeOutcome.failure()
        except OSError as e:
            logger.error(f"Could not start ffmpeg for {input_path}: {e}")
            return EncodeOutcome.failure()

        if result.returncode != 0:
            logger.warning(f"{mode.value} encode exited with code {result.returncode}: {input_path}")
            return EncodeOutcome.failure()
        if not output_path.exists():
            logger.warning(f"{mode.value} encode produced no output file: {output_path}")
            return EncodeOutcome.failure()
        return EncodeOutcome.success(output_path)
