#!/usr/bin/env python3
"""
Command line entry point for shrink_videos.
"""

import argparse
import logging
import sys

import configuration_manager
import dependencies_utils
import logging_utils
import run_lock
import shrink_videos
from ffmpeg_encoder import FfmpegEncoder
from processed_log import ProcessedLog

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(
        description='Re-encode large videos to H.264/AAC Matroska, keeping the result only if it is smaller',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  shrink-videos                                # Process the current directory
  shrink-videos /path/to/videos
  shrink-videos --config config.yaml           # Settings from a YAML file
  shrink-videos --dry-run --min-size-mb 2000 D:\\Videos
        """
    )
    parser.add_argument('directory',
                        nargs='?',
                        help='Directory to scan for video files (default: current directory)')
    parser.add_argument('--config',
                        help='Path to configuration file (default: config.yaml)')
    parser.add_argument('--dry-run',
                        action='store_true',
                        help='Show what would be encoded without touching any file')
    parser.add_argument('--min-size-mb',
                        type=int,
                        help='Skip files smaller than this many megabytes (default: 1200)')
    parser.add_argument('--container',
                        help='Target container extension (default: mkv)')
    parser.add_argument('--processed-log',
                        help='Processed log used for resuming (default: <directory>/shrink_videos_processed.log)')
    parser.add_argument('--log-file',
                        help='Path to log file (default: temp directory, can be set via SHRINK_VIDEOS_LOG_FILE env var)')
    return parser


def main():
    """Main entry point for the script."""
    parser = build_parser()
    args = parser.parse_args()

    # First log lines of init go to the default temp location
    logging_utils.setup_logging()

    config, validation_errors = configuration_manager.load_config(
        args.config, args)

    if validation_errors:
        for err in validation_errors:
            logger.error(err)
        parser.print_help()
        sys.exit(1)

    logging_utils.setup_logging(
        config['logging']['log_file'], config['logging']['level'])

    dependency_config = config['dependencies']
    if not dependencies_utils.validate_dependencies(dependency_config):
        sys.exit(1)

    target_directory = config['directory']
    try:
        with run_lock.RunLock(target_directory):
            candidates = shrink_videos.find_candidate_files(
                target_directory, config['extensions'])

            encoder = FfmpegEncoder(
                config['encoding'], dependency_config, config['container'])
            processed_log = ProcessedLog(config['processed_log'])
            context = shrink_videos.create_run_context(
                config, encoder, processed_log)

            shrink_videos.run(candidates, context)
    except run_lock.RunLockError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == '__main__':
    main()
