#!/usr/bin/env python3
"""
Unit tests for logging_utils.py
"""

import logging
import logging.handlers
import os
import tempfile
import unittest
from unittest.mock import patch, MagicMock

import logging_utils


def close_root_handlers():
    # Close file handles to avoid Windows file locking issues
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)


class TestSetupLogging(unittest.TestCase):
    """Test logging setup functionality."""

    def setUp(self):
        close_root_handlers()

    def tearDown(self):
        close_root_handlers()

    def test_setup_logging_default_path(self):
        """Test logging setup with default temp directory path."""
        log_path = logging_utils.setup_logging()

        self.assertIsNotNone(log_path)
        self.assertIn(tempfile.gettempdir(), log_path)
        self.assertIn('shrink_videos.log', log_path)

        handler_types = [type(h).__name__ for h in logging.getLogger().handlers]
        self.assertIn('StreamHandler', handler_types)
        self.assertIn('RotatingFileHandler', handler_types)

    def test_setup_logging_creates_directory(self):
        """Test that logging setup creates missing directories."""
        with tempfile.TemporaryDirectory() as temp_dir:
            nested_path = os.path.join(temp_dir, 'subdir', 'logs', 'app.log')
            log_path = logging_utils.setup_logging(nested_path)

            self.assertEqual(log_path, nested_path)
            self.assertTrue(os.path.exists(nested_path))
            close_root_handlers()

    def test_setup_logging_falls_back_to_temp(self):
        """A directory that cannot be created falls back to the temp location."""
        real_mkdir = logging_utils.Path.mkdir
        calls = []

        def mkdir(self, *args, **kwargs):
            calls.append(self)
            if len(calls) == 1:
                raise PermissionError("No permission")
            return real_mkdir(self, *args, **kwargs)

        with patch.object(logging_utils.Path, 'mkdir', autospec=True, side_effect=mkdir):
            with patch('sys.stderr', new=MagicMock()):
                log_path = logging_utils.setup_logging('/no/access/app.log')

        self.assertEqual(log_path, logging_utils.default_log_file_path())

    def test_setup_logging_console_only(self):
        """Test logging works with console only when no directory can be created."""
        with patch('logging_utils.Path.mkdir', side_effect=PermissionError("No permission")):
            with patch('sys.stderr', new=MagicMock()):
                log_path = logging_utils.setup_logging('/invalid/path.log')

        self.assertIsNone(log_path)
        handler_types = [type(h).__name__ for h in logging.getLogger().handlers]
        self.assertEqual(handler_types, ['StreamHandler'])

    def test_setup_logging_clears_existing_handlers(self):
        """Test that setup_logging replaces existing handlers."""
        dummy_handler = logging.StreamHandler()
        logging.getLogger().addHandler(dummy_handler)

        logging_utils.setup_logging()

        self.assertNotIn(dummy_handler, logging.getLogger().handlers)

    def test_setup_logging_formatter_and_level(self):
        """Test that handlers have the expected format and level."""
        logging_utils.setup_logging()

        root_logger = logging.getLogger()
        self.assertEqual(root_logger.level, logging.INFO)
        for handler in root_logger.handlers:
            self.assertEqual(handler.level, logging.INFO)
            self.assertIn('%(asctime)s', handler.formatter._fmt)
            self.assertIn('%(levelname)s', handler.formatter._fmt)
            self.assertIn('%(message)s', handler.formatter._fmt)

    def test_setup_logging_file_handler_rotation(self):
        """Test that file handler has rotation configured."""
        with tempfile.TemporaryDirectory() as temp_dir:
            logging_utils.setup_logging(os.path.join(temp_dir, 'test.log'))

            file_handlers = [h for h in logging.getLogger().handlers
                             if isinstance(h, logging.handlers.RotatingFileHandler)]
            self.assertEqual(len(file_handlers), 1)
            self.assertEqual(file_handlers[0].maxBytes, 10 * 1024 * 1024)
            self.assertEqual(file_handlers[0].backupCount, 5)
            close_root_handlers()

    def test_setup_logging_writes_to_file(self):
        """Test that logging actually writes to the file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_path = os.path.join(temp_dir, 'test.log')
            logging_utils.setup_logging(log_path)

            logging.getLogger('shrink_videos').warning("GPU encode failed 12345")
            for handler in logging.getLogger().handlers:
                handler.flush()

            with open(log_path, 'r', encoding='utf-8') as f:
                content = f.read()
            self.assertIn("WARNING - GPU encode failed 12345", content)
            close_root_handlers()

    def test_setup_logging_file_permission_error(self):
        """Test handling of permission errors when creating log file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_path = os.path.join(temp_dir, 'test.log')

            with patch('logging_utils.logging.handlers.RotatingFileHandler',
                       side_effect=PermissionError("Permission denied")):
                result = logging_utils.setup_logging(log_path)

            self.assertIsNone(result)
            self.assertGreater(len(logging.getLogger().handlers), 0)

    def test_setup_logging_applies_level(self):
        """The configured level applies to the root logger and both handlers."""
        with tempfile.TemporaryDirectory() as temp_dir:
            logging_utils.setup_logging(os.path.join(temp_dir, 'test.log'), 'warning')

            root_logger = logging.getLogger()
            self.assertEqual(root_logger.level, logging.WARNING)
            self.assertEqual({h.level for h in root_logger.handlers}, {logging.WARNING})
            close_root_handlers()

    def test_setup_logging_rejects_unknown_level(self):
        with self.assertRaises(ValueError):
            logging_utils.setup_logging(level='chatty')


class TestResolveLogFilePath(unittest.TestCase):
    """Test run log location priority."""

    def test_cli_path_wins(self):
        with patch.dict(os.environ, {logging_utils.LOG_FILE_ENV_VAR: '/env.log'}):
            self.assertEqual(
                logging_utils.resolve_log_file_path('/cli.log', '/config.log'), '/cli.log')

    def test_env_beats_config(self):
        with patch.dict(os.environ, {logging_utils.LOG_FILE_ENV_VAR: '/env.log'}):
            self.assertEqual(
                logging_utils.resolve_log_file_path(None, '/config.log'), '/env.log')

    def test_config_then_default(self):
        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(logging_utils.resolve_log_file_path(None, '/config.log'), '/config.log')
            self.assertIsNone(logging_utils.resolve_log_file_path())


class TestParseLogLevel(unittest.TestCase):

    def test_names_are_case_insensitive(self):
        self.assertEqual(logging_utils.parse_log_level('debug'), logging.DEBUG)
        self.assertEqual(logging_utils.parse_log_level(' ERROR '), logging.ERROR)

    def test_none_is_default(self):
        self.assertEqual(logging_utils.parse_log_level(None), logging.INFO)

    def test_unknown_level(self):
        with self.assertRaises(ValueError):
            logging_utils.parse_log_level('TRACE')


if __name__ == '__main__':
    unittest.main()
