"""Tests for minacme.log."""
import argparse
import logging
import os
import shutil
import stat
import sys
import tempfile
import unittest
from unittest import mock

import pytest

from minacme import constants
from minacme.log import LogFileHandler


class SetupLoggingTest(unittest.TestCase):
    """Tests for minacme.log.setup_logging."""

    def setUp(self):
        self.config = argparse.Namespace(
            quiet=False, verbose_count=constants.CLI_DEFAULTS['verbose_count'],
            log_file=None)
        self.root_logger = mock.MagicMock()
        patcher = mock.patch('minacme.log.logging.getLogger',
                             return_value=self.root_logger)
        patcher.start()
        self.addCleanup(patcher.stop)

    @classmethod
    def _call(cls, *args, **kwargs):
        from minacme.log import setup_logging
        return setup_logging(*args, **kwargs)

    def _handlers(self):
        return [call[0][0] for call in self.root_logger.addHandler.call_args_list]

    def test_default(self):
        self._call(self.config)
        self.root_logger.setLevel.assert_called_once_with(logging.DEBUG)
        handlers = self._handlers()
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert handlers[0].level == logging.INFO

    def test_verbose(self):
        self.config.verbose_count = 0
        self._call(self.config)
        assert self._handlers()[0].level == logging.NOTSET

    def test_quiet(self):
        self.config.quiet = True
        self.config.verbose_count = 0
        self._call(self.config)
        assert self._handlers()[0].level == constants.QUIET_LOGGING_LEVEL

    def test_log_file(self):
        tmp_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, tmp_dir)
        self.config.log_file = os.path.join(tmp_dir, 'minacme.log')
        self._call(self.config)
        handlers = self._handlers()
        assert len(handlers) == 2
        file_handler = handlers[1]
        self.addCleanup(file_handler.close)
        assert isinstance(file_handler, LogFileHandler)
        assert file_handler.level == logging.DEBUG
        assert os.path.exists(self.config.log_file)


class LogFileHandlerTest(unittest.TestCase):
    """Tests for minacme.log.LogFileHandler."""

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.tmp_dir)
        self.path = os.path.join(self.tmp_dir, 'minacme.log')

    def _emit(self, handler, message):
        handler.emit(logging.LogRecord(
            'minacme', logging.DEBUG, __file__, 1, message, None, None))

    def test_appends(self):
        with open(self.path, 'w') as f:
            f.write('earlier run\n')
        handler = LogFileHandler(self.path)
        self._emit(handler, 'signed payload')
        handler.close()
        with open(self.path) as f:
            assert f.read() == 'earlier run\nsigned payload\n'

    def test_close(self):
        handler = LogFileHandler(self.path)
        handler.close()
        assert handler.stream.closed

    @unittest.skipUnless(os.name == 'posix', 'file modes are POSIX only')
    def test_created_owner_only(self):
        old_umask = os.umask(0o022)
        try:
            handler = LogFileHandler(self.path)
        finally:
            os.umask(old_umask)
        handler.close()
        assert stat.S_IMODE(os.stat(self.path).st_mode) == 0o600

    @unittest.skipUnless(os.name == 'posix', 'file modes are POSIX only')
    def test_existing_file_restricted(self):
        with open(self.path, 'w'):
            pass
        os.chmod(self.path, 0o644)
        handler = LogFileHandler(self.path)
        handler.close()
        assert stat.S_IMODE(os.stat(self.path).st_mode) == 0o600

    def test_missing_directory(self):
        with pytest.raises(OSError):
            LogFileHandler(os.path.join(self.tmp_dir, 'missing', 'minacme.log'))


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
