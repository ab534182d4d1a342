"""Logging utilities for the minacme command.

The library modules only create loggers; handlers are installed here,
once the command line has been parsed, so the requested verbosity
applies from the first message on.

"""
import logging
import os
from typing import Any
from typing import IO

from minacme import constants

# Logging format
CLI_FMT = "%(message)s"
FILE_FMT = "%(asctime)s:%(levelname)s:%(name)s:%(message)s"

logger = logging.getLogger(__name__)


def setup_logging(config: Any) -> None:
    """Setup logging after command line arguments are parsed.

    A stderr handler is installed at the level requested with ``-v`` /
    ``--quiet``. If ``--log-file`` was given, a `LogFileHandler` receives
    every message down to DEBUG, wire traffic included.

    :param config: parsed command line, see `minacme.cli.prepare_parser`

    :raises OSError: if the log file cannot be opened

    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # send all records to handlers

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(CLI_FMT))
    if config.quiet:
        level = constants.QUIET_LOGGING_LEVEL
    else:
        level = -config.verbose_count * 10
    stream_handler.setLevel(level)
    root_logger.addHandler(stream_handler)

    if config.log_file:
        file_handler = LogFileHandler(config.log_file)
        file_handler.setFormatter(logging.Formatter(FILE_FMT))
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)
        logger.debug('Saving debug log to %s', config.log_file)

    logger.debug('Root logging level set at %d', level)


class LogFileHandler(logging.StreamHandler):
    """Appends log messages to a file only its owner can read.

    The debug log holds signed requests and server responses. The file
    is created with permissions 600; an existing file is reduced to
    them before anything is written.

    :ivar str path: file system path to the log file

    """
    def __init__(self, path: str) -> None:
        self.path = path
        fd = os.open(path, os.O_CREAT | os.O_WRONLY | os.O_APPEND, 0o600)
        try:
            os.chmod(path, 0o600)
            stream = os.fdopen(fd, 'a')
        except OSError:
            os.close(fd)
            raise
        super().__init__(stream)
        self.stream: IO[str]

    def close(self) -> None:
        """Close the handler and the log file."""
        self.acquire()
        try:
            # StreamHandler.close() doesn't close the stream to allow a
            # stream like stderr to be used
            self.stream.close()
            super().close()
        finally:
            self.release()
