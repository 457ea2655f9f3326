"""The lasercal logging system.

Mainly consisting of

  - stderr, for the operator watching the calibration
  - application debug log
  - logging of measurements

This acts like a singleton class. It does all the initialization on ``init()``
and the module's methods will act on module-level ("static") variables.
"""
import asyncio
import logging
from logging.handlers import (BufferingHandler, MemoryHandler,
                              TimedRotatingFileHandler)
import os
import re
from typing import Dict, Optional, Union  # pylint: disable=unused-import

from .util import asyncio_tools as tools

PROGRAM_LOG_FNAME = 'messages/lasercal.log'  # Log program/debug messages here.
QTY_LOG_DIR = 'quantities/'  # Log readings ("quantities") here.
# We need to avoid name clashes with existing loggers.
QTY_LOGGER_PREFIX = 'qty_logger.'

# We will use these module-scope globals here to make our module behave like a
# singleton class. Pylint doesn't like that.
# pylint: disable=global-statement

_LOGGERS = {}  # type: Dict[str, logging.Logger]

# Those are not constants but actually keep track of the current state of the
# loaded module. Pylint doesn't like that either.
# pylint: disable=invalid-name
_log_dir = None  # type: Optional[str]
_is_flushing = False  # A task for flushing buffers to disk is running.


def init(log_dir: str = 'log', debug: bool = False) -> None:
    """Set up the root logger.  Call this once, before logging anything.

    :param log_dir: Debug messages and quantity logs go into subfolders of
                this.  They are created if necessary.
    :param debug: Show debug messages on stderr as well.
    """
    global _log_dir
    if _log_dir is not None:
        raise RuntimeError('This is a "singleton module". Only init() once.')
    _log_dir = log_dir
    os.makedirs(os.path.join(log_dir, os.path.dirname(PROGRAM_LOG_FNAME)),
                exist_ok=True)
    os.makedirs(os.path.join(log_dir, QTY_LOG_DIR), exist_ok=True)

    root_logger = logging.getLogger()
    # We need to default to DEBUG in order to be able to filter downstream.
    root_logger.setLevel(logging.DEBUG)

    # Log to file.

    # We need to specify 3600 seconds here instead of one hour, to force
    # detailed file name suffixes for manual log rotation.
    write_to_disk = TimedRotatingFileHandler(
        os.path.join(log_dir, PROGRAM_LOG_FNAME), when='s', interval=3600)
    # Start a new file every time lasercal is run.
    write_to_disk.doRollover()
    write_to_disk.formatter = logging.Formatter(
        "{asctime} {name} {levelname} - {message} [{module}.{funcName}]",
        style='{')

    buffer = MemoryHandler(200, target=write_to_disk)
    root_logger.addHandler(buffer)

    # Log to stderr.

    stderr = logging.StreamHandler()
    stderr.setLevel(logging.DEBUG if debug else logging.INFO)
    stderr.formatter = logging.Formatter(
        "{levelname:<7} {message} [{module}:{lineno}]", style='{')
    root_logger.addHandler(stderr)


def log_quantity(qty_id: str, value: Union[float, str], time: float = None) -> None:
    """Append "value" to the logfile of given name.

    Before ``init()`` was called, quantities are silently dropped.

    :param qty_id: This distinguishes logfiles from each other.
    :param time: Unix time of when the passed "value" was measured. If passed,
                this will be printed in addition to the current time.
    :param value: Value to log. None is fine as well.
    """
    logger = _get_qty_logger(qty_id)
    if time:
        logger.info('%s\t%s', time, value)
    else:
        logger.info('%s', value)


def flush_to_disk() -> None:
    """Flush all log entries from buffer memory to disk."""
    # Act on the root logger and our quantity loggers.
    loggers = [logging.getLogger()] + list(_LOGGERS.values())
    handlers = [h for l in loggers for h in l.handlers
                if isinstance(h, BufferingHandler)]
    for handler in handlers:
        handler.flush()


def start_flushing_regularly(seconds: float) -> None:
    """Schedule regular flushing of the the buffered data to disk.

    This needs a running asyncio event loop.

    Specifying a long interval does not reliably avoid frequent writes, as the
    buffers will flush automatically if necessary to prevent overflow.

    :param seconds: Interval for flushing. See note on flushing interval above.
    """
    global _is_flushing
    if _is_flushing:
        logging.error("Flushing was scheduled already. Ignoring.")
        return
    if not seconds > .5:
        raise ValueError("Choose a flushing interval larger than 0.5s.")
    _is_flushing = True
    asyncio.ensure_future(tools.repeat_task(flush_to_disk, seconds))


def ellipsicate(message: str, max_length: int = 40, strip: bool = True) -> str:
    """Return a shortened version of a string if it exceeds max_length.

    This will turn 'bizbazfrobnicator' into "biz ... tor".
    """
    msg = re.sub(r'\s+', ' ', str(message))  # only allow ' ' for whitespace
    if strip:
        msg = msg.strip()
    if len(msg) <= max_length:
        return msg
    snip_length = int((max_length - 5) / 2)  # ellipsis padded with spaces
    return str(msg[:snip_length] + ' ... ' + msg[-snip_length:])


def _get_qty_logger(name: str) -> logging.Logger:
    name = str(name)
    if not name.isidentifier():
        raise ValueError("Invalid log ID \"{}\". Only valid python "
                         "identifiers are allowed for log IDs.".format(name))

    logger_name = QTY_LOGGER_PREFIX + name

    # Actually the logging class provides a singleton behaviour of Logger
    # objects. We keep our own list however, as we need some specific
    # configuration and handlers attached.
    try:
        return _LOGGERS[logger_name]
    except KeyError:
        logger = logging.getLogger(logger_name)
        logger.propagate = False  # Don't pass messages to root logger.
        if _log_dir is None:
            if not logger.handlers:
                logger.addHandler(logging.NullHandler())
            return logger  # Not cached, so we get a file once init() ran.

        # We need to specify 3600 seconds here instead of one hour, to force
        # detailed file name suffixes for manual log rotation.
        file_handler = TimedRotatingFileHandler(
            os.path.join(_log_dir, QTY_LOG_DIR, name + '.log'),
            when='s', interval=3600)
        file_handler.formatter = logging.Formatter("{asctime}\t{message}",
                                                   style='{')
        # Start a new file for each calibration run.
        file_handler.doRollover()

        # Buffer file writes to keep I/O down. Unless flushed on a timer, the
        # buffer is written at 100 entries.
        buffer = MemoryHandler(100, target=file_handler)
        logger.addHandler(buffer)
        _LOGGERS[logger_name] = logger
        return logger
