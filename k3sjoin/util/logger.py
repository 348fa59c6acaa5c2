"""This module defines logging capabilities for k3sjoin.

Every module creates its logger with ``LOGGER = Logger(__name__)``. The
verbosity is global and set once by the CLI via ``Logger.LOG_LEVEL`` or
the ``level`` property.
"""

import logging
import sys
import time

from k3sjoin.util.hue import (bad, red, info as infomsg, yellow, run, grey,
                              que, good, green)

LOG_LEVELS = list(range(5))
DEFAULT_LOG_LEVEL = 3

# k3sjoin verbosity to python logging levels, 0 disables the logger
PYTHON_LEVELS = {1: logging.ERROR,
                 2: logging.WARNING,
                 3: logging.INFO,
                 4: logging.DEBUG}

LEVEL_NAMES = {'quiet': 0,
               'error': 1,
               'warning': 2,
               'info': 3,
               'debug': 4}


def get_logger(name):
    """Returns a Python logger writing plain messages to STDOUT.

    Only a single handler is ever attached, repeated calls with the same
    name would otherwise print every message several times.

    Args:
        name (str): The name of the Logger.

    Returns:
        A Python Logger.
    """

    log = logging.getLogger(name)
    set_level(log, Logger.LOG_LEVEL)

    if not log.handlers:
        sh = logging.StreamHandler(sys.stdout)
        sh.setFormatter(logging.Formatter("%(message)s"))
        log.addHandler(sh)

    return log


def set_level(logger, level):
    """Sets the logging level of a Python logger.

    Args:
        logger: A Python logger object.
        level (int): The k3sjoin log level (0-4).

    Raises:
        ValueError if log level is unsupported.
    """

    if level not in LOG_LEVELS:
        raise ValueError(f"log level {level} is not supported")

    if not level:
        logger.disabled = True
        return

    logger.disabled = False
    logger.setLevel(PYTHON_LEVELS[level])


def to_level(level):
    """Translate a level name or number (as str or int) to an int.

    Raises:
        ValueError if the level is neither a known name nor a number.
    """
    try:
        return LEVEL_NAMES[level]
    except KeyError:
        return int(level)


class Singleton(type):
    """Metaclass returning the same instance on every instantiation.

    Calling the class again re-runs ``__init__`` on the existing instance,
    so ``Logger("a")`` and ``Logger("b")`` are the same object pointed at
    the last name given. Only meant for the logger.
    """
    _instances = {}

    def __call__(cls, *args, **kwargs):
        if cls not in cls._instances:
            cls._instances[cls] = super(Singleton, cls).__call__(*args, **kwargs)
        else:
            cls._instances[cls].__init__(*args, **kwargs)

        return cls._instances[cls]


class Logger(metaclass=Singleton):
    """Proxy for logging.Logger with colored prefixes.

    The levels are:

    .. code:: shell

        * 0 - quiet (no output)
        * 1 - error
        * 2 - warning
        * 3 - info
        * 4 - debug

    All methods except :meth:`.Logger.question` support ``%``-style
    arguments. Never pass a join token to these methods, use
    :func:`k3sjoin.util.util.redact` first.

    Example:
        >>> log = Logger(__name__)
        >>> log.info("joining %s", "https://10.0.0.5:6443")
        [~] joining https://10.0.0.5:6443

    Attributes:
        LOG_LEVEL (int): The log level used across the application.

    Args:
        name (str): The name of the logger.
    """

    LOG_LEVEL = DEFAULT_LOG_LEVEL

    def __init__(self, name):
        self.logger = get_logger(name)

    @property
    def level(self):
        """Returns the Python log level equivalent, 0 if quiet."""
        if not self.logger:
            return None

        if self.logger.disabled:
            return 0

        return self.logger.level

    @level.setter
    def level(self, level):
        level = to_level(level)
        set_level(self.logger, level)
        Logger.LOG_LEVEL = level

    def error(self, msg, *args, color=True, **kwargs):
        """Logs a message on error level, prefixed with ``[-]``."""

        if color:
            msg = bad(red(msg))

        self.logger.error(msg, *args, **kwargs)

    def warning(self, msg, *args, color=True, **kwargs):
        """Logs a message on warning level, prefixed with ``[!]``."""

        if color:
            msg = infomsg(yellow(msg))

        self.logger.warning(msg, *args, **kwargs)

    def warn(self, msg, *args, color=True, **kwargs):
        """Same as :meth:`.Logger.warning`."""

        self.warning(msg, *args, **kwargs, color=color)

    def info(self, msg, *args, color=True, **kwargs):
        """Logs a message on info level, prefixed with ``[~]``."""

        if color:
            msg = run(grey(msg))

        self.logger.info(msg, *args, **kwargs)

    def debug(self, msg, *args, color=True, **kwargs):
        """Logs a message on debug level with a timestamp prefix.

        Example:
            >>> log.debug("test")
            [20190426-155611] test
        """

        if color:
            now = time.strftime("%Y%m%d-%H%M%S")
            msg = grey(f"[{now}] {msg}")

        self.logger.debug(msg, *args, **kwargs)

    def success(self, msg, *args, color=True, **kwargs):
        """Logs a success on info level, prefixed with ``[+]``."""

        if color:
            msg = good(green(msg))

        self.logger.info(msg, *args, **kwargs)

    @staticmethod
    def question(msg, color=True):
        """Outputs a question.

        Questions ignore the log level and are always printed.
        """

        if color:
            msg = que(msg)

        print(msg)
