# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Logging setup for codaspec.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import sys
import platform
import logging
import numpy as np
import scipy
from codaspec import __version__

LOG_FORMAT = '%(asctime)s %(name)-20s %(levelname)-8s %(message)s'


def _color_handler_emit(fn):
    """
    Add color-coding to the logging handler emitter.

    Source: https://stackoverflow.com/a/20707569/2021880
    """
    def new(*args):
        levelno = args[0].levelno
        if levelno >= logging.ERROR:
            color = '\x1b[31;1m'  # red
        elif levelno >= logging.WARNING:
            color = '\x1b[33;1m'  # yellow
        elif levelno >= logging.INFO:
            color = '\x1b[0m'  # no color
        elif levelno >= logging.DEBUG:
            color = '\x1b[35;1m'  # purple
        else:
            color = '\x1b[0m'  # no color
        # Color-code the message
        args[0].msg = f'{color}{args[0].msg}\x1b[0m'
        return fn(*args)
    return new


def _log_debug_information(logger):
    logger.debug(f'codaspec version: {__version__}')
    uname = platform.uname()
    logger.debug(f'Platform: {uname[0]} {uname[2]} {uname[4]}')
    logger.debug(f'Python version: {platform.python_version()}')
    logger.debug(f'NumPy version: {np.__version__}')
    logger.debug(f'SciPy version: {scipy.__version__}')


def setup_logging(logfile=None, level=None, progname='codaspec',
                  config=None):
    """
    Set up the logging infrastructure.

    Messages are written to the console at the given level and, optionally,
    to a log file at DEBUG level. Handlers installed by a previous call are
    replaced.

    :param logfile: path of the log file (default: None, no log file)
    :type logfile: str
    :param level: console log level (default: ``config.log_level``, or
        'INFO' if no config is given)
    :type level: str
    :param progname: name of the returned logger (default: 'codaspec')
    :type progname: str
    :param config: Config object providing the console log level
    :return: the program logger
    """
    if level is None:
        level = 'INFO' if config is None else config.log_level
    logger_root = logging.getLogger()
    for hdlr in logger_root.handlers[:]:
        if getattr(hdlr, 'codaspec_handler', False):
            hdlr.flush()
            hdlr.close()
            logger_root.removeHandler(hdlr)

    logging.captureWarnings(True)
    logger_root.setLevel(logging.DEBUG)
    if logfile is not None:
        filehand = logging.FileHandler(filename=logfile, mode='w')
        filehand.setLevel(logging.DEBUG)
        filehand.setFormatter(logging.Formatter(LOG_FORMAT))
        filehand.codaspec_handler = True
        logger_root.addHandler(filehand)

    console = logging.StreamHandler()
    console.setLevel(level)
    # Add logger color coding on all platforms but win32
    if sys.platform != 'win32' and sys.stderr.isatty():
        console.emit = _color_handler_emit(console.emit)
    console.codaspec_handler = True
    logger_root.addHandler(console)

    logger = logging.getLogger(progname)
    _log_debug_information(logger)
    return logger
