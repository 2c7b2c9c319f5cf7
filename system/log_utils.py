# system/log_utils.py
import logging
import os
import sys

LOGGER_NAME = "reactor"
VERBOSE = 5

logging.addLevelName(VERBOSE, "VERBOSE")

_logger = logging.getLogger(LOGGER_NAME)


def configure(level=None) -> None:
    """
    Attach a stream handler once and set the level.
    Level comes from REACTOR_LOG_LEVEL when not given (default INFO).
    """
    if level is None:
        level = os.environ.get("REACTOR_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = VERBOSE if level.upper() == "VERBOSE" else logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    if not _logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        _logger.addHandler(handler)
    _logger.setLevel(level)


def _format(msg, kwargs) -> str:
    if not kwargs:
        return str(msg)
    context = " ".join(f"{k}={v}" for k, v in kwargs.items())
    return f"{msg} {context}"


def verbose(msg, **kwargs) -> None:
    if _logger.isEnabledFor(VERBOSE):
        _logger.log(VERBOSE, _format(msg, kwargs))


def debug(msg, **kwargs) -> None:
    if _logger.isEnabledFor(logging.DEBUG):
        _logger.debug(_format(msg, kwargs))


def info(msg, **kwargs) -> None:
    _logger.info(_format(msg, kwargs))


def warn(msg, **kwargs) -> None:
    _logger.warning(_format(msg, kwargs))


def error(msg, **kwargs) -> None:
    _logger.error(_format(msg, kwargs))


configure()
