"""Logger module."""

import logging
import os
import sys

import colorlog

loggers: dict[str, logging.Logger] = {}

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

STREAMS = {"stdout": lambda: sys.stdout, "stderr": lambda: sys.stderr}


def _make_handler(log_handler: str, log_color: bool) -> logging.Handler:
    if log_handler not in STREAMS:
        err_msg = f"Invalid handler: {log_handler}"
        raise ValueError(err_msg)

    stream = STREAMS[log_handler]()
    if log_color:
        handler = colorlog.StreamHandler(stream)
        handler.setFormatter(colorlog.ColoredFormatter("%(log_color)s " + LOG_FORMAT, log_colors=LOG_COLORS))
    else:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def get_logger(
    name: str,
    log_handler: str = "stdout",
    log_level: str | None = None,
    log_color: bool | None = None,
) -> logging.Logger:
    """Get logger.

    Level and color default to the ``WATCHDOG_LOG_LEVEL`` and
    ``WATCHDOG_LOG_COLOR`` environment variables (``INFO``, no color).
    Loggers are cached by name; later calls ignore the other arguments.

    Args:
        name: The name of the logger.
        log_handler: The output stream ('stdout' or 'stderr').
        log_level: The logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL').
        log_color: Whether to use colored output.

    Returns:
        logging.Logger: Configured logger instance.

    Raises:
        ValueError: If invalid handler or log level is provided.
    """
    if name in loggers:
        return loggers[name]

    level_name = (log_level or os.getenv("WATCHDOG_LOG_LEVEL", "INFO")).upper()
    if level_name not in LOG_LEVELS:
        err_msg = f"Invalid log level: {level_name}"
        raise ValueError(err_msg)
    if log_color is None:
        log_color = os.getenv("WATCHDOG_LOG_COLOR", "false").lower() == "true"

    handler = _make_handler(log_handler, log_color)
    handler.setLevel(LOG_LEVELS[level_name])

    logger = colorlog.getLogger(name) if log_color else logging.getLogger(name)
    logger.setLevel(LOG_LEVELS[level_name])
    logger.addHandler(handler)

    loggers[name] = logger
    return logger
