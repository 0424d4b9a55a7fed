import logging
from logging import Logger
from typing import Optional

from .properties import Properties

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LEVEL_PREFIX = "logging.level."

logger = logging.getLogger(__name__)


def apply_logging_levels(properties: Properties) -> dict[str, int]:
    """
    Set logger levels from ``logging.level.<logger>`` properties.

    ``logging.level.root`` targets the root logger, e.g.::

        logging.level.root=WARNING
        logging.level.pyspring.assembly=DEBUG

    :param properties: The property store to read.
    :return: The levels applied, by logger name.
    """
    applied = {}
    for key in properties.keys():
        if not key.startswith(LEVEL_PREFIX):
            continue
        name = key[len(LEVEL_PREFIX):]
        value = properties.get(key).strip().upper()
        level = logging.getLevelName(value)
        if not isinstance(level, int):
            logger.warning("Ignore '%s': unknown log level '%s'", key, value)
            continue
        logging.getLogger(None if name == "root" else name).setLevel(level)
        applied[name] = level
    return applied


def setup_logging(
        name: Optional[str] = None,
        level: int = logging.INFO,
        properties: Optional[Properties] = None
) -> Logger:
    """
    Set up and configure a logger.

    :param name: Name for the logger. If None, returns root logger.
    :param level: Logging level.
    :param properties: If given, ``logging.format`` replaces the default
        format and ``logging.level.*`` entries are applied afterwards.
    :return: Configured logger instance.
    """
    log = logging.getLogger(name)
    log.setLevel(level)

    if not log.handlers:
        fmt = LOG_FORMAT
        if properties is not None and properties.has("logging.format"):
            fmt = properties.get("logging.format")
        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(fmt))
        log.addHandler(handler)

    if properties is not None:
        apply_logging_levels(properties)
    return log
