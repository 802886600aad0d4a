"""
Logging setup for the acquisition layer.
"""

import logging
from typing import Union

LOG_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at DEBUG
_NOISY_LOGGERS = ("aiohttp.access", "sqlalchemy.engine")


def configure_logging(level: Union[str, int] = "INFO") -> None:
    """Configure root logging with the standard format."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        force=True,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
