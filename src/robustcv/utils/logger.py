# Andy Zhao
"""Logging utilities.

The library only creates module loggers (logging.getLogger(__name__)).
Applications and demos call setup_logger() once to see the output.

ROBUSTCV_DEBUG=1 switches the default level to DEBUG, which prints every
"better model" event of the estimation loop.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

_DEBUG = os.environ.get("ROBUSTCV_DEBUG", "0") == "1"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(name: str = 'robustcv', log_level: Optional[int] = None,
                 log_file: Optional[str] = None) -> logging.Logger:
    """Setup logger with console and optional file handler."""
    if log_level is None:
        log_level = logging.DEBUG if _DEBUG else logging.INFO

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # Calling setup twice must not duplicate every line
    for handler in list(logger.handlers):
        if getattr(handler, '_robustcv_handler', False):
            logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler._robustcv_handler = True
    logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler._robustcv_handler = True
        logger.addHandler(file_handler)

    return logger
