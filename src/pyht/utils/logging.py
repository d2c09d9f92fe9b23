"""
Logging setup for pyHT.

Library modules log through ``logging.getLogger(__name__)`` and never
configure handlers themselves. Applications and example scripts call
:func:`setup_logging` once to attach handlers to the ``pyht`` logger.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

LOG_APP_NAME = "pyht"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(module)s:%(funcName)s:%(lineno)d] - %(message)s"


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    file_level: int = logging.DEBUG,
) -> logging.Logger:
    """
    Configure the ``pyht`` logger.

    Parameters
    ----------
    level : int, optional
        Level for the console handler. Defaults to ``logging.INFO``.
    log_file : str or Path, optional
        Also write to this file (parent directories are created).
    file_level : int, optional
        Level for the file handler. Defaults to ``logging.DEBUG``.

    Returns
    -------
    logging.Logger
        The configured ``pyht`` logger.
    """
    formatter = logging.Formatter(LOG_FORMAT)
    app_logger = logging.getLogger(LOG_APP_NAME)
    app_logger.setLevel(min(level, file_level) if log_file else level)

    # Avoid duplicate handlers when called repeatedly (e.g. in notebooks)
    if app_logger.hasHandlers():
        app_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    app_logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="w")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(file_level)
        app_logger.addHandler(file_handler)

    app_logger.propagate = False
    return app_logger
