"""
Logging setup for the migration tool.

Console output keeps the ``[LEVEL] message`` shape the tool always printed;
the log file gets timestamps and logger names so concurrent workers can be
told apart after a run.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

CONSOLE_FORMAT = "[%(levelname)s] %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def setup_logging(level: str = "info", log_file: Optional[str] = None) -> logging.Logger:
    """Configure the ``blog_migrator`` logger hierarchy.

    :param level: One of ``debug``, ``info``, ``warning`` or ``error``.
    :param log_file: Optional path of a log file opened in append mode.
        Its parent directory is created if needed.
    :return: The configured package logger.
    """
    root = logging.getLogger("blog_migrator")
    root.setLevel(_LEVELS.get(level.lower(), logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root.addHandler(file_handler)

    return root
