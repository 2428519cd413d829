#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Logging mixin shared by stepserve components.

Components inherit from ``ModernLogger`` and call ``self.debug``/``self.info``
etc. directly. All loggers live under the ``stepserve`` namespace, which gets a
single rich console handler the first time any component is constructed.

Author: stepserve contributors
"""

import logging
import threading
from typing import Any, Optional, Union

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER_NAME = "stepserve"

_HANDLER_INSTALL_LOCK = threading.Lock()
_HANDLER_INSTALLED = False

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def resolve_level(level: Union[str, int]) -> int:
    """
    Translate a level name (case-insensitive) or number into a logging level.
    """
    if isinstance(level, int):
        return level
    try:
        return _LEVELS[str(level).strip().lower()]
    except KeyError:
        raise ValueError("Unknown log level: {0}".format(level)) from None


def install_rich_handler(level: Union[str, int] = "info") -> None:
    """
    Attach a rich handler to the package root logger exactly once per process.
    """
    global _HANDLER_INSTALLED

    if _HANDLER_INSTALLED:
        return

    with _HANDLER_INSTALL_LOCK:
        if _HANDLER_INSTALLED:
            return

        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.addHandler(handler)
        root.setLevel(resolve_level(level))
        root.propagate = False
        _HANDLER_INSTALLED = True


class ModernLogger:
    """
    Mixin giving a class its own namespaced logger.
    """

    def __init__(self, name: str, level: Optional[Union[str, int]] = None) -> None:
        install_rich_handler()

        if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
            name = "{0}.{1}".format(ROOT_LOGGER_NAME, name)

        self._logger = logging.getLogger(name)
        if level is not None:
            self._logger.setLevel(resolve_level(level))

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.critical(msg, *args, **kwargs)
