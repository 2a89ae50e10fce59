"""Logging sink handed to flows.

Flows receive a parent :class:`Logger` and ``mount`` their own child on it, so
every line carries the dotted path of the component that wrote it
(``webdesk.explorer``).
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

ROOT_NAME = "webdesk"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "info", stream=None) -> None:
    level_value = getattr(logging, level.strip().upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level_value)
    if root.handlers:
        return
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)


class Logger:
    def __init__(self, name: str = ROOT_NAME, *, base: Optional[logging.Logger] = None) -> None:
        self._logger = base or logging.getLogger(name)

    @property
    def name(self) -> str:
        return self._logger.name

    def mount(self, name: str) -> "Logger":
        return Logger(base=self._logger.getChild(name))

    def debug(self, message: str, *args: Any) -> None:
        self._logger.debug(message, *args)

    def info(self, message: str, *args: Any) -> None:
        self._logger.info(message, *args)

    def warning(self, message: str, *args: Any) -> None:
        self._logger.warning(message, *args)

    def error(self, message: str, *args: Any) -> None:
        self._logger.error(message, *args)

    def exception(self, message: str, *args: Any) -> None:
        self._logger.exception(message, *args)


root_logger = Logger()
