# pluginhost/core/logging/setup.py
from __future__ import annotations
import logging
import logging.handlers
from typing import TYPE_CHECKING

from .formatters import DevFormatter, JsonFormatter

if TYPE_CHECKING:
    from pluginhost.app.settings import LoggingSettings

__all__ = [
    "configureLogging",
]



def configureLogging(settings: LoggingSettings | None = None) -> None:
    """
    Initiate the global logging configuration.

    Dev:
      - Console pretty logs (DEBUG)
      - JSON file log (DEBUG), if a file path is configured

    Prod:
      - Console at the configured level (INFO by default)
      - JSON file log with rotation at the same level
    """
    devMode = settings.devMode if settings is not None else False
    if devMode:
        rootLevel = logging.DEBUG
    else:
        levelName = str(settings.level if settings is not None else "INFO").upper()
        rootLevel = getattr(logging, levelName, logging.INFO)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(rootLevel)

    consoleHandler = logging.StreamHandler()
    consoleHandler.setLevel(rootLevel)
    consoleHandler.setFormatter(DevFormatter())
    root.addHandler(consoleHandler)

    filePath = settings.filePath if settings is not None else None
    if filePath is not None:
        filePath.parent.mkdir(parents=True, exist_ok=True)
        fileHandler = logging.handlers.RotatingFileHandler(
            filePath,
            maxBytes=settings.maxBytes,
            backupCount=settings.backupCount,
            encoding="utf-8"
        )
        fileHandler.setLevel(rootLevel)
        fileHandler.setFormatter(JsonFormatter())
        root.addHandler(fileHandler)
