# pluginhost/core/logging/__init__.py
from __future__ import annotations

from .context import setLogContext, clearLogContext, getLogContext, logContext
from .formatters import DevFormatter, JsonFormatter
from .setup import configureLogging
from .util import getPluginLogger

__all__ = [
    "configureLogging",
    "getPluginLogger",
    "setLogContext",
    "clearLogContext",
    "getLogContext",
    "logContext",
    "DevFormatter",
    "JsonFormatter",
]
