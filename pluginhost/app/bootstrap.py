# pluginhost/app/bootstrap.py
from __future__ import annotations
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pluginhost.app.settings import HostSettings, loadSettings
from pluginhost.core.logging import configureLogging
from pluginhost.plugins.discover import ScanReport
from pluginhost.plugins.manager import PluginManager
from pluginhost.plugins.paths import PathResolver

logger = logging.getLogger(__name__)

__all__ = ["PluginHost", "bootstrapPluginHost"]



@dataclass(frozen=True)
class PluginHost:
    """Everything a shell needs after startup."""
    settings: HostSettings
    resolver: PathResolver
    manager: PluginManager
    report: ScanReport



def bootstrapPluginHost(
    settingsPath: Path | str | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
    settings: HostSettings | None = None,
    setupLogging: bool = True,
) -> PluginHost:
    """
    Start the plugin host:
      1) load settings (unless given)
      2) configure logging
      3) create the well-known roots
      4) sweep pending markers, scan and load plugins
    """
    if settings is None:
        settings = loadSettings(settingsPath, overrides=overrides)
    if setupLogging:
        configureLogging(settings.logging)

    resolver = PathResolver.fromSettings(settings)
    resolver.ensureRoots()

    manager = PluginManager(resolver, settings)
    report = manager.loadPlugins()
    logger.info("Plugin host ready with %d plugin(s)", len(manager.listLoaded()))
    return PluginHost(settings=settings, resolver=resolver, manager=manager, report=report)
