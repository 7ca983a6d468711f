# pluginhost/plugins/events.py
from __future__ import annotations

from collections.abc import Sequence

from pluginhost.plugins.metadata import PluginMetadata

__all__ = ["RegistryListener"]



class RegistryListener:
    """
    Optional hook interface for shells that mirror the loaded plugin list.

    Implementations may override any subset of methods. All methods have
    safe no-op defaults. Callbacks run on the thread that changed the
    registry, never while the registry lock is held.
    """

    def onRegistryLoaded(self, plugins: Sequence[PluginMetadata]) -> None:
        """
        Called after a full scan replaced the registry contents.
        """
        # Default: no-op
        return

    def onPluginAdded(self, metadata: PluginMetadata) -> None:
        """
        Called when an install finished and the plugin is registered.
        """
        # Default: no-op
        return

    def onPluginRemoved(self, metadata: PluginMetadata) -> None:
        """
        Called when a plugin was uninstalled. Its files are still on disk
        until the next scan sweeps them.
        """
        # Default: no-op
        return
