# pluginhost/plugins/registry.py
from __future__ import annotations
import logging
import threading
from collections.abc import Callable, Iterable

from pluginhost.core.errors import RegistryInvariantError
from pluginhost.plugins.events import RegistryListener
from pluginhost.plugins.metadata import PluginMetadata

logger = logging.getLogger(__name__)

__all__ = ["PluginRegistry"]



class PluginRegistry:
    """
    In-memory set of active plugins, at most one per id.

    Insertion order is kept so listings match discovery order. All state is
    guarded by one lock; listener notification happens after it is released.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._plugins: dict[str, PluginMetadata] = {}
        self._listeners: list[RegistryListener] = []

    # ----- Queries -----

    def get(self, pluginId: str) -> PluginMetadata | None:
        with self._lock:
            return self._plugins.get(pluginId)

    def all(self) -> tuple[PluginMetadata, ...]:
        with self._lock:
            return tuple(self._plugins.values())

    def contains(self, metadata: PluginMetadata) -> bool:
        """True when this exact metadata object is the registered entry for its id."""
        with self._lock:
            return self._plugins.get(metadata.id) is metadata

    def __len__(self) -> int:
        with self._lock:
            return len(self._plugins)

    # ----- Mutations -----

    def add(self, metadata: PluginMetadata) -> None:
        with self._lock:
            if metadata.id in self._plugins:
                raise RegistryInvariantError(f"Plugin '{metadata.id}' is already registered")
            self._plugins[metadata.id] = metadata
        self._notify("onPluginAdded", metadata)

    def remove(self, metadata: PluginMetadata) -> bool:
        with self._lock:
            if self._plugins.get(metadata.id) is not metadata:
                return False
            del self._plugins[metadata.id]
        self._notify("onPluginRemoved", metadata)
        return True

    def replaceAll(self, plugins: Iterable[PluginMetadata]) -> None:
        """Swap in a complete scan result at once."""
        fresh: dict[str, PluginMetadata] = {}
        for meta in plugins:
            if meta.id in fresh:
                raise RegistryInvariantError(f"Scan produced plugin '{meta.id}' twice")
            fresh[meta.id] = meta
        with self._lock:
            self._plugins = fresh
            snapshot = tuple(fresh.values())
        self._notify("onRegistryLoaded", snapshot)

    # ----- Listeners -----

    def subscribe(self, listener: RegistryListener) -> Callable[[], None]:
        """Register `listener`. Returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                try:
                    self._listeners.remove(listener)
                except ValueError:
                    pass

        return unsubscribe

    def _notify(self, method: str, payload: object) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                getattr(listener, method)(payload)
            except Exception:
                logger.exception("Registry listener %r failed in %s", listener, method)
