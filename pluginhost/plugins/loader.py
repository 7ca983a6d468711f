# pluginhost/plugins/loader.py
from __future__ import annotations

import importlib.util
import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any

from pluginhost.core.errors import CapabilityError, ModuleLoadError, ModuleNotFound, NoCapabilityFound
from pluginhost.core.logging import getPluginLogger, logContext
from pluginhost.plugins.capabilities import CapabilityType, Plugin, PluginContext, findImplementations
from pluginhost.plugins.constants import MODULE_NAME_PREFIX
from pluginhost.plugins.metadata import PluginMetadata

logger = logging.getLogger(__name__)

__all__ = ["LoadedCapability", "CapabilityLoader", "moduleNameFor", "instantiatePlugin"]



@dataclass(frozen=True)
class LoadedCapability:
    moduleName: str
    pluginType: type[Plugin]
    capabilityType: CapabilityType
    module: ModuleType



def moduleNameFor(pluginId: str) -> str:
    return MODULE_NAME_PREFIX + re.sub(r"[^0-9A-Za-z_]", "_", pluginId)



def _isBundledModule(module: ModuleType | None, pluginDir: Path) -> bool:
    locations = [getattr(module, "__file__", None), *(getattr(module, "__path__", None) or [])]
    for location in locations:
        if isinstance(location, str) and Path(location).resolve().is_relative_to(pluginDir):
            return True
    return False



class CapabilityLoader:
    """
    Imports a plugin's entry module and finds the class implementing one of
    the capability contracts.

    This is the only place third-party code runs. load() converts every
    failure into a CapabilityError subclass so one bad plugin never stops
    discovery of the others.

    Modules shipped next to the entry file must be imported while the entry
    module loads; they are not importable later, e.g. from inside a method.
    """

    def load(
        self,
        entryPath: Path,
        *,
        pluginId: str,
        declared: CapabilityType | None = None,
    ) -> LoadedCapability:
        entryPath = Path(entryPath)
        moduleName = moduleNameFor(pluginId)

        with logContext(pluginId=pluginId):
            if not entryPath.is_file():
                raise ModuleNotFound(f"Plugin file not found: '{entryPath}'", entryPath=entryPath)

            module = self._importModule(entryPath, moduleName)

            candidates = findImplementations(vars(module).values(), moduleName=moduleName, declared=declared)
            if not candidates:
                self.unload(moduleName)
                wanted = f"'{declared.value}' contract" if declared is not None else "capability contract"
                raise NoCapabilityFound(
                    f"No class implementing a {wanted} found in '{entryPath.name}'",
                    entryPath=entryPath,
                )

            if len(candidates) > 1:
                logger.warning(
                    "Plugin '%s' defines %d capability classes (%s); using '%s'",
                    pluginId,
                    len(candidates),
                    ", ".join(cls.__name__ for cls, _cap in candidates),
                    candidates[0][0].__name__,
                )

            pluginType, capability = candidates[0]
            logger.debug("Plugin '%s' implements %s via %s", pluginId, capability.value, pluginType.__name__)
            return LoadedCapability(
                moduleName=moduleName,
                pluginType=pluginType,
                capabilityType=capability,
                module=module,
            )

    def _importModule(self, entryPath: Path, moduleName: str) -> ModuleType:
        # Bundled dependencies live next to the entry module. They are only
        # importable while the entry module executes; afterwards the module
        # keeps its references, but sys.modules and sys.path forget them so
        # another plugin's module of the same name resolves to its own copy.
        pluginDir = entryPath.parent.resolve()
        pathEntry = str(pluginDir)
        preloaded = set(sys.modules)
        sys.path.insert(0, pathEntry)

        if moduleName in sys.modules:
            logger.debug("Replacing previously imported module '%s'", moduleName)

        try:
            spec = importlib.util.spec_from_file_location(moduleName, entryPath)
            if spec is None or spec.loader is None:
                raise ModuleLoadError(f"Could not create module spec for '{entryPath}'", entryPath=entryPath)

            module = importlib.util.module_from_spec(spec)
            sys.modules[moduleName] = module
            spec.loader.exec_module(module)
            return module

        except CapabilityError:
            self.unload(moduleName)
            raise
        except (ModuleNotFoundError, FileNotFoundError) as err:
            self.unload(moduleName)
            missing = getattr(err, "name", None) or getattr(err, "filename", None) or str(err)
            raise ModuleNotFound(f"Plugin dependency not found: {missing}", entryPath=entryPath) from err
        except (Exception, SystemExit) as err:
            self.unload(moduleName)
            raise ModuleLoadError(
                f"Plugin module '{entryPath.name}' failed to initialize: {type(err).__name__}: {err}",
                entryPath=entryPath,
            ) from err
        finally:
            self._releaseBundled(pluginDir, pathEntry, preloaded, moduleName)

    @staticmethod
    def _releaseBundled(pluginDir: Path, pathEntry: str, preloaded: set[str], moduleName: str) -> None:
        try:
            sys.path.remove(pathEntry)
        except ValueError:
            pass
        sys.path_importer_cache.pop(pathEntry, None)

        for name, module in list(sys.modules.items()):
            if name == moduleName or name in preloaded:
                continue
            if _isBundledModule(module, pluginDir):
                del sys.modules[name]

    @staticmethod
    def unload(moduleName: str) -> None:
        """Forget an imported plugin module."""
        sys.modules.pop(moduleName, None)

    def loadInto(self, metadata: PluginMetadata) -> PluginMetadata:
        """load() for `metadata` and record the result on it."""
        loaded = self.load(metadata.entryPath, pluginId=metadata.id, declared=metadata.declaredCapability)
        metadata.moduleName = loaded.moduleName
        metadata.pluginType = loaded.pluginType
        metadata.capabilityType = loaded.capabilityType
        return metadata



def instantiatePlugin(metadata: PluginMetadata, *, services: dict[str, Any] | None = None) -> Plugin:
    """
    Create and init() the plugin class discovered for `metadata`.
    Errors raised by the plugin's constructor or init() propagate to the caller.
    """
    if metadata.pluginType is None:
        raise NoCapabilityFound(f"Plugin '{metadata.id}' has no loaded capability", entryPath=metadata.entryPath)

    instance = metadata.pluginType()
    instance.init(PluginContext(
        pluginId=metadata.id,
        settingsDirectory=metadata.settingsDirectory,
        cacheDirectory=metadata.cacheDirectory,
        logger=getPluginLogger(metadata.id),
        services=services if services is not None else {},
    ))
    return instance
