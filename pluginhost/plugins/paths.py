# pluginhost/plugins/paths.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path

from pluginhost.app.settings import HostSettings
from pluginhost.plugins.metadata import PluginMetadata

logger = logging.getLogger(__name__)

__all__ = ["PathResolver"]



@dataclass(frozen=True)
class PathResolver:
    """
    Maps plugin identity to directories.

    Layout:
        preinstalledRoot/<folderName>/
        userPluginsRoot/<folderName>_<id>/
        settingsRoot/<folderName>_<id>/
        cacheRoot/<folderName>_<id>/
        stagingRoot/<archive stem>/

    Everything here is pure except ensureRoots(), which runs once at start.
    """
    preinstalledRoot: Path
    userPluginsRoot: Path
    settingsRoot: Path
    cacheRoot: Path
    stagingRoot: Path

    @classmethod
    def fromSettings(cls, settings: HostSettings) -> PathResolver:
        # HostSettings fills every root during validation; model_construct() skips that.
        roots: dict[str, Path] = {}
        for name in ("preinstalledRoot", "userPluginsRoot", "settingsRoot", "cacheRoot", "stagingRoot"):
            value = getattr(settings, name)
            if value is None:
                raise ValueError(f"Settings do not define '{name}'")
            roots[name] = Path(value)
        return cls(**roots)

    # ----- Start-up -----

    def ensureRoots(self) -> None:
        for path in (self.preinstalledRoot, self.userPluginsRoot, self.settingsRoot, self.cacheRoot, self.stagingRoot):
            path.mkdir(parents=True, exist_ok=True)
        logger.debug(
            "Plugin roots ready (preinstalled='%s', user='%s', staging='%s')",
            self.preinstalledRoot,
            self.userPluginsRoot,
            self.stagingRoot,
        )

    def searchRoots(self) -> list[Path]:
        """Discovery roots in precedence order."""
        return [self.preinstalledRoot, self.userPluginsRoot]

    # ----- Install locations -----

    def canonicalInstallDir(self, pluginId: str, folderName: str, isPreinstalled: bool) -> Path:
        if not pluginId.strip():
            raise ValueError("pluginId cannot be empty")
        if not folderName.strip() or folderName in (".", "..") or "/" in folderName or "\\" in folderName:
            raise ValueError(f"Invalid plugin folder name {folderName!r}")
        if isPreinstalled:
            return self.preinstalledRoot / folderName
        return self.userPluginsRoot / f"{folderName}_{pluginId}"

    def isPreinstalledDir(self, directory: Path) -> bool:
        try:
            return directory.resolve(strict=False).is_relative_to(self.preinstalledRoot.resolve(strict=False))
        except OSError:
            return False

    def stagingDir(self, archivePath: Path) -> Path:
        stem = Path(archivePath).stem
        if not stem.strip():
            raise ValueError(f"Unable to determine plugin name from package path '{archivePath}'")
        return self.stagingRoot / stem

    # ----- Per-plugin data -----

    @staticmethod
    def folderNameOf(metadata: PluginMetadata) -> str:
        """Directory name without the '_<id>' suffix user installs carry."""
        name = metadata.directory.name
        suffix = f"_{metadata.id}"
        if name.endswith(suffix) and len(name) > len(suffix):
            return name[:-len(suffix)]
        return name

    def combinedName(self, metadata: PluginMetadata) -> str:
        return f"{self.folderNameOf(metadata)}_{metadata.id}"

    def settingsDir(self, metadata: PluginMetadata) -> Path:
        return self.settingsRoot / self.combinedName(metadata)

    def cacheDir(self, metadata: PluginMetadata) -> Path:
        return self.cacheRoot / self.combinedName(metadata)

    def applyDirectories(self, metadata: PluginMetadata) -> None:
        """Fill settingsDirectory/cacheDirectory. Plugins create them on demand."""
        metadata.settingsDirectory = self.settingsDir(metadata)
        metadata.cacheDirectory = self.cacheDir(metadata)
