# pluginhost/plugins/manager.py
from __future__ import annotations
import asyncio
import logging
import shutil
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pluginhost.app.settings import HostSettings
from pluginhost.core.errors import (
    CapabilityError,
    DescriptorError,
    ExtractionError,
    FilesystemError,
    LockContention,
    PluginHostError,
    StagingMissing,
    ValidationError,
    VersionConflict,
)
from pluginhost.core.logging import logContext
from pluginhost.plugins.archive import extractPackage
from pluginhost.plugins.capabilities import CapabilityType, pluginsWithCapability
from pluginhost.plugins.discover import ScanReport, scanPlugins, sweepMarkedDirectories
from pluginhost.plugins.events import RegistryListener
from pluginhost.plugins.loader import CapabilityLoader
from pluginhost.plugins.markers import markForDeletion, removeDirectory, stagedUpgradePath, tryRemoveDirectory
from pluginhost.plugins.metadata import PluginMetadata, readMetadata, requireEntry
from pluginhost.plugins.paths import PathResolver
from pluginhost.plugins.registry import PluginRegistry
from pluginhost.semver.semver import tryParsePluginVersion

logger = logging.getLogger(__name__)

__all__ = [
    "InstallState",
    "InstallStatus",
    "InstallErrorKind",
    "InstallOutcome",
    "PluginManager",
]



class InstallState(str, Enum):
    VALIDATING = "validating"
    STAGING = "staging"
    EXTRACTING = "extracting"
    PARSING_METADATA = "parsingMetadata"
    RESOLVING_CONFLICT = "resolvingConflict"
    FINALIZING = "finalizing"
    REGISTERED = "registered"
    FAILED = "failed"



class InstallStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    UPGRADE_REQUIRED = "upgradeRequired"



class InstallErrorKind(str, Enum):
    INVALID_PACKAGE = "invalidPackage"
    EXTRACTION_ERROR = "extractionError"
    INVALID_STRUCTURE = "invalidStructure"
    VERSION_TOO_OLD = "versionTooOld"
    INSTALLATION_ERROR = "installationError"
    LOCK_CONTENTION = "lockContention"



@dataclass(frozen=True)
class InstallOutcome:
    """
    Result of PluginManager.install().

    SUCCESS carries the registered plugin. UPGRADE_REQUIRED carries the
    installed plugin in `existing`; the extracted package stays staged for
    upgrade(). FAILURE carries errorKind, message and the state it failed in,
    plus `existing` for VERSION_TOO_OLD.
    """
    status: InstallStatus
    plugin: PluginMetadata | None = None
    existing: PluginMetadata | None = None
    errorKind: InstallErrorKind | None = None
    message: str = ""
    error: BaseException | None = None
    failedAt: InstallState | None = None

    @property
    def isSuccess(self) -> bool:
        return self.status is InstallStatus.SUCCESS

    @classmethod
    def success(cls, plugin: PluginMetadata) -> InstallOutcome:
        return cls(status=InstallStatus.SUCCESS, plugin=plugin, message=f"Installed {plugin}")

    @classmethod
    def upgradeRequired(cls, existing: PluginMetadata, incoming: PluginMetadata) -> InstallOutcome:
        return cls(
            status=InstallStatus.UPGRADE_REQUIRED,
            plugin=incoming,
            existing=existing,
            message=f"{existing} is installed; {incoming.version} can be applied as an upgrade",
        )

    @classmethod
    def failure(
        cls,
        kind: InstallErrorKind,
        message: str,
        *,
        failedAt: InstallState,
        error: BaseException | None = None,
        existing: PluginMetadata | None = None,
    ) -> InstallOutcome:
        return cls(
            status=InstallStatus.FAILURE,
            existing=existing,
            errorKind=kind,
            message=message,
            error=error,
            failedAt=failedAt,
        )



class _InstallFailed(Exception):
    """Internal: carries a finished failure outcome out of an install step."""
    def __init__(self, outcome: InstallOutcome) -> None:
        super().__init__(outcome.message)
        self.outcome = outcome



class PluginManager:
    """
    Owns the plugin registry and every mutation of the plugin directories.

    Responsibilities:
      - Startup discovery (loadPlugins)
      - Install from a package archive, with version gate
      - Deferred upgrade and uninstall through marker files
      - Change notification for the shell

    Public operations never raise for plugin or filesystem problems; they
    return an InstallOutcome or a bool and log the cause.
    """

    def __init__(
        self,
        resolver: PathResolver,
        settings: HostSettings,
        *,
        loader: CapabilityLoader | None = None,
    ) -> None:
        self.resolver = resolver
        self.settings = settings
        self.loader = loader or CapabilityLoader()
        self.registry = PluginRegistry()

        # Serializes scan, conflict resolution, finalize, upgrade and uninstall.
        self._lifecycleLock = threading.RLock()
        # One in-flight install/upgrade per staging directory name.
        self._stagingLocks: dict[str, threading.Lock] = {}
        self._stagingLocksGuard = threading.Lock()

    # ----- Queries -----

    def listLoaded(self) -> tuple[PluginMetadata, ...]:
        return self.registry.all()

    def findPlugin(self, pluginId: str) -> PluginMetadata | None:
        return self.registry.get(pluginId)

    def pluginsWithCapability(self, capability: CapabilityType) -> list[PluginMetadata]:
        return pluginsWithCapability(self.registry.all(), capability)

    def subscribe(self, listener: RegistryListener) -> Callable[[], None]:
        return self.registry.subscribe(listener)

    # ----- Startup -----

    def loadPlugins(self) -> ScanReport:
        """
        Sweep pending deletions, scan the plugin roots and replace the registry
        with the result in one step.
        """
        with logContext(operation="load"), self._lifecycleLock:
            for root in (self.resolver.settingsRoot, self.resolver.cacheRoot):
                swept = sweepMarkedDirectories(root)
                if swept:
                    logger.info("Removed %d marked director(ies) under '%s'", swept, root)

            report = scanPlugins(
                self.resolver.searchRoots(),
                resolver=self.resolver,
                loader=self.loader,
                metaFileName=self.settings.metaFileName,
            )
            self.registry.replaceAll(report.loaded)
        return report

    # ----- Install -----

    def install(self, archivePath: Path | str) -> InstallOutcome:
        """
        Install a plugin package.

        VALIDATING -> STAGING -> EXTRACTING -> PARSING_METADATA
            -> RESOLVING_CONFLICT -> FINALIZING -> REGISTERED,
        or FAILED from any state.
        """
        with logContext(operation="install", archive=str(archivePath)):
            try:
                archive = self._validatePackage(archivePath)
                stagingDir = self.resolver.stagingDir(archive)
            except (ValidationError, ValueError) as err:
                logger.warning("Rejected package '%s': %s", archivePath, err)
                return InstallOutcome.failure(
                    InstallErrorKind.INVALID_PACKAGE,
                    str(err),
                    failedAt=InstallState.VALIDATING,
                    error=err,
                )

            try:
                with self._stagingLock(stagingDir.name):
                    outcome = self._install(archive, stagingDir)
            except LockContention as err:
                logger.warning("%s", err)
                outcome = InstallOutcome.failure(
                    InstallErrorKind.LOCK_CONTENTION,
                    str(err),
                    failedAt=InstallState.STAGING,
                    error=err,
                )
            except _InstallFailed as failed:
                outcome = failed.outcome

            if outcome.status is InstallStatus.FAILURE:
                logger.error(
                    "Install of '%s' failed while %s: %s",
                    archive.name,
                    outcome.failedAt.value if outcome.failedAt else "?",
                    outcome.message,
                )
            else:
                logger.info("%s", outcome.message)
            return outcome

    def _validatePackage(self, archivePath: Path | str) -> Path:
        if archivePath is None or not str(archivePath).strip():
            raise ValidationError("Package path cannot be empty")
        archive = Path(archivePath)
        if not archive.exists():
            raise ValidationError(f"Package file not found: '{archive}'")
        if not archive.is_file():
            raise ValidationError(f"Package path is not a file: '{archive}'")
        if archive.suffix.lower() != self.settings.packageExtension:
            raise ValidationError(
                f"Unsupported package type '{archive.suffix}', expected '{self.settings.packageExtension}'"
            )
        return archive

    def _install(self, archive: Path, stagingDir: Path) -> InstallOutcome:
        state = InstallState.STAGING
        try:
            removeDirectory(stagingDir)
            stagingDir.mkdir(parents=True)
        except (FilesystemError, OSError) as err:
            raise self._failure(InstallErrorKind.INSTALLATION_ERROR, f"Cannot prepare staging directory: {err}", state, err) from err

        state = InstallState.EXTRACTING
        try:
            extractPackage(archive, stagingDir)
        except ExtractionError as err:
            tryRemoveDirectory(stagingDir)
            raise self._failure(InstallErrorKind.EXTRACTION_ERROR, str(err), state, err) from err

        state = InstallState.PARSING_METADATA
        try:
            incoming = readMetadata(stagingDir, metaFileName=self.settings.metaFileName)
            requireEntry(incoming)
        except DescriptorError as err:
            tryRemoveDirectory(stagingDir)
            raise self._failure(InstallErrorKind.INVALID_STRUCTURE, f"Invalid package structure: {err}", state, err) from err

        with logContext(pluginId=incoming.id), self._lifecycleLock:
            state = InstallState.RESOLVING_CONFLICT
            existing = self.registry.get(incoming.id)
            if existing is not None:
                try:
                    self._checkVersionGate(existing, incoming)
                except VersionConflict as err:
                    tryRemoveDirectory(stagingDir)
                    raise self._failure(InstallErrorKind.VERSION_TOO_OLD, str(err), state, err, existing=existing) from err
                # Staging stays for upgrade().
                return InstallOutcome.upgradeRequired(existing, incoming)

            state = InstallState.FINALIZING
            plugin = self._finalize(incoming, stagingDir)
            return InstallOutcome.success(plugin)

    @staticmethod
    def _checkVersionGate(existing: PluginMetadata, incoming: PluginMetadata) -> None:
        """Raise VersionConflict unless `incoming` is strictly newer than `existing`."""
        incomingVer = tryParsePluginVersion(incoming.version)
        if incomingVer is None:
            raise VersionConflict(
                f"Package version {incoming.version!r} of '{incoming.id}' is not a valid version "
                f"(installed: {existing.version})"
            )
        existingVer = tryParsePluginVersion(existing.version)
        if existingVer is None:
            logger.warning(
                "Installed '%s' has unparseable version %r; allowing upgrade to %s",
                existing.id,
                existing.version,
                incoming.version,
            )
            return
        if incomingVer <= existingVer:
            raise VersionConflict(
                f"'{incoming.id}' {incoming.version} is not newer than installed {existing.version}"
            )

    def _finalize(self, incoming: PluginMetadata, stagingDir: Path) -> PluginMetadata:
        state = InstallState.FINALIZING
        isPreinstalled = incoming.id in self.settings.preinstalledIds
        target: Path | None = None
        moved = False
        meta: PluginMetadata | None = None
        try:
            target = self.resolver.canonicalInstallDir(incoming.id, stagingDir.name, isPreinstalled)
            if target.exists():
                self._removeStaleTarget(target)

            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(stagingDir), str(target))
            moved = True

            meta = readMetadata(
                target,
                metaFileName=self.settings.metaFileName,
                preinstalledRoot=self.resolver.preinstalledRoot,
            )
            requireEntry(meta)
            self.loader.loadInto(meta)
            self.resolver.applyDirectories(meta)
            self.registry.add(meta)
            return meta

        except (PluginHostError, ValueError, OSError) as err:
            if meta is not None and meta.moduleName is not None:
                self.loader.unload(meta.moduleName)
            tryRemoveDirectory(stagingDir)
            if moved and target is not None:
                tryRemoveDirectory(target)
            kind = InstallErrorKind.INSTALLATION_ERROR
            if isinstance(err, CapabilityError):
                raise self._failure(kind, f"Plugin failed to load: {err}", state, err) from err
            raise self._failure(kind, f"Failed to install '{incoming.id}': {err}", state, err) from err

    def _removeStaleTarget(self, target: Path) -> None:
        owner = next((meta for meta in self.registry.all() if meta.directory == target), None)
        if owner is not None:
            raise FilesystemError(f"Install directory '{target}' is in use by plugin '{owner.id}'")
        logger.info("Removing stale install directory '%s'", target)
        removeDirectory(target)

    @staticmethod
    def _failure(
        kind: InstallErrorKind,
        message: str,
        state: InstallState,
        error: BaseException | None = None,
        *,
        existing: PluginMetadata | None = None,
    ) -> _InstallFailed:
        return _InstallFailed(InstallOutcome.failure(kind, message, failedAt=state, error=error, existing=existing))

    # ----- Upgrade / uninstall -----

    def upgrade(self, existing: PluginMetadata, archivePath: Path | str) -> bool:
        """
        Stage the package extracted by a previous install() next to `existing`.

        The new copy is moved to '<old dir>_NeedUpgrade', then the old directory
        is marked for deletion. The registry keeps `existing` until the next
        loadPlugins(), which performs the swap.
        """
        with logContext(operation="upgrade", pluginId=existing.id, archive=str(archivePath)):
            try:
                stagingDir = self.resolver.stagingDir(Path(archivePath))
                with self._stagingLock(stagingDir.name), self._lifecycleLock:
                    self._stageUpgrade(existing, stagingDir)
            except (PluginHostError, ValueError, OSError) as err:
                logger.error("Upgrade of '%s' failed: %s", existing.id, err)
                return False

            logger.info("Upgrade of %s staged; it takes effect on the next scan", existing)
            return True

    def _stageUpgrade(self, existing: PluginMetadata, stagingDir: Path) -> None:
        if not stagingDir.is_dir():
            raise StagingMissing(f"No staged package at '{stagingDir}'; run install first")

        staged = readMetadata(stagingDir, metaFileName=self.settings.metaFileName)
        if staged.id != existing.id:
            raise VersionConflict(f"Staged package is '{staged.id}', not '{existing.id}'")

        # The old copy is marked only once its replacement is in place. A
        # '_NeedUpgrade' directory without a marked original is held back by
        # the scan, so a failure at any step keeps the installed plugin.
        upgradeDir = stagedUpgradePath(existing.directory)
        removeDirectory(upgradeDir)
        try:
            shutil.move(str(stagingDir), str(upgradeDir))
        except OSError as err:
            tryRemoveDirectory(upgradeDir)
            raise FilesystemError(f"Failed to move '{stagingDir}' to '{upgradeDir}': {err}") from err

        try:
            markForDeletion(existing.directory)
        except FilesystemError:
            tryRemoveDirectory(upgradeDir)
            raise

    def uninstall(self, metadata: PluginMetadata) -> bool:
        """
        Mark the plugin's install, settings and cache directories for deletion
        and drop it from the registry. Files go away on the next scan. An
        install directory that no longer exists counts as already removed.
        """
        with logContext(operation="uninstall", pluginId=metadata.id), self._lifecycleLock:
            if not self.registry.contains(metadata):
                logger.warning("Cannot uninstall '%s': not a registered plugin", metadata.id)
                return False

            try:
                if metadata.directory.is_dir():
                    markForDeletion(metadata.directory)
                else:
                    # Removed behind our back; the registry entry must not outlive it.
                    logger.warning("Install directory of '%s' is already gone: '%s'", metadata.id, metadata.directory)
                for extra in (metadata.settingsDirectory, metadata.cacheDirectory):
                    if extra is not None and extra.is_dir():
                        markForDeletion(extra)
            except FilesystemError as err:
                logger.error("Uninstall of '%s' failed: %s", metadata.id, err)
                return False

            if metadata.moduleName is not None:
                self.loader.unload(metadata.moduleName)
            self.registry.remove(metadata)
            logger.info("Uninstalled %s; files are removed on the next scan", metadata)
            return True

    # ----- Shutdown -----

    def cleanupTempFiles(self) -> bool:
        """Delete the whole staging root, including packages left for upgrade()."""
        with self._lifecycleLock:
            ok = tryRemoveDirectory(self.resolver.stagingRoot)
        if ok:
            logger.debug("Removed staging root '%s'", self.resolver.stagingRoot)
        return ok

    # ----- Async wrappers -----

    async def loadPluginsAsync(self) -> ScanReport:
        return await asyncio.to_thread(self.loadPlugins)

    async def installAsync(self, archivePath: Path | str) -> InstallOutcome:
        return await asyncio.to_thread(self.install, archivePath)

    async def upgradeAsync(self, existing: PluginMetadata, archivePath: Path | str) -> bool:
        return await asyncio.to_thread(self.upgrade, existing, archivePath)

    async def uninstallAsync(self, metadata: PluginMetadata) -> bool:
        return await asyncio.to_thread(self.uninstall, metadata)

    # ----- Internals -----

    @contextmanager
    def _stagingLock(self, name: str) -> Iterator[None]:
        with self._stagingLocksGuard:
            lock = self._stagingLocks.setdefault(name, threading.Lock())
        if not lock.acquire(blocking=False):
            raise LockContention(f"Another operation is already using staging directory '{name}'")
        try:
            yield
        finally:
            lock.release()
