# pluginhost/plugins/discover.py
from __future__ import annotations
import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from threading import RLock

from pluginhost.core.errors import CapabilityError, DescriptorError, FilesystemError
from pluginhost.core.logging import logContext
from pluginhost.plugins.loader import CapabilityLoader
from pluginhost.plugins.markers import (
    isMarkedForDeletion,
    isStagedUpgrade,
    removeDirectory,
    upgradeTargetOf,
)
from pluginhost.plugins.metadata import PluginMetadata, readMetadata, requireEntry
from pluginhost.plugins.paths import PathResolver
from pluginhost.semver.semver import compareRawVersions, tryParsePluginVersion

logger = logging.getLogger(__name__)

__all__ = [
    "LoadResult",
    "ScanReport",
    "pickLatest",
    "sweepMarkedDirectories",
    "scanPlugins",
]

_SCAN_LOCK = RLock()



@dataclass
class LoadResult:
    """Outcome of loading one discovered plugin."""
    isSuccess: bool
    pluginName: str
    metadata: PluginMetadata | None = None
    errorMessage: str | None = None
    error: BaseException | None = None

    @classmethod
    def success(cls, metadata: PluginMetadata) -> LoadResult:
        return cls(isSuccess=True, pluginName=metadata.name, metadata=metadata)

    @classmethod
    def fail(
        cls,
        pluginName: str,
        errorMessage: str,
        *,
        metadata: PluginMetadata | None = None,
        error: BaseException | None = None,
    ) -> LoadResult:
        return cls(
            isSuccess=False,
            pluginName=pluginName,
            metadata=metadata,
            errorMessage=errorMessage,
            error=error,
        )



@dataclass
class ScanReport:
    results: list[LoadResult] = field(default_factory=list)
    duplicates: list[PluginMetadata] = field(default_factory=list)

    @property
    def loaded(self) -> list[PluginMetadata]:
        return [res.metadata for res in self.results if res.isSuccess and res.metadata is not None]

    @property
    def failed(self) -> list[LoadResult]:
        return [res for res in self.results if not res.isSuccess]



# ------------------------------------------------------------------ #
# Markers
# ------------------------------------------------------------------ #

def _listSubdirs(root: Path) -> list[Path]:
    if not root.is_dir():
        return []
    try:
        return sorted((child for child in root.iterdir() if child.is_dir()), key=lambda p: p.name)
    except OSError as err:
        logger.warning("Cannot enumerate plugin root '%s': %s", root, err)
        return []



def _deleteMarked(directories: list[Path]) -> list[Path]:
    """Phase one: delete marked directories. Returns the directories that remain candidates."""
    remaining: list[Path] = []
    for directory in directories:
        if not isMarkedForDeletion(directory):
            remaining.append(directory)
            continue
        try:
            removeDirectory(directory)
            logger.info("Deleted plugin directory marked for removal: '%s'", directory)
        except FilesystemError as err:
            # Skipped either way; a marked directory must never load.
            logger.error("Failed to delete marked directory: %s", err)
    return remaining



def _applyStagedUpgrades(directories: list[Path]) -> list[Path]:
    """Phase two: rename '<dir>_NeedUpgrade' over '<dir>'."""
    remaining: list[Path] = []
    for directory in directories:
        if not isStagedUpgrade(directory):
            remaining.append(directory)
            continue

        target = upgradeTargetOf(directory)
        if target.exists():
            # Old copy could not be removed; keep it running and retry next scan.
            logger.warning(
                "Staged upgrade '%s' left in place: target '%s' still exists",
                directory,
                target,
            )
            continue
        try:
            os.replace(directory, target)
        except OSError as err:
            logger.error("Failed to apply staged upgrade '%s' -> '%s': %s", directory, target, err)
            continue
        logger.info("Applied staged upgrade '%s' -> '%s'", directory.name, target.name)
        remaining.append(target)

    # Renamed directories join the normal order.
    return sorted(remaining, key=lambda p: p.name)



def sweepMarkedDirectories(root: Path) -> int:
    """Delete every immediate subdirectory of `root` carrying the delete marker."""
    subdirs = _listSubdirs(root)
    remaining = _deleteMarked(subdirs)
    return len(subdirs) - len(remaining)



# ------------------------------------------------------------------ #
# Dedup
# ------------------------------------------------------------------ #

def _isNewer(candidate: PluginMetadata, current: PluginMetadata) -> bool:
    """Strictly newer: parsed version first, raw string when parsing cannot decide."""
    candidateVer = tryParsePluginVersion(candidate.version)
    currentVer = tryParsePluginVersion(current.version)

    if candidateVer is not None and currentVer is not None and candidateVer != currentVer:
        return candidateVer > currentVer
    if candidateVer is not None and currentVer is None:
        return True
    if candidateVer is None and currentVer is not None:
        return False
    return compareRawVersions(candidate.version, current.version) > 0



def pickLatest(metadatas: Iterable[PluginMetadata]) -> tuple[list[PluginMetadata], list[PluginMetadata]]:
    """
    Keep one plugin per id.

    Returns (unique, duplicates). `unique` keeps the order in which each id was
    first seen; on a full tie the earlier entry wins.
    """
    winners: dict[str, PluginMetadata] = {}
    duplicates: list[PluginMetadata] = []

    for meta in metadatas:
        current = winners.get(meta.id)
        if current is None:
            winners[meta.id] = meta
        elif _isNewer(meta, current):
            duplicates.append(current)
            winners[meta.id] = meta
        else:
            duplicates.append(meta)

    for dup in duplicates:
        kept = winners[dup.id]
        logger.warning(
            "Duplicate plugin '%s': ignoring v%s at '%s' (author=%s, website=%s); using v%s at '%s'",
            dup.id,
            dup.version,
            dup.directory,
            dup.author or "?",
            dup.website or "-",
            kept.version,
            kept.directory,
        )

    return list(winners.values()), duplicates



# ------------------------------------------------------------------ #
# Scan
# ------------------------------------------------------------------ #

def _readCandidates(
    directories: list[Path],
    *,
    metaFileName: str,
    preinstalledRoot: Path | None,
) -> list[PluginMetadata]:
    found: list[PluginMetadata] = []
    for directory in directories:
        try:
            meta = readMetadata(directory, metaFileName=metaFileName, preinstalledRoot=preinstalledRoot)
            requireEntry(meta)
        except DescriptorError as err:
            logger.warning("Skipping plugin directory '%s': %s", directory, err)
            continue
        found.append(meta)
    return found



def scanPlugins(
    roots: Iterable[Path],
    *,
    resolver: PathResolver,
    loader: CapabilityLoader,
    metaFileName: str,
) -> ScanReport:
    """
    Discover plugins under `roots` (precedence order) and load their capability.

    Pending deletions run before pending upgrades so a marked old copy and its
    staged replacement settle in a single scan.
    """
    report = ScanReport()

    with _SCAN_LOCK:
        rootList = list(roots)

        directories: list[Path] = []
        for root in rootList:
            subdirs = _deleteMarked(_listSubdirs(root))
            directories.extend(_applyStagedUpgrades(subdirs))

        candidates = _readCandidates(
            directories,
            metaFileName=metaFileName,
            preinstalledRoot=resolver.preinstalledRoot,
        )
        unique, report.duplicates = pickLatest(candidates)

        for meta in unique:
            with logContext(pluginId=meta.id):
                try:
                    loader.loadInto(meta)
                except CapabilityError as err:
                    logger.error("Failed to load plugin '%s' from '%s': %s", meta.id, meta.directory, err)
                    report.results.append(LoadResult.fail(meta.name, str(err), metadata=meta, error=err))
                    continue
                resolver.applyDirectories(meta)
                report.results.append(LoadResult.success(meta))
                logger.debug("Loaded plugin %s", meta)

    logger.info(
        "Plugin scan finished: %d loaded, %d failed, %d duplicate(s) across %d root(s)",
        len(report.loaded),
        len(report.failed),
        len(report.duplicates),
        len(rootList),
    )
    return report
