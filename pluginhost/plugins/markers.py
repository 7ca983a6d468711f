# pluginhost/plugins/markers.py
from __future__ import annotations
import logging
import shutil
from pathlib import Path

from pluginhost.core.errors import FilesystemError
from pluginhost.plugins.constants import DELETE_MARKER_NAME, UPGRADE_SUFFIX

logger = logging.getLogger(__name__)

__all__ = [
    "markForDeletion",
    "isMarkedForDeletion",
    "stagedUpgradePath",
    "isStagedUpgrade",
    "upgradeTargetOf",
    "removeDirectory",
    "tryRemoveDirectory",
]

# Marker files are the only persisted record of a pending lifecycle action.
# Writing one is phase one (crash-safe, a single file create); the sweep in
# discovery is phase two and runs before anything is imported.



def markForDeletion(directory: Path) -> Path:
    """
    Drop the delete marker into `directory`. Idempotent.
    Raises FilesystemError if the directory is missing or the marker cannot be written.
    """
    if not directory.is_dir():
        raise FilesystemError(f"Cannot mark missing directory '{directory}' for deletion")
    marker = directory / DELETE_MARKER_NAME
    try:
        marker.touch(exist_ok=True)
    except OSError as err:
        raise FilesystemError(f"Failed to write delete marker in '{directory}': {err}") from err
    logger.debug("Marked '%s' for deletion on next scan", directory)
    return marker



def isMarkedForDeletion(directory: Path) -> bool:
    return (directory / DELETE_MARKER_NAME).is_file()



def stagedUpgradePath(directory: Path) -> Path:
    return directory.with_name(directory.name + UPGRADE_SUFFIX)



def isStagedUpgrade(directory: Path) -> bool:
    return directory.name.endswith(UPGRADE_SUFFIX) and len(directory.name) > len(UPGRADE_SUFFIX)



def upgradeTargetOf(directory: Path) -> Path:
    """'foo_NeedUpgrade' -> 'foo'."""
    if not isStagedUpgrade(directory):
        raise ValueError(f"'{directory}' is not a staged upgrade directory")
    return directory.with_name(directory.name[:-len(UPGRADE_SUFFIX)])



def removeDirectory(directory: Path) -> None:
    """Recursively delete `directory`. Missing directory is a no-op."""
    if not directory.exists():
        return
    try:
        shutil.rmtree(directory)
    except OSError as err:
        raise FilesystemError(f"Failed to delete '{directory}': {err}") from err



def tryRemoveDirectory(directory: Path) -> bool:
    """
    Best-effort removeDirectory(). Failures are logged as warnings, never raised,
    so rollback paths cannot mask the error they are cleaning up after.
    """
    try:
        removeDirectory(directory)
        return True
    except FilesystemError as err:
        logger.warning("%s", err)
        return False
