# pluginhost/plugins/archive.py
from __future__ import annotations
import logging
import zipfile
import zlib
from pathlib import Path, PurePosixPath

from pluginhost.core.errors import ExtractionError

logger = logging.getLogger(__name__)

__all__ = ["extractPackage"]



def _safeMemberPath(targetDir: Path, memberName: str) -> Path:
    """
    Resolve a zip member under targetDir, rejecting absolute names and
    anything that would land outside targetDir.
    """
    normalized = memberName.replace("\\", "/")
    pure = PurePosixPath(normalized)
    if pure.is_absolute() or ".." in pure.parts or (pure.parts and pure.parts[0].endswith(":")):
        raise ExtractionError(f"Archive member {memberName!r} points outside of the plugin directory")

    resolved = (targetDir / pure).resolve(strict=False)
    if not resolved.is_relative_to(targetDir.resolve(strict=False)):
        raise ExtractionError(f"Archive member {memberName!r} points outside of the plugin directory")
    return resolved



def extractPackage(archivePath: Path, targetDir: Path) -> list[Path]:
    """
    Expand a plugin package (zip) into targetDir, which must already exist.
    Returns the extracted file paths.

    Raises ExtractionError on a corrupt archive, unsafe member names or I/O
    failure. The caller owns cleanup of targetDir.
    """
    extracted: list[Path] = []
    try:
        with zipfile.ZipFile(archivePath, "r") as zf:
            members = zf.infolist()
            # Validate every name before writing anything.
            for info in members:
                _safeMemberPath(targetDir, info.filename)

            for info in members:
                destination = _safeMemberPath(targetDir, info.filename)
                if info.is_dir():
                    destination.mkdir(parents=True, exist_ok=True)
                    continue
                destination.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info, "r") as src, open(destination, "wb") as dst:
                    while chunk := src.read(1024 * 1024):
                        dst.write(chunk)
                extracted.append(destination)

    except ExtractionError:
        raise
    except zipfile.BadZipFile as err:
        raise ExtractionError(f"Failed to extract package '{archivePath}': invalid archive ({err})") from err
    except (OSError, zipfile.LargeZipFile, RuntimeError, EOFError, zlib.error, NotImplementedError, ValueError) as err:
        # zlib.error: damaged deflate stream. NotImplementedError: unsupported compression method.
        raise ExtractionError(f"Failed to extract package '{archivePath}': {err}") from err

    logger.debug("Extracted %d file(s) from '%s' to '%s'", len(extracted), archivePath, targetDir)
    return extracted
