# pluginhost/plugins/metadata.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath, PureWindowsPath

import json5
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pluginhost.core.errors import (
    DescriptorMissing,
    EmptyDescriptor,
    EntryMissing,
    MalformedDescriptor,
)
from pluginhost.plugins.capabilities import CapabilityType, Plugin

logger = logging.getLogger(__name__)

__all__ = [
    "PluginDescriptor",
    "PluginMetadata",
    "parseDescriptor",
    "readMetadata",
    "requireEntry",
]



class PluginDescriptor(BaseModel):
    """Validated contents of a plugin's descriptor file (plugin.json)."""
    # Newer plugins may carry keys this host does not know yet.
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    author: str
    version: str
    description: str
    website: str = ""
    entry: str
    capability: CapabilityType | None = Field(default=None)

    @field_validator("id")
    @classmethod
    def _checkId(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Plugin id cannot be empty")
        return value

    @field_validator("version")
    @classmethod
    def _stripVersion(cls, value: str) -> str:
        # Kept verbatim otherwise; malformed versions are handled by comparisons.
        return value.strip()

    @field_validator("entry")
    @classmethod
    def _checkEntry(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Entry path cannot be empty")
        for pure in (PurePosixPath(value), PureWindowsPath(value)):
            if pure.is_absolute() or pure.drive or ".." in pure.parts:
                raise ValueError(f"Entry path {value!r} must stay inside the plugin directory")
        return value.replace("\\", "/")



@dataclass(eq=False)
class PluginMetadata:
    """
    One installed or staged plugin.

    Identity fields come from the descriptor. `directory` and `isPreinstalled`
    are set when the descriptor is read; moduleName, pluginType and
    capabilityType only after the capability loader succeeded; the settings and
    cache directories once the path resolver has run.
    """
    id: str
    name: str
    author: str
    version: str
    description: str
    website: str
    entry: str
    directory: Path
    isPreinstalled: bool = False
    declaredCapability: CapabilityType | None = None

    moduleName: str | None = None
    pluginType: type[Plugin] | None = None
    capabilityType: CapabilityType | None = None

    settingsDirectory: Path | None = None
    cacheDirectory: Path | None = None

    @property
    def entryPath(self) -> Path:
        return self.directory / self.entry

    @property
    def isLoaded(self) -> bool:
        return self.pluginType is not None

    @classmethod
    def fromDescriptor(cls, descriptor: PluginDescriptor, *, directory: Path, isPreinstalled: bool) -> PluginMetadata:
        return cls(
            id=descriptor.id,
            name=descriptor.name,
            author=descriptor.author,
            version=descriptor.version,
            description=descriptor.description,
            website=descriptor.website,
            entry=descriptor.entry,
            directory=directory,
            isPreinstalled=isPreinstalled,
            declaredCapability=descriptor.capability,
        )

    def __str__(self) -> str:
        return f"{self.name} v{self.version} ({self.id})"



def parseDescriptor(data: bytes | str) -> PluginDescriptor:
    """
    Parse raw descriptor content.

    Raises:
        EmptyDescriptor: zero-length or whitespace-only input.
        MalformedDescriptor: not JSON5, not an object, or fails validation
            (including a missing or empty id).
    """
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as err:
            raise MalformedDescriptor(f"Descriptor is not valid UTF-8: {err}") from err
    else:
        text = data

    if not text.strip():
        raise EmptyDescriptor("Descriptor is empty")

    try:
        raw = json5.loads(text)
    except Exception as err:
        raise MalformedDescriptor(f"Descriptor is not valid JSON: {err}") from err

    if not isinstance(raw, dict):
        raise MalformedDescriptor(f"Descriptor must be a JSON object, got {type(raw).__name__}")

    try:
        return PluginDescriptor.model_validate(raw)
    except ValidationError as err:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in issue['loc']) or '<root>'}: {issue['msg']}"
            for issue in err.errors()
        )
        raise MalformedDescriptor(f"Invalid descriptor: {problems}") from err



def readMetadata(directory: Path, *, metaFileName: str, preinstalledRoot: Path | None = None) -> PluginMetadata:
    """
    Read and parse `directory/metaFileName` into PluginMetadata.
    Does not check the entry file, see requireEntry().
    """
    descriptorPath = directory / metaFileName
    if not descriptorPath.is_file():
        raise DescriptorMissing(f"Plugin descriptor not found: '{descriptorPath}'", path=descriptorPath)

    try:
        content = descriptorPath.read_bytes()
    except OSError as err:
        raise MalformedDescriptor(f"Failed to read '{descriptorPath}': {err}", path=descriptorPath) from err

    try:
        descriptor = parseDescriptor(content)
    except (EmptyDescriptor, MalformedDescriptor) as err:
        err.path = descriptorPath
        raise

    isPreinstalled = preinstalledRoot is not None and _isUnder(directory, preinstalledRoot)
    return PluginMetadata.fromDescriptor(descriptor, directory=directory, isPreinstalled=isPreinstalled)



def requireEntry(metadata: PluginMetadata) -> Path:
    entryPath = metadata.entryPath
    if not entryPath.is_file():
        raise EntryMissing(f"Plugin entry file not found: '{entryPath}'", path=entryPath)
    return entryPath



def _isUnder(path: Path, root: Path) -> bool:
    try:
        return path.resolve(strict=False).is_relative_to(root.resolve(strict=False))
    except OSError:
        return False
