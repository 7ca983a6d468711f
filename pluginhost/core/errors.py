# pluginhost/core/errors.py
from __future__ import annotations

from pathlib import Path

__all__ = [
    "PluginHostError",
    "ValidationError",
    "ExtractionError",
    "DescriptorError",
    "DescriptorMissing",
    "EmptyDescriptor",
    "MalformedDescriptor",
    "EntryMissing",
    "VersionConflict",
    "CapabilityError",
    "ModuleNotFound",
    "NoCapabilityFound",
    "ModuleLoadError",
    "FilesystemError",
    "StagingMissing",
    "LockContention",
    "RegistryInvariantError",
]



class PluginHostError(Exception):
    """Base class for every error raised by the plugin host."""
    pass



class ValidationError(PluginHostError):
    """Package path is empty, missing, not a file or has the wrong extension."""
    pass



class ExtractionError(PluginHostError):
    pass



# ------------------------------------------------------------------ #
# Descriptor
# ------------------------------------------------------------------ #

class DescriptorError(PluginHostError):
    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path



class DescriptorMissing(DescriptorError):
    pass



class EmptyDescriptor(DescriptorError):
    pass



class MalformedDescriptor(DescriptorError):
    pass



class EntryMissing(DescriptorError):
    """
    Descriptor parsed fine but its entry module is not on disk.
    Kept apart from parse failures: the directory may still be mid-extraction.
    """
    pass



class VersionConflict(PluginHostError):
    pass



# ------------------------------------------------------------------ #
# Capability loading
# ------------------------------------------------------------------ #

class CapabilityError(PluginHostError):
    def __init__(self, message: str, *, entryPath: Path | None = None) -> None:
        super().__init__(message)
        self.entryPath = entryPath



class ModuleNotFound(CapabilityError):
    pass



class NoCapabilityFound(CapabilityError):
    pass



class ModuleLoadError(CapabilityError):
    """The plugin module raised while initializing. __cause__ holds the original error."""
    pass



class FilesystemError(PluginHostError):
    pass



class StagingMissing(PluginHostError):
    pass



class LockContention(PluginHostError):
    pass



class RegistryInvariantError(PluginHostError):
    """Raised when the registry would hold two active plugins with one id."""
    pass
