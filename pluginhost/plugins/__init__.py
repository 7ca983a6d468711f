# pluginhost/plugins/__init__.py
from .capabilities import (
    CapabilityType,
    Plugin,
    PluginContext,
    TranslatePlugin,
    DictionaryPlugin,
    OcrPlugin,
    TtsPlugin,
    VocabularyPlugin,
)
from .events import RegistryListener
from .metadata import PluginMetadata
from .manager import (
    InstallErrorKind,
    InstallOutcome,
    InstallState,
    InstallStatus,
    PluginManager,
)

__all__ = [
    "CapabilityType",
    "Plugin",
    "PluginContext",
    "TranslatePlugin",
    "DictionaryPlugin",
    "OcrPlugin",
    "TtsPlugin",
    "VocabularyPlugin",
    "RegistryListener",
    "PluginMetadata",
    "InstallErrorKind",
    "InstallOutcome",
    "InstallState",
    "InstallStatus",
    "PluginManager",
]
