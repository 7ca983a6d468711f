# pluginhost/plugins/capabilities.py
from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pluginhost.plugins.metadata import PluginMetadata

__all__ = [
    "CapabilityType",
    "PluginContext",
    "Plugin",
    "TranslatePlugin",
    "DictionaryPlugin",
    "OcrPlugin",
    "TtsPlugin",
    "VocabularyPlugin",
    "CONTRACTS",
    "capabilityOf",
    "findImplementations",
    "pluginsWithCapability",
]



class CapabilityType(str, Enum):
    """Closed set of roles a plugin can fulfil."""
    TRANSLATE = "translate"
    DICTIONARY = "dictionary"
    OCR = "ocr"
    TTS = "tts"
    VOCABULARY = "vocabulary"



@dataclass
class PluginContext:
    """What the host hands a plugin in init()."""
    pluginId: str
    settingsDirectory: Path | None
    cacheDirectory: Path | None
    logger: logging.Logger
    services: dict[str, Any] = field(default_factory=dict)



class Plugin(ABC):
    """
    Common base of every capability contract.

    init()/dispose() have no-op defaults. Plugins implement exactly one of the
    contracts below; the abstract methods are what the shell calls.
    """

    def init(self, context: PluginContext) -> None:
        return

    def dispose(self) -> None:
        return



class TranslatePlugin(Plugin):
    @abstractmethod
    def translate(self, text: str, sourceLang: str, targetLang: str) -> str:
        ...



class DictionaryPlugin(Plugin):
    @abstractmethod
    def lookup(self, word: str, sourceLang: str, targetLang: str) -> Any:
        ...



class OcrPlugin(Plugin):
    @abstractmethod
    def recognize(self, image: bytes, lang: str | None = None) -> str:
        ...



class TtsPlugin(Plugin):
    @abstractmethod
    def speak(self, text: str, lang: str | None = None) -> bytes:
        ...



class VocabularyPlugin(Plugin):
    @abstractmethod
    def addWord(self, word: str, context: str | None = None) -> bool:
        ...



# Contract class per capability. Order is the lookup order when a class
# somehow derives from more than one contract.
CONTRACTS: dict[CapabilityType, type[Plugin]] = {
    CapabilityType.TRANSLATE: TranslatePlugin,
    CapabilityType.DICTIONARY: DictionaryPlugin,
    CapabilityType.OCR: OcrPlugin,
    CapabilityType.TTS: TtsPlugin,
    CapabilityType.VOCABULARY: VocabularyPlugin,
}



def capabilityOf(cls: type) -> CapabilityType | None:
    if not inspect.isclass(cls):
        return None
    for capability, contract in CONTRACTS.items():
        if issubclass(cls, contract):
            return capability
    return None



def findImplementations(
    namespace: Iterable[Any],
    *,
    moduleName: str,
    declared: CapabilityType | None = None,
) -> list[tuple[type[Plugin], CapabilityType]]:
    """
    Scan module members in definition order and return concrete classes
    defined in `moduleName` that implement a contract.

    When `declared` is set only implementations of that contract count.
    """
    found: list[tuple[type[Plugin], CapabilityType]] = []
    for member in namespace:
        if not inspect.isclass(member) or member.__module__ != moduleName:
            continue
        if member in CONTRACTS.values() or inspect.isabstract(member):
            continue
        capability = capabilityOf(member)
        if capability is None:
            continue
        if declared is not None and not issubclass(member, CONTRACTS[declared]):
            continue
        found.append((member, declared or capability))
    return found



def pluginsWithCapability(
    plugins: Iterable[PluginMetadata],
    capability: CapabilityType,
) -> list[PluginMetadata]:
    """Loaded plugins whose discovered type implements `capability`."""
    contract = CONTRACTS[capability]
    return [
        meta for meta in plugins
        if meta.pluginType is not None and issubclass(meta.pluginType, contract)
    ]
