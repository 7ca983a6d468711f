# pluginhost/app/settings.py
from __future__ import annotations
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

import json5
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pluginhost.app.paths import DEFAULT_PREINSTALLED_DIR, defaultDataRoot, defaultStagingRoot

logger = logging.getLogger(__name__)

__all__ = ["LoggingSettings", "HostSettings", "loadSettings"]



class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    devMode: bool = False
    level: str = "INFO"
    # Rotating JSON log. None disables the file handler.
    filePath: Path | None = None
    maxBytes: int = Field(default=10 * 1024 * 1024, gt=0)
    backupCount: int = Field(default=5, ge=0)

    @field_validator("level")
    @classmethod
    def _checkLevel(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level {value!r}")
        return level



class HostSettings(BaseModel):
    """
    Plugin host configuration.

    Every root may be given relative; relative roots are resolved against
    dataRoot (except preinstalledRoot, which defaults to the repository's
    plugins/ directory, and stagingRoot, which defaults to the system temp dir).
    """
    model_config = ConfigDict(extra="forbid")

    dataRoot: Path | None = None
    preinstalledRoot: Path | None = None
    userPluginsRoot: Path | None = None
    settingsRoot: Path | None = None
    cacheRoot: Path | None = None
    stagingRoot: Path | None = None

    packageExtension: str = ".spkg"
    metaFileName: str = "plugin.json"
    # Plugins with these ids are installed into preinstalledRoot, not userPluginsRoot.
    preinstalledIds: list[str] = Field(default_factory=list)

    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("packageExtension")
    @classmethod
    def _normalizeExtension(cls, value: str) -> str:
        ext = value.strip().lower()
        if not ext or ext == ".":
            raise ValueError("packageExtension cannot be empty")
        return ext if ext.startswith(".") else f".{ext}"

    @field_validator("metaFileName")
    @classmethod
    def _checkMetaFileName(cls, value: str) -> str:
        name = value.strip()
        if not name or "/" in name or "\\" in name:
            raise ValueError(f"metaFileName must be a bare file name, got {value!r}")
        return name

    @model_validator(mode="after")
    def _resolveRoots(self) -> HostSettings:
        dataRoot = (self.dataRoot or defaultDataRoot()).expanduser()
        if not dataRoot.is_absolute():
            dataRoot = dataRoot.resolve()
        self.dataRoot = dataRoot

        def _under(value: Path | None, default: Path) -> Path:
            if value is None:
                return default
            value = value.expanduser()
            return value if value.is_absolute() else dataRoot / value

        self.preinstalledRoot = _under(self.preinstalledRoot, DEFAULT_PREINSTALLED_DIR)
        self.userPluginsRoot = _under(self.userPluginsRoot, dataRoot / "Plugins")
        self.settingsRoot = _under(self.settingsRoot, dataRoot / "Settings")
        self.cacheRoot = _under(self.cacheRoot, dataRoot / "Cache")
        self.stagingRoot = _under(self.stagingRoot, defaultStagingRoot())
        if self.logging.filePath is not None:
            self.logging.filePath = _under(self.logging.filePath, dataRoot / "pluginhost.log")
        return self



def loadSettings(
    path: Path | str | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
) -> HostSettings:
    """
    Load HostSettings.

    Source, first match wins:
      1) explicit `path`
      2) env PLUGINHOST_SETTINGS
      3) built-in defaults

    The file is JSON5. A configured file that does not exist raises
    FileNotFoundError. `overrides` are applied on top of the file
    (top-level keys only) before validation.
    """
    if path is None:
        envPath = os.getenv("PLUGINHOST_SETTINGS")
        path = envPath or None

    data: dict[str, Any] = {}
    if path is not None:
        path = Path(path).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"Settings file '{path}' not found")
        try:
            parsed = json5.loads(path.read_text("utf-8"))
        except Exception as err:
            raise TypeError(f"Failed to parse settings file '{path}': {err}") from err
        if not isinstance(parsed, Mapping):
            raise TypeError(
                f"Settings file content must be a JSON object, not '{type(parsed).__name__}'"
            )
        data.update(cast(Mapping[str, Any], parsed))
        logger.debug("Loaded settings from '%s'", path)

    if overrides:
        data.update(overrides)

    return HostSettings.model_validate(data)
