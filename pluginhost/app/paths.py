# pluginhost/app/paths.py
from __future__ import annotations
import os
import platform
import tempfile
from pathlib import Path



# Root directory structure constants
PACKAGE_DIR = Path(__file__).resolve().parent.parent   # pluginhost/
ROOT_DIR = PACKAGE_DIR.parent                          # repository root
DEFAULT_PREINSTALLED_DIR = ROOT_DIR / "plugins"        # plugins shipped with the application
DEFAULT_STAGING_DIR_NAME = "PluginHostTmpPlugins"



def _isWindows() -> bool:
    return platform.system().lower().startswith("win")



def defaultDataRoot() -> Path:
    """
    Per-user data base:
      1) env PLUGINHOST_ROOT
      2) %APPDATA%/PluginHost on Windows
      3) $XDG_DATA_HOME/pluginhost or ~/.local/share/pluginhost elsewhere
    """
    envRoot = os.getenv("PLUGINHOST_ROOT")
    if envRoot:
        return Path(envRoot).expanduser().resolve()

    if _isWindows():
        roaming = os.getenv("APPDATA")
        base = Path(roaming).expanduser() if roaming else Path.home() / "AppData" / "Roaming"
        return (base / "PluginHost").resolve()

    xdgDataHome = os.getenv("XDG_DATA_HOME")
    base = Path(xdgDataHome).expanduser() if xdgDataHome else Path.home() / ".local" / "share"
    return (base / "pluginhost").resolve()



def defaultStagingRoot() -> Path:
    return Path(tempfile.gettempdir()) / DEFAULT_STAGING_DIR_NAME
