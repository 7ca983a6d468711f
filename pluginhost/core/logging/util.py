# pluginhost/core/logging/util.py
from __future__ import annotations

import logging



def getPluginLogger(pluginId: str) -> logging.Logger:
    """Logger handed to plugin code; records land under 'plugin.<id>'."""
    return logging.getLogger(f"plugin.{str(pluginId).strip()}")
