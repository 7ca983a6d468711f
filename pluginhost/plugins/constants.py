# pluginhost/plugins/constants.py
from __future__ import annotations

__all__ = ["DELETE_MARKER_NAME", "UPGRADE_SUFFIX", "MODULE_NAME_PREFIX"]



# Zero-byte file inside a directory: delete this directory on the next scan.
DELETE_MARKER_NAME = "NeedDelete.txt"
# Appended to a directory name: staged replacement waiting to be renamed into place.
UPGRADE_SUFFIX = "_NeedUpgrade"
# sys.modules key prefix for imported plugin entry modules.
MODULE_NAME_PREFIX = "pluginhost_plugin_"
