# pluginhost/core/jsonutils.py
from __future__ import annotations

import json
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

__all__ = ["safeJsonDumps", "tryJSONify"]



def safeJsonDumps(obj: object) -> str:
    """
    Serializes an object to a compact JSON string.
    UTF-8 characters are kept as-is. If direct encoding fails, falls back to
    tryJSONify() and retries.
    """
    try:
        return json.dumps(obj, ensure_ascii=False, allow_nan=False, separators=(",", ":"))
    except Exception:
        return json.dumps(tryJSONify(obj), ensure_ascii=False, allow_nan=False, separators=(",", ":"))



def tryJSONify(value: Any, *, _depth: int = 0, _maxDepth: int = 16) -> Any:
    """
    Best-effort conversion into JSON-compatible values.
    Paths and enums become strings, unknown objects become repr().
    """
    if _depth > _maxDepth:
        return "<max depth>"
    if isinstance(value, Enum):
        return tryJSONify(value.value, _depth=_depth + 1, _maxDepth=_maxDepth)
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        # NaN/inf are not valid JSON
        return value if value == value and value not in (float("inf"), float("-inf")) else str(value)
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {
            str(key): tryJSONify(item, _depth=_depth + 1, _maxDepth=_maxDepth)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return [tryJSONify(item, _depth=_depth + 1, _maxDepth=_maxDepth) for item in value]
    return repr(value)
