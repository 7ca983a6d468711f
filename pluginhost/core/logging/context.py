# pluginhost/core/logging/context.py
from __future__ import annotations
import contextvars
from collections.abc import Iterator
from contextlib import contextmanager

# Log context lives here. Lifecycle operations enrich it with pluginId/operation.
_logContextVar: contextvars.ContextVar[dict[str, object] | None] = contextvars.ContextVar("pluginhost.logctx", default=None)

def setLogContext(**kvs):
    """Set or update per-log context values (pluginId, operation, archive, etc.)."""
    current = dict(_logContextVar.get() or {}) # use copy
    for key, value in kvs.items():
        if value is not None:
            current[key] = value
    _logContextVar.set(current)

def clearLogContext():
    _logContextVar.set(None)

def getLogContext():
    """Return current context dict or None."""
    return _logContextVar.get()

@contextmanager
def logContext(**kvs) -> Iterator[None]:
    """Scoped setLogContext(); previous context is restored on exit."""
    token = _logContextVar.set(dict(_logContextVar.get() or {}))
    try:
        setLogContext(**kvs)
        yield
    finally:
        _logContextVar.reset(token)
