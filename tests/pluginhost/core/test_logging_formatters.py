# tests/pluginhost/core/test_logging_formatters.py
from __future__ import annotations

import json
import logging
import logging.handlers

from pluginhost.app.settings import LoggingSettings
from pluginhost.core.logging import (
    DevFormatter,
    JsonFormatter,
    clearLogContext,
    configureLogging,
    getLogContext,
    getPluginLogger,
    logContext,
    setLogContext,
)


def _record(msg: str = "hello %s", args=("world",), exc_info=None) -> logging.LogRecord:
    return logging.LogRecord("pluginhost.test", logging.INFO, __file__, 1, msg, args, exc_info)


def test_logContext_is_scoped():
    clearLogContext()
    setLogContext(operation="load")
    with logContext(pluginId="X1", archive=None):
        assert getLogContext() == {"operation": "load", "pluginId": "X1"}
    assert getLogContext() == {"operation": "load"}
    clearLogContext()
    assert getLogContext() is None


def test_devFormatter_renders_context():
    with logContext(operation="install", pluginId="X1"):
        line = DevFormatter().format(_record())
    assert line == "INFO: [pluginhost.test] hello world [install/X1]"
    assert DevFormatter().format(_record()) == "INFO: [pluginhost.test] hello world"


def test_jsonFormatter_emits_one_json_object():
    try:
        raise ValueError("bad")
    except ValueError:
        import sys
        record = _record(exc_info=sys.exc_info())

    with logContext(pluginId="X1"):
        payload = json.loads(JsonFormatter().format(record))

    assert payload["msg"] == "hello world"
    assert payload["level"] == "info"
    assert payload["ctx"] == {"pluginId": "X1"}
    assert payload["exc"]["type"] == "ValueError"
    assert "\n" not in JsonFormatter().format(_record())


def test_getPluginLogger_name():
    assert getPluginLogger(" X1 ").name == "plugin.X1"


def test_configureLogging_installs_handlers(tmp_path):
    root = logging.getLogger()
    saved = (list(root.handlers), root.level)
    try:
        configureLogging(LoggingSettings(devMode=True, filePath=tmp_path / "logs" / "host.log"))
        assert root.level == logging.DEBUG
        kinds = {type(h) for h in root.handlers}
        assert logging.handlers.RotatingFileHandler in kinds
        assert (tmp_path / "logs").is_dir()

        configureLogging(LoggingSettings(level="warning"))
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved[0]
        root.setLevel(saved[1])


def test_jsonFormatter_handles_unserializable_context(tmp_path):
    from pluginhost.plugins.capabilities import CapabilityType

    with logContext(operation="install", archive=tmp_path / "demo.spkg", capability=CapabilityType.OCR, extra=object()):
        payload = json.loads(JsonFormatter().format(_record()))

    assert payload["ctx"]["archive"] == str(tmp_path / "demo.spkg")
    assert payload["ctx"]["capability"] == "ocr"
    assert payload["ctx"]["extra"].startswith("<object")
