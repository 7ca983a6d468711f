import json

import pytest

from pluginhost.core.errors import DescriptorMissing, EmptyDescriptor, EntryMissing, MalformedDescriptor
from pluginhost.plugins.capabilities import CapabilityType
from pluginhost.plugins.metadata import parseDescriptor, readMetadata, requireEntry


BASE = {
    "id": "X1",
    "name": "Demo",
    "author": "Tester",
    "version": "1.0.0",
    "description": "demo plugin",
    "entry": "main.py",
}


def test_parseDescriptor_minimal():
    desc = parseDescriptor(json.dumps(BASE))
    assert desc.id == "X1"
    assert desc.website == ""
    assert desc.capability is None


def test_parseDescriptor_accepts_json5_and_bom():
    text = "\ufeff{id: 'X1', name: 'Demo', author: 'a', version: '2', description: '', entry: 'main.py', /* c */}"
    desc = parseDescriptor(text.encode("utf-8"))
    assert desc.id == "X1"
    assert desc.version == "2"


def test_parseDescriptor_ignores_unknown_keys_and_reads_capability():
    desc = parseDescriptor(json.dumps({**BASE, "capability": "ocr", "futureKey": 1}))
    assert desc.capability is CapabilityType.OCR


def test_parseDescriptor_normalizes_entry_separators():
    desc = parseDescriptor(json.dumps({**BASE, "entry": "pkg\\main.py"}))
    assert desc.entry == "pkg/main.py"


@pytest.mark.parametrize("raw", [b"", b"   \n", ""])
def test_parseDescriptor_empty(raw):
    with pytest.raises(EmptyDescriptor):
        parseDescriptor(raw)


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        "[1, 2, 3]",
        json.dumps({**BASE, "id": "   "}),
        json.dumps({k: v for k, v in BASE.items() if k != "id"}),
        json.dumps({k: v for k, v in BASE.items() if k != "entry"}),
        json.dumps({**BASE, "entry": "/abs/main.py"}),
        json.dumps({**BASE, "entry": "../escape.py"}),
        json.dumps({**BASE, "entry": "C:\\main.py"}),
        json.dumps({**BASE, "capability": "teleport"}),
    ],
)
def test_parseDescriptor_malformed(raw):
    with pytest.raises(MalformedDescriptor):
        parseDescriptor(raw)


def test_parseDescriptor_invalid_utf8():
    with pytest.raises(MalformedDescriptor):
        parseDescriptor(b"\xff\xfe\x00garbage")


def test_readMetadata_sets_directory_and_preinstalled(tmp_path, make_plugin):
    preinstalled = tmp_path / "pre"
    pluginDir = make_plugin(preinstalled / "demo", "X1")

    meta = readMetadata(pluginDir, metaFileName="plugin.json", preinstalledRoot=preinstalled)
    assert meta.directory == pluginDir
    assert meta.isPreinstalled is True
    assert meta.entryPath == pluginDir / "main.py"
    assert meta.isLoaded is False

    other = make_plugin(tmp_path / "user" / "demo_X2", "X2")
    assert readMetadata(other, metaFileName="plugin.json", preinstalledRoot=preinstalled).isPreinstalled is False


def test_readMetadata_missing_descriptor(tmp_path):
    (tmp_path / "empty").mkdir()
    with pytest.raises(DescriptorMissing) as excInfo:
        readMetadata(tmp_path / "empty", metaFileName="plugin.json")
    assert excInfo.value.path == tmp_path / "empty" / "plugin.json"


def test_readMetadata_reports_path_on_parse_failure(tmp_path, make_plugin):
    pluginDir = make_plugin(tmp_path / "bad", descriptor="{oops")
    with pytest.raises(MalformedDescriptor) as excInfo:
        readMetadata(pluginDir, metaFileName="plugin.json")
    assert excInfo.value.path == pluginDir / "plugin.json"


def test_requireEntry(tmp_path, make_plugin):
    pluginDir = make_plugin(tmp_path / "noentry", code=None)
    meta = readMetadata(pluginDir, metaFileName="plugin.json")
    with pytest.raises(EntryMissing):
        requireEntry(meta)

    (pluginDir / "main.py").write_text("", encoding="utf-8")
    assert requireEntry(meta) == pluginDir / "main.py"
