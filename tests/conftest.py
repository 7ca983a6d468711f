import sys
import textwrap
import zipfile
from pathlib import Path

import json5
import pytest

from pluginhost.app.settings import HostSettings
from pluginhost.plugins.constants import MODULE_NAME_PREFIX
from pluginhost.plugins.manager import PluginManager
from pluginhost.plugins.paths import PathResolver


TRANSLATE_CODE = textwrap.dedent(
    """
    from pluginhost.plugins.capabilities import TranslatePlugin


    class EchoTranslator(TranslatePlugin):
        def translate(self, text, sourceLang, targetLang):
            return f"{sourceLang}->{targetLang}:{text}"
    """
)



def pytest_configure(config: pytest.Config) -> None:
    if sys.flags.optimize:
        raise RuntimeError("Assertions are disabled (optimize > 0)")



@pytest.fixture(autouse=True)
def isolated_imports():
    """Plugin imports touch sys.path/sys.modules; undo that after each test."""
    savedPath = list(sys.path)
    yield
    sys.path[:] = savedPath
    for name in [name for name in sys.modules if name.startswith(MODULE_NAME_PREFIX)]:
        del sys.modules[name]



def descriptor_payload(pluginId: str, version: str = "1.0.0", **extra) -> dict:
    payload = {
        "id": pluginId,
        "name": f"Plugin {pluginId}",
        "author": "Tester",
        "version": version,
        "description": "test plugin",
        "website": "https://example.invalid",
        "entry": "main.py",
    }
    payload.update(extra)
    return payload



@pytest.fixture()
def make_plugin():
    """
    Write a plugin directory.
    descriptor=None writes no plugin.json; a str is written verbatim.
    """
    def _make(
        directory: Path,
        pluginId: str = "X1",
        version: str = "1.0.0",
        *,
        code: str | None = TRANSLATE_CODE,
        descriptor: dict | str | None = ...,
        **extra,
    ) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        if descriptor is ...:
            descriptor = descriptor_payload(pluginId, version, **extra)
        if isinstance(descriptor, dict):
            (directory / "plugin.json").write_text(json5.dumps(descriptor, indent=2), encoding="utf-8")
        elif isinstance(descriptor, str):
            (directory / "plugin.json").write_text(descriptor, encoding="utf-8")
        if code is not None:
            (directory / "main.py").write_text(code, encoding="utf-8")
        return directory

    return _make



@pytest.fixture()
def make_package(tmp_path):
    """Build a .spkg zip; `files` adds or overrides archive members."""
    packagesDir = tmp_path / "packages"

    def _make(
        fileName: str = "demo.spkg",
        pluginId: str = "X1",
        version: str = "1.0.0",
        *,
        code: str | None = TRANSLATE_CODE,
        descriptor: dict | str | None = ...,
        files: dict[str, str] | None = None,
        compression: int = zipfile.ZIP_STORED,
        **extra,
    ) -> Path:
        packagesDir.mkdir(parents=True, exist_ok=True)
        archive = packagesDir / fileName
        members: dict[str, str] = {}
        if descriptor is ...:
            descriptor = descriptor_payload(pluginId, version, **extra)
        if isinstance(descriptor, dict):
            members["plugin.json"] = json5.dumps(descriptor, indent=2)
        elif isinstance(descriptor, str):
            members["plugin.json"] = descriptor
        if code is not None:
            members["main.py"] = code
        members.update(files or {})

        with zipfile.ZipFile(archive, "w", compression=compression) as zf:
            for name, content in members.items():
                zf.writestr(name, content)
        return archive

    return _make



def damage_member(archive: Path, memberName: str) -> None:
    """Overwrite the head of a member's compressed data, leaving the zip directory intact."""
    with zipfile.ZipFile(archive) as zf:
        info = zf.getinfo(memberName)
    data = bytearray(archive.read_bytes())
    offset = info.header_offset
    # Local file header: 30 fixed bytes, then the name and extra field.
    nameLength = int.from_bytes(data[offset + 26:offset + 28], "little")
    extraLength = int.from_bytes(data[offset + 28:offset + 30], "little")
    start = offset + 30 + nameLength + extraLength
    count = min(16, info.compress_size)
    data[start:start + count] = b"\xff" * count
    archive.write_bytes(bytes(data))



@pytest.fixture()
def make_corrupt_package(make_package):
    """A deflated .spkg whose main.py stream is damaged; the archive itself still opens."""
    def _make(fileName: str = "demo.spkg", pluginId: str = "X1", version: str = "1.0.0") -> Path:
        code = TRANSLATE_CODE + "".join(f"# filler line {i}\n" for i in range(200))
        archive = make_package(fileName, pluginId, version, code=code, compression=zipfile.ZIP_DEFLATED)
        damage_member(archive, "main.py")
        return archive

    return _make



@pytest.fixture()
def host_settings(tmp_path) -> HostSettings:
    return HostSettings(
        dataRoot=tmp_path / "data",
        preinstalledRoot=tmp_path / "preinstalled",
        stagingRoot=tmp_path / "staging",
    )



@pytest.fixture()
def resolver(host_settings) -> PathResolver:
    resolver = PathResolver.fromSettings(host_settings)
    resolver.ensureRoots()
    return resolver



@pytest.fixture()
def manager(resolver, host_settings) -> PluginManager:
    return PluginManager(resolver, host_settings)
