import zipfile
import zlib

import pytest

from pluginhost.core.errors import ExtractionError
from pluginhost.plugins.archive import extractPackage


def _zip(path, members: dict[str, str]):
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return path


def test_extractPackage_writes_nested_files(tmp_path):
    archive = _zip(tmp_path / "demo.spkg", {"plugin.json": "{}", "lib/util.py": "X = 1\n", "data/": ""})
    target = tmp_path / "out"
    target.mkdir()

    extracted = extractPackage(archive, target)

    assert (target / "plugin.json").read_text(encoding="utf-8") == "{}"
    assert (target / "lib" / "util.py").is_file()
    assert (target / "data").is_dir()
    assert len(extracted) == 2


@pytest.mark.parametrize("member", ["../evil.py", "/abs/evil.py", "lib/../../evil.py", "C:/evil.py"])
def test_extractPackage_rejects_traversal(tmp_path, member):
    archive = _zip(tmp_path / "evil.spkg", {"plugin.json": "{}", member: "pwned"})
    target = tmp_path / "out"
    target.mkdir()

    with pytest.raises(ExtractionError):
        extractPackage(archive, target)

    # Nothing written before validation failed.
    assert list(target.iterdir()) == []
    assert not (tmp_path / "evil.py").exists()


def test_extractPackage_corrupt_archive(tmp_path):
    archive = tmp_path / "broken.spkg"
    archive.write_bytes(b"this is not a zip file")
    target = tmp_path / "out"
    target.mkdir()

    with pytest.raises(ExtractionError):
        extractPackage(archive, target)


def test_extractPackage_damaged_deflate_stream(tmp_path, make_corrupt_package):
    archive = make_corrupt_package()
    target = tmp_path / "out"
    target.mkdir()

    with pytest.raises(ExtractionError) as excinfo:
        extractPackage(archive, target)
    assert isinstance(excinfo.value.__cause__, (zlib.error, zipfile.BadZipFile))
