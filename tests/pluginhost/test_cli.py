import json

import pytest

from pluginhost.app.bootstrap import bootstrapPluginHost
from pluginhost.cli import buildParser, main


@pytest.fixture()
def settings_file(tmp_path):
    path = tmp_path / "settings.json5"
    path.write_text(
        json.dumps({
            "dataRoot": str(tmp_path / "data"),
            "preinstalledRoot": str(tmp_path / "preinstalled"),
            "stagingRoot": str(tmp_path / "staging"),
        }),
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def keep_root_logging():
    import logging
    root = logging.getLogger()
    saved = (list(root.handlers), root.level)
    yield
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])


def test_bootstrap_creates_roots_and_loads(settings_file, tmp_path, make_plugin):
    make_plugin(tmp_path / "preinstalled" / "core", "P1")

    host = bootstrapPluginHost(settings_file)

    assert (tmp_path / "data" / "Plugins").is_dir()
    assert (tmp_path / "data" / "Settings").is_dir()
    assert [m.id for m in host.manager.listLoaded()] == ["P1"]
    assert host.report.loaded[0].isPreinstalled


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        buildParser().parse_args([])
    args = buildParser().parse_args(["install", "demo.spkg", "--upgrade"])
    assert (args.cmd, args.archive, args.upgrade) == ("install", "demo.spkg", True)


def test_cli_install_list_uninstall(settings_file, make_package, capsys):
    archive = make_package("demo.spkg", "X1", "1.0.0")

    assert main(["--settings", str(settings_file), "install", str(archive)]) == 0
    assert main(["--settings", str(settings_file), "list"]) == 0
    out = capsys.readouterr().out
    assert "X1\t1.0.0\ttranslate" in out

    # Same version again is refused.
    assert main(["--settings", str(settings_file), "install", str(archive)]) == 2

    assert main(["--settings", str(settings_file), "uninstall", "X1"]) == 0
    assert main(["--settings", str(settings_file), "uninstall", "X1"]) == 2
    capsys.readouterr()
    assert main(["--settings", str(settings_file), "list"]) == 0
    assert "X1" not in capsys.readouterr().out


def test_cli_upgrade_flow(settings_file, tmp_path, make_package):
    main(["--settings", str(settings_file), "install", str(make_package("demo.spkg", "X1", "1.0.0"))])
    newer = make_package("demo.spkg", "X1", "2.0.0")

    assert main(["--settings", str(settings_file), "install", str(newer)]) == 3
    assert main(["--settings", str(settings_file), "install", str(newer), "--upgrade"]) == 0

    host = bootstrapPluginHost(settings_file)
    assert host.manager.findPlugin("X1").version == "2.0.0"


def test_cli_clean_temp(settings_file, tmp_path):
    (tmp_path / "staging" / "leftover").mkdir(parents=True)
    assert main(["--settings", str(settings_file), "clean-temp"]) == 0
    assert not (tmp_path / "staging").exists()
