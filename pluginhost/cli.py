# pluginhost/cli.py
from __future__ import annotations
import argparse
from collections.abc import Sequence

from pluginhost.app.bootstrap import bootstrapPluginHost
from pluginhost.plugins.manager import InstallStatus

__all__ = ["buildParser", "main"]



def buildParser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pluginhost", description="Manage installed plugins.")
    parser.add_argument("--settings", default=None, help="Settings file (JSON5). Defaults to $PLUGINHOST_SETTINGS.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("list", help="List loaded plugins")

    install = sub.add_parser("install", help="Install a plugin package")
    install.add_argument("archive")
    install.add_argument("--upgrade", action="store_true", help="Stage an upgrade when a newer version is offered")

    uninstall = sub.add_parser("uninstall", help="Uninstall a plugin by id")
    uninstall.add_argument("pluginId")

    sub.add_parser("clean-temp", help="Remove the staging directory")
    return parser



def main(argv: Sequence[str] | None = None) -> int:
    args = buildParser().parse_args(argv)
    host = bootstrapPluginHost(args.settings)
    manager = host.manager

    if args.cmd == "list":
        for meta in manager.listLoaded():
            capability = meta.capabilityType.value if meta.capabilityType else "-"
            print(f"{meta.id}\t{meta.version}\t{capability}\t{meta.name}\t{meta.directory}")
        for failed in host.report.failed:
            print(f"! {failed.pluginName}: {failed.errorMessage}")
        return 0

    if args.cmd == "install":
        outcome = manager.install(args.archive)
        if outcome.status is InstallStatus.UPGRADE_REQUIRED:
            if outcome.existing is None:
                print(outcome.message)
                return 2
            if not args.upgrade:
                print(f"{outcome.message}. Re-run with --upgrade to apply it.")
                manager.cleanupTempFiles()
                return 3
            if not manager.upgrade(outcome.existing, args.archive):
                print(f"Upgrade of '{outcome.existing.id}' failed")
                return 2
            print(f"Upgrade of '{outcome.existing.id}' staged; it applies on next start")
            return 0
        print(outcome.message)
        return 0 if outcome.isSuccess else 2

    if args.cmd == "uninstall":
        meta = manager.findPlugin(args.pluginId)
        if meta is None:
            print(f"Plugin '{args.pluginId}' is not installed")
            return 2
        if not manager.uninstall(meta):
            print(f"Uninstall of '{args.pluginId}' failed")
            return 2
        print(f"Uninstalled '{args.pluginId}'; files are removed on next start")
        return 0

    if args.cmd == "clean-temp":
        return 0 if manager.cleanupTempFiles() else 2

    return 1
