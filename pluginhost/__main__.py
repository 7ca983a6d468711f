# pluginhost/__main__.py
from __future__ import annotations

from pluginhost.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
