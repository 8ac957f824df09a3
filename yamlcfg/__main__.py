from __future__ import annotations

from yamlcfg.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
