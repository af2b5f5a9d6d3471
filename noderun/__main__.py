"""Module executed when running ``python -m noderun``."""

from __future__ import annotations

from noderun.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
