"""noderun: run one node plugin the way the node service would."""

from __future__ import annotations

__version__ = "0.1.0"
