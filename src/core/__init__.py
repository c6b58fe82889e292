"""Bridge core: YAML configuration, the exception root and the diagnostic CLI."""

from __future__ import annotations

__all__ = [
    "__version__",
]

__version__ = "0.1.0"
