from __future__ import annotations

import sys
from pathlib import Path


def pytest_configure() -> None:
    root = Path(__file__).resolve().parents[1]
    # src/ for the packages, tests/unit/ for the shared fakes module.
    for path in (root / "src", root / "tests" / "unit"):
        if path.exists() and str(path) not in sys.path:
            sys.path.insert(0, str(path))
