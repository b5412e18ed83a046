"""Test package for the wishlist favorites project.

Putting the repository root on ``sys.path`` lets ``import wishlist`` resolve
to the working tree even when the project is not installed and pytest is run
through its console script.
"""

from __future__ import annotations

import sys
from pathlib import Path

_REPO_ROOT: Path = Path(__file__).resolve().parents[1]


def _ensure_repo_on_path() -> None:
    """Prepend the repository root to ``sys.path`` if it is not there yet."""

    root = str(_REPO_ROOT)
    if root not in sys.path:
        sys.path.insert(0, root)


_ensure_repo_on_path()
