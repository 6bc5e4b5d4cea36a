"""Path helpers for repo-root-relative file resolution."""

from __future__ import annotations

import os
from pathlib import Path

ROOT_MARKERS = ("pyproject.toml", ".git")


def find_repo_root(start: Path | None = None) -> Path:
    current = (start or Path(__file__).resolve()).resolve()
    if current.is_file():
        current = current.parent

    for candidate in [current, *current.parents]:
        if any((candidate / marker).exists() for marker in ROOT_MARKERS):
            return candidate
    raise RuntimeError("Unable to determine repository root from current path")


def repo_root() -> Path:
    return find_repo_root(Path(__file__).resolve())


def repo_file(*parts: str) -> Path:
    return repo_root().joinpath(*parts)


def state_file(name: str) -> Path:
    """Resolve a runtime file (sqlite db, etc.) under VERITAS_STATE_DIR or the repo root."""
    state_dir = os.getenv("VERITAS_STATE_DIR")
    if state_dir:
        return Path(state_dir).expanduser() / name
    return repo_file(name)
