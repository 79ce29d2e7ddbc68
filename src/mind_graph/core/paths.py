"""Utilities for locating the runtime data directory and its caches."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

_ENV_VAR = "MIND_GRAPH_DATA_DIR"
_DEFAULT_DIRNAME = ".mind_graph"
_REPO_ROOT = Path(__file__).resolve().parents[3]


def _normalize_relative(parts: Iterable[str]) -> Path:
    """Normalize relative path components, stripping a leading data-dir prefix."""
    path = Path(*parts)
    if not path.parts:
        return Path()
    if path.parts[0] == _DEFAULT_DIRNAME:
        path = Path(*path.parts[1:]) if len(path.parts) > 1 else Path()
    return path


def get_data_dir() -> Path:
    """Return the configured runtime data directory.

    Honors the MIND_GRAPH_DATA_DIR environment variable; otherwise defaults
    to ~/.mind_graph on the current platform.
    """
    override = os.getenv(_ENV_VAR)
    if override is not None:
        cleaned = override.strip()
        if not cleaned:
            return (_REPO_ROOT / _DEFAULT_DIRNAME).resolve()
        candidate = Path(cleaned).expanduser()
        if not candidate.is_absolute():
            candidate = (_REPO_ROOT / candidate).resolve()
        else:
            candidate = candidate.resolve()
        return candidate
    return (Path.home() / _DEFAULT_DIRNAME).resolve()


def ensure_data_dir() -> Path:
    """Ensure the data directory exists on disk and return it."""
    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def resolve_data_path(*relative: str, ensure_parent: bool = False) -> Path:
    """Resolve a path underneath the runtime data directory."""
    data_dir = ensure_data_dir()
    full_path = data_dir / _normalize_relative(relative)
    if ensure_parent:
        full_path.parent.mkdir(parents=True, exist_ok=True)
    return full_path


def resolve_data_file(path: str, ensure_parent: bool = False) -> Path:
    """Resolve a configured file path against the data directory.

    Absolute paths are used as-is. Relative paths are interpreted relative to
    the runtime data dir.
    """
    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        if ensure_parent:
            candidate.parent.mkdir(parents=True, exist_ok=True)
        return candidate
    return resolve_data_path(*candidate.parts, ensure_parent=ensure_parent)


def resolve_data_dir(path: str, ensure_exists: bool = False) -> Path:
    """Resolve a configured directory (absolute, or relative to the data dir)."""
    directory = resolve_data_file(path)
    if ensure_exists:
        directory.mkdir(parents=True, exist_ok=True)
    return directory


__all__ = [
    "get_data_dir",
    "ensure_data_dir",
    "resolve_data_path",
    "resolve_data_file",
    "resolve_data_dir",
]
