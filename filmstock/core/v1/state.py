from __future__ import annotations

from pathlib import Path
from typing import Dict

import yaml

from .config import STATE_FILENAME, git_autocommit_enabled
from .gitutils import git_commit_paths
from .store import TXN_LOCK, StoreError, write_yaml_atomic

# -------------------------------
# Process state kept outside the entity store
#   <datarepo>/state.yml
#     films_finished: <int>   lifetime count of finished rolls/sheets
#
# Rules:
#   - a missing file or key reads as 0
#   - read fresh on every access; rewritten atomically on every change
#   - the counter never goes below zero
# -------------------------------

FILMS_FINISHED = "films_finished"


def state_file(datarepo_path: Path) -> Path:
    return Path(datarepo_path) / STATE_FILENAME


def read_state(datarepo_path: Path) -> Dict:
    p = state_file(datarepo_path)
    if not p.exists():
        return {}
    try:
        with open(p, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise StoreError(f"Failed to read {p}: {e}") from e
    return data if isinstance(data, dict) else {}


def _counter(data: Dict) -> int:
    try:
        return max(0, int(data.get(FILMS_FINISHED, 0) or 0))
    except (TypeError, ValueError):
        return 0


def get_films_finished(datarepo_path: Path) -> int:
    return _counter(read_state(datarepo_path))


def adjust_films_finished(datarepo_path: Path, delta: int) -> int:
    """Add `delta` (may be negative) to the lifetime counter; returns the new value."""
    with TXN_LOCK:
        data = read_state(datarepo_path)
        current = _counter(data)
        new_value = max(0, current + int(delta))
        if new_value == current and FILMS_FINISHED in data:
            return current
        data[FILMS_FINISHED] = new_value
        try:
            write_yaml_atomic(state_file(datarepo_path), data)
        except (OSError, yaml.YAMLError) as e:
            raise StoreError(f"Failed to write {state_file(datarepo_path)}: {e}") from e
        if git_autocommit_enabled(Path(datarepo_path)):
            git_commit_paths(Path(datarepo_path), [state_file(datarepo_path)], f"[filmStock] Set {FILMS_FINISHED} to {new_value}")
        return new_value
