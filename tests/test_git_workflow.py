from __future__ import annotations
import subprocess
import sys
from pathlib import Path

# Ensure project root on sys.path so 'filmstock' package is importable when running pytest
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from filmstock.core.v1.config import write_datarepo_config
from filmstock.core.v1.gitutils import git_commit_paths
from filmstock.core.v1.inventory import add_unit, list_units
from filmstock.core.v1.lifecycle import load_unit, unload


def _init_git_repo(root: Path) -> None:
    subprocess.run(["git", "init"], cwd=root, check=True, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    # Configure minimal identity for commits
    subprocess.run(["git", "config", "user.email", "test@example.com"], cwd=root, check=True)
    subprocess.run(["git", "config", "user.name", "Test User"], cwd=root, check=True)


def _git_log(root: Path) -> list:
    r = subprocess.run(["git", "log", "--pretty=%s"], cwd=root, capture_output=True, text=True)
    return [ln for ln in (r.stdout or "").splitlines() if ln.strip()]


def _git_clean(root: Path) -> bool:
    r = subprocess.run(["git", "status", "--porcelain"], cwd=root, capture_output=True, text=True)
    return r.stdout.strip() == ""


def test_git_commit_paths_noop_when_nothing_to_commit(tmp_path: Path):
    repo = tmp_path / "repo"
    repo.mkdir()
    _init_git_repo(repo)
    f = repo / "inventory.yml"
    f.write_text("units: []\n")
    assert git_commit_paths(repo, [f], "[test] first") is True
    assert git_commit_paths(repo, [f], "[test] second") is False
    assert git_commit_paths(repo, [repo / "missing.yml"], "[test] third") is False
    assert _git_log(repo) == ["[test] first"]


def test_store_writes_are_autocommitted(tmp_path: Path):
    repo = tmp_path / "repo"
    repo.mkdir()
    _init_git_repo(repo)
    write_datarepo_config(repo)
    git_commit_paths(repo, [repo / "fsdatarepo.yml"], "[test] config")

    add_unit(repo, {"name": "Tri-X", "manufacturer": "Kodak", "type": "BW", "iso": 400, "format": "35"})
    uid = list_units(repo)[0]["id"]
    rec = load_unit(repo, uid, "35", "FM2")
    unload(repo, rec["id"])

    log = _git_log(repo)
    assert log[-1] == "[test] config"
    assert any(m.startswith("[filmStock] Add stock Kodak Tri-X") for m in log)
    assert any(m.startswith("[filmStock] Load unit") for m in log)
    assert any(m.startswith("[filmStock] Set films_finished to 1") for m in log)
    assert _git_clean(repo)


def test_autocommit_can_be_disabled(tmp_path: Path):
    repo = tmp_path / "repo"
    repo.mkdir()
    _init_git_repo(repo)
    write_datarepo_config(repo, autocommit=False)
    add_unit(repo, {"name": "Tri-X", "manufacturer": "Kodak", "type": "BW", "iso": 400, "format": "35"})
    assert _git_log(repo) == []
    assert (repo / "inventory.yml").exists()
