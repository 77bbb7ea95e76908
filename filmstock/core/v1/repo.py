from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Dict, Optional

from .config import DATAREPO_CONFIG_FILENAME, set_default_datarepo, write_datarepo_config
from .gitutils import git_commit_paths, git_init
from .migrate import startup
from .store import _write_inventory, inventory_file, read_inventory

logger = logging.getLogger(__name__)


def create_or_clone(target_path: Path, github_url: Optional[str] = None, use_git: bool = False) -> Path:
    target_path = Path(target_path).expanduser()
    if github_url:
        subprocess.run(["git", "clone", github_url, str(target_path)], check=True)
        return target_path.resolve()
    target_path.mkdir(parents=True, exist_ok=True)
    repo_path = target_path.resolve()
    if use_git and not (repo_path / ".git").exists():
        git_init(repo_path)
    return repo_path


def _scaffold_inventory(repo_path: Path) -> Path:
    # An empty snapshot is written once so the file exists before first use.
    p = inventory_file(repo_path)
    if not p.exists():
        _write_inventory(repo_path, read_inventory(repo_path))
    return p


def init_datarepo(
    target_path: Path,
    github_url: Optional[str] = None,
    use_git: bool = False,
    set_default: bool = True,
    catalog_path: Optional[Path] = None,
) -> Dict:
    """Create (or clone) a datarepo and make it ready for use.

    Writes fsdatarepo.yml when missing, an empty inventory.yml, seeds the
    manufacturer catalog and runs pending migrations. The scaffold is
    committed when the datarepo is a git working tree.
    """
    repo_path = create_or_clone(target_path, github_url, use_git=use_git or bool(github_url))
    cfg = repo_path / DATAREPO_CONFIG_FILENAME
    if not cfg.exists():
        write_datarepo_config(repo_path, autocommit=True)
    inv = _scaffold_inventory(repo_path)
    if (repo_path / ".git").exists():
        git_commit_paths(repo_path, [cfg, inv], "[filmStock] Initialize datarepo")
    ran = startup(repo_path, catalog_path)
    if set_default:
        set_default_datarepo(repo_path)
    logger.info("Initialized datarepo at %s", repo_path)
    return {"repo_path": str(repo_path), "remote": github_url or None, "migrations": ran}
