import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


def git_init(repo_path: Path) -> None:
    subprocess.run(["git", "init"], cwd=repo_path, check=True, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)


def git_commit_paths(repo_path: Path, paths: list[Path], message: str) -> bool:
    """
    Stage multiple paths then commit with a message and push if origin exists.

    Missing paths are ignored. A commit with nothing staged is a no-op.
    Returns True when a commit was created.
    """
    try:
        for p in paths:
            if p.exists():
                subprocess.run(["git", "add", str(p)], cwd=repo_path, check=True, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        staged = subprocess.run(["git", "diff", "--cached", "--quiet"], cwd=repo_path)
        if staged.returncode == 0:
            return False
        subprocess.run(["git", "commit", "-m", message], cwd=repo_path, check=True, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        remotes = subprocess.run(["git", "remote"], cwd=repo_path, capture_output=True, text=True)
        if "origin" in remotes.stdout.split():
            subprocess.run(["git", "push", "origin", "HEAD"], cwd=repo_path, check=True, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        return True
    except (subprocess.CalledProcessError, OSError) as e:
        logger.warning("Failed to commit or push changes to git: %s", e)
        return False
