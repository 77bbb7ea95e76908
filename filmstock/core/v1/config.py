import logging
import pathlib
import yaml
import os

FS_TOOL_VERSION = "1.0"
CONFIG_FILENAME = ".filmstock.yml"
DATAREPO_CONFIG_FILENAME = "fsdatarepo.yml"
INVENTORY_FILENAME = "inventory.yml"
STATE_FILENAME = "state.yml"
LEGACY_JSON_FILENAME = "filmstocks.json"

logger = logging.getLogger(__name__)


def _resolve_config_path() -> pathlib.Path:
    """Resolve the path to .filmstock.yml with environment overrides.

    Precedence:
      1) FS_CONFIG_FILE = absolute or relative path to the config file
      2) FS_CONFIG_DIR = directory containing the config file
      3) FS_DATA_PATH  = parent data path (config at $FS_DATA_PATH/.filmstock.yml)
      4) Fallback to CWD: ./.filmstock.yml
    """
    env_file = os.environ.get("FS_CONFIG_FILE")
    if env_file:
        return pathlib.Path(env_file).expanduser().resolve()
    env_dir = os.environ.get("FS_CONFIG_DIR") or os.environ.get("FS_DATA_PATH")
    if env_dir:
        return pathlib.Path(env_dir).expanduser().resolve() / CONFIG_FILENAME
    return pathlib.Path(CONFIG_FILENAME).expanduser().resolve()


def ensure_config() -> pathlib.Path:
    """Ensure the user config file exists; create with defaults if missing.

    Returns the path to the config file.
    """
    config_path = _resolve_config_path()
    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config = {
            "default_datarepo": None,
        }
        with open(config_path, "w") as f:
            yaml.safe_dump(config, f)
    return config_path


def load_config() -> dict:
    config_path = ensure_config()
    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def save_config(config: dict) -> None:
    config_path = _resolve_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        yaml.safe_dump(config, f)


def get_datarepo_path() -> pathlib.Path:
    config = load_config()
    datarepo = config.get("default_datarepo")
    if not datarepo:
        raise RuntimeError(
            f"[filmStock] Error: default_datarepo not set in {CONFIG_FILENAME}. Run 'init' or set it manually."
        )
    return pathlib.Path(datarepo).expanduser().resolve()


def set_default_datarepo(repo_path: pathlib.Path) -> None:
    cfg = load_config()
    cfg["default_datarepo"] = str(repo_path)
    save_config(cfg)


def load_datarepo_config(repo_path: pathlib.Path | None = None) -> dict:
    """Read repository-level configuration from fsdatarepo.yml."""
    if repo_path is None:
        repo_path = get_datarepo_path()
    config_file = repo_path / DATAREPO_CONFIG_FILENAME
    if not config_file.exists():
        return {}
    with open(config_file) as f:
        return yaml.safe_load(f) or {}


def git_autocommit_enabled(repo_path: pathlib.Path) -> bool:
    """Return True when store writes should be committed to git.

    Requires the datarepo to be a git working tree; `git.autocommit` in
    fsdatarepo.yml defaults to true.
    """
    if not (repo_path / ".git").exists():
        return False
    try:
        dr_cfg = load_datarepo_config(repo_path)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not read %s: %s", DATAREPO_CONFIG_FILENAME, e)
        return False
    git_cfg = dr_cfg.get("git") or {}
    if not isinstance(git_cfg, dict):
        return True
    return bool(git_cfg.get("autocommit", True))


def write_datarepo_config(repo_path: pathlib.Path, autocommit: bool = True) -> pathlib.Path:
    datarepo_config = {
        "filmstock_version": FS_TOOL_VERSION,
        "git": {
            "autocommit": bool(autocommit),
        },
    }
    config_file = repo_path / DATAREPO_CONFIG_FILENAME
    with open(config_file, "w") as f:
        f.write(
            "# This file is a generated scaffold by filmStock.\n"
            "# It is safe to edit and customize for your repository.\n"
        )
        yaml.safe_dump(datarepo_config, f, sort_keys=False)
    return config_file


def configure_logging(verbose: int = 0, quiet: int = 0) -> None:
    """Configure root logging for command-line use.

    Default level is WARNING; each -v lowers it one step, each -q raises it.
    """
    levels = [logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL]
    idx = max(0, min(len(levels) - 1, 2 - int(verbose or 0) + int(quiet or 0)))
    logging.basicConfig(
        level=levels[idx],
        format="[filmStock] %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(levels[idx])
