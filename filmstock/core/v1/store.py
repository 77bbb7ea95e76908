from __future__ import annotations

import copy
import logging
import os
import tempfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import yaml

from .config import INVENTORY_FILENAME, git_autocommit_enabled
from .gitutils import git_commit_paths

logger = logging.getLogger(__name__)

# -------------------------------
# Entity store
#   - The whole object graph lives in <datarepo>/inventory.yml
#   - Records are plain mappings; references are by key:
#       film.manufacturer -> manufacturer.name
#       unit.film, loaded.film, finished.film -> film.id
#       loaded.unit, finished.unit -> unit.id (nullable)
#       loaded.camera, finished.camera -> camera.name (nullable on finished)
#   - Writes go through transaction(): all-or-nothing, atomic file replace
# -------------------------------

SCHEMA_VERSION = 1
COLLECTIONS = ("manufacturers", "films", "units", "cameras", "loaded", "finished")

# Single logical writer; the web app may call in from several threads.
# Shared by every file in the datarepo (inventory.yml, state.yml).
TXN_LOCK = threading.RLock()


class StoreError(RuntimeError):
    """The entity store could not be read or written."""


def inventory_file(datarepo_path: Path) -> Path:
    return Path(datarepo_path) / INVENTORY_FILENAME


def empty_inventory() -> Dict:
    data: Dict = {"meta": {"schema": SCHEMA_VERSION, "migrations": []}}
    for name in COLLECTIONS:
        data[name] = []
    return data


def _normalize(data) -> Dict:
    if not isinstance(data, dict):
        raise StoreError("inventory.yml is not a mapping")
    meta = data.get("meta")
    if not isinstance(meta, dict):
        meta = {}
    meta.setdefault("schema", SCHEMA_VERSION)
    if not isinstance(meta.get("migrations"), list):
        meta["migrations"] = []
    data["meta"] = meta
    for name in COLLECTIONS:
        if not isinstance(data.get(name), list):
            data[name] = []
    return data


def read_inventory(datarepo_path: Path) -> Dict:
    """Return the current store snapshot (an empty one if nothing was written yet)."""
    p = inventory_file(datarepo_path)
    if not p.exists():
        return empty_inventory()
    try:
        with open(p, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise StoreError(f"Failed to read {p}: {e}") from e
    if raw is None:
        return empty_inventory()
    return _normalize(raw)


def write_yaml_atomic(p: Path, data: Dict) -> None:
    """Write YAML to a sibling temp file then rename it over the target."""
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{p.name}.", suffix=".tmp", dir=str(p.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
        os.replace(tmp, p)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def _write_inventory(datarepo_path: Path, data: Dict) -> Path:
    p = inventory_file(datarepo_path)
    try:
        write_yaml_atomic(p, data)
    except (OSError, yaml.YAMLError) as e:
        raise StoreError(f"Failed to write {p}: {e}") from e
    return p


@contextmanager
def transaction(datarepo_path: Path, message: Optional[str] = None) -> Iterator[Dict]:
    """Yield a mutable snapshot of the store and persist it on clean exit.

    If the block raises, nothing is written. If the block leaves the snapshot
    unchanged, nothing is written or committed either.
    """
    datarepo_path = Path(datarepo_path)
    with TXN_LOCK:
        data = read_inventory(datarepo_path)
        before = copy.deepcopy(data)
        yield data
        if data == before:
            return
        p = _write_inventory(datarepo_path, data)
        if message and git_autocommit_enabled(datarepo_path):
            git_commit_paths(datarepo_path, [p], f"[filmStock] {message}")


# -------------------------------
# Identifiers and timestamps
# -------------------------------
_CROCKFORD32 = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def _to_base32(data: bytes) -> str:
    # Crockford Base32 without padding; only used for fixed 16-byte ULIDs
    bits = 0
    value = 0
    out = []
    for b in data:
        value = (value << 8) | b
        bits += 8
        while bits >= 5:
            out.append(_CROCKFORD32[(value >> (bits - 5)) & 0x1F])
            bits -= 5
    if bits:
        out.append(_CROCKFORD32[(value << (5 - bits)) & 0x1F])
    return "".join(out)


def new_id() -> str:
    """Generate a 26-char Crockford Base32 ULID string.
    Time component is milliseconds since epoch (48 bits), plus 80 bits of randomness.
    """
    ts_ms = int(time.time() * 1000)
    ts_bytes = ts_ms.to_bytes(6, "big")
    rand_bytes = os.urandom(10)
    return _to_base32(ts_bytes + rand_bytes)[:26]


def now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


# -------------------------------
# Lookup helpers over a snapshot
# -------------------------------

def find_one(records: List[Dict], key: str, value) -> Optional[Dict]:
    for r in records:
        if r.get(key) == value:
            return r
    return None


def get_film(data: Dict, film_id: Optional[str]) -> Optional[Dict]:
    if not film_id:
        return None
    return find_one(data["films"], "id", film_id)


def get_unit(data: Dict, unit_id: Optional[str]) -> Optional[Dict]:
    if not unit_id:
        return None
    return find_one(data["units"], "id", unit_id)


def get_camera(data: Dict, name: Optional[str]) -> Optional[Dict]:
    if not name:
        return None
    return find_one(data["cameras"], "name", name)


def get_manufacturer(data: Dict, name: Optional[str]) -> Optional[Dict]:
    if name is None:
        return None
    return find_one(data["manufacturers"], "name", name)
