from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .config import LEGACY_JSON_FILENAME
from .dates import split_expiry_field
from .entities import create_film, find_film, resolve_manufacturer, seed_manufacturers
from .inventory import new_unit, replace_with_split
from .schema import is_roll_format, match_film_type, match_format
from .store import get_camera, get_unit, read_inventory, transaction

logger = logging.getLogger(__name__)

# -------------------------------
# One-time data migrations
#   - Applied names are kept in inventory.yml under meta.migrations, written in
#     the same atomic replace as the data they change.
#   - A migration is marked applied even when it touched nothing.
#   - Order is fixed; run at startup before anything reads or writes stock.
# -------------------------------


def _legacy_records(datarepo_path: Path) -> List[Dict]:
    p = Path(datarepo_path) / LEGACY_JSON_FILENAME
    if not p.exists():
        return []
    try:
        with open(p, encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Could not read legacy %s: %s", LEGACY_JSON_FILENAME, e)
        return []
    if isinstance(raw, dict):
        raw = raw.get("filmstocks")
    return [r for r in (raw or []) if isinstance(r, dict)]


def migrate_legacy_json(data: Dict, datarepo_path: Path) -> int:
    """Bring records from a pre-store filmstocks.json into the store, ids intact."""
    count = 0
    for i, rec in enumerate(_legacy_records(datarepo_path)):
        name = str(rec.get("name") or "").strip()
        manufacturer = str(rec.get("manufacturer") or "").strip()
        if not name or not manufacturer:
            logger.warning("Legacy record %d skipped: missing manufacturer or film name", i + 1)
            continue
        film_type = match_film_type(rec.get("type"), default=None)
        fmt, label = match_format(str(rec.get("format") or ""))
        try:
            iso = int(rec.get("filmSpeed") or 0)
            quantity = int(rec.get("quantity") or 0)
        except (TypeError, ValueError):
            logger.warning("Legacy record %d skipped: non-numeric speed or quantity", i + 1)
            continue
        if film_type is None or quantity < 0:
            logger.warning("Legacy record %d skipped: bad type or quantity", i + 1)
            continue
        unit_id = rec.get("id")
        if unit_id and get_unit(data, unit_id) is not None:
            continue

        resolve_manufacturer(data, manufacturer, is_custom=True)
        film = find_film(data, name, manufacturer, film_type, iso)
        if film is None:
            film = create_film(data, name, manufacturer, film_type, iso)
        unit = new_unit(
            film["id"], fmt, quantity, custom_format=label,
            expiry_dates=split_expiry_field(rec.get("expireDate")),
            comments=rec.get("comments") or None,
            unit_id=unit_id, created_at=rec.get("createdAt"),
        )
        if rec.get("updatedAt"):
            unit["updated_at"] = rec["updatedAt"]
        data["units"].append(unit)
        count += 1
    return count


def migrate_roll_centric(data: Dict, datarepo_path: Path) -> int:
    """Split every roll-format unit holding more than one roll into single rolls."""
    count = 0
    for unit in list(data["units"]):
        if is_roll_format(unit.get("format")) and int(unit.get("quantity") or 0) > 1:
            replace_with_split(data, unit)
            count += 1
    return count


def migrate_finished_camera_names(data: Dict, datarepo_path: Path) -> int:
    """Copy the camera name into finished records that lack the snapshot.

    Records whose camera is already gone stay without a name.
    """
    count = 0
    for fin in data["finished"]:
        if fin.get("camera_name"):
            continue
        cam = get_camera(data, fin.get("camera"))
        if cam is None:
            continue
        fin["camera_name"] = cam["name"]
        count += 1
    return count


MIGRATIONS: List[Tuple[str, Callable[[Dict, Path], int]]] = [
    ("legacy_json_import", migrate_legacy_json),
    ("roll_centric_units", migrate_roll_centric),
    ("finished_camera_names", migrate_finished_camera_names),
]


def applied_migrations(datarepo_path: Path) -> List[str]:
    return list(read_inventory(datarepo_path)["meta"].get("migrations") or [])


def run_migrations(datarepo_path: Path, migrations: Optional[List[Tuple[str, Callable]]] = None) -> Dict[str, int]:
    """Run every migration not yet applied, in order.

    Returns {name: records touched} for the migrations that ran this time.
    """
    ran: Dict[str, int] = {}
    for name, fn in migrations or MIGRATIONS:
        with transaction(datarepo_path, f"Migration {name}") as data:
            done = data["meta"]["migrations"]
            if name in done:
                continue
            touched = fn(data, datarepo_path)
            done.append(name)
        ran[name] = touched
        logger.info("Migration %s applied (%d record(s))", name, touched)
    return ran


def startup(datarepo_path: Path, catalog_path: Optional[Path] = None) -> Dict[str, int]:
    """Prepare a datarepo for use: seed the catalog, then run pending migrations."""
    seed_manufacturers(datarepo_path, catalog_path)
    return run_migrations(datarepo_path)
