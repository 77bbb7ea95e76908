from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from . import notify
from .entities import resolve_camera
from .schema import STATUS_TO_DEVELOP, is_roll_format, normalize_format, validate_status
from .state import adjust_films_finished
from .store import find_one, get_camera, get_film, get_unit, new_id, now_iso, read_inventory, transaction

logger = logging.getLogger(__name__)

# -------------------------------
# Stock -> Loaded -> Finished, with Finished -> Loaded (reload) and
# Loaded -> Stock (mistaken load) as the two ways back.
#
# Quantity bookkeeping:
#   load     roll: source unit goes to 0    sheet: source unit -= loaded
#   unload   never gives quantity back; adds to the lifetime finished counter
#   delete   roll: source unit back to 1    sheet: source unit += loaded
#   reload   takes the finished amount back off the lifetime counter
# -------------------------------


def effective_iso(record: Dict, film: Optional[Dict]) -> int:
    """Speed the film is shot at: the override if one was set, else the film's native speed."""
    if record.get("shot_at_iso"):
        return int(record["shot_at_iso"])
    return int((film or {}).get("iso") or 0)


def _describe(data: Dict, rec: Dict) -> Dict:
    film = get_film(data, rec.get("film"))
    out = dict(rec)
    out["film_name"] = (film or {}).get("name")
    out["manufacturer"] = (film or {}).get("manufacturer")
    out["iso"] = (film or {}).get("iso")
    out["effective_iso"] = effective_iso(rec, film)
    return out


def _notify(action: str, **payload) -> None:
    notify.loaded_films_changed(action=action, **payload)


def load_unit(
    datarepo_path: Path,
    unit_id: str,
    fmt: str,
    camera_name: str,
    quantity: int = 1,
    shot_at_iso: Optional[int] = None,
) -> Optional[Dict]:
    """Load film from a stock unit into a camera.

    Returns the new loaded record, or None if any precondition fails (unknown
    unit, format mismatch, not enough quantity, bad camera or speed). Nothing
    is written on failure.
    """
    try:
        fmt = normalize_format(fmt)
        quantity = int(quantity)
        shot = int(shot_at_iso) if shot_at_iso not in (None, "") else None
    except (TypeError, ValueError):
        return None
    camera_name = (camera_name or "").strip()
    if not camera_name or quantity <= 0 or (shot is not None and shot <= 0):
        return None

    with transaction(datarepo_path, f"Load unit {unit_id} into {camera_name}") as data:
        unit = get_unit(data, unit_id)
        if unit is None or unit.get("format") != fmt:
            return None
        available = int(unit.get("quantity") or 0)
        if available <= 0 or available < quantity:
            return None
        film = get_film(data, unit.get("film"))
        if film is None:
            return None

        camera = resolve_camera(data, camera_name)
        if shot is not None and shot == int(film.get("iso") or 0):
            shot = None

        if is_roll_format(fmt):
            unit["quantity"] = 0
            loaded_qty = 1
        else:
            unit["quantity"] = max(0, available - quantity)
            loaded_qty = quantity
        unit["updated_at"] = now_iso()

        loaded = {
            "id": new_id(),
            "unit": unit["id"],
            "film": film["id"],
            "format": fmt,
            "custom_format": unit.get("custom_format"),
            "camera": camera["name"],
            "quantity": loaded_qty,
            "loaded_at": now_iso(),
            "shot_at_iso": shot,
        }
        data["loaded"].append(loaded)

    logger.info("Loaded %s x%d into %s", unit_id, loaded_qty, camera_name)
    _notify("load", loaded=loaded["id"])
    return dict(loaded)


def load(
    datarepo_path: Path,
    unit_id: str,
    fmt: str,
    camera_name: str,
    quantity: int = 1,
    shot_at_iso: Optional[int] = None,
) -> bool:
    return load_unit(datarepo_path, unit_id, fmt, camera_name, quantity, shot_at_iso) is not None


def unload(datarepo_path: Path, loaded_id: str, quantity: Optional[int] = None) -> Optional[Dict]:
    """Finish exposed film, fully or (for sheets) partially.

    Without `quantity` the whole loaded amount is finished and the loaded
    record goes away. With a smaller `quantity` only that part is finished
    and the rest stays loaded. Rolls always finish whole. Returns the new
    finished record, or None if the loaded record does not exist.

    The lifetime counter is written inside the same transaction, ahead of
    inventory.yml; a failed state.yml write leaves both files untouched.
    """
    if quantity is not None:
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            raise ValueError("quantity must be an integer")
        if quantity <= 0:
            raise ValueError("quantity must be greater than zero")

    with transaction(datarepo_path, f"Unload {loaded_id}") as data:
        loaded = find_one(data["loaded"], "id", loaded_id)
        if loaded is None:
            return None
        loaded_qty = int(loaded.get("quantity") or 0)
        if quantity is None or is_roll_format(loaded.get("format")):
            finished_qty = loaded_qty
        else:
            finished_qty = min(quantity, loaded_qty)

        camera = get_camera(data, loaded.get("camera"))
        camera_name = camera["name"] if camera is not None else loaded.get("camera")

        if finished_qty < loaded_qty:
            loaded["quantity"] = loaded_qty - finished_qty
        else:
            data["loaded"] = [l for l in data["loaded"] if l.get("id") != loaded_id]

        finished = {
            "id": new_id(),
            "loaded_id": loaded_id,
            "unit": loaded.get("unit"),
            "film": loaded.get("film"),
            "format": loaded.get("format"),
            "custom_format": loaded.get("custom_format"),
            "camera": loaded.get("camera"),
            "camera_name": camera_name,
            "quantity": finished_qty,
            "loaded_at": loaded.get("loaded_at"),
            "finished_at": now_iso(),
            "shot_at_iso": loaded.get("shot_at_iso"),
            "status": STATUS_TO_DEVELOP,
        }
        data["finished"].append(finished)
        # Counter first: if state.yml cannot be written the unload is not saved either
        adjust_films_finished(datarepo_path, finished_qty)

    logger.info("Unloaded %s (%d finished)", loaded_id, finished_qty)
    _notify("unload", loaded=loaded_id, finished=finished["id"])
    return dict(finished)


def delete_loaded_unit(datarepo_path: Path, loaded_id: str) -> bool:
    """Undo a mistaken load: give the quantity back to the source unit, record nothing as finished."""
    with transaction(datarepo_path, f"Undo load {loaded_id}") as data:
        loaded = find_one(data["loaded"], "id", loaded_id)
        if loaded is None:
            return False
        unit = get_unit(data, loaded.get("unit"))
        if unit is None:
            logger.warning("Source unit of %s no longer exists; nothing to restore", loaded_id)
        elif is_roll_format(unit.get("format")):
            unit["quantity"] = 1
            unit["updated_at"] = now_iso()
        else:
            unit["quantity"] = int(unit.get("quantity") or 0) + int(loaded.get("quantity") or 0)
            unit["updated_at"] = now_iso()
        data["loaded"] = [l for l in data["loaded"] if l.get("id") != loaded_id]

    _notify("delete", loaded=loaded_id)
    return True


def reload(datarepo_path: Path, finished_id: str) -> Optional[Dict]:
    """Turn a finished record back into a loaded one (undo of unload)."""
    with transaction(datarepo_path, f"Reload {finished_id}") as data:
        fin = find_one(data["finished"], "id", finished_id)
        if fin is None:
            return None
        camera_name = fin.get("camera") or fin.get("camera_name")
        camera = resolve_camera(data, camera_name) if camera_name else None
        loaded_id = fin.get("loaded_id")
        if not loaded_id or find_one(data["loaded"], "id", loaded_id) is not None:
            loaded_id = new_id()
        loaded = {
            "id": loaded_id,
            "unit": fin.get("unit"),
            "film": fin.get("film"),
            "format": fin.get("format"),
            "custom_format": fin.get("custom_format"),
            "camera": camera["name"] if camera is not None else None,
            "quantity": int(fin.get("quantity") or 0),
            "loaded_at": fin.get("loaded_at"),
            "shot_at_iso": fin.get("shot_at_iso"),
        }
        data["loaded"].append(loaded)
        data["finished"] = [f for f in data["finished"] if f.get("id") != finished_id]
        adjust_films_finished(datarepo_path, -loaded["quantity"])

    _notify("reload", loaded=loaded["id"], finished=finished_id)
    return dict(loaded)


def update_status(datarepo_path: Path, finished_id: str, status: str) -> Optional[Dict]:
    """Set the development status of a finished record; any status may follow any other."""
    validate_status(status)
    with transaction(datarepo_path, f"Set status of {finished_id} to {status}") as data:
        fin = find_one(data["finished"], "id", finished_id)
        if fin is None:
            return None
        fin["status"] = status
    _notify("status", finished=finished_id)
    return dict(fin)


def list_loaded(datarepo_path: Path) -> List[Dict]:
    """Loaded film, most recently loaded first."""
    data = read_inventory(datarepo_path)
    recs = [_describe(data, l) for l in data["loaded"]]
    return sorted(recs, key=lambda r: str(r.get("loaded_at") or ""), reverse=True)


def list_finished(datarepo_path: Path, status: Optional[str] = None) -> List[Dict]:
    """Finished film, most recently finished first."""
    if status is not None:
        validate_status(status)
    data = read_inventory(datarepo_path)
    recs = [
        _describe(data, f) for f in data["finished"]
        if status is None or (f.get("status") or STATUS_TO_DEVELOP) == status
    ]
    return sorted(recs, key=lambda r: str(r.get("finished_at") or ""), reverse=True)
