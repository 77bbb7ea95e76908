from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from .config import DATAREPO_CONFIG_FILENAME, INVENTORY_FILENAME
from .dates import parse_expiry_date
from .schema import FILM_TYPES, FINISHED_STATUSES, FORMATS, is_roll_format
from .state import FILMS_FINISHED, read_state
from .store import StoreError, read_inventory


def _issue(issues: List[Dict], severity: str, code: str, path: str, message: str) -> None:
    issues.append({"severity": severity, "code": code, "path": path, "message": message})


def _scan_config(repo: Path, issues: List[Dict]) -> None:
    if not (repo / DATAREPO_CONFIG_FILENAME).exists():
        _issue(issues, "warning", "DR_CONFIG_MISSING", DATAREPO_CONFIG_FILENAME,
               f"Missing {DATAREPO_CONFIG_FILENAME}; defaults are in effect")


def _scan_films(data: Dict, issues: List[Dict]) -> None:
    manufacturers = {m.get("name") for m in data["manufacturers"]}
    with_units = {u.get("film") for u in data["units"]}
    with_units.update(rec.get("film") for rec in data["loaded"] + data["finished"])
    seen = set()
    for f in data["films"]:
        fid = f.get("id")
        path = f"films/{fid}"
        if fid in seen:
            _issue(issues, "error", "FILM_ID_DUPLICATE", path, "Duplicate film id")
        seen.add(fid)
        if f.get("manufacturer") not in manufacturers:
            _issue(issues, "error", "FILM_MFR_MISSING", path,
                   f"Manufacturer '{f.get('manufacturer')}' does not exist")
        if f.get("type") not in FILM_TYPES:
            _issue(issues, "error", "FILM_TYPE_INVALID", path, f"Unknown film type '{f.get('type')}'")
        try:
            iso_ok = int(f.get("iso") or 0) > 0
        except (TypeError, ValueError):
            iso_ok = False
        if not iso_ok:
            _issue(issues, "error", "FILM_ISO_INVALID", path, "Film speed must be a positive integer")
        if fid not in with_units:
            _issue(issues, "warning", "FILM_WITHOUT_UNITS", path, "Film has no stock units and nothing loaded or finished")


def _scan_units(data: Dict, issues: List[Dict]) -> None:
    film_ids = {f.get("id") for f in data["films"]}
    seen = set()
    for u in data["units"]:
        uid = u.get("id")
        path = f"units/{uid}"
        if uid in seen:
            _issue(issues, "error", "UNIT_ID_DUPLICATE", path, "Duplicate unit id")
        seen.add(uid)
        if u.get("film") not in film_ids:
            _issue(issues, "error", "UNIT_FILM_MISSING", path, f"Film '{u.get('film')}' does not exist")
        fmt = u.get("format")
        if fmt not in FORMATS:
            _issue(issues, "error", "UNIT_FORMAT_INVALID", path, f"Unknown format '{fmt}'")
        try:
            qty = int(u.get("quantity") or 0)
        except (TypeError, ValueError):
            _issue(issues, "error", "UNIT_QTY_INVALID", path, "Quantity is not an integer")
            continue
        if qty < 0:
            _issue(issues, "error", "UNIT_QTY_NEGATIVE", path, f"Negative quantity {qty}")
        if is_roll_format(fmt) and qty > 1:
            _issue(issues, "error", "UNIT_ROLL_NOT_SPLIT", path,
                   f"Roll-format unit holds {qty} rolls; expected one unit per roll")
        for d in u.get("expiry_dates") or []:
            if parse_expiry_date(str(d)) is None:
                _issue(issues, "warning", "UNIT_EXPIRY_UNPARSEABLE", path, f"Expiry date '{d}' cannot be parsed")


def _scan_loaded(data: Dict, issues: List[Dict]) -> None:
    unit_ids = {u.get("id") for u in data["units"]}
    cameras = {c.get("name") for c in data["cameras"]}
    for rec in data["loaded"]:
        path = f"loaded/{rec.get('id')}"
        if rec.get("unit") not in unit_ids:
            _issue(issues, "warning", "LOADED_UNIT_MISSING", path,
                   "Source unit no longer exists; undoing this load cannot restore stock")
        if rec.get("camera") not in cameras:
            _issue(issues, "error", "LOADED_CAMERA_MISSING", path, f"Camera '{rec.get('camera')}' does not exist")
        if int(rec.get("quantity") or 0) <= 0:
            _issue(issues, "error", "LOADED_QTY_INVALID", path, "Loaded quantity must be positive")


def _scan_finished(data: Dict, issues: List[Dict]) -> None:
    for rec in data["finished"]:
        path = f"finished/{rec.get('id')}"
        if not rec.get("camera_name"):
            _issue(issues, "warning", "FINISHED_CAMERA_NAME_MISSING", path, "No camera name recorded")
        if rec.get("status") not in FINISHED_STATUSES:
            _issue(issues, "error", "FINISHED_STATUS_INVALID", path, f"Unknown status '{rec.get('status')}'")


def _scan_state(repo: Path, issues: List[Dict]) -> None:
    try:
        state = read_state(repo)
    except StoreError as e:
        _issue(issues, "error", "STATE_INVALID", "state.yml", str(e))
        return
    raw = state.get(FILMS_FINISHED, 0)
    try:
        ok = int(raw or 0) >= 0
    except (TypeError, ValueError):
        ok = False
    if not ok:
        _issue(issues, "error", "STATE_COUNTER_INVALID", "state.yml",
               f"{FILMS_FINISHED} must be a non-negative integer, got {raw!r}")


def validate_repo(repo_path: Path) -> Dict:
    """Check a datarepo for structural and referential problems.

    Returns a dict: { errors: int, warnings: int, issues: [ {severity, code, path, message} ] }
    """
    repo_path = Path(repo_path)
    issues: List[Dict] = []
    _scan_config(repo_path, issues)
    try:
        data = read_inventory(repo_path)
    except StoreError as e:
        _issue(issues, "error", "INVENTORY_INVALID", INVENTORY_FILENAME, str(e))
    else:
        _scan_films(data, issues)
        _scan_units(data, issues)
        _scan_loaded(data, issues)
        _scan_finished(data, issues)
    _scan_state(repo_path, issues)

    errors = sum(1 for i in issues if i.get("severity") == "error")
    warnings = sum(1 for i in issues if i.get("severity") == "warning")
    return {"errors": errors, "warnings": warnings, "issues": issues}
