from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from .dates import split_expiry_field
from .entities import (
    apply_film_image,
    create_film,
    films_named,
    prune_empty_films,
    resolve_manufacturer,
    validate_film_fields,
)
from .schema import EXPOSURE_FORMAT, OTHER_FORMAT, is_roll_format, normalize_format
from .store import get_film, get_unit, new_id, now_iso, read_inventory, transaction

logger = logging.getLogger(__name__)

# Marker for "field not supplied" in bulk edits, where None is a real value.
UNSET = object()


# -------------------------------
# Unit records
# -------------------------------

def _coerce_exposures(fmt: str, exposures) -> Optional[int]:
    if exposures is None or exposures == "" or fmt != EXPOSURE_FORMAT:
        return None
    try:
        n = int(exposures)
    except (TypeError, ValueError):
        raise ValueError("exposures must be an integer")
    if n <= 0:
        raise ValueError("exposures must be positive")
    return n


def _clean_comments(comments) -> Optional[str]:
    if comments is None:
        return None
    s = str(comments)
    return s if s.strip() else None


def new_unit(
    film_id: str,
    fmt: str,
    quantity: int,
    custom_format: Optional[str] = None,
    expiry_dates: Optional[List[str]] = None,
    comments: Optional[str] = None,
    frozen: bool = False,
    exposures: Optional[int] = None,
    unit_id: Optional[str] = None,
    created_at: Optional[str] = None,
) -> Dict:
    ts = now_iso()
    return {
        "id": unit_id or new_id(),
        "film": film_id,
        "format": fmt,
        "custom_format": custom_format if fmt == OTHER_FORMAT else None,
        "quantity": int(quantity),
        "expiry_dates": list(expiry_dates or []),
        "comments": comments,
        "frozen": bool(frozen),
        "exposures": exposures if fmt == EXPOSURE_FORMAT else None,
        "created_at": created_at or ts,
        "updated_at": ts,
    }


def split_roll_unit(unit: Dict) -> List[Dict]:
    """Split a multi-quantity roll unit into one unit per physical roll.

    The first roll keeps the original id so existing references stay valid;
    the rest get fresh ids. Expiry dates are handed out positionally: a single
    date goes to every roll, otherwise roll i gets dates[i] while dates last.
    Sheet-format units and units with quantity <= 1 are returned unchanged.
    """
    qty = int(unit.get("quantity") or 0)
    if not is_roll_format(unit.get("format")) or qty <= 1:
        return [unit]
    dates = list(unit.get("expiry_dates") or [])
    out: List[Dict] = []
    for i in range(qty):
        roll = dict(unit)
        roll["quantity"] = 1
        roll["id"] = unit["id"] if i == 0 else new_id()
        if len(dates) == 1:
            roll["expiry_dates"] = [dates[0]]
        elif i < len(dates):
            roll["expiry_dates"] = [dates[i]]
        else:
            roll["expiry_dates"] = []
        out.append(roll)
    return out


def replace_with_split(data: Dict, unit: Dict) -> List[Dict]:
    """Swap `unit` in the snapshot for its roll split, keeping its position."""
    rolls = split_roll_unit(unit)
    if len(rolls) == 1:
        return rolls
    idx = next(i for i, u in enumerate(data["units"]) if u is unit)
    data["units"][idx:idx + 1] = rolls
    return rolls


def _find_pool(data: Dict, film_id: str, fmt: str, custom_format: Optional[str]) -> Optional[Dict]:
    for u in data["units"]:
        if u.get("film") != film_id or u.get("format") != fmt:
            continue
        if fmt == OTHER_FORMAT and (u.get("custom_format") or None) != (custom_format or None):
            continue
        return u
    return None


def _merge_dates(existing: List[str], incoming: Iterable[str]) -> List[str]:
    out = list(existing or [])
    for d in incoming:
        if d not in out:
            out.append(d)
    return out


# -------------------------------
# Candidates (what a caller asks to add)
# -------------------------------

def normalize_candidate(candidate: Dict, allow_empty: bool = False) -> Dict:
    """Validate a stock candidate and return it in store vocabulary.

    `allow_empty` accepts quantity 0, which exports carry for rolls already
    loaded into a camera.

    Keys: name, manufacturer, type, iso, format, custom_format, quantity,
    expiry_dates (list or comma string), comments, frozen, exposures, and
    optionally id / created_at for imported records.
    """
    name, manufacturer, film_type, iso = validate_film_fields(
        candidate.get("name"), candidate.get("manufacturer"), candidate.get("type"), candidate.get("iso"),
    )
    fmt = normalize_format(str(candidate.get("format") or ""))
    try:
        quantity = int(candidate.get("quantity", 1))
    except (TypeError, ValueError):
        raise ValueError("quantity must be an integer")
    if allow_empty and quantity < 0:
        raise ValueError("quantity must not be negative")
    if not allow_empty and quantity <= 0:
        raise ValueError("quantity must be greater than zero")
    custom_format = (candidate.get("custom_format") or "").strip() or None
    return {
        "id": candidate.get("id") or None,
        "name": name,
        "manufacturer": manufacturer,
        "type": film_type,
        "iso": iso,
        "format": fmt,
        "custom_format": custom_format if fmt == OTHER_FORMAT else None,
        "quantity": quantity,
        "expiry_dates": split_expiry_field(candidate.get("expiry_dates")),
        "comments": _clean_comments(candidate.get("comments")),
        "frozen": bool(candidate.get("frozen", False)),
        "exposures": _coerce_exposures(fmt, candidate.get("exposures")),
        "created_at": candidate.get("created_at") or None,
    }


def place_candidate(data: Dict, film: Dict, cand: Dict) -> List[str]:
    """Create or merge unit records for a normalised candidate inside a snapshot.

    Returns the ids of units created or updated.
    """
    unit_id = cand.get("id")
    if unit_id and get_unit(data, unit_id) is not None:
        logger.warning("Unit id %s already exists; assigning a new id", unit_id)
        unit_id = None

    if is_roll_format(cand["format"]):
        unit = new_unit(
            film["id"], cand["format"], cand["quantity"],
            expiry_dates=cand["expiry_dates"], comments=cand["comments"],
            frozen=cand["frozen"], exposures=cand["exposures"],
            unit_id=unit_id, created_at=cand.get("created_at"),
        )
        rolls = split_roll_unit(unit)
        data["units"].extend(rolls)
        return [r["id"] for r in rolls]

    pool = _find_pool(data, film["id"], cand["format"], cand["custom_format"])
    if pool is not None:
        pool["quantity"] = int(pool.get("quantity") or 0) + cand["quantity"]
        pool["expiry_dates"] = _merge_dates(pool.get("expiry_dates") or [], cand["expiry_dates"])
        if cand["comments"]:
            pool["comments"] = cand["comments"]
        pool["frozen"] = cand["frozen"]
        pool["updated_at"] = now_iso()
        return [pool["id"]]

    unit = new_unit(
        film["id"], cand["format"], cand["quantity"], custom_format=cand["custom_format"],
        expiry_dates=cand["expiry_dates"], comments=cand["comments"], frozen=cand["frozen"],
        unit_id=unit_id, created_at=cand.get("created_at"),
    )
    data["units"].append(unit)
    return [unit["id"]]


def add_unit_to(
    data: Dict,
    candidate: Dict,
    image: Optional[str] = None,
    image_source: Optional[str] = None,
    allow_empty: bool = False,
) -> Dict:
    """Snapshot-level add; see add_unit."""
    cand = normalize_candidate(candidate, allow_empty=allow_empty)
    resolve_manufacturer(data, cand["manufacturer"], is_custom=True)

    # Name and manufacturer first; type and speed decide whether it is the same film
    film = None
    for f in films_named(data, cand["name"], cand["manufacturer"]):
        if f.get("type") == cand["type"] and int(f.get("iso") or 0) == cand["iso"]:
            film = f
            break
    merged = film is not None
    if merged:
        if image is not None:
            apply_film_image(film, image, image_source)
    else:
        film = create_film(
            data, cand["name"], cand["manufacturer"], cand["type"], cand["iso"],
            image=image, image_source=image_source,
        )
    unit_ids = place_candidate(data, film, cand)
    return {"merged": merged, "film": dict(film), "units": unit_ids}


# -------------------------------
# Public API
# -------------------------------

def add_unit(
    datarepo_path: Path,
    candidate: Dict,
    image: Optional[str] = None,
    image_source: Optional[str] = None,
) -> Dict:
    """Add stock to the inventory.

    Roll formats become one unit per roll; sheet formats merge into an
    existing pool of the same film and format. The result's `merged` flag is
    True when an existing film definition was reused.
    """
    label = f"{candidate.get('manufacturer')} {candidate.get('name')}"
    with transaction(datarepo_path, f"Add stock {label}") as data:
        res = add_unit_to(data, candidate, image=image, image_source=image_source)
    logger.info("Added %s (%d unit record(s), merged=%s)", label, len(res["units"]), res["merged"])
    return res


def list_units(datarepo_path: Path, film_id: Optional[str] = None) -> List[Dict]:
    data = read_inventory(datarepo_path)
    return [dict(u) for u in data["units"] if film_id is None or u.get("film") == film_id]


def get_unit_record(datarepo_path: Path, unit_id: str) -> Optional[Dict]:
    u = get_unit(read_inventory(datarepo_path), unit_id)
    return dict(u) if u is not None else None


def remove_units(data: Dict, unit_ids: Set[str]) -> List[str]:
    """Remove units from a snapshot and prune films left empty.

    Films to check are captured before anything is removed.
    """
    targets = [u for u in data["units"] if u.get("id") in unit_ids]
    if not targets:
        return []
    films_to_check = [u.get("film") for u in targets]
    removed = {u["id"] for u in targets}
    data["units"] = [u for u in data["units"] if u.get("id") not in removed]
    for rec in data["loaded"] + data["finished"]:
        if rec.get("unit") in removed:
            rec["unit"] = None
    prune_empty_films(data, films_to_check, removed)
    return sorted(removed)


def _matches(film: Optional[Dict], crit: Dict) -> bool:
    if film is None:
        return False
    if film.get("name") != crit.get("name") or film.get("manufacturer") != crit.get("manufacturer"):
        return False
    if crit.get("type") is not None and film.get("type") != crit.get("type"):
        return False
    if crit.get("iso") is not None and int(film.get("iso") or 0) != int(crit.get("iso")):
        return False
    return True


def delete_units(datarepo_path: Path, criteria: List[Dict]) -> int:
    """Delete every unit whose film matches one of the (name, manufacturer, type, iso) criteria.

    A criterion may also carry `format` to restrict deletion to one format.
    Films left without units are deleted too. Returns the number of units removed.
    """
    with transaction(datarepo_path, "Delete stock") as data:
        ids: Set[str] = set()
        for u in data["units"]:
            film = get_film(data, u.get("film"))
            for crit in criteria or []:
                if not _matches(film, crit):
                    continue
                if crit.get("format") and u.get("format") != normalize_format(crit["format"]):
                    continue
                ids.add(u["id"])
                break
        removed = remove_units(data, ids)
    return len(removed)


def delete_unit(datarepo_path: Path, unit_id: str) -> bool:
    with transaction(datarepo_path, f"Delete unit {unit_id}") as data:
        removed = remove_units(data, {unit_id})
    return bool(removed)


def _normalize_edit_fields(fmt: str, expiry_dates, frozen, exposures, comments) -> Dict:
    fields: Dict = {}
    if expiry_dates is not UNSET:
        fields["expiry_dates"] = split_expiry_field(expiry_dates)
    if frozen is not UNSET:
        fields["frozen"] = bool(frozen)
    if exposures is not UNSET:
        fields["exposures"] = _coerce_exposures(fmt, exposures)
    if comments is not UNSET:
        fields["comments"] = _clean_comments(comments)
    return fields


def update_units_by_id(
    datarepo_path: Path,
    unit_ids: List[str],
    expiry_dates=UNSET,
    frozen=UNSET,
    exposures=UNSET,
    comments=UNSET,
) -> int:
    """Overwrite the supplied fields on exactly the named units. Returns how many were updated."""
    wanted = set(unit_ids or [])
    with transaction(datarepo_path, f"Update {len(wanted)} unit(s)") as data:
        count = 0
        ts = now_iso()
        for u in data["units"]:
            if u.get("id") not in wanted:
                continue
            u.update(_normalize_edit_fields(u.get("format"), expiry_dates, frozen, exposures, comments))
            u["updated_at"] = ts
            count += 1
    return count


def add_rolls(
    datarepo_path: Path,
    count: int,
    template_unit_id: str,
    expiry_dates=None,
    frozen: bool = False,
    exposures=None,
    comments=None,
) -> List[str]:
    """Add `count` new rolls of the same film and format as a template unit."""
    try:
        count = int(count)
    except (TypeError, ValueError):
        raise ValueError("count must be an integer")
    if count <= 0:
        raise ValueError("count must be greater than zero")
    with transaction(datarepo_path, f"Add {count} roll(s) like {template_unit_id}") as data:
        template = get_unit(data, template_unit_id)
        if template is None:
            return []
        fmt = template.get("format")
        if not is_roll_format(fmt):
            raise ValueError(f"format {fmt} is not a roll format")
        fields = _normalize_edit_fields(fmt, expiry_dates, frozen, exposures, comments)
        ids: List[str] = []
        for _ in range(count):
            unit = new_unit(
                template["film"], fmt, 1, custom_format=template.get("custom_format"),
                expiry_dates=fields["expiry_dates"], comments=fields["comments"],
                frozen=fields["frozen"], exposures=fields["exposures"],
            )
            data["units"].append(unit)
            ids.append(unit["id"])
    return ids


def update_unit(
    datarepo_path: Path,
    unit_id: str,
    quantity=UNSET,
    fmt=UNSET,
    custom_format=UNSET,
    expiry_dates=UNSET,
    frozen=UNSET,
    exposures=UNSET,
    comments=UNSET,
) -> Optional[List[Dict]]:
    """Edit a single unit. A roll unit edited to quantity > 1 is split into rolls.

    Returns the resulting unit records, or None if the unit does not exist.
    """
    with transaction(datarepo_path, f"Edit unit {unit_id}") as data:
        unit = get_unit(data, unit_id)
        if unit is None:
            return None
        new_fmt = unit.get("format") if fmt is UNSET else normalize_format(fmt)
        if quantity is not UNSET:
            try:
                q = int(quantity)
            except (TypeError, ValueError):
                raise ValueError("quantity must be an integer")
            if q < 0:
                raise ValueError("quantity must not be negative")
        fields = _normalize_edit_fields(new_fmt, expiry_dates, frozen, exposures, comments)
        if quantity is not UNSET:
            fields["quantity"] = q
        fields["format"] = new_fmt
        if new_fmt != OTHER_FORMAT:
            fields["custom_format"] = None
        elif custom_format is not UNSET:
            fields["custom_format"] = (custom_format or "").strip() or None
        if new_fmt != EXPOSURE_FORMAT:
            fields["exposures"] = None
        unit.update(fields)
        unit["updated_at"] = now_iso()
        result = replace_with_split(data, unit)
        return [dict(u) for u in result]
