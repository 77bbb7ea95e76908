from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

import yaml

from .schema import IMAGE_SOURCES, OTHER_FORMAT, normalize_film_type, normalize_format
from .store import (
    get_camera,
    get_film,
    get_manufacturer,
    new_id,
    read_inventory,
    transaction,
)

logger = logging.getLogger(__name__)

CATALOG_FILE = Path(__file__).resolve().parents[2] / "data" / "catalog.yml"


# -------------------------------
# Snapshot-level helpers (used inside an open transaction)
# -------------------------------

def resolve_manufacturer(data: Dict, name: str, is_custom: bool = True) -> Dict:
    """Find a manufacturer by exact (case-sensitive) name, creating it if absent."""
    existing = get_manufacturer(data, name)
    if existing is not None:
        return existing
    m = {"name": name, "is_custom": bool(is_custom)}
    data["manufacturers"].append(m)
    return m


def resolve_camera(data: Dict, name: str) -> Dict:
    existing = get_camera(data, name)
    if existing is not None:
        return existing
    cam = {"name": name, "format": None, "custom_format": None}
    data["cameras"].append(cam)
    return cam


def films_named(data: Dict, name: str, manufacturer: str) -> List[Dict]:
    """All films sharing a display name and manufacturer, whatever their type or speed."""
    return [f for f in data["films"] if f.get("name") == name and f.get("manufacturer") == manufacturer]


def find_film(data: Dict, name: str, manufacturer: str, film_type: str, iso: int) -> Optional[Dict]:
    for f in data["films"]:
        if (
            f.get("name") == name
            and f.get("manufacturer") == manufacturer
            and f.get("type") == film_type
            and int(f.get("iso") or 0) == int(iso)
        ):
            return f
    return None


def create_film(
    data: Dict,
    name: str,
    manufacturer: str,
    film_type: str,
    iso: int,
    image: Optional[str] = None,
    image_source: Optional[str] = None,
) -> Dict:
    film = {
        "id": new_id(),
        "name": name,
        "manufacturer": manufacturer,
        "type": film_type,
        "iso": int(iso),
        "image": image,
        "image_source": image_source or ("custom" if image else "auto"),
    }
    data["films"].append(film)
    return film


def prune_empty_films(data: Dict, film_ids: Iterable[str], removed_unit_ids: Set[str]) -> List[str]:
    """Delete films from `film_ids` that no longer own any unit.

    `film_ids` must be captured before units were removed; `removed_unit_ids`
    are ignored when checking for remaining units. A film still referenced by
    a loaded or finished record is kept.
    """
    in_use = {rec.get("film") for rec in data["loaded"] + data["finished"]}
    deleted: List[str] = []
    for fid in list(dict.fromkeys(film_ids)):
        remaining = [
            u for u in data["units"]
            if u.get("film") == fid and u.get("id") not in removed_unit_ids
        ]
        if remaining or fid in in_use:
            continue
        if get_film(data, fid) is None:
            continue
        data["films"] = [f for f in data["films"] if f.get("id") != fid]
        deleted.append(fid)
    if deleted:
        logger.info("Removed %d film(s) left without units", len(deleted))
    return deleted


# -------------------------------
# Manufacturers
# -------------------------------

def load_catalog(catalog_path: Optional[Path] = None) -> List[str]:
    """Return manufacturer names from the bundled catalog."""
    p = catalog_path or CATALOG_FILE
    if not p.exists():
        return []
    with open(p, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    names = data.get("manufacturers") or []
    out: List[str] = []
    for n in names:
        s = str(n).strip()
        if s and s not in out:
            out.append(s)
    return out


def seed_manufacturers(datarepo_path: Path, catalog_path: Optional[Path] = None) -> int:
    """Insert catalog manufacturers when the manufacturer set is empty."""
    with transaction(datarepo_path, "Seed manufacturer catalog") as data:
        if data["manufacturers"]:
            return 0
        names = load_catalog(catalog_path)
        for n in names:
            data["manufacturers"].append({"name": n, "is_custom": False})
    return len(names)


def list_manufacturers(datarepo_path: Path) -> List[Dict]:
    data = read_inventory(datarepo_path)
    return sorted((dict(m) for m in data["manufacturers"]), key=lambda m: str(m.get("name", "")))


def add_manufacturer(datarepo_path: Path, name: str) -> Dict:
    name = (name or "").strip()
    if not name:
        raise ValueError("manufacturer name is required")
    with transaction(datarepo_path, f"Add manufacturer {name}") as data:
        m = resolve_manufacturer(data, name, is_custom=True)
        return dict(m)


def delete_manufacturer(datarepo_path: Path, name: str) -> bool:
    """Delete a user-added manufacturer that no film refers to."""
    with transaction(datarepo_path, f"Delete manufacturer {name}") as data:
        m = get_manufacturer(data, name)
        if m is None:
            return False
        if not m.get("is_custom"):
            logger.info("Refusing to delete catalog manufacturer %s", name)
            return False
        if any(f.get("manufacturer") == name for f in data["films"]):
            logger.info("Refusing to delete manufacturer %s: films still refer to it", name)
            return False
        data["manufacturers"] = [x for x in data["manufacturers"] if x.get("name") != name]
    return True


# -------------------------------
# Films
# -------------------------------

def list_films(datarepo_path: Path) -> List[Dict]:
    data = read_inventory(datarepo_path)
    return sorted(
        (dict(f) for f in data["films"]),
        key=lambda f: (str(f.get("manufacturer", "")), str(f.get("name", "")), int(f.get("iso") or 0)),
    )


def apply_film_image(film: Dict, image: Optional[str], source: Optional[str] = None) -> None:
    src = source or ("custom" if image else "none")
    if src not in IMAGE_SOURCES:
        raise ValueError(f"image source must be one of: {', '.join(IMAGE_SOURCES)}")
    film["image"] = image
    film["image_source"] = src


def set_film_image(datarepo_path: Path, film_id: str, image: Optional[str], source: Optional[str] = None) -> Optional[Dict]:
    with transaction(datarepo_path, f"Set image for film {film_id}") as data:
        film = get_film(data, film_id)
        if film is None:
            return None
        apply_film_image(film, image, source)
        return dict(film)


# -------------------------------
# Cameras
# -------------------------------

def list_cameras(datarepo_path: Path) -> List[Dict]:
    data = read_inventory(datarepo_path)
    return sorted((dict(c) for c in data["cameras"]), key=lambda c: str(c.get("name", "")))


def _camera_format(fmt: Optional[str], custom_format: Optional[str]):
    if not fmt:
        return None, None
    code = normalize_format(fmt)
    return code, (custom_format or None) if code == OTHER_FORMAT else None


def add_camera(datarepo_path: Path, name: str, fmt: Optional[str] = None, custom_format: Optional[str] = None) -> Dict:
    """Resolve-or-create a camera; a given default format overwrites the stored one."""
    name = (name or "").strip()
    if not name:
        raise ValueError("camera name is required")
    code, label = _camera_format(fmt, custom_format)
    with transaction(datarepo_path, f"Add camera {name}") as data:
        cam = resolve_camera(data, name)
        if code is not None:
            cam["format"] = code
            cam["custom_format"] = label
        return dict(cam)


def set_camera_format(datarepo_path: Path, name: str, fmt: Optional[str], custom_format: Optional[str] = None) -> Optional[Dict]:
    code, label = _camera_format(fmt, custom_format)
    with transaction(datarepo_path, f"Set default format for camera {name}") as data:
        cam = get_camera(data, name)
        if cam is None:
            return None
        cam["format"] = code
        cam["custom_format"] = label
        return dict(cam)


def delete_camera(datarepo_path: Path, name: str) -> bool:
    """Delete a camera unless film is loaded in it.

    Finished records keep their camera_name snapshot; their camera reference
    is cleared.
    """
    with transaction(datarepo_path, f"Delete camera {name}") as data:
        if get_camera(data, name) is None:
            return False
        if any(l.get("camera") == name for l in data["loaded"]):
            logger.info("Refusing to delete camera %s: film is loaded in it", name)
            return False
        for fin in data["finished"]:
            if fin.get("camera") == name:
                if not fin.get("camera_name"):
                    fin["camera_name"] = name
                fin["camera"] = None
        data["cameras"] = [c for c in data["cameras"] if c.get("name") != name]
    return True


def validate_film_fields(name: str, manufacturer: str, film_type: str, iso) -> tuple:
    """Normalise and validate the identity fields of a film definition."""
    name = (name or "").strip()
    manufacturer = (manufacturer or "").strip()
    if not name:
        raise ValueError("film name is required")
    if not manufacturer:
        raise ValueError("manufacturer is required")
    t = normalize_film_type(film_type)
    try:
        speed = int(iso)
    except (TypeError, ValueError):
        raise ValueError("iso must be a positive integer")
    if speed <= 0:
        raise ValueError("iso must be a positive integer")
    return name, manufacturer, t, speed
