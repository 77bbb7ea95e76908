from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .dates import any_expired
from .schema import FORMATS, OTHER_FORMAT, format_display_name, is_roll_format, quantity_unit
from .store import get_film, read_inventory


def is_unit_expired(unit: Dict, today: Optional[date] = None) -> bool:
    """True if any expiry date of the unit ended before today."""
    return any_expired(unit.get("expiry_dates") or [], today)


def _format_sort_key(key: Tuple[str, str]) -> Tuple[int, str]:
    fmt, label = key
    idx = FORMATS.index(fmt) if fmt in FORMATS else len(FORMATS)
    return idx, label


def _roll_bucket(fmt: str, units: List[Dict], today: Optional[date]) -> Dict:
    dates: List[str] = []
    for u in units:
        for d in u.get("expiry_dates") or []:
            if d not in dates:
                dates.append(d)
    comments = next((u.get("comments") for u in units if (u.get("comments") or "").strip()), None)
    frozen_count = sum(1 for u in units if u.get("frozen"))
    exposures = next((u.get("exposures") for u in units if u.get("exposures")), None)
    return {
        "id": units[0]["id"],
        "format": fmt,
        "format_name": format_display_name(fmt),
        "custom_format": None,
        "unit": quantity_unit(fmt),
        "quantity": sum(int(u.get("quantity") or 0) for u in units),
        "expiry_dates": dates,
        "is_frozen": frozen_count > 0,
        "frozen_count": frozen_count,
        "expired_count": sum(1 for u in units if is_unit_expired(u, today)),
        "comments": comments,
        "exposures": exposures,
        "member_ids": [u["id"] for u in units],
    }


def _pool_entry(unit: Dict, today: Optional[date]) -> Dict:
    fmt = unit.get("format")
    qty = int(unit.get("quantity") or 0)
    frozen = bool(unit.get("frozen"))
    return {
        "id": unit["id"],
        "format": fmt,
        "format_name": format_display_name(fmt, unit.get("custom_format")),
        "custom_format": unit.get("custom_format"),
        "unit": quantity_unit(fmt),
        "quantity": qty,
        "expiry_dates": list(unit.get("expiry_dates") or []),
        "is_frozen": frozen,
        "frozen_count": qty if frozen else 0,
        "expired_count": qty if is_unit_expired(unit, today) else 0,
        "comments": unit.get("comments"),
        "exposures": None,
        "member_ids": [unit["id"]],
    }


def build_grouped_view(data: Dict, today: Optional[date] = None) -> List[Dict]:
    """Project raw units into one card per film product, broken down by format.

    Rolls of one format are aggregated into a single entry; each sheet pool
    (and each "Other" unit) stays its own entry. Cards are ordered by
    manufacturer, then film name.
    """
    groups: Dict[tuple, Dict] = {}
    buckets: Dict[tuple, Dict[Tuple[str, str], List[Dict]]] = {}
    for unit in data["units"]:
        film = get_film(data, unit.get("film"))
        if film is None:
            continue
        key = (film.get("name"), film.get("manufacturer"), film.get("type"), int(film.get("iso") or 0))
        if key not in groups:
            groups[key] = {
                "id": unit["id"],
                "film_id": film["id"],
                "name": film.get("name"),
                "manufacturer": film.get("manufacturer"),
                "type": film.get("type"),
                "iso": int(film.get("iso") or 0),
                "image": film.get("image"),
                "image_source": film.get("image_source"),
                "formats": [],
            }
            buckets[key] = {}
        fmt = unit.get("format")
        label = (unit.get("custom_format") or "") if fmt == OTHER_FORMAT else ""
        buckets[key].setdefault((fmt, label), []).append(unit)

    for key, group in groups.items():
        formats: List[Dict] = []
        for fkey in sorted(buckets[key], key=_format_sort_key):
            members = buckets[key][fkey]
            if is_roll_format(fkey[0]):
                formats.append(_roll_bucket(fkey[0], members, today))
            else:
                formats.extend(_pool_entry(u, today) for u in members)
        group["formats"] = formats
        group["total_quantity"] = sum(f["quantity"] for f in formats)

    return sorted(
        groups.values(),
        key=lambda g: (str(g["manufacturer"]), str(g["name"]), g["iso"], str(g["type"])),
    )


def grouped_view(datarepo_path: Path, today: Optional[date] = None) -> List[Dict]:
    """Grouped view computed fresh from the current store."""
    return build_grouped_view(read_inventory(datarepo_path), today)
