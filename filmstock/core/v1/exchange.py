from __future__ import annotations

import csv
import io
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ... import __version__
from .dates import format_expiry_date, split_expiry_field
from .inventory import add_unit_to
from .schema import OTHER_FORMAT, format_display_name, match_film_type, match_format
from .store import get_film, read_inventory, transaction

logger = logging.getLogger(__name__)

CSV_SECTION = "# INVENTORY"
CSV_HEADERS = [
    "Manufacturer", "Film", "Type", "ISO", "Format", "Qty",
    "Expiry", "Frozen", "Exposures", "Comments", "Added",
]
# Optional export keys are left out entirely when they have no value.
_OPTIONAL_KEYS = ("customFormat", "expiryDate", "exposures", "comments", "addedAt")


class ImportFormatError(ValueError):
    """An import file could not be understood at all."""


# -------------------------------
# Export
# -------------------------------

def _export_record(data: Dict, unit: Dict) -> Dict:
    film = get_film(data, unit.get("film")) or {}
    dates = unit.get("expiry_dates") or []
    rec = {
        "manufacturer": film.get("manufacturer") or "",
        "name": film.get("name") or "",
        "type": film.get("type") or "",
        "iso": int(film.get("iso") or 0),
        "format": format_display_name(unit.get("format")),
        "customFormat": unit.get("custom_format"),
        "quantity": int(unit.get("quantity") or 0),
        "expiryDate": ", ".join(format_expiry_date(d) for d in dates) if dates else None,
        "isFrozen": bool(unit.get("frozen")),
        "exposures": unit.get("exposures"),
        "comments": unit.get("comments"),
        "addedAt": unit.get("created_at"),
    }
    for k in _OPTIONAL_KEYS:
        if rec.get(k) is None:
            rec.pop(k)
    return rec


def build_export_payload(data: Dict, exported_at: Optional[str] = None) -> Dict:
    records = [
        _export_record(data, u) for u in data["units"]
        if int(u.get("quantity") or 0) >= 0
    ]
    records.sort(key=lambda r: r["manufacturer"] + r["name"])
    return {
        "exportedAt": exported_at or datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "appVersion": __version__,
        "inventory": records,
    }


def payload_to_json(payload: Dict) -> str:
    return json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)


def payload_to_csv(payload: Dict) -> str:
    buf = io.StringIO()
    buf.write(CSV_SECTION + "\n")
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for r in payload["inventory"]:
        writer.writerow([
            r["manufacturer"],
            r["name"],
            r["type"],
            str(r["iso"]),
            r.get("customFormat") or r["format"],
            str(r["quantity"]),
            r.get("expiryDate") or "",
            "Yes" if r["isFrozen"] else "No",
            "" if r.get("exposures") is None else str(r["exposures"]),
            r.get("comments") or "",
            r.get("addedAt") or "",
        ])
    return buf.getvalue()


def export_inventory(datarepo_path: Path, fmt: str = "json") -> str:
    """Serialise the whole inventory as JSON or CSV text."""
    payload = build_export_payload(read_inventory(datarepo_path))
    if fmt == "json":
        return payload_to_json(payload)
    if fmt == "csv":
        return payload_to_csv(payload)
    raise ValueError(f"Unsupported export format: {fmt}. Use json or csv.")


# -------------------------------
# Import
# -------------------------------

def _to_int(value, default: Optional[int]) -> Optional[int]:
    if value is None or str(value).strip() == "":
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def _candidate(
    manufacturer: str,
    name: str,
    film_type: str,
    iso,
    fmt: str,
    custom_format: Optional[str],
    quantity,
    expiry,
    frozen: bool,
    exposures,
    comments,
    added_at,
) -> Dict:
    code, label = match_format(fmt)
    if code == OTHER_FORMAT:
        label = custom_format or label
    return {
        "manufacturer": manufacturer,
        "name": name,
        "type": match_film_type(film_type),
        "iso": _to_int(iso, 0),
        "format": code,
        "custom_format": label if code == OTHER_FORMAT else None,
        "quantity": _to_int(quantity, 1),
        "expiry_dates": split_expiry_field(expiry),
        "frozen": bool(frozen),
        "exposures": _to_int(exposures, None),
        "comments": comments or None,
        "created_at": added_at or None,
    }


def _convert_records(records: List) -> Tuple[List[Dict], List[str]]:
    rows: List[Dict] = []
    warnings: List[str] = []
    for i, rec in enumerate(records):
        if not isinstance(rec, dict):
            warnings.append(f"Row {i + 1}: skipped (not an object)")
            continue
        manufacturer = str(rec.get("manufacturer") or "").strip()
        name = str(rec.get("name") or "").strip()
        if not manufacturer or not name:
            warnings.append(f"Row {i + 1}: skipped (missing manufacturer or film name)")
            continue
        rows.append(_candidate(
            manufacturer, name, rec.get("type"), rec.get("iso"),
            str(rec.get("format") or ""), rec.get("customFormat"),
            rec.get("quantity"), rec.get("expiryDate"), rec.get("isFrozen", False),
            rec.get("exposures"), rec.get("comments"), rec.get("addedAt"),
        ))
    return rows, warnings


def parse_json_text(text: str) -> Tuple[List[Dict], List[str]]:
    """Accept a full export payload or a bare array of export records."""
    try:
        raw = json.loads(text)
    except ValueError as e:
        raise ImportFormatError(f"Could not decode JSON as a filmStock export: {e}") from e
    if isinstance(raw, dict) and isinstance(raw.get("inventory"), list):
        return _convert_records(raw["inventory"])
    if isinstance(raw, list):
        return _convert_records(raw)
    raise ImportFormatError("Could not decode JSON as a filmStock export.")


def parse_csv_text(text: str) -> Tuple[List[Dict], List[str]]:
    """Read the '# INVENTORY' block of a CSV export.

    The block runs from the section line to the next '# ' line or the end of
    the file; its first non-empty row is the header.
    """
    rows: List[Dict] = []
    warnings: List[str] = []
    in_inventory = False
    found = False
    col: Dict[str, int] = {}
    reader = csv.reader(io.StringIO(text))
    for fields in reader:
        first = fields[0].strip() if fields else ""
        if len(fields) == 1 and first.startswith(CSV_SECTION):
            in_inventory, found, col = True, True, {}
            continue
        if in_inventory and len(fields) == 1 and first.startswith("# "):
            break
        if not in_inventory or not any(f.strip() for f in fields):
            continue
        if not col:
            col = {h.strip().lower(): i for i, h in enumerate(fields)}
            continue

        def field(name: str) -> str:
            i = col.get(name, -1)
            return fields[i].strip() if 0 <= i < len(fields) else ""

        manufacturer = field("manufacturer")
        name = field("film")
        if not manufacturer or not name:
            warnings.append(f"Line {reader.line_num}: skipped (missing manufacturer or film name)")
            continue
        rows.append(_candidate(
            manufacturer, name, field("type"), field("iso"), field("format"), None,
            field("qty"), field("expiry"), field("frozen").lower() == "yes",
            field("exposures"), field("comments"), field("added"),
        ))
    if not rows and not found:
        raise ImportFormatError("No INVENTORY section found in CSV.")
    return rows, warnings


def parse_import_file(file_path: Path) -> Tuple[List[Dict], List[str]]:
    file_path = Path(file_path)
    ext = file_path.suffix.lower().lstrip(".")
    if ext not in ("json", "csv"):
        raise ImportFormatError(f"Unsupported file type: .{ext}. Use .json or .csv.")
    text = file_path.read_text(encoding="utf-8-sig")
    if ext == "json":
        return parse_json_text(text)
    return parse_csv_text(text)


def apply_import(datarepo_path: Path, rows: List[Dict], warnings: Optional[List[str]] = None) -> Dict:
    """Add parsed rows to the inventory in one transaction.

    Rows that fail validation are skipped with a warning; the rest are kept.
    """
    warnings = list(warnings or [])
    added = merged = 0
    with transaction(datarepo_path, f"Import {len(rows)} row(s)") as data:
        for i, row in enumerate(rows):
            try:
                res = add_unit_to(data, row, allow_empty=True)
            except ValueError as e:
                warnings.append(f"Row {i + 1}: skipped ({e})")
                continue
            added += 1
            if res["merged"]:
                merged += 1
    for w in warnings:
        logger.warning("Import: %s", w)
    return {"added": added, "merged": merged, "skipped": len(rows) - added, "warnings": warnings}


def import_file(datarepo_path: Path, file_path: Path) -> Dict:
    rows, warnings = parse_import_file(file_path)
    return apply_import(datarepo_path, rows, warnings)
