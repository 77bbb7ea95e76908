from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Dict, Optional

from .grouping import is_unit_expired
from .schema import FINISHED_STATUSES, FORMATS, STATUS_TO_DEVELOP
from .state import get_films_finished
from .store import read_inventory


def build_stats(data: Dict, films_finished: int = 0, today: Optional[date] = None) -> Dict:
    in_stock: Dict[str, int] = {}
    expired = frozen = 0
    for u in data["units"]:
        qty = int(u.get("quantity") or 0)
        if qty <= 0:
            continue
        fmt = u.get("format")
        in_stock[fmt] = in_stock.get(fmt, 0) + qty
        if u.get("frozen"):
            frozen += qty
        if is_unit_expired(u, today):
            expired += qty
    by_format = {f: in_stock[f] for f in FORMATS if f in in_stock}
    by_format.update({f: q for f, q in in_stock.items() if f not in by_format})

    by_status = {s: 0 for s in FINISHED_STATUSES}
    for rec in data["finished"]:
        status = rec.get("status") or STATUS_TO_DEVELOP
        by_status[status] = by_status.get(status, 0) + int(rec.get("quantity") or 0)

    return {
        "films": len(data["films"]),
        "in_stock": sum(by_format.values()),
        "in_stock_by_format": by_format,
        "frozen": frozen,
        "expired": expired,
        "loaded": len(data["loaded"]),
        "loaded_quantity": sum(int(l.get("quantity") or 0) for l in data["loaded"]),
        "finished_by_status": by_status,
        "films_finished": films_finished,
    }


def stats(datarepo_path: Path, today: Optional[date] = None) -> Dict:
    """Stock, loaded and finished counts plus the lifetime finished counter."""
    return build_stats(read_inventory(datarepo_path), get_films_finished(datarepo_path), today)
