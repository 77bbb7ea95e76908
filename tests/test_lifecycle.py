from __future__ import annotations
import sys
from pathlib import Path

import pytest

# Ensure project root on sys.path so 'filmstock' is importable when running pytest
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from filmstock.core.v1.inventory import add_unit, get_unit_record, list_units
from filmstock.core.v1.lifecycle import (
    delete_loaded_unit,
    list_finished,
    list_loaded,
    load,
    load_unit,
    reload,
    unload,
    update_status,
)
from filmstock.core.v1.entities import delete_camera, list_cameras
from filmstock.core.v1.state import get_films_finished
from filmstock.core.v1.store import read_inventory


def _roll(tmp_path: Path, qty: int = 1) -> str:
    add_unit(tmp_path, {"name": "Portra", "manufacturer": "Kodak", "type": "Color", "iso": 400, "format": "120", "quantity": qty})
    return list_units(tmp_path)[0]["id"]


def _sheets(tmp_path: Path, qty: int = 10) -> str:
    add_unit(tmp_path, {"name": "HP5 Plus", "manufacturer": "Ilford", "type": "BW", "iso": 400, "format": "4x5", "quantity": qty})
    return [u for u in list_units(tmp_path) if u["format"] == "4x5"][0]["id"]


def test_roll_load_unload_conservation(tmp_path: Path):
    uid = _roll(tmp_path)
    rec = load_unit(tmp_path, uid, "120", "Mamiya 7")
    assert rec["quantity"] == 1
    assert get_unit_record(tmp_path, uid)["quantity"] == 0

    fin = unload(tmp_path, rec["id"])
    assert fin["quantity"] == 1
    assert fin["status"] == "toDevelop"
    assert fin["camera_name"] == "Mamiya 7"
    assert list_loaded(tmp_path) == []
    assert len(list_finished(tmp_path)) == 1
    # Stock is never given back by an unload
    assert get_unit_record(tmp_path, uid)["quantity"] == 0
    assert get_films_finished(tmp_path) == 1


def test_mistaken_load_is_reversible(tmp_path: Path):
    uid = _roll(tmp_path)
    sid = _sheets(tmp_path, 10)
    r1 = load_unit(tmp_path, uid, "120", "Mamiya 7")
    r2 = load_unit(tmp_path, sid, "4x5", "Chamonix", quantity=4)
    assert get_unit_record(tmp_path, sid)["quantity"] == 6

    assert delete_loaded_unit(tmp_path, r1["id"]) is True
    assert delete_loaded_unit(tmp_path, r2["id"]) is True
    assert get_unit_record(tmp_path, uid)["quantity"] == 1
    assert get_unit_record(tmp_path, sid)["quantity"] == 10
    assert list_loaded(tmp_path) == []
    assert list_finished(tmp_path) == []
    assert get_films_finished(tmp_path) == 0
    assert delete_loaded_unit(tmp_path, r1["id"]) is False


def test_load_preconditions_write_nothing(tmp_path: Path):
    uid = _roll(tmp_path)
    before = read_inventory(tmp_path)
    assert load(tmp_path, uid, "35", "FM2") is False          # format mismatch
    assert load(tmp_path, "missing", "120", "FM2") is False   # unknown unit
    assert load(tmp_path, uid, "120", "  ") is False          # no camera
    assert load(tmp_path, uid, "120", "FM2", shot_at_iso=0) is False
    assert read_inventory(tmp_path) == before
    assert load(tmp_path, uid, "120", "FM2") is True
    assert load(tmp_path, uid, "120", "FM2") is False         # already empty


def test_sheet_load_needs_enough_stock(tmp_path: Path):
    sid = _sheets(tmp_path, 3)
    assert load_unit(tmp_path, sid, "4x5", "Chamonix", quantity=4) is None
    assert load_unit(tmp_path, sid, "4x5", "Chamonix", quantity=3) is not None
    assert get_unit_record(tmp_path, sid)["quantity"] == 0


def test_partial_sheet_unload(tmp_path: Path):
    sid = _sheets(tmp_path, 10)
    rec = load_unit(tmp_path, sid, "4x5", "Chamonix", quantity=5)
    fin = unload(tmp_path, rec["id"], quantity=2)
    assert fin["quantity"] == 2
    loaded = list_loaded(tmp_path)
    assert [l["quantity"] for l in loaded] == [3]
    fin2 = unload(tmp_path, rec["id"])
    assert fin2["quantity"] == 3
    assert list_loaded(tmp_path) == []
    assert get_films_finished(tmp_path) == 5
    with pytest.raises(ValueError):
        unload(tmp_path, "whatever", quantity=0)
    assert unload(tmp_path, "missing") is None


def test_roll_partial_unload_finishes_whole_roll(tmp_path: Path):
    uid = _roll(tmp_path)
    rec = load_unit(tmp_path, uid, "120", "Mamiya 7")
    fin = unload(tmp_path, rec["id"], quantity=1)
    assert fin["quantity"] == 1
    assert list_loaded(tmp_path) == []


def test_push_pull_speed(tmp_path: Path):
    uid = _roll(tmp_path, 2)
    u2 = list_units(tmp_path)[1]["id"]
    pushed = load_unit(tmp_path, uid, "120", "Mamiya 7", shot_at_iso=1600)
    native = load_unit(tmp_path, u2, "120", "Mamiya 7", shot_at_iso=400)
    assert pushed["shot_at_iso"] == 1600
    assert native["shot_at_iso"] is None
    by_id = {l["id"]: l for l in list_loaded(tmp_path)}
    assert by_id[pushed["id"]]["effective_iso"] == 1600
    assert by_id[native["id"]]["effective_iso"] == 400


def test_reload_is_inverse_of_unload(tmp_path: Path):
    uid = _roll(tmp_path)
    rec = load_unit(tmp_path, uid, "120", "Mamiya 7", shot_at_iso=800)
    fin = unload(tmp_path, rec["id"])
    assert get_films_finished(tmp_path) == 1

    back = reload(tmp_path, fin["id"])
    assert back["id"] == rec["id"]
    assert back["camera"] == "Mamiya 7"
    assert back["shot_at_iso"] == 800
    assert back["loaded_at"] == rec["loaded_at"]
    assert list_finished(tmp_path) == []
    assert get_films_finished(tmp_path) == 0
    assert reload(tmp_path, fin["id"]) is None


def test_reload_after_camera_deleted_recreates_camera(tmp_path: Path):
    uid = _roll(tmp_path)
    rec = load_unit(tmp_path, uid, "120", "Mamiya 7")
    fin = unload(tmp_path, rec["id"])
    assert delete_camera(tmp_path, "Mamiya 7") is True
    assert list_cameras(tmp_path) == []
    assert list_finished(tmp_path)[0]["camera"] is None

    back = reload(tmp_path, fin["id"])
    assert back["camera"] == "Mamiya 7"
    assert [c["name"] for c in list_cameras(tmp_path)] == ["Mamiya 7"]


def test_counter_never_negative(tmp_path: Path):
    uid = _roll(tmp_path)
    rec = load_unit(tmp_path, uid, "120", "Mamiya 7")
    fin = unload(tmp_path, rec["id"])
    (tmp_path / "state.yml").write_text("films_finished: 0\n")
    reload(tmp_path, fin["id"])
    assert get_films_finished(tmp_path) == 0


def test_status_transitions_are_free(tmp_path: Path):
    uid = _roll(tmp_path)
    rec = load_unit(tmp_path, uid, "120", "Mamiya 7")
    fin = unload(tmp_path, rec["id"])
    assert update_status(tmp_path, fin["id"], "developed")["status"] == "developed"
    assert update_status(tmp_path, fin["id"], "toDevelop")["status"] == "toDevelop"
    assert update_status(tmp_path, "missing", "developed") is None
    with pytest.raises(ValueError):
        update_status(tmp_path, fin["id"], "lost")
    assert len(list_finished(tmp_path, status="toDevelop")) == 1
    assert list_finished(tmp_path, status="developed") == []


def test_camera_delete_refused_while_loaded(tmp_path: Path):
    uid = _roll(tmp_path)
    load_unit(tmp_path, uid, "120", "Mamiya 7")
    assert delete_camera(tmp_path, "Mamiya 7") is False
    assert [c["name"] for c in list_cameras(tmp_path)] == ["Mamiya 7"]
