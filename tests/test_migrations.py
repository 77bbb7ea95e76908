from __future__ import annotations
import json
import sys
from pathlib import Path

# Ensure project root on sys.path so 'filmstock' is importable when running pytest
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import yaml

from filmstock.core.v1.migrate import MIGRATIONS, applied_migrations, run_migrations, startup
from filmstock.core.v1.entities import list_manufacturers
from filmstock.core.v1.store import read_inventory, write_yaml_atomic, inventory_file


ALL = [name for name, _ in MIGRATIONS]


def test_flags_set_even_with_nothing_to_do(tmp_path: Path):
    ran = run_migrations(tmp_path)
    assert ran == {name: 0 for name in ALL}
    assert applied_migrations(tmp_path) == ALL


def test_migrations_run_once(tmp_path: Path):
    run_migrations(tmp_path)
    assert run_migrations(tmp_path) == {}


def test_legacy_json_import_preserves_ids_and_splits_rolls(tmp_path: Path):
    legacy = {
        "filmstocks": [
            {"id": "LEGACY-1", "name": "Tri-X", "manufacturer": "Kodak", "type": "BW", "filmSpeed": 400,
             "format": "35", "quantity": 3, "expireDate": ["03/2026", "04/2026"], "comments": "from the old app",
             "createdAt": "2023-01-01T00:00:00Z", "updatedAt": "2023-02-01T00:00:00Z"},
            {"id": "LEGACY-2", "name": "HP5 Plus", "manufacturer": "Ilford", "type": "BW", "filmSpeed": 400,
             "format": "4x5", "quantity": 25},
            {"id": "LEGACY-3", "name": "", "manufacturer": "Nobody", "type": "BW", "filmSpeed": 100,
             "format": "35", "quantity": 1},
        ]
    }
    (tmp_path / "filmstocks.json").write_text(json.dumps(legacy))
    ran = run_migrations(tmp_path)
    assert ran["legacy_json_import"] == 2
    assert ran["roll_centric_units"] == 1

    data = read_inventory(tmp_path)
    ids = {u["id"] for u in data["units"]}
    assert {"LEGACY-1", "LEGACY-2"} <= ids
    rolls = [u for u in data["units"] if u["format"] == "35"]
    assert len(rolls) == 3
    assert [r["expiry_dates"] for r in rolls] == [["03/2026"], ["04/2026"], []]
    sheets = [u for u in data["units"] if u["format"] == "4x5"]
    assert sheets[0]["quantity"] == 25

    # Running again does not import twice
    assert run_migrations(tmp_path) == {}
    assert len(read_inventory(tmp_path)["units"]) == 4


def test_roll_centric_migration_splits_existing_units(tmp_path: Path):
    data = read_inventory(tmp_path)
    data["manufacturers"].append({"name": "Kodak", "is_custom": True})
    data["films"].append({"id": "F1", "name": "Portra", "manufacturer": "Kodak", "type": "Color", "iso": 400,
                          "image": None, "image_source": "auto"})
    data["units"].append({"id": "U1", "film": "F1", "format": "120", "custom_format": None, "quantity": 5,
                          "expiry_dates": ["2026"], "comments": None, "frozen": True, "exposures": None})
    data["units"].append({"id": "S1", "film": "F1", "format": "4x5", "custom_format": None, "quantity": 5,
                          "expiry_dates": [], "comments": None, "frozen": False, "exposures": None})
    write_yaml_atomic(inventory_file(tmp_path), data)

    run_migrations(tmp_path)
    units = read_inventory(tmp_path)["units"]
    rolls = [u for u in units if u["format"] == "120"]
    assert len(rolls) == 5
    assert all(u["quantity"] == 1 and u["frozen"] and u["expiry_dates"] == ["2026"] for u in rolls)
    assert rolls[0]["id"] == "U1"
    assert [u["quantity"] for u in units if u["format"] == "4x5"] == [5]


def test_finished_camera_names_backfilled(tmp_path: Path):
    data = read_inventory(tmp_path)
    data["cameras"].append({"name": "FM2", "format": "35", "custom_format": None})
    data["finished"].append({"id": "X1", "camera": "FM2", "camera_name": None, "quantity": 1, "status": "toDevelop"})
    data["finished"].append({"id": "X2", "camera": "Gone", "camera_name": None, "quantity": 1, "status": "toDevelop"})
    write_yaml_atomic(inventory_file(tmp_path), data)

    ran = run_migrations(tmp_path)
    assert ran["finished_camera_names"] == 1
    by_id = {f["id"]: f for f in read_inventory(tmp_path)["finished"]}
    assert by_id["X1"]["camera_name"] == "FM2"
    assert by_id["X2"]["camera_name"] is None


def test_failed_migration_leaves_store_and_flag_untouched(tmp_path: Path):
    def boom(data, path):
        data["units"].append({"id": "half-done"})
        raise RuntimeError("interrupted")

    try:
        run_migrations(tmp_path, [("boom", boom)])
    except RuntimeError:
        pass
    assert "boom" not in applied_migrations(tmp_path)
    assert read_inventory(tmp_path)["units"] == []


def test_startup_seeds_catalog_once(tmp_path: Path):
    catalog = tmp_path / "catalog.yml"
    catalog.write_text(yaml.safe_dump({"manufacturers": ["Kodak", "Ilford", "Kodak"]}))
    repo = tmp_path / "repo"
    repo.mkdir()
    startup(repo, catalog)
    names = [(m["name"], m["is_custom"]) for m in list_manufacturers(repo)]
    assert names == [("Ilford", False), ("Kodak", False)]
    assert applied_migrations(repo) == ALL

    other = tmp_path / "other.yml"
    other.write_text(yaml.safe_dump({"manufacturers": ["Foma"]}))
    startup(repo, other)
    assert [m["name"] for m in list_manufacturers(repo)] == ["Ilford", "Kodak"]


def test_bundled_catalog_is_used_by_default(tmp_path: Path):
    startup(tmp_path)
    names = {m["name"] for m in list_manufacturers(tmp_path)}
    assert {"Kodak", "Ilford", "Fujifilm"} <= names
