from __future__ import annotations
import json
import sys
from pathlib import Path

import pytest
import yaml

# Ensure project root on sys.path so 'filmstock' is importable when running pytest
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from filmstock.cli.fs_cli import main


@pytest.fixture()
def repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> Path:
    monkeypatch.setenv("FS_CONFIG_FILE", str(tmp_path / ".filmstock.yml"))
    monkeypatch.delenv("FS_REPO", raising=False)
    monkeypatch.delenv("FS_FORMAT", raising=False)
    target = tmp_path / "films"
    main(["-F", "json", "init", str(target)])
    out = json.loads(capsys.readouterr().out)
    assert out["repo_path"] == str(target.resolve())
    return target


def _run(capsys, *argv):
    main(["-F", "json", *argv])
    return json.loads(capsys.readouterr().out)


def test_init_scaffolds_and_sets_default(repo: Path, tmp_path: Path):
    assert (repo / "fsdatarepo.yml").exists()
    assert (repo / "inventory.yml").exists()
    cfg = yaml.safe_load((tmp_path / ".filmstock.yml").read_text())
    assert cfg["default_datarepo"] == str(repo.resolve())


def test_add_load_unload_through_cli(repo: Path, capsys):
    added = _run(capsys, "stock", "add", "--name", "Tri-X", "--mfr", "Kodak", "--type", "BW",
                 "--iso", "400", "--fmt", "35mm", "--qty", "2", "--expiry", "03/2027")
    assert len(added["units"]) == 2

    groups = _run(capsys, "stock", "ls")
    assert groups[0]["total_quantity"] == 2

    loaded = _run(capsys, "load", added["units"][0], "--fmt", "35", "--camera", "FM2", "--shot-at", "800")
    assert loaded["shot_at_iso"] == 800

    listing = _run(capsys, "loaded")
    assert [r["effective_iso"] for r in listing] == [800]

    finished = _run(capsys, "unload", loaded["id"])
    assert finished["status"] == "toDevelop"

    _run(capsys, "status", finished["id"], "developed")
    s = _run(capsys, "stats")
    assert s["films_finished"] == 1
    assert s["in_stock"] == 1
    assert s["finished_by_status"]["developed"] == 1


def test_human_output_uses_default_repo(repo: Path, capsys):
    main(["mfr", "add", "Street Candy"])
    out = capsys.readouterr().out
    assert "[filmStock] Manufacturer 'Street Candy' ready" in out
    main(["mfr", "ls"])
    out = capsys.readouterr().out
    assert "Street Candy (custom)" in out
    assert "Kodak" in out


def test_failed_load_exits_with_error(repo: Path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["-R", str(repo), "load", "missing", "--fmt", "35", "--camera", "FM2"])
    assert exc.value.code == 1
    assert "[filmStock] Error:" in capsys.readouterr().out


def test_validation_error_exits_with_error(repo: Path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["stock", "add", "--name", "X", "--mfr", "Y", "--type", "Infrared", "--iso", "100", "--fmt", "35"])
    assert exc.value.code == 1
    assert "Unknown film type" in capsys.readouterr().out


def test_export_and_import_files(repo: Path, tmp_path: Path, capsys):
    _run(capsys, "stock", "add", "--name", "HP5 Plus", "--mfr", "Ilford", "--type", "BW",
         "--iso", "400", "--fmt", "4x5", "--qty", "10")
    out = tmp_path / "stock.csv"
    main(["export", "--as", "csv", "-o", str(out)])
    capsys.readouterr()
    assert out.read_text().startswith("# INVENTORY")

    res = _run(capsys, "import", str(out))
    assert res["added"] == 1
    groups = _run(capsys, "stock", "ls")
    assert groups[0]["formats"][0]["quantity"] == 20


def test_validate_command(repo: Path, capsys):
    res = _run(capsys, "validate")
    assert res["errors"] == 0


def test_no_command_prints_help(capsys):
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 2
