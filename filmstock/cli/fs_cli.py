import sys
import os
import argparse
import pathlib
import json
import yaml

from filmstock import __version__
from filmstock.core.v1.config import (
    get_datarepo_path,
    configure_logging,
    CONFIG_FILENAME,
)
from filmstock.core.v1 import repo as repo_ops
from filmstock.core.v1.migrate import startup, run_migrations
from filmstock.core.v1.validate import validate_repo
from filmstock.core.v1.schema import FINISHED_STATUSES, FORMATS, FILM_TYPES, IMAGE_SOURCES
from filmstock.core.v1.grouping import grouped_view
from filmstock.core.v1.stats import stats as repo_stats
from filmstock.core.v1.exchange import export_inventory, import_file
from filmstock.core.v1.inventory import (
    add_unit,
    add_rolls,
    delete_unit,
    delete_units,
    update_unit,
    update_units_by_id,
)
from filmstock.core.v1.entities import (
    list_manufacturers,
    add_manufacturer,
    delete_manufacturer,
    list_films,
    set_film_image,
    list_cameras,
    add_camera,
    delete_camera,
)
from filmstock.core.v1.lifecycle import (
    load_unit,
    unload,
    delete_loaded_unit,
    reload,
    update_status,
    list_loaded,
    list_finished,
)


class FSArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that prints full help on error instead of short usage."""
    def error(self, message):
        self.print_help()
        sys.stderr.write(f"\nError: {message}\n")
        raise SystemExit(2)


def _add_unit_field_args(p, with_frozen_toggle: bool = False):
    p.add_argument("--expiry", default=None, help="Expiry date(s), comma separated (YYYY, MM/YYYY or MM/DD/YYYY)")
    if with_frozen_toggle:
        p.add_argument("--frozen", dest="frozen", action="store_true", default=None, help="Mark as frozen")
        p.add_argument("--no-frozen", dest="frozen", action="store_false", help="Mark as not frozen")
    else:
        p.add_argument("--frozen", action="store_true", help="Mark as frozen")
    p.add_argument("--exposures", type=int, default=None, help="Exposures per roll (35mm only)")
    p.add_argument("--comments", default=None, help="Free-form comments")


def main(argv=None):
    # Root parser and global options (git-like)
    env_format = os.getenv("FS_FORMAT", "human").lower()
    if env_format not in ("human", "json", "yaml"):
        env_format = "human"
    parser = FSArgumentParser(prog="fs", description="filmStock CLI")
    parser.add_argument("-R", "--repo", dest="repo", default=os.getenv("FS_REPO"), help="Override datarepo path")
    parser.add_argument(
        "-F", "--format", dest="format", choices=["human", "json", "yaml"], default=env_format,
        help="Output format (default from FS_FORMAT or 'human')"
    )
    parser.add_argument("-q", "--quiet", action="count", default=0, help="Decrease verbosity")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity")
    parser.add_argument("--version", action="version", version=f"filmStock {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=False, parser_class=FSArgumentParser)

    # init
    init_parser = subparsers.add_parser("init", help="Initialize a new datarepo at PATH")
    init_parser.add_argument("path", help="Target directory for the datarepo")
    init_parser.add_argument("--git", action="store_true", help="Make the datarepo a git repository with autocommit")
    init_parser.add_argument("--github-url", dest="github_url", default=None, help="Git repository URL to clone (optional)")
    init_parser.add_argument("--no-default", dest="no_default", action="store_true", help=f"Do not record it as default_datarepo in {CONFIG_FILENAME}")

    subparsers.add_parser("migrate", help="Run pending data migrations")

    val_parser = subparsers.add_parser("validate", help="Check the datarepo for structural problems")
    val_parser.add_argument("--strict", action="store_true", help="Treat warnings as failures")

    # stock group
    stock_parser = subparsers.add_parser("stock", help="Film stock (unopened rolls and sheets)")
    stock_sub = stock_parser.add_subparsers(dest="stock_cmd", required=False, parser_class=FSArgumentParser)

    st_add = stock_sub.add_parser("add", help="Add stock; rolls are split one per unit, sheets merge into a pool")
    st_add.add_argument("--name", required=True, help="Film name (e.g., Tri-X)")
    st_add.add_argument("--mfr", required=True, help="Manufacturer (e.g., Kodak)")
    st_add.add_argument("--type", required=True, help=f"Film type ({', '.join(FILM_TYPES)})")
    st_add.add_argument("--iso", required=True, type=int, help="Native film speed")
    st_add.add_argument("--fmt", required=True, help=f"Format ({', '.join(FORMATS)})")
    st_add.add_argument("--custom-format", dest="custom_format", default=None, help="Label for the Other format")
    st_add.add_argument("--qty", type=int, default=1, help="Quantity (rolls or sheets)")
    st_add.add_argument("--image", default=None, help="Image reference for the film")
    _add_unit_field_args(st_add)

    stock_sub.add_parser("ls", aliases=["list"], help="Show stock grouped by film and format")

    st_rm = stock_sub.add_parser("rm", help="Delete stock by unit id or by film")
    st_rm.add_argument("--unit", default=None, help="Unit id to delete")
    st_rm.add_argument("--name", default=None, help="Film name")
    st_rm.add_argument("--mfr", default=None, help="Manufacturer")
    st_rm.add_argument("--type", default=None, help="Restrict to film type")
    st_rm.add_argument("--iso", type=int, default=None, help="Restrict to film speed")
    st_rm.add_argument("--fmt", default=None, help="Restrict to one format")

    st_set = stock_sub.add_parser("set", help="Overwrite fields on the given units")
    st_set.add_argument("units", nargs="+", help="Unit ids")
    _add_unit_field_args(st_set, with_frozen_toggle=True)

    st_rolls = stock_sub.add_parser("add-rolls", help="Add rolls of the same film and format as a template unit")
    st_rolls.add_argument("template", help="Template unit id")
    st_rolls.add_argument("--count", type=int, required=True, help="Number of rolls to add")
    _add_unit_field_args(st_rolls)

    st_edit = stock_sub.add_parser("edit", help="Edit one unit (a roll unit set to qty > 1 is split)")
    st_edit.add_argument("unit", help="Unit id")
    st_edit.add_argument("--qty", type=int, default=None, help="New quantity")
    st_edit.add_argument("--fmt", default=None, help="New format")
    st_edit.add_argument("--custom-format", dest="custom_format", default=None, help="Label for the Other format")
    _add_unit_field_args(st_edit, with_frozen_toggle=True)

    # film group
    film_parser = subparsers.add_parser("film", help="Film definitions")
    film_sub = film_parser.add_subparsers(dest="film_cmd", required=False, parser_class=FSArgumentParser)
    film_sub.add_parser("ls", aliases=["list"], help="List film definitions")
    film_img = film_sub.add_parser("image", help="Set or clear the image of a film")
    film_img.add_argument("film", help="Film id")
    film_img.add_argument("--image", default=None, help="Image reference (omit to clear)")
    film_img.add_argument("--source", choices=IMAGE_SOURCES, default=None, help="Image source")

    # mfr group
    mfr_parser = subparsers.add_parser("mfr", help="Manufacturers")
    mfr_sub = mfr_parser.add_subparsers(dest="mfr_cmd", required=False, parser_class=FSArgumentParser)
    mfr_sub.add_parser("ls", aliases=["list"], help="List manufacturers")
    mfr_add = mfr_sub.add_parser("add", help="Add a custom manufacturer")
    mfr_add.add_argument("name")
    mfr_rm = mfr_sub.add_parser("rm", help="Delete a custom manufacturer no film refers to")
    mfr_rm.add_argument("name")

    # camera group
    cam_parser = subparsers.add_parser("camera", help="Cameras")
    cam_sub = cam_parser.add_subparsers(dest="cam_cmd", required=False, parser_class=FSArgumentParser)
    cam_sub.add_parser("ls", aliases=["list"], help="List cameras")
    cam_add = cam_sub.add_parser("add", help="Add a camera (or set its default format)")
    cam_add.add_argument("name")
    cam_add.add_argument("--fmt", default=None, help="Default format")
    cam_add.add_argument("--custom-format", dest="custom_format", default=None, help="Label for the Other format")
    cam_rm = cam_sub.add_parser("rm", help="Delete a camera with nothing loaded in it")
    cam_rm.add_argument("name")

    # lifecycle
    ld = subparsers.add_parser("load", help="Load film from a stock unit into a camera")
    ld.add_argument("unit", help="Unit id")
    ld.add_argument("--fmt", required=True, help="Format of the unit")
    ld.add_argument("--camera", required=True, help="Camera name (created if new)")
    ld.add_argument("--qty", type=int, default=1, help="Sheets to load (rolls always load one)")
    ld.add_argument("--shot-at", dest="shot_at", type=int, default=None, help="Push/pull speed")

    ul = subparsers.add_parser("unload", help="Finish loaded film")
    ul.add_argument("loaded", help="Loaded id")
    ul.add_argument("--qty", type=int, default=None, help="Sheets to finish (default all)")

    uu = subparsers.add_parser("unload-undo", help="Undo a mistaken load and return the film to stock")
    uu.add_argument("loaded", help="Loaded id")

    rl = subparsers.add_parser("reload", help="Move a finished record back to loaded")
    rl.add_argument("finished", help="Finished id")

    stp = subparsers.add_parser("status", help="Set the development status of a finished record")
    stp.add_argument("finished", help="Finished id")
    stp.add_argument("status", choices=FINISHED_STATUSES)

    subparsers.add_parser("loaded", help="List loaded film, newest first")
    fin = subparsers.add_parser("finished", help="List finished film, newest first")
    fin.add_argument("--status", choices=FINISHED_STATUSES, default=None)

    subparsers.add_parser("stats", help="Summary counts")

    ex = subparsers.add_parser("export", help="Export the inventory as JSON or CSV")
    ex.add_argument("--as", dest="as_format", choices=["json", "csv"], default="json")
    ex.add_argument("-o", "--output", default=None, help="Write to file instead of stdout")

    im = subparsers.add_parser("import", help="Import a .json or .csv export")
    im.add_argument("file")

    web_parser = subparsers.add_parser("web", help="Start the JSON web API")
    web_parser.add_argument("--host", default="127.0.0.1")
    web_parser.add_argument("--port", type=int, default=8080)
    web_parser.add_argument("--debug", action="store_true")

    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    if not args.command:
        parser.print_help()
        sys.exit(2)

    # Helper: resolve repo path honoring -R/--repo
    def _repo_path() -> pathlib.Path:
        if getattr(args, "repo", None):
            return pathlib.Path(args.repo).expanduser().resolve()
        return get_datarepo_path()

    def _fmt() -> str:
        return args.format

    def _print_or_dump(obj, human_line: str | None = None):
        fmt = _fmt()
        if fmt == "json":
            print(json.dumps(obj, indent=2))
        elif fmt == "yaml":
            print(yaml.safe_dump(obj, sort_keys=False))
        elif human_line is not None:
            print(human_line)
        else:
            print(yaml.safe_dump(obj, sort_keys=False))

    def _fail(msg) -> None:
        print(f"[filmStock] Error: {msg}")
        sys.exit(1)

    def _ready_repo() -> pathlib.Path:
        # Catalog seeding and pending migrations happen before any command touches stock
        try:
            datarepo_path = _repo_path()
            startup(datarepo_path)
        except Exception as e:
            _fail(e)
        return datarepo_path

    def _edit_kwargs(a) -> dict:
        kw = {}
        if a.expiry is not None:
            kw["expiry_dates"] = a.expiry
        if a.frozen is not None:
            kw["frozen"] = a.frozen
        if a.exposures is not None:
            kw["exposures"] = a.exposures
        if a.comments is not None:
            kw["comments"] = a.comments
        return kw

    def cmd_init(args):
        target = pathlib.Path(args.path)
        if target.exists() and os.listdir(str(target)) and args.github_url:
            _fail(f"Target directory '{target}' already exists and is not empty.")
        try:
            res = repo_ops.init_datarepo(
                target,
                github_url=args.github_url,
                use_git=args.git,
                set_default=not args.no_default,
            )
        except Exception as e:
            _fail(e)
        lines = f"[filmStock] Initialized datarepo at '{res['repo_path']}'"
        if not args.no_default:
            lines += f"\n[filmStock] Default datarepo set in '{CONFIG_FILENAME}'"
        _print_or_dump(res, human_line=lines)

    def cmd_migrate(args):
        try:
            datarepo_path = _repo_path()
            ran = run_migrations(datarepo_path)
        except Exception as e:
            _fail(e)
        if ran:
            human = "\n".join(f"[filmStock] Applied {k} ({v} record(s))" for k, v in ran.items())
        else:
            human = "[filmStock] No pending migrations"
        _print_or_dump({"applied": ran}, human_line=human)

    def cmd_validate(args):
        datarepo_path = _repo_path()
        try:
            result = validate_repo(datarepo_path)
        except Exception as e:
            _fail(e)
        fmt = _fmt()
        errors = int(result.get("errors", 0))
        warnings = int(result.get("warnings", 0))
        if fmt in ("json", "yaml"):
            _print_or_dump(result)
        else:
            print(f"[filmStock] Validation results for {datarepo_path}")
            print(f"Errors: {errors}, Warnings: {warnings}")
            for it in result.get("issues", []):
                print(f" - [{it['severity'].upper()}] {it['code']} :: {it['path']} :: {it['message']}")
        if errors > 0 or (args.strict and warnings > 0):
            sys.exit(1)

    def cmd_stock_add(args):
        datarepo_path = _ready_repo()
        candidate = {
            "name": args.name,
            "manufacturer": args.mfr,
            "type": args.type,
            "iso": args.iso,
            "format": args.fmt,
            "custom_format": args.custom_format,
            "quantity": args.qty,
            "expiry_dates": args.expiry,
            "frozen": args.frozen,
            "exposures": args.exposures,
            "comments": args.comments,
        }
        try:
            res = add_unit(datarepo_path, candidate, image=args.image)
        except Exception as e:
            _fail(e)
        verb = "Added to existing film" if res["merged"] else "Created film"
        _print_or_dump(res, human_line=f"[filmStock] {verb} {args.mfr} {args.name}; unit(s): {', '.join(res['units'])}")

    def cmd_stock_ls(args):
        datarepo_path = _ready_repo()
        try:
            groups = grouped_view(datarepo_path)
        except Exception as e:
            _fail(e)
        if _fmt() != "human":
            _print_or_dump(groups)
            return
        if not groups:
            print("[filmStock] No stock")
            return
        for g in groups:
            print(f"{g['manufacturer']} {g['name']} ({g['type']}, ISO {g['iso']}) total {g['total_quantity']}")
            for f in g["formats"]:
                flags = []
                if f["frozen_count"]:
                    flags.append(f"frozen {f['frozen_count']}")
                if f["expired_count"]:
                    flags.append(f"expired {f['expired_count']}")
                extra = f" [{', '.join(flags)}]" if flags else ""
                dates = ", ".join(f["expiry_dates"]) or "-"
                print(f"  {f['format_name']:<8} {f['quantity']:>4} {f['unit'].lower():<6} exp {dates}{extra}  ({f['id']})")

    def cmd_stock_rm(args):
        datarepo_path = _ready_repo()
        try:
            if args.unit:
                n = 1 if delete_unit(datarepo_path, args.unit) else 0
            elif args.name and args.mfr:
                crit = {"name": args.name, "manufacturer": args.mfr, "type": args.type, "iso": args.iso, "format": args.fmt}
                n = delete_units(datarepo_path, [crit])
            else:
                _fail("give --unit, or --name and --mfr")
        except Exception as e:
            _fail(e)
        _print_or_dump({"deleted": n}, human_line=f"[filmStock] Deleted {n} unit(s)")

    def cmd_stock_set(args):
        datarepo_path = _ready_repo()
        try:
            n = update_units_by_id(datarepo_path, args.units, **_edit_kwargs(args))
        except Exception as e:
            _fail(e)
        _print_or_dump({"updated": n}, human_line=f"[filmStock] Updated {n} unit(s)")

    def cmd_stock_add_rolls(args):
        datarepo_path = _ready_repo()
        try:
            ids = add_rolls(
                datarepo_path, args.count, args.template,
                expiry_dates=args.expiry, frozen=args.frozen,
                exposures=args.exposures, comments=args.comments,
            )
        except Exception as e:
            _fail(e)
        if not ids:
            _fail(f"unit '{args.template}' not found")
        _print_or_dump({"units": ids}, human_line=f"[filmStock] Added {len(ids)} roll(s)")

    def cmd_stock_edit(args):
        datarepo_path = _ready_repo()
        kw = _edit_kwargs(args)
        if args.qty is not None:
            kw["quantity"] = args.qty
        if args.fmt is not None:
            kw["fmt"] = args.fmt
        if args.custom_format is not None:
            kw["custom_format"] = args.custom_format
        try:
            res = update_unit(datarepo_path, args.unit, **kw)
        except Exception as e:
            _fail(e)
        if res is None:
            _fail(f"unit '{args.unit}' not found")
        _print_or_dump(res, human_line=f"[filmStock] Updated unit '{args.unit}' ({len(res)} unit record(s))")

    def cmd_film_ls(args):
        datarepo_path = _ready_repo()
        films = list_films(datarepo_path)
        if _fmt() != "human":
            _print_or_dump(films)
            return
        for f in films:
            print(f"{f['id']}  {f['manufacturer']} {f['name']} ({f['type']}, ISO {f['iso']})")

    def cmd_film_image(args):
        datarepo_path = _ready_repo()
        try:
            res = set_film_image(datarepo_path, args.film, args.image, args.source)
        except Exception as e:
            _fail(e)
        if res is None:
            _fail(f"film '{args.film}' not found")
        _print_or_dump(res, human_line=f"[filmStock] Image of film '{args.film}' set ({res['image_source']})")

    def cmd_mfr_ls(args):
        datarepo_path = _ready_repo()
        mfrs = list_manufacturers(datarepo_path)
        if _fmt() != "human":
            _print_or_dump(mfrs)
            return
        for m in mfrs:
            print(f"{m['name']}{' (custom)' if m.get('is_custom') else ''}")

    def cmd_mfr_add(args):
        datarepo_path = _ready_repo()
        try:
            res = add_manufacturer(datarepo_path, args.name)
        except Exception as e:
            _fail(e)
        _print_or_dump(res, human_line=f"[filmStock] Manufacturer '{res['name']}' ready")

    def cmd_mfr_rm(args):
        datarepo_path = _ready_repo()
        if not delete_manufacturer(datarepo_path, args.name):
            _fail(f"manufacturer '{args.name}' not deleted (missing, from the catalog, or still used by a film)")
        _print_or_dump({"deleted": args.name}, human_line=f"[filmStock] Deleted manufacturer '{args.name}'")

    def cmd_camera_ls(args):
        datarepo_path = _ready_repo()
        cams = list_cameras(datarepo_path)
        if _fmt() != "human":
            _print_or_dump(cams)
            return
        for c in cams:
            print(f"{c['name']}  {c.get('custom_format') or c.get('format') or '-'}")

    def cmd_camera_add(args):
        datarepo_path = _ready_repo()
        try:
            res = add_camera(datarepo_path, args.name, args.fmt, args.custom_format)
        except Exception as e:
            _fail(e)
        _print_or_dump(res, human_line=f"[filmStock] Camera '{res['name']}' ready")

    def cmd_camera_rm(args):
        datarepo_path = _ready_repo()
        if not delete_camera(datarepo_path, args.name):
            _fail(f"camera '{args.name}' not deleted (missing or film is loaded in it)")
        _print_or_dump({"deleted": args.name}, human_line=f"[filmStock] Deleted camera '{args.name}'")

    def cmd_load(args):
        datarepo_path = _ready_repo()
        try:
            res = load_unit(datarepo_path, args.unit, args.fmt, args.camera, args.qty, args.shot_at)
        except Exception as e:
            _fail(e)
        if res is None:
            _fail(f"could not load unit '{args.unit}' (unknown unit, format mismatch or not enough stock)")
        _print_or_dump(res, human_line=f"[filmStock] Loaded {res['quantity']} into '{res['camera']}' (loaded id {res['id']})")

    def cmd_unload(args):
        datarepo_path = _ready_repo()
        try:
            res = unload(datarepo_path, args.loaded, args.qty)
        except Exception as e:
            _fail(e)
        if res is None:
            _fail(f"loaded record '{args.loaded}' not found")
        _print_or_dump(res, human_line=f"[filmStock] Finished {res['quantity']} (finished id {res['id']})")

    def cmd_unload_undo(args):
        datarepo_path = _ready_repo()
        try:
            ok = delete_loaded_unit(datarepo_path, args.loaded)
        except Exception as e:
            _fail(e)
        if not ok:
            _fail(f"loaded record '{args.loaded}' not found")
        _print_or_dump({"deleted": args.loaded}, human_line=f"[filmStock] Returned '{args.loaded}' to stock")

    def cmd_reload(args):
        datarepo_path = _ready_repo()
        try:
            res = reload(datarepo_path, args.finished)
        except Exception as e:
            _fail(e)
        if res is None:
            _fail(f"finished record '{args.finished}' not found")
        _print_or_dump(res, human_line=f"[filmStock] Reloaded as '{res['id']}'")

    def cmd_status(args):
        datarepo_path = _ready_repo()
        try:
            res = update_status(datarepo_path, args.finished, args.status)
        except Exception as e:
            _fail(e)
        if res is None:
            _fail(f"finished record '{args.finished}' not found")
        _print_or_dump(res, human_line=f"[filmStock] '{args.finished}' is now {args.status}")

    def _print_records(recs, when_key: str):
        if _fmt() != "human":
            _print_or_dump(recs)
            return
        for r in recs:
            where = r.get("camera") or r.get("camera_name") or "-"
            status = f" {r['status']}" if r.get("status") else ""
            print(f"{r['id']}  {r.get('manufacturer')} {r.get('film_name')} @ {r['effective_iso']}  x{r['quantity']}  {where}  {r.get(when_key)}{status}")

    def cmd_loaded(args):
        datarepo_path = _ready_repo()
        _print_records(list_loaded(datarepo_path), "loaded_at")

    def cmd_finished(args):
        datarepo_path = _ready_repo()
        _print_records(list_finished(datarepo_path, args.status), "finished_at")

    def cmd_stats(args):
        datarepo_path = _ready_repo()
        s = repo_stats(datarepo_path)
        if _fmt() != "human":
            _print_or_dump(s)
            return
        by_fmt = ", ".join(f"{k}: {v}" for k, v in s["in_stock_by_format"].items()) or "none"
        print(f"[filmStock] In stock: {s['in_stock']} ({by_fmt}); frozen {s['frozen']}, expired {s['expired']}")
        print(f"[filmStock] Loaded: {s['loaded']}")
        print(f"[filmStock] Finished: " + ", ".join(f"{k} {v}" for k, v in s["finished_by_status"].items()))
        print(f"[filmStock] Films finished (lifetime): {s['films_finished']}")

    def cmd_export(args):
        datarepo_path = _ready_repo()
        try:
            text = export_inventory(datarepo_path, args.as_format)
            if args.output:
                pathlib.Path(args.output).write_text(text, encoding="utf-8")
        except Exception as e:
            _fail(e)
        if args.output:
            print(f"[filmStock] Wrote {args.output}")
        else:
            print(text)

    def cmd_import(args):
        datarepo_path = _ready_repo()
        try:
            res = import_file(datarepo_path, pathlib.Path(args.file))
        except Exception as e:
            _fail(e)
        human = f"[filmStock] Imported {res['added']} row(s), skipped {res['skipped']}"
        for w in res["warnings"]:
            human += f"\n[filmStock] Warning: {w}"
        _print_or_dump(res, human_line=human)

    def cmd_web(args):
        datarepo_path = _ready_repo()
        try:
            # Add the project root to Python path for web imports
            project_root = pathlib.Path(__file__).parent.parent.parent
            sys.path.insert(0, str(project_root))
            from web.app import create_app
        except ImportError as e:
            missing = getattr(e, "name", "") or ""
            if missing == "flask":
                _fail("Flask is not installed. Install it with: pip install Flask")
            _fail(f"Import error starting web API: {e}")
        app = create_app(datarepo_path)
        print(f"[filmStock] Serving {datarepo_path} at http://{args.host}:{args.port}")
        try:
            app.run(debug=args.debug, host=args.host, port=args.port, use_reloader=args.debug)
        except KeyboardInterrupt:
            print("\n[filmStock] Shutting down")
        except OSError as e:
            _fail(e)

    # Dispatch via table
    cmd = args.command
    SUBCOMMAND_DEST = {
        "stock": "stock_cmd",
        "film": "film_cmd",
        "mfr": "mfr_cmd",
        "camera": "cam_cmd",
    }
    sub = getattr(args, SUBCOMMAND_DEST[cmd], None) if cmd in SUBCOMMAND_DEST else None
    if sub == "list":
        sub = "ls"

    DISPATCH = {
        ("init", None): cmd_init,
        ("migrate", None): cmd_migrate,
        ("validate", None): cmd_validate,
        ("stock", "add"): cmd_stock_add,
        ("stock", "ls"): cmd_stock_ls,
        ("stock", "rm"): cmd_stock_rm,
        ("stock", "set"): cmd_stock_set,
        ("stock", "add-rolls"): cmd_stock_add_rolls,
        ("stock", "edit"): cmd_stock_edit,
        ("film", "ls"): cmd_film_ls,
        ("film", "image"): cmd_film_image,
        ("mfr", "ls"): cmd_mfr_ls,
        ("mfr", "add"): cmd_mfr_add,
        ("mfr", "rm"): cmd_mfr_rm,
        ("camera", "ls"): cmd_camera_ls,
        ("camera", "add"): cmd_camera_add,
        ("camera", "rm"): cmd_camera_rm,
        ("load", None): cmd_load,
        ("unload", None): cmd_unload,
        ("unload-undo", None): cmd_unload_undo,
        ("reload", None): cmd_reload,
        ("status", None): cmd_status,
        ("loaded", None): cmd_loaded,
        ("finished", None): cmd_finished,
        ("stats", None): cmd_stats,
        ("export", None): cmd_export,
        ("import", None): cmd_import,
        ("web", None): cmd_web,
    }

    handler = DISPATCH.get((cmd, sub))
    if handler:
        handler(args)
    else:
        groups = {"stock": stock_parser, "film": film_parser, "mfr": mfr_parser, "camera": cam_parser}
        groups.get(cmd, parser).print_help()
        sys.exit(2)


if __name__ == "__main__":
    main()
