#!/usr/bin/env python3
"""
filmStock web API - Flask application exposing stock, loaded and finished
film as JSON for display surfaces (widgets, dashboards, phones).
"""

from flask import Flask, request, jsonify, Response, g
from pathlib import Path
import os
import sys
import threading
import time

# Prometheus metrics
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST

# Add the parent directory to Python path to import filmstock modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from filmstock.core.v1.config import get_datarepo_path as _config_datarepo_path
from filmstock.core.v1 import notify
from filmstock.core.v1.migrate import startup
from filmstock.core.v1.store import StoreError, read_inventory
from filmstock.core.v1.grouping import grouped_view
from filmstock.core.v1.stats import stats as repo_stats
from filmstock.core.v1.exchange import export_inventory
from filmstock.core.v1.inventory import add_unit, delete_unit
from filmstock.core.v1.entities import list_cameras
from filmstock.core.v1.lifecycle import (
    load_unit,
    unload,
    delete_loaded_unit,
    reload,
    update_status,
    list_loaded,
    list_finished,
)

app = Flask(__name__)


def get_datarepo_path() -> Path:
    override = app.config.get('FS_DATAREPO')
    if override:
        return Path(override)
    return _config_datarepo_path()


def create_app(datarepo_path=None) -> Flask:
    """Return the app, optionally bound to a specific datarepo."""
    if datarepo_path is not None:
        app.config['FS_DATAREPO'] = str(datarepo_path)
    return app


# -----------------------
# Prometheus instrumentation
# -----------------------
_METRICS_ENV = os.environ.get('METRICS_ENV', 'prod')
_SERVICE_NAME = os.environ.get('SERVICE_NAME', 'filmstock')

HTTP_REQUESTS_TOTAL = Counter(
    'fs_web_http_requests_total',
    'Total HTTP requests',
    ['method', 'path', 'status', 'env', 'service'],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    'fs_web_http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'path', 'status', 'env', 'service'],
    buckets=(0.05, 0.1, 0.3, 1, 3, 10),
)

LOADED_UNITS = Gauge(
    'fs_loaded_units',
    'Loaded film records (rolls or sheet batches in cameras)',
    ['env', 'service'],
)

UNITS_IN_STOCK = Gauge(
    'fs_units_in_stock',
    'Rolls and sheets in stock',
    ['env', 'service'],
)

LOADED_FILMS_CHANGED_TOTAL = Counter(
    'fs_loaded_films_changed_total',
    'Loaded-films-changed notifications seen by the web process',
    ['action', 'env', 'service'],
)


def _on_loaded_films_changed(signal, action='unknown', **payload):
    LOADED_FILMS_CHANGED_TOTAL.labels(str(action), _METRICS_ENV, _SERVICE_NAME).inc()


notify.connect(notify.LOADED_FILMS_CHANGED, _on_loaded_films_changed)


@app.before_request
def _metrics_before_request():
    g._metrics_t0 = time.time()


@app.after_request
def _metrics_after_request(response: Response):
    t0 = getattr(g, '_metrics_t0', None)
    dt = (time.time() - t0) if t0 is not None else None
    method = str(request.method or 'GET')
    # Prefer route rule (stable cardinality); fallback to path
    rule = request.url_rule.rule if request.url_rule is not None else None
    path_label = str(rule or request.path or '/')
    status = str(response.status_code)
    HTTP_REQUESTS_TOTAL.labels(method, path_label, status, _METRICS_ENV, _SERVICE_NAME).inc()
    if dt is not None:
        HTTP_REQUEST_DURATION_SECONDS.labels(method, path_label, status, _METRICS_ENV, _SERVICE_NAME).observe(dt)
    return response


def _update_internal_gauges():
    data = read_inventory(_ready_repo())
    LOADED_UNITS.labels(_METRICS_ENV, _SERVICE_NAME).set(len(data['loaded']))
    UNITS_IN_STOCK.labels(_METRICS_ENV, _SERVICE_NAME).set(
        sum(max(0, int(u.get('quantity') or 0)) for u in data['units'])
    )


@app.get('/metrics')
def _metrics_endpoint():
    try:
        _update_internal_gauges()
    except (StoreError, RuntimeError) as e:
        # Request metrics are still worth serving without the stock gauges
        app.logger.warning(f"[filmStock] Could not update inventory gauges: {e}")
    data = generate_latest()  # default registry
    return Response(response=data, status=200, mimetype=CONTENT_TYPE_LATEST)


# -----------------------
# Datarepo readiness
# -----------------------
_READY_LOCK = threading.Lock()
_READY_REPOS = set()


def _ready_repo() -> Path:
    """Resolve the datarepo and run catalog seeding and migrations once per process."""
    datarepo_path = get_datarepo_path()
    key = str(datarepo_path)
    with _READY_LOCK:
        if key not in _READY_REPOS:
            ran = startup(datarepo_path)
            if ran:
                app.logger.info(f"[filmStock] Applied migrations on {key}: {', '.join(ran)}")
            _READY_REPOS.add(key)
    return datarepo_path


@app.errorhandler(ValueError)
def _handle_value_error(e):
    return jsonify({'success': False, 'error': str(e)}), 400


@app.errorhandler(StoreError)
def _handle_store_error(e):
    app.logger.error(f"[filmStock] Store failure: {e}")
    return jsonify({'success': False, 'error': str(e)}), 500


def _payload() -> dict:
    payload = request.get_json(force=True, silent=True)
    return payload if isinstance(payload, dict) else {}


def _not_found(what: str):
    return jsonify({'success': False, 'error': f'{what} not found'}), 404


# -----------------------
# Stock
# -----------------------

@app.route('/api/stock')
def api_stock_grouped():
    """Stock grouped by film, broken down by format."""
    groups = grouped_view(_ready_repo())
    return jsonify({'success': True, 'groups': groups})


@app.route('/api/stock', methods=['POST'])
def api_stock_add():
    """Add stock from a JSON candidate.

    Request JSON body: name, manufacturer, type, iso, format, quantity and
    optionally custom_format, expiry_dates, frozen, exposures, comments, image.
    """
    payload = _payload()
    image = payload.pop('image', None)
    res = add_unit(_ready_repo(), payload, image=image)
    return jsonify({'success': True, **res}), 201


@app.route('/api/stock/units/<unit_id>/delete', methods=['POST'])
def api_stock_delete_unit(unit_id):
    if not delete_unit(_ready_repo(), unit_id):
        return _not_found(f'unit {unit_id}')
    return jsonify({'success': True, 'deleted': unit_id})


@app.route('/api/cameras')
def api_cameras():
    return jsonify({'success': True, 'cameras': list_cameras(_ready_repo())})


@app.route('/api/stats')
def api_stats():
    return jsonify({'success': True, 'stats': repo_stats(_ready_repo())})


# -----------------------
# Loaded / finished
# -----------------------

@app.route('/api/loaded')
def api_loaded():
    return jsonify({'success': True, 'loaded': list_loaded(_ready_repo())})


@app.route('/api/finished')
def api_finished():
    status = request.args.get('status') or None
    return jsonify({'success': True, 'finished': list_finished(_ready_repo(), status)})


@app.route('/api/load', methods=['POST'])
def api_load():
    """Load film into a camera.

    Request JSON body: unit, format, camera, quantity (default 1), shot_at_iso (optional).
    Responds 409 when the load is not possible (unknown unit, format
    mismatch, not enough stock).
    """
    payload = _payload()
    rec = load_unit(
        _ready_repo(),
        str(payload.get('unit', '')),
        str(payload.get('format', '')),
        str(payload.get('camera', '')),
        payload.get('quantity', 1),
        payload.get('shot_at_iso'),
    )
    if rec is None:
        return jsonify({'success': False, 'error': 'Could not load film'}), 409
    return jsonify({'success': True, 'loaded': rec}), 201


@app.route('/api/loaded/<loaded_id>/unload', methods=['POST'])
def api_unload(loaded_id):
    payload = _payload()
    rec = unload(_ready_repo(), loaded_id, payload.get('quantity'))
    if rec is None:
        return _not_found(f'loaded record {loaded_id}')
    return jsonify({'success': True, 'finished': rec})


@app.route('/api/loaded/<loaded_id>/delete', methods=['POST'])
def api_delete_loaded(loaded_id):
    if not delete_loaded_unit(_ready_repo(), loaded_id):
        return _not_found(f'loaded record {loaded_id}')
    return jsonify({'success': True, 'deleted': loaded_id})


@app.route('/api/finished/<finished_id>/reload', methods=['POST'])
def api_reload(finished_id):
    rec = reload(_ready_repo(), finished_id)
    if rec is None:
        return _not_found(f'finished record {finished_id}')
    return jsonify({'success': True, 'loaded': rec})


@app.route('/api/finished/<finished_id>/status', methods=['POST'])
def api_finished_status(finished_id):
    rec = update_status(_ready_repo(), finished_id, str(_payload().get('status', '')))
    if rec is None:
        return _not_found(f'finished record {finished_id}')
    return jsonify({'success': True, 'finished': rec})


# -----------------------
# Export
# -----------------------

@app.route('/api/export')
def api_export():
    fmt = (request.args.get('format') or 'json').lower()
    text = export_inventory(_ready_repo(), fmt)
    mimetype = 'text/csv' if fmt == 'csv' else 'application/json'
    return Response(
        response=text,
        status=200,
        mimetype=mimetype,
        headers={'Content-Disposition': f'attachment; filename=filmstock-export.{fmt}'},
    )


if __name__ == '__main__':
    port = int(os.environ.get('PORT', '8080'))
    debug_mode = os.environ.get('FLASK_ENV') == 'development' or '--debug' in sys.argv
    print(f"[filmStock] Web API at http://localhost:{port}")
    try:
        app.run(debug=debug_mode, host='0.0.0.0', port=port, use_reloader=debug_mode)
    except KeyboardInterrupt:
        print("\n[filmStock] Shutting down")
