#!/usr/bin/env python

import importlib
import json
import os
import threading
import time
from pathlib import Path

import psutil
from flask import Flask, jsonify, request
from flask_sock import Sock

from webdesk import config
from webdesk.downloads import DownloadManager, DownloadServer
from webdesk.logger import configure_logging, root_logger
from webdesk.views import ViewRegistry

configure_logging(config.LOG_LEVEL)
_logger = root_logger.mount("host")

app = Flask(__name__)
# Initialize WebSocket support and expose to modules
sock = Sock(app)
app.config["SOCK"] = sock
app.config["WD_RUN_ID"] = config.ensure_run_id()
app.config["DOWNLOADS"] = DownloadManager(config.DOWNLOAD_PORT)
app.config["VIEWS"] = ViewRegistry()

APP_STARTED_AT = time.time()
SETTINGS_LOCK = threading.RLock()

loaded_apps = []


def _settings_file() -> Path:
    return Path(app.config.get("SETTINGS_FILE") or config.SETTINGS_FILE)


def _load_settings() -> dict:
    path = _settings_file()
    with SETTINGS_LOCK:
        try:
            if path.is_file():
                with path.open('r', encoding='utf-8') as fh:
                    data = json.load(fh)
                    if isinstance(data, dict):
                        return data
        except (OSError, json.JSONDecodeError) as exc:
            _logger.warning("Failed to load settings: %s", exc)
        return {}


def _save_settings(payload: dict) -> dict:
    path = _settings_file()
    with SETTINGS_LOCK:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix('.tmp')
        with tmp_path.open('w', encoding='utf-8') as fh:
            json.dump(payload, fh, indent=2, ensure_ascii=False)
        tmp_path.replace(path)
    return payload


# --- App Loader ---

def load_apps():
    """Scans for apps, loads their blueprints (if any), and returns their manifests."""
    apps = []
    apps_dir = os.path.join(os.path.dirname(__file__), 'apps')
    if not os.path.exists(apps_dir):
        return []

    for app_name in sorted(os.listdir(apps_dir)):
        app_path = os.path.join(apps_dir, app_name)
        manifest_path = os.path.join(app_path, 'manifest.json')

        if not os.path.isdir(app_path) or not os.path.exists(manifest_path):
            continue

        with open(manifest_path, 'r', encoding='utf-8') as f:
            manifest = json.load(f)
            manifest['_dir'] = app_name
            apps.append(manifest)

        backend_file = manifest.get('entrypoints', {}).get('backend_blueprint')
        if backend_file:
            module_name = f"webdesk.apps.{app_name}.{backend_file.replace('.py', '')}"
            module = importlib.import_module(module_name)

            from flask import Blueprint
            for obj_name in dir(module):
                obj = getattr(module, obj_name)
                if isinstance(obj, Blueprint):
                    app_id = manifest.get('id', app_name)
                    app.register_blueprint(obj, url_prefix=f"/api/app/{app_id}")
                    break
            # Optionally register WebSocket routes if provided by the app module
            if hasattr(module, 'register_ws_routes'):
                module.register_ws_routes(app)
    return apps


# --- Main Application Routes ---

@app.route('/api/apps')
def get_apps():
    return jsonify({"ok": True, "data": loaded_apps})


@app.route('/api/settings', methods=['GET', 'POST'])
def settings_handler():
    if request.method == 'GET':
        data = _load_settings()
        return jsonify({"ok": True, "data": data})

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"ok": False, "error": 'JSON object required'}), 400
    try:
        saved = _save_settings(payload)
    except OSError as exc:
        return jsonify({"ok": False, "error": f'Failed to save settings: {exc}'}), 500
    _logger.info("settings saved (%d keys)", len(saved))
    return jsonify({"ok": True, "data": saved})


@app.route('/api/runtime/metrics')
def runtime_metrics():
    downloads = app.config["DOWNLOADS"]
    data = {
        "run_id": app.config.get("WD_RUN_ID"),
        "app_pid": os.getpid(),
        "started_at": APP_STARTED_AT,
        "uptime": max(0.0, time.time() - APP_STARTED_AT),
        "open_views": app.config["VIEWS"].counts(),
        "download_links": len(downloads),
        "download_port": downloads.port,
        "process": None,
    }
    try:
        proc = psutil.Process(os.getpid())
        with proc.oneshot():
            data["process"] = {
                "cpu_percent": proc.cpu_percent(interval=0.0),
                "memory_rss": proc.memory_info().rss,
                "num_threads": proc.num_threads(),
            }
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        data["process"] = None
    return jsonify({"ok": True, "data": data})


loaded_apps = load_apps()


def serve() -> None:
    print(f"Loaded {len(loaded_apps)} apps.")
    print("--- Starting Download Server ---")
    download_server = DownloadServer(app.config["DOWNLOADS"], host=config.DOWNLOAD_HOST)
    download_server.start()
    print("--- Starting Server ---")
    try:
        app.run(host=config.HOST, port=config.PORT, debug=False)
    finally:
        download_server.stop()


if __name__ == '__main__':
    serve()
