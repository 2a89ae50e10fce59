from __future__ import annotations

import json
import os
import threading
from typing import Any

from flask import Blueprint, current_app, jsonify, request

from webdesk.apps.explorer.flow import EXPLORER_EVENTS, VIEW_NAME, ExplorerFlow
from webdesk.apps.explorer.listing import list_files, sort_entries, to_payload
from webdesk.logger import root_logger
from webdesk.views import ViewChannel, WindowContext

bp = Blueprint("explorer_app", __name__)

_logger = root_logger.mount("explorer")

RECEIVE_POLL_SECONDS = 0.5


def _json_ok(data: Any, status: int = 200):
    return jsonify({"ok": True, "data": data}), status


def _json_err(message: str, status: int = 400):
    return jsonify({"ok": False, "error": str(message)}), status


@bp.route("/list", methods=["GET"])
def list_directory():
    raw_path = request.args.get("path") or "~"
    abs_path = os.path.abspath(os.path.expanduser(raw_path))
    try:
        entries = list_files(abs_path)
    except FileNotFoundError:
        return _json_err("Directory not found", 404)
    except NotADirectoryError:
        return _json_err("Not a directory", 400)
    except PermissionError as exc:
        return _json_err(str(exc) or "Permission denied", 403)
    except OSError as exc:
        return _json_err(str(exc), 500)
    return _json_ok({"path": abs_path, "files": to_payload(sort_entries(entries))})


def _run_flow(flow: ExplorerFlow) -> None:
    try:
        flow.run()
    except Exception as exc:
        _logger.error("explorer flow at %s failed: %s", flow.current_path, exc)
        flow.channel.push({"type": "error", "error": str(exc)})
        flow.channel.close()


def serve_explorer(ws, downloads, registry=None, path=None) -> None:
    """Pump one WebSocket connection through an explorer flow until either side closes."""
    channel = ViewChannel(
        VIEW_NAME,
        EXPLORER_EVENTS,
        lambda message: ws.send(json.dumps(message)),
        logger=_logger,
    )
    flow = ExplorerFlow(
        channel,
        downloads,
        path=path,
        window=WindowContext(channel),
        logger=root_logger,
    )
    if registry is not None:
        registry.add(channel)
    t = threading.Thread(target=_run_flow, args=(flow,), daemon=True)
    t.start()
    try:
        while not channel.wait_opened(RECEIVE_POLL_SECONDS):
            if channel.closed:
                return
        while not channel.closed:
            msg = ws.receive(timeout=RECEIVE_POLL_SECONDS)
            if msg is None:
                continue
            channel.receive(msg)
    finally:
        channel.close()
        t.join(timeout=1.0)
        if registry is not None:
            registry.remove(channel)


def register_ws_routes(app):
    sock = app.config.get("SOCK")
    if not sock:
        return

    @sock.route("/api/app/explorer/ws")
    def explorer_ws(ws):  # type: ignore[no-redef]
        serve_explorer(
            ws,
            current_app.config["DOWNLOADS"],
            current_app.config.get("VIEWS"),
            path=request.args.get("path") or None,
        )
