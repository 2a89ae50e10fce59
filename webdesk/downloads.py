"""Secret download links.

Browsing a file and downloading it are decoupled: a flow asks the
:class:`DownloadManager` for a token, and the :class:`DownloadServer`, bound to
its own port, only ever serves paths that were registered that way.
"""

from __future__ import annotations

import os
import threading
import uuid
from typing import Dict, Optional

from flask import Flask, jsonify, send_file
from werkzeug.serving import make_server

from webdesk.logger import Logger, root_logger


class DownloadManager:
    """Process-wide token -> path registry."""

    def __init__(self, port: int) -> None:
        self._port = port
        self._files: Dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def port(self) -> int:
        return self._port

    def add_file(self, path: str) -> str:
        if not isinstance(path, str) or not path:
            raise ValueError("path must be a non-empty string")
        with self._lock:
            token = uuid.uuid4().hex
            while token in self._files:
                token = uuid.uuid4().hex
            self._files[token] = path
        return token

    def resolve(self, token: str) -> Optional[str]:
        with self._lock:
            return self._files.get(token)

    def forget(self, token: str) -> bool:
        with self._lock:
            return self._files.pop(token, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)


def create_download_app(manager: DownloadManager) -> Flask:
    app = Flask("webdesk.downloads")

    @app.route("/<token>")
    def download(token: str):
        path = manager.resolve(token)
        if path is None:
            return jsonify({"ok": False, "error": "Unknown download link"}), 404
        if not os.path.isfile(path):
            return jsonify({"ok": False, "error": "File not found"}), 404
        return send_file(path, as_attachment=True, download_name=os.path.basename(path))

    return app


class DownloadServer:
    """Serves registered files on the manager's port from a daemon thread."""

    def __init__(self, manager: DownloadManager, host: str = "0.0.0.0", *, logger: Optional[Logger] = None) -> None:
        self.manager = manager
        self._logger = (logger or root_logger).mount("downloads")
        self.host = host
        self.app = create_download_app(manager)
        self._server = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._server = make_server(self.host, self.manager.port, self.app, threaded=True)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        self._logger.info("download server listening on %s:%s", self.host, self.manager.port)

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        self._server = None
        self._thread = None
