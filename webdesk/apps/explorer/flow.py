"""Backend flow of one Explorer window."""

from __future__ import annotations

import base64
import binascii
import os
import threading
from typing import Any, Callable, Dict, List, Optional

from webdesk.apps.explorer.controller import FilesystemController, InvalidPathError, require_path
from webdesk.apps.explorer.listing import FileEntry, list_files, to_payload
from webdesk.apps.explorer.refresh import RefreshGuard
from webdesk.downloads import DownloadManager
from webdesk.logger import Logger, root_logger
from webdesk.views import NullWindow, ViewChannel

VIEW_NAME = "explorer"
VIEW_TYPE = "explore"
EXPLORER_EVENTS = (
    "changeCurrentPath",
    "createFolder",
    "delete",
    "move",
    "copy",
    "upload",
    "requestDownloadLink",
)

Lister = Callable[[str], List[FileEntry]]


def _mapping(payload: Any, *fields: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise InvalidPathError(f"payload must be an object with {', '.join(fields)}")
    return payload


def _decode_upload(data: Any) -> bytes:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if not isinstance(data, str):
        raise TypeError("upload data must be a base64 string")
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"upload data is not valid base64: {exc}") from exc


class ExplorerFlow:
    def __init__(
        self,
        channel: ViewChannel,
        downloads: DownloadManager,
        *,
        path: Optional[str] = None,
        window=None,
        logger: Logger = root_logger,
        lister: Lister = list_files,
    ) -> None:
        self.channel = channel
        self.downloads = downloads
        self.current_path = path or os.path.expanduser("~")
        self.window = window if window is not None else NullWindow()
        self.logger = logger.mount("explorer")
        self.guard = RefreshGuard()
        # current_path and the files pushed for it change together
        self._path_lock = threading.Lock()
        self.fs = FilesystemController(self.refresh)
        self._lister = lister

    def list_files(self) -> List[Dict[str, Any]]:
        return to_payload(self._lister(self.current_path))

    def _bind_title(self) -> None:
        self.window.set_window_title(f"explorer - {self.current_path}")

    # ------------------------------------------------------------------

    def start(self) -> ViewChannel:
        files = self.list_files()
        (
            self.channel.on("changeCurrentPath", self.change_current_path)
            .on("createFolder", self.fs.create_folder)
            .on("delete", self.fs.delete)
            .on("move", lambda payload: self.fs.move(*self._paths(payload)))
            .on("copy", lambda payload: self.fs.copy(*self._paths(payload)))
            .on("upload", self.upload)
            .on("requestDownloadLink", self.request_download_link)
        )
        self.channel.open(
            {
                "currentPath": self.current_path,
                "platfromPathSperator": os.sep,
                "files": files,
                "type": VIEW_TYPE,
            }
        )
        self._bind_title()
        self.logger.info("explorer opened at %s", self.current_path)
        return self.channel

    def run(self, timeout: Optional[float] = None) -> bool:
        """Open the view and block until the remote side closes it."""
        self.start()
        closed = self.channel.wait_closed(timeout)
        if closed:
            self.logger.info("explorer at %s closed", self.current_path)
        return closed

    def refresh(self) -> bool:
        """Re-list the current directory unless a listing is already running."""

        def list_current():
            path = self.current_path
            return path, to_payload(self._lister(path))

        def apply(result) -> None:
            path, files = result
            # a changeCurrentPath that landed mid-scan already pushed newer files
            with self._path_lock:
                if path == self.current_path:
                    self.channel.update({"files": files})

        return self.guard.try_refresh(list_current, apply)

    # ------------------------------------------------------------------
    # Event handlers

    def change_current_path(self, path: Any) -> None:
        target = require_path(path)
        files = to_payload(self._lister(target))
        with self._path_lock:
            self.current_path = target
            self._bind_title()
            self.channel.update({"currentPath": target, "files": files})

    @staticmethod
    def _paths(payload: Any) -> tuple:
        data = _mapping(payload, "originalPath", "newPath")
        return data.get("originalPath"), data.get("newPath")

    def upload(self, payload: Any) -> None:
        data = _mapping(payload, "path", "data")
        self.fs.upload(data.get("path"), _decode_upload(data.get("data")))

    def request_download_link(self, path: Any) -> Dict[str, Any]:
        target = require_path(path)
        token = self.downloads.add_file(target)
        self.logger.info("user request download link for %s secret hash is %s", target, token)
        return {"path": f"/{token}", "port": self.downloads.port}
