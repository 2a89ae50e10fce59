from __future__ import annotations

import os
import shutil
from typing import Any, Callable


class InvalidPathError(ValueError):
    """Raised when an event payload does not carry a usable path."""


def require_path(value: Any, field: str = "path") -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidPathError(f"{field} must be a non-empty string")
    return value


def _ensure_parent(target: str) -> None:
    parent = os.path.dirname(os.path.abspath(target))
    os.makedirs(parent, exist_ok=True)


class FilesystemController:
    """Applies explorer mutations to the local filesystem.

    Filesystem errors are not caught here; they reach the event handler that
    asked for the mutation. After every successful mutation ``refresh`` is
    called so the view can re-list its directory.
    """

    def __init__(self, refresh: Callable[[], object]) -> None:
        self._refresh = refresh

    def create_folder(self, path: Any) -> None:
        target = require_path(path)
        os.mkdir(target)
        self._refresh()

    def delete(self, path: Any) -> None:
        target = require_path(path)
        if os.path.isdir(target) and not os.path.islink(target):
            shutil.rmtree(target)
        else:
            os.remove(target)
        self._refresh()

    def move(self, original_path: Any, new_path: Any) -> None:
        source = require_path(original_path, "originalPath")
        dest = require_path(new_path, "newPath")
        if not os.path.lexists(source):
            raise FileNotFoundError(f"{source} does not exist")
        if os.path.lexists(dest):
            raise FileExistsError(f"{dest} already exists")
        _ensure_parent(dest)
        shutil.move(source, dest)
        self._refresh()

    def copy(self, original_path: Any, new_path: Any) -> None:
        source = require_path(original_path, "originalPath")
        dest = require_path(new_path, "newPath")
        _ensure_parent(dest)
        if os.path.isdir(source) and not os.path.islink(source):
            shutil.copytree(source, dest, symlinks=True, dirs_exist_ok=True)
        else:
            shutil.copy2(source, dest, follow_symlinks=False)
        self._refresh()

    def upload(self, path: Any, data: Any) -> None:
        target = require_path(path)
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("upload data must be bytes")
        with open(target, "wb") as fh:
            fh.write(data)
        self._refresh()
