from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Union

from webdesk.logger import Logger, root_logger

_logger = root_logger.mount("explorer").mount("listing")


@dataclass(frozen=True)
class FileEntry:
    is_folder: bool
    name: str
    size: int
    time: int

    def to_payload(self) -> Dict[str, Any]:
        return {
            "isFolder": self.is_folder,
            "name": self.name,
            "size": self.size,
            "time": self.time,
        }


@dataclass(frozen=True)
class Listed:
    entry: FileEntry


@dataclass(frozen=True)
class Skipped:
    name: str
    reason: str


EntryResult = Union[Listed, Skipped]


def read_entry(directory: str, name: str) -> EntryResult:
    """Stat one child of ``directory``; symlinks are followed."""
    try:
        stat_info = os.stat(os.path.join(directory, name))
    except OSError as exc:
        return Skipped(name, exc.strerror or str(exc))
    return Listed(
        FileEntry(
            is_folder=stat.S_ISDIR(stat_info.st_mode),
            name=name,
            size=stat_info.st_size,
            time=int(stat_info.st_atime * 1000),
        )
    )


def scan_directory(directory: str) -> List[EntryResult]:
    with os.scandir(directory) as iterator:
        names = [entry.name for entry in iterator]
    return [read_entry(directory, name) for name in names]


def list_files(directory: str, *, logger: Logger = _logger) -> List[FileEntry]:
    """Immediate children of ``directory`` whose metadata could be read."""
    entries: List[FileEntry] = []
    for result in scan_directory(directory):
        if isinstance(result, Listed):
            entries.append(result.entry)
        else:
            logger.debug("skipping %s in %s: %s", result.name, directory, result.reason)
    return entries


def sort_entries(entries: Iterable[FileEntry]) -> List[FileEntry]:
    return sorted(entries, key=lambda item: (not item.is_folder, item.name.lower()))


def to_payload(entries: Iterable[FileEntry]) -> List[Dict[str, Any]]:
    return [entry.to_payload() for entry in entries]
