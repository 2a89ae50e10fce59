from __future__ import annotations

import itertools
from typing import Any, Dict, List

import pytest

from webdesk.apps.explorer.flow import EXPLORER_EVENTS, VIEW_NAME, ExplorerFlow
from webdesk.downloads import DownloadManager
from webdesk.views import ViewChannel


def run_inline(target):
    target()
    return None


class RecordingWindow:
    def __init__(self) -> None:
        self.titles: List[str] = []

    def set_window_title(self, title: str) -> None:
        self.titles.append(title)


class Remote:
    """Plays the browser side of a view channel."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self._ids = itertools.count(1)
        self.channel: ViewChannel = None  # type: ignore[assignment]

    def send(self, message: Dict[str, Any]) -> None:
        self.sent.append(message)

    def emit(self, name: str, payload: Any = None) -> Dict[str, Any]:
        request_id = next(self._ids)
        self.channel.receive({"type": "event", "id": request_id, "name": name, "payload": payload})
        return self.response(request_id)

    def response(self, request_id: int) -> Dict[str, Any]:
        for message in self.sent:
            if message["type"] == "response" and message["id"] == request_id:
                return message
        raise AssertionError(f"no response for request {request_id}")

    def of_type(self, kind: str) -> List[Dict[str, Any]]:
        return [message for message in self.sent if message["type"] == kind]


@pytest.fixture
def remote() -> Remote:
    return Remote()


@pytest.fixture
def downloads() -> DownloadManager:
    return DownloadManager(8081)


@pytest.fixture
def make_flow(remote, downloads):
    def factory(path, **kwargs) -> ExplorerFlow:
        channel = ViewChannel(VIEW_NAME, EXPLORER_EVENTS, remote.send, spawn=run_inline)
        remote.channel = channel
        flow = ExplorerFlow(channel, downloads, path=str(path), **kwargs)
        flow.start()
        return flow

    return factory
