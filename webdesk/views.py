"""Remote view channels.

A :class:`ViewChannel` mirrors the state of one remote-rendered window. The
flow that owns the window pushes partial state with :meth:`ViewChannel.update`
and answers events raised by the browser through handlers registered with
:meth:`ViewChannel.on`.

Wire messages (JSON objects):

* server -> client: ``{"type": "open", "view", "state"}``,
  ``{"type": "update", "state"}``, ``{"type": "response", "id", "ok", "data" | "error"}``
  and ``{"type": "window", "title"}``.
* client -> server: ``{"type": "event", "id", "name", "payload"}`` and
  ``{"type": "close"}``.
"""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Union

from webdesk.logger import Logger, root_logger

Transport = Callable[[Dict[str, Any]], None]
Handler = Callable[[Any], Any]
Spawner = Callable[[Callable[[], None]], Optional[threading.Thread]]


def _spawn_thread(target: Callable[[], None]) -> threading.Thread:
    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    return thread


class ViewChannel:
    """State holder and event dispatch table for one remote view."""

    def __init__(
        self,
        view: str,
        events: Iterable[str],
        send: Transport,
        *,
        logger: Optional[Logger] = None,
        spawn: Spawner = _spawn_thread,
    ) -> None:
        self.view = view
        self.events: FrozenSet[str] = frozenset(events)
        self._send = send
        self._spawn = spawn
        self._logger = (logger or root_logger).mount("view")
        self._handlers: Dict[str, Handler] = {}
        self._state: Dict[str, Any] = {}
        self._lock = threading.RLock()
        self._opened = threading.Event()
        self._closed = threading.Event()
        self._workers: List[threading.Thread] = []

    # ------------------------------------------------------------------
    # Lifecycle

    def on(self, event: str, handler: Handler) -> "ViewChannel":
        if event not in self.events:
            raise ValueError(f"View '{self.view}' does not raise '{event}'")
        if event in self._handlers:
            raise ValueError(f"Handler for '{event}' already registered")
        self._handlers[event] = handler
        return self

    def open(self, initial_state: Dict[str, Any]) -> "ViewChannel":
        missing = sorted(self.events - set(self._handlers))
        if missing:
            raise RuntimeError(f"Unhandled events for view '{self.view}': {', '.join(missing)}")
        with self._lock:
            if self._opened.is_set():
                raise RuntimeError(f"View '{self.view}' is already open")
            self._opened.set()
            self._state = dict(initial_state)
            self.push({"type": "open", "view": self.view, "state": dict(self._state)})
        return self

    def close(self) -> None:
        with self._lock:
            self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def opened(self) -> bool:
        return self._opened.is_set()

    def wait_opened(self, timeout: Optional[float] = None) -> bool:
        return self._opened.wait(timeout)

    def wait_closed(self, timeout: Optional[float] = None) -> bool:
        return self._closed.wait(timeout)

    def join_workers(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            workers = list(self._workers)
        for worker in workers:
            worker.join(timeout)

    # ------------------------------------------------------------------
    # State

    @property
    def state(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._state)

    def update(self, partial: Dict[str, Any]) -> Dict[str, Any]:
        """Merge ``partial`` into the state and push the fields that changed."""
        with self._lock:
            changed = {
                key: value
                for key, value in partial.items()
                if key not in self._state or self._state[key] != value
            }
            if not changed:
                return changed
            self._state.update(changed)
            self.push({"type": "update", "state": changed})
            return changed

    def push(self, message: Dict[str, Any]) -> bool:
        with self._lock:
            if self._closed.is_set():
                return False
            try:
                self._send(message)
            except Exception as exc:
                self._logger.warning("push to view %s failed, closing: %s", self.view, exc)
                self._closed.set()
                return False
            return True

    # ------------------------------------------------------------------
    # Inbound

    def receive(self, raw: Union[str, bytes, Dict[str, Any]]) -> None:
        if isinstance(raw, (str, bytes)):
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                self._logger.warning("ignoring non-JSON message for view %s", self.view)
                return
        else:
            message = raw
        if not isinstance(message, dict):
            self._logger.warning("ignoring malformed message for view %s", self.view)
            return

        kind = message.get("type")
        if kind == "close":
            self.close()
            return
        if kind != "event":
            self._logger.warning("ignoring message of type %r for view %s", kind, self.view)
            return

        request_id = message.get("id")
        name = message.get("name")
        handler = self._handlers.get(name) if isinstance(name, str) else None
        if handler is None:
            self._respond(request_id, error=f"Unknown event '{name}'")
            return

        payload = message.get("payload")
        thread = self._spawn(lambda: self._dispatch(request_id, name, handler, payload))
        if thread is not None:
            with self._lock:
                self._workers = [t for t in self._workers if t.is_alive()]
                self._workers.append(thread)

    def _dispatch(self, request_id: Any, name: str, handler: Handler, payload: Any) -> None:
        try:
            result = handler(payload)
        except Exception as exc:
            self._logger.error("%s handler of view %s failed: %s", name, self.view, exc)
            self._respond(request_id, error=str(exc) or exc.__class__.__name__)
            return
        self._respond(request_id, data=result)

    def _respond(self, request_id: Any, *, data: Any = None, error: Optional[str] = None) -> None:
        if request_id is None:
            return
        if error is not None:
            self.push({"type": "response", "id": request_id, "ok": False, "error": error})
        else:
            self.push({"type": "response", "id": request_id, "ok": True, "data": data})


class ViewRegistry:
    """Channels currently open in this process."""

    def __init__(self) -> None:
        self._channels: List[ViewChannel] = []
        self._lock = threading.Lock()

    def add(self, channel: ViewChannel) -> None:
        with self._lock:
            self._channels.append(channel)

    def remove(self, channel: ViewChannel) -> None:
        with self._lock:
            if channel in self._channels:
                self._channels.remove(channel)

    def counts(self) -> Dict[str, int]:
        with self._lock:
            result: Dict[str, int] = {}
            for channel in self._channels:
                result[channel.view] = result.get(channel.view, 0) + 1
            return result


class WindowContext:
    """Window chrome of a view; only the title is controllable from a flow."""

    def __init__(self, channel: ViewChannel) -> None:
        self._channel = channel
        self.title: Optional[str] = None

    def set_window_title(self, title: str) -> None:
        self.title = title
        self._channel.push({"type": "window", "title": title})


class NullWindow:
    """Stand-in used when a flow runs without window chrome."""

    title: Optional[str] = None

    def set_window_title(self, title: str) -> None:
        return None
