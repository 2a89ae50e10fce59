from __future__ import annotations

import threading
from typing import Callable, TypeVar

T = TypeVar("T")


class RefreshGuard:
    """Lets at most one listing run at a time; overlapping requests are dropped.

    Dropped requests are neither queued nor retried. A burst of mutations
    therefore costs one scan, and the scan that runs observes the state left by
    every mutation that finished before it started.
    """

    def __init__(self) -> None:
        self._marker = threading.Lock()

    @property
    def in_progress(self) -> bool:
        return self._marker.locked()

    def try_refresh(self, list_fn: Callable[[], T], apply_fn: Callable[[T], object]) -> bool:
        if not self._marker.acquire(blocking=False):
            return False
        try:
            apply_fn(list_fn())
        finally:
            self._marker.release()
        return True
