from __future__ import annotations

from queue import Empty, Full, Queue
from typing import Generic, TypeVar

T = TypeVar("T")


class LatestMailbox(Generic[T]):
    """Single-slot mailbox: a new item replaces any item not yet taken."""

    def __init__(self) -> None:
        self._queue: Queue[T] = Queue(maxsize=1)
        self.replaced = 0

    def put(self, item: T) -> None:
        while True:
            try:
                self._queue.put_nowait(item)
                return
            except Full:
                pass
            try:
                self._queue.get_nowait()
                self.replaced += 1
            except Empty:
                pass

    def get(self, timeout: float | None = None) -> T | None:
        try:
            return self._queue.get(timeout=timeout)
        except Empty:
            return None

    def clear(self) -> None:
        try:
            self._queue.get_nowait()
        except Empty:
            pass
