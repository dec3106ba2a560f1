"""Live capture: camera thread → single-slot mailbox → throttle worker.

The producer never waits on detection. A slow detector only means more frames
are replaced in the mailbox before the worker takes one.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Protocol, TypeVar

from presence_ai.exceptions import CameraError
from presence_ai.face_module.throttle import CaptureThrottle, FrameOutcome
from presence_ai.utils.logger import setup_logger
from presence_ai.utils.queueing import LatestMailbox
from presence_ai.utils.types import CaptureCandidate, RawFrame

T = TypeVar("T")


class FrameSource(Protocol):
    def read(self) -> RawFrame: ...


class LiveCaptureSession:
    def __init__(self, source: FrameSource, throttle: CaptureThrottle, poll_interval: float = 0.05):
        self.source = source
        self.throttle = throttle
        self.poll_interval = poll_interval
        self.mailbox: LatestMailbox[RawFrame] = LatestMailbox()
        self.stop_event = threading.Event()
        self.last_error: Exception | None = None
        self.outcomes: dict[FrameOutcome, int] = {outcome: 0 for outcome in FrameOutcome}
        self._threads: list[threading.Thread] = []
        self.logger = setup_logger(self.__class__.__name__)

    def __enter__(self) -> "LiveCaptureSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def start(self) -> None:
        if self._threads:
            return
        self._threads = [
            threading.Thread(target=self._produce, name="presence-camera", daemon=True),
            threading.Thread(target=self._consume, name="presence-throttle", daemon=True),
        ]
        for thread in self._threads:
            thread.start()

    def _produce(self) -> None:
        while not self.stop_event.is_set():
            try:
                frame = self.source.read()
            except CameraError as exc:
                self.last_error = exc
                self.logger.error("Camera stream stopped: %s", exc)
                self.stop_event.set()
                return
            self.mailbox.put(frame)

    def _consume(self) -> None:
        while not self.stop_event.is_set():
            frame = self.mailbox.get(timeout=self.poll_interval)
            if frame is None:
                continue
            try:
                outcome = self.throttle.submit(frame)
            except Exception as exc:
                self.last_error = exc
                self.logger.exception("Face detection failed; stopping capture")
                self.stop_event.set()
                return
            self.outcomes[outcome] += 1
            self.logger.debug("Frame %s", outcome.value)

    def wait_for_candidate(self, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.throttle.has_candidate:
                return True
            if self.stop_event.is_set() and not self.running:
                break
            time.sleep(self.poll_interval)
        return self.throttle.has_candidate

    def capture(self, action: Callable[[CaptureCandidate], T]) -> T | None:
        return self.throttle.capture(action)

    def stop(self) -> None:
        self.stop_event.set()
        self.throttle.stop()
        for thread in self._threads:
            thread.join(timeout=2.0)
        self._threads = []
        self.mailbox.clear()
        if self.mailbox.replaced:
            self.logger.info("Capture session stopped; %d stale frames replaced", self.mailbox.replaced)
