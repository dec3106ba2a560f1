"""Single-flight gate between the live frame stream and enroll/verify actions.

The throttle owns one candidate slot. Only the frame path writes it and only
``capture`` takes it, so a ``threading.Condition`` around state transitions is
the only synchronization needed; detection itself runs outside the lock.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, Sequence, TypeVar

from presence_ai.exceptions import PresenceError
from presence_ai.utils.logger import setup_logger
from presence_ai.utils.types import CaptureCandidate, FaceRegion, RawFrame

T = TypeVar("T")

FaceFinder = Callable[[RawFrame], Sequence[FaceRegion]]


class ThrottleState(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    READY = "ready"
    CAPTURING = "capturing"
    STOPPED = "stopped"


class FrameOutcome(str, Enum):
    RETAINED = "retained"
    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"
    DROPPED = "dropped"
    DISCARDED = "discarded"
    FAILED = "failed"


class CaptureThrottle:
    def __init__(self, find_faces: FaceFinder):
        self._find_faces = find_faces
        self._cond = threading.Condition()
        self._state = ThrottleState.IDLE
        self._candidate: CaptureCandidate | None = None
        self.logger = setup_logger(self.__class__.__name__)

    @property
    def state(self) -> ThrottleState:
        with self._cond:
            return self._state

    @property
    def has_candidate(self) -> bool:
        with self._cond:
            return self._candidate is not None

    def submit(self, frame: RawFrame) -> FrameOutcome:
        with self._cond:
            if self._state not in (ThrottleState.IDLE, ThrottleState.READY):
                return FrameOutcome.DROPPED
            self._state = ThrottleState.DETECTING

        try:
            faces = list(self._find_faces(frame))
        except PresenceError as exc:
            self.logger.debug("Frame dropped: %s", exc)
            self._finish_detection(None)
            return FrameOutcome.FAILED
        except BaseException:
            self._finish_detection(None)
            raise

        if len(faces) == 1:
            retained = self._finish_detection(CaptureCandidate(frame=frame, region=faces[0]))
            return FrameOutcome.RETAINED if retained else FrameOutcome.DISCARDED

        if not self._finish_detection(None):
            return FrameOutcome.DISCARDED
        return FrameOutcome.NO_FACE if not faces else FrameOutcome.MULTIPLE_FACES

    def _finish_detection(self, candidate: CaptureCandidate | None) -> bool:
        with self._cond:
            if self._state is not ThrottleState.DETECTING:
                # Stopped while the detector was running.
                return False
            if candidate is not None:
                self._candidate = candidate
                self._state = ThrottleState.READY
            else:
                self._state = ThrottleState.IDLE
            self._cond.notify_all()
            return True

    def capture(self, action: Callable[[CaptureCandidate], T]) -> T | None:
        """Run ``action`` on the retained candidate, or do nothing if there is none.

        Waits for an in-flight detection pass to settle first; frames submitted
        while the action runs are dropped.
        """
        with self._cond:
            while self._state is ThrottleState.DETECTING:
                self._cond.wait()
            if self._state not in (ThrottleState.IDLE, ThrottleState.READY) or self._candidate is None:
                return None
            candidate = self._candidate
            self._candidate = None
            self._state = ThrottleState.CAPTURING

        try:
            return action(candidate)
        finally:
            with self._cond:
                if self._state is ThrottleState.CAPTURING:
                    self._state = ThrottleState.IDLE
                self._cond.notify_all()

    def stop(self) -> None:
        with self._cond:
            self._state = ThrottleState.STOPPED
            self._candidate = None
            self._cond.notify_all()
