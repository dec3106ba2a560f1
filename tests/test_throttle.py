import threading
from datetime import timezone

from presence_ai.exceptions import DecodeError
from presence_ai.face_module.throttle import CaptureThrottle, FrameOutcome, ThrottleState
from presence_ai.utils.types import FaceRegion

from conftest import solid_frame

ONE_FACE = [FaceRegion(10, 10, 30, 30)]
TWO_FACES = [FaceRegion(0, 0, 20, 20), FaceRegion(30, 30, 20, 20)]


class ScriptedFinder:
    def __init__(self, *results):
        self.results = list(results)

    def __call__(self, frame):
        return self.results.pop(0)


def test_latest_single_face_frame_wins():
    throttle = CaptureThrottle(ScriptedFinder(ONE_FACE, ONE_FACE))
    first, second = solid_frame((10, 10, 10)), solid_frame((20, 20, 20))

    assert throttle.submit(first) is FrameOutcome.RETAINED
    assert throttle.submit(second) is FrameOutcome.RETAINED
    assert throttle.state is ThrottleState.READY
    assert throttle.capture(lambda candidate: candidate.frame) is second


def test_ambiguous_frame_does_not_overwrite_candidate():
    throttle = CaptureThrottle(ScriptedFinder(ONE_FACE, TWO_FACES, []))
    first = solid_frame((10, 10, 10))

    assert throttle.submit(first) is FrameOutcome.RETAINED
    assert throttle.submit(solid_frame((20, 20, 20))) is FrameOutcome.MULTIPLE_FACES
    assert throttle.submit(solid_frame((30, 30, 30))) is FrameOutcome.NO_FACE
    assert throttle.state is ThrottleState.IDLE
    assert throttle.capture(lambda candidate: candidate.frame) is first


def test_capture_without_candidate_is_a_no_op():
    throttle = CaptureThrottle(ScriptedFinder([]))
    calls = []
    assert throttle.capture(calls.append) is None
    throttle.submit(solid_frame())
    assert throttle.capture(calls.append) is None
    assert calls == []


def test_capture_clears_the_candidate_and_returns_to_idle():
    throttle = CaptureThrottle(ScriptedFinder(ONE_FACE))
    throttle.submit(solid_frame())
    assert throttle.capture(lambda candidate: candidate.region) == ONE_FACE[0]
    assert throttle.state is ThrottleState.IDLE
    assert not throttle.has_candidate
    assert throttle.capture(lambda candidate: candidate) is None


def test_failed_action_still_returns_to_idle():
    throttle = CaptureThrottle(ScriptedFinder(ONE_FACE))
    throttle.submit(solid_frame())

    def explode(candidate):
        raise RuntimeError("inference failed")

    try:
        throttle.capture(explode)
    except RuntimeError:
        pass
    assert throttle.state is ThrottleState.IDLE


def test_decode_failures_drop_the_frame():
    def failing(frame):
        raise DecodeError("garbled")

    throttle = CaptureThrottle(failing)
    assert throttle.submit(solid_frame()) is FrameOutcome.FAILED
    assert throttle.state is ThrottleState.IDLE


def test_frames_are_dropped_while_detection_is_in_flight():
    entered, release = threading.Event(), threading.Event()

    def slow(frame):
        entered.set()
        release.wait(5)
        return ONE_FACE

    throttle = CaptureThrottle(slow)
    outcomes = []
    worker = threading.Thread(target=lambda: outcomes.append(throttle.submit(solid_frame())))
    worker.start()
    assert entered.wait(5)

    assert throttle.state is ThrottleState.DETECTING
    assert throttle.submit(solid_frame()) is FrameOutcome.DROPPED

    release.set()
    worker.join(5)
    assert outcomes == [FrameOutcome.RETAINED]


def test_frames_are_dropped_while_capturing():
    throttle = CaptureThrottle(ScriptedFinder(ONE_FACE, ONE_FACE))
    throttle.submit(solid_frame())
    inner = []
    throttle.capture(lambda candidate: inner.append(throttle.submit(solid_frame())))
    assert inner == [FrameOutcome.DROPPED]


def test_capture_waits_for_in_flight_detection():
    entered, release = threading.Event(), threading.Event()
    frame = solid_frame()

    def slow(submitted):
        entered.set()
        release.wait(5)
        return ONE_FACE

    throttle = CaptureThrottle(slow)
    worker = threading.Thread(target=throttle.submit, args=(frame,))
    worker.start()
    assert entered.wait(5)

    captured = []
    capturer = threading.Thread(target=lambda: captured.append(throttle.capture(lambda c: c.frame)))
    capturer.start()
    release.set()
    worker.join(5)
    capturer.join(5)
    assert captured == [frame]


def test_results_after_stop_are_discarded():
    entered, release = threading.Event(), threading.Event()

    def slow(frame):
        entered.set()
        release.wait(5)
        return ONE_FACE

    throttle = CaptureThrottle(slow)
    outcomes = []
    worker = threading.Thread(target=lambda: outcomes.append(throttle.submit(solid_frame())))
    worker.start()
    assert entered.wait(5)

    throttle.stop()
    release.set()
    worker.join(5)

    assert outcomes == [FrameOutcome.DISCARDED]
    assert throttle.state is ThrottleState.STOPPED
    assert not throttle.has_candidate
    assert throttle.submit(solid_frame()) is FrameOutcome.DROPPED
    assert throttle.capture(lambda candidate: candidate) is None


def test_retained_candidate_is_stamped_in_utc():
    throttle = CaptureThrottle(ScriptedFinder(ONE_FACE))
    throttle.submit(solid_frame())
    stamp = throttle.capture(lambda candidate: candidate.captured_at)
    assert stamp.tzinfo is timezone.utc
