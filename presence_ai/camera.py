from __future__ import annotations

import time

import cv2

from presence_ai.exceptions import CameraError
from presence_ai.utils.types import RawFrame

# Display name -> OpenCV capture API constant name.
BACKENDS = {
    "auto": "CAP_ANY",
    "v4l2": "CAP_V4L2",
    "dshow": "CAP_DSHOW",
    "msmf": "CAP_MSMF",
}
_ALIASES = {"any": "auto", "directshow": "dshow", "mediafoundation": "msmf", "media foundation": "msmf"}


def capture_backends(order: str = "") -> list[tuple[str, int]]:
    """Backends to probe: the comma-separated ``order`` first, then the rest; duplicates dropped."""
    requested = [_ALIASES.get(token.strip().lower(), token.strip().lower()) for token in order.split(",")]
    names = [name for name in requested if name in BACKENDS]
    names += [name for name in BACKENDS if name not in names]

    probes: list[tuple[str, int]] = []
    for name in names:
        api = getattr(cv2, BACKENDS[name], None)
        if api is None or any(api == known for _, known in probes):
            continue
        probes.append((name, api))
    return probes


def open_camera_capture(camera_index: int, order: str = "", probe_reads: int = 6) -> tuple[cv2.VideoCapture, str]:
    for name, api in capture_backends(order):
        cap = cv2.VideoCapture(camera_index, api)
        # An opened capture is only usable once it has delivered a frame.
        delivered = False
        if cap.isOpened():
            for _ in range(probe_reads):
                ok, probe = cap.read()
                if ok and probe is not None:
                    delivered = True
                    break
                time.sleep(0.03)
        if delivered:
            return cap, name
        cap.release()

    tried = ", ".join(name for name, _ in capture_backends(order))
    raise CameraError(f"No usable capture backend for camera {camera_index} (tried {tried}).")


class CameraFrameSource:
    """OpenCV webcam producing BGRA8888 ``RawFrame``s."""

    def __init__(
        self,
        camera_index: int = 0,
        width: int = 1280,
        height: int = 720,
        fps: int = 30,
        backend_order: str = "",
    ):
        self.camera_index = camera_index
        self.size = (width, height)
        self.fps = fps
        self.backend_order = backend_order
        self.cap: cv2.VideoCapture | None = None
        self.backend: str | None = None

    def __enter__(self) -> "CameraFrameSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        self.cap, self.backend = open_camera_capture(self.camera_index, self.backend_order)
        width, height = self.size
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        self.cap.set(cv2.CAP_PROP_FPS, self.fps)

    def read(self) -> RawFrame:
        if self.cap is None:
            raise CameraError(f"Camera {self.camera_index} is not open.")
        ok, bgr = self.cap.read()
        if not ok or bgr is None:
            raise CameraError(f"Camera {self.camera_index} returned no frame.")
        return RawFrame.from_bgr(bgr)

    def close(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None
