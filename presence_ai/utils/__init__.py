from .logger import JsonFormatter, setup_logger
from .queueing import LatestMailbox
from .types import CaptureCandidate, FaceRegion, FramePlane, PixelFormat, PositionFix, RawFrame

__all__ = [
    "CaptureCandidate",
    "FaceRegion",
    "FramePlane",
    "JsonFormatter",
    "LatestMailbox",
    "PixelFormat",
    "PositionFix",
    "RawFrame",
    "setup_logger",
]
