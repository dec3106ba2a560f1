from .decoder import decode
from .detector import FaceDetector, HaarFaceDetector
from .embedding import EmbeddingAdapter, TorchScriptEmbeddingModel, l2_normalize
from .matcher import MatchResult, TemplateMatcher, match
from .pipeline import FacePipeline
from .preprocess import FacePreprocessor
from .throttle import CaptureThrottle, FrameOutcome, ThrottleState

__all__ = [
    "CaptureThrottle",
    "EmbeddingAdapter",
    "FaceDetector",
    "FacePipeline",
    "FacePreprocessor",
    "FrameOutcome",
    "HaarFaceDetector",
    "MatchResult",
    "TemplateMatcher",
    "ThrottleState",
    "TorchScriptEmbeddingModel",
    "decode",
    "l2_normalize",
    "match",
]
