from __future__ import annotations

from dataclasses import replace

import numpy as np

from presence_ai.exceptions import InvalidCaptureError
from presence_ai.face_module.decoder import MAX_FRAME_PIXELS, decode
from presence_ai.face_module.detector import FaceDetector
from presence_ai.face_module.embedding import EmbeddingAdapter, is_degenerate
from presence_ai.face_module.matcher import MatchResult, TemplateMatcher
from presence_ai.face_module.preprocess import FacePreprocessor, orient
from presence_ai.face_module.throttle import CaptureThrottle
from presence_ai.utils.logger import setup_logger
from presence_ai.utils.types import CaptureCandidate, FaceRegion, RawFrame


class FacePipeline:
    """Decode → preprocess → embed → match for one retained capture."""

    def __init__(
        self,
        detector: FaceDetector,
        adapter: EmbeddingAdapter,
        matcher: TemplateMatcher,
        preprocessor: FacePreprocessor | None = None,
        max_frame_pixels: int = MAX_FRAME_PIXELS,
    ):
        self.detector = detector
        self.adapter = adapter
        self.matcher = matcher
        self.preprocessor = preprocessor or FacePreprocessor()
        self.max_frame_pixels = max_frame_pixels
        self.logger = setup_logger(self.__class__.__name__)

    @property
    def ready(self) -> bool:
        return self.adapter.ready

    def detect_faces(self, frame: RawFrame, rotation: int = 0, front_facing: bool = False) -> list[FaceRegion]:
        upright = orient(decode(frame, self.max_frame_pixels), rotation, front_facing)
        return [
            replace(region, rotation=rotation, mirrored=front_facing)
            for region in self.detector.detect(upright)
        ]

    def new_throttle(self, rotation: int = 0, front_facing: bool = False) -> CaptureThrottle:
        return CaptureThrottle(lambda frame: self.detect_faces(frame, rotation, front_facing))

    def embed(self, candidate: CaptureCandidate) -> np.ndarray:
        region = candidate.region
        raster = decode(candidate.frame, self.max_frame_pixels)
        tensor = self.preprocessor.prepare(raster, region, region.mirrored, region.rotation)
        return self.adapter.embed(tensor)

    def enroll(self, candidate: CaptureCandidate) -> np.ndarray:
        embedding = self.embed(candidate)
        if is_degenerate(embedding):
            raise InvalidCaptureError("Invalid face capture. Please try again.")
        return embedding

    def verify(self, candidate: CaptureCandidate, enrolled: np.ndarray) -> MatchResult:
        result = self.matcher.match(self.embed(candidate), enrolled)
        self.logger.info(
            "Verification distance=%.3f matched=%s invalid=%s",
            result.distance,
            result.matched,
            result.invalid_capture,
        )
        return result
