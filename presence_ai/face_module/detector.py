from __future__ import annotations

from typing import Protocol

import cv2
import numpy as np

from presence_ai.exceptions import DetectorError
from presence_ai.utils.types import FaceRegion


class FaceDetector(Protocol):
    def detect(self, raster: np.ndarray) -> list[FaceRegion]: ...


class HaarFaceDetector:
    def __init__(self, min_face_size: int = 60, scale_factor: float = 1.1, min_neighbors: int = 6):
        self.min_face_size = min_face_size
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors

        cascade_path = cv2.data.haarcascades + "haarcascade_frontalface_default.xml"
        self._cascade = cv2.CascadeClassifier(cascade_path)
        if self._cascade.empty():
            raise DetectorError("Failed to initialize OpenCV Haar face detector.")

    def detect(self, raster: np.ndarray) -> list[FaceRegion]:
        try:
            gray = cv2.cvtColor(raster, cv2.COLOR_RGB2GRAY)
            boxes = self._cascade.detectMultiScale(
                gray,
                scaleFactor=self.scale_factor,
                minNeighbors=self.min_neighbors,
                minSize=(self.min_face_size, self.min_face_size),
            )
        except cv2.error as exc:
            raise DetectorError(f"Face detection failed: {exc}") from exc

        height, width = raster.shape[:2]
        regions: list[FaceRegion] = []
        for (x, y, w, h) in boxes:
            x1, y1 = max(0, int(x)), max(0, int(y))
            x2, y2 = min(width, int(x + w)), min(height, int(y + h))
            if x2 <= x1 or y2 <= y1:
                continue
            regions.append(FaceRegion(left=x1, top=y1, width=x2 - x1, height=y2 - y1))

        regions.sort(key=lambda region: region.area, reverse=True)
        return regions
