from __future__ import annotations

import cv2
import numpy as np

from presence_ai.exceptions import PreprocessError
from presence_ai.utils.types import FaceRegion

INPUT_SIZE = 112
FACE_PADDING_RATIO = 0.20

# MobileFaceNet was trained on (pixel - 127.5) / 128; changing these silently ruins matching.
PIXEL_MEAN = 127.5
PIXEL_SCALE = 128.0

_ROTATE_CODES = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


def orient(raster: np.ndarray, rotation_degrees: int, mirror: bool) -> np.ndarray:
    """Rotate clockwise to upright, then mirror horizontally. Order matters."""
    rotation = int(rotation_degrees) % 360
    if rotation not in (0, 90, 180, 270):
        raise PreprocessError(f"Unsupported rotation: {rotation_degrees} degrees")

    upright = raster if rotation == 0 else cv2.rotate(raster, _ROTATE_CODES[rotation])
    if mirror:
        upright = cv2.flip(upright, 1)
    return upright


def expand_region(
    region: FaceRegion,
    raster_width: int,
    raster_height: int,
    padding_ratio: float = FACE_PADDING_RATIO,
) -> tuple[int, int, int, int]:
    padding = region.width * padding_ratio
    x = min(max(int(region.left - padding), 0), raster_width - 1)
    y = min(max(int(region.top - padding), 0), raster_height - 1)
    w = int(region.width + padding * 2)
    h = int(region.height + padding * 2)

    if x + w > raster_width:
        w = raster_width - x
    if y + h > raster_height:
        h = raster_height - y
    return x, y, w, h


def normalize_pixels(image: np.ndarray) -> np.ndarray:
    return (image.astype(np.float32) - PIXEL_MEAN) / PIXEL_SCALE


class FacePreprocessor:
    def __init__(self, input_size: int = INPUT_SIZE, padding_ratio: float = FACE_PADDING_RATIO):
        self.input_size = input_size
        self.padding_ratio = padding_ratio

    def prepare(
        self,
        raster: np.ndarray,
        region: FaceRegion,
        front_facing: bool,
        rotation_degrees: int,
    ) -> np.ndarray:
        """Return a ``(input_size, input_size, 3)`` float32 tensor in [-1, 1).

        ``region`` is expressed in the coordinates of the upright (rotated and,
        for front cameras, mirrored) raster, which is what the detector sees.
        """
        if raster.ndim != 3 or raster.shape[2] != 3 or raster.size == 0:
            raise PreprocessError(f"Expected an RGB raster, got shape {raster.shape}")

        upright = orient(raster, rotation_degrees, front_facing)
        height, width = upright.shape[:2]

        x, y, w, h = expand_region(region, width, height, self.padding_ratio)
        if w <= 0 or h <= 0:
            raise PreprocessError(f"Invalid face dimensions: {w} x {h}")

        crop = np.ascontiguousarray(upright[y : y + h, x : x + w])
        if crop.shape[0] > self.input_size and crop.shape[1] > self.input_size:
            interpolation = cv2.INTER_AREA
        else:
            interpolation = cv2.INTER_LINEAR
        resized = cv2.resize(crop, (self.input_size, self.input_size), interpolation=interpolation)
        return normalize_pixels(resized)
