"""Raw camera frame to RGB raster conversion.

Dispatch happens in two stages: the declared pixel format first, then a
plane-count heuristic for frames whose format metadata is missing or wrong.
Luma/chroma layouts are converted with full-range BT.601 coefficients and every
plane index is bounds-checked; out-of-range luma reads as 0 and out-of-range
chroma as the neutral value 128, so truncated or padded buffers degrade per
pixel instead of failing the frame.
"""

from __future__ import annotations

from typing import Callable

import cv2
import numpy as np

from presence_ai.exceptions import DecodeError
from presence_ai.utils.types import FramePlane, PixelFormat, RawFrame

NEUTRAL_CHROMA = 128
# 4096 x 4096; index grids are sized from the declared dimensions.
MAX_FRAME_PIXELS = 16_777_216

FrameDecoder = Callable[[RawFrame], np.ndarray]


def yuv_to_rgb(y: np.ndarray, u: np.ndarray, v: np.ndarray) -> np.ndarray:
    luma = y.astype(np.float32)
    cb = u.astype(np.float32) - 128.0
    cr = v.astype(np.float32) - 128.0

    r = luma + 1.402 * cr
    g = luma - 0.344136 * cb - 0.714136 * cr
    b = luma + 1.772 * cb

    rgb = np.stack([r, g, b], axis=-1)
    return np.clip(np.rint(rgb), 0, 255).astype(np.uint8)


def _plane_array(plane: FramePlane) -> np.ndarray:
    return np.frombuffer(plane.data, dtype=np.uint8)


def _gather(buffer: np.ndarray, index: np.ndarray, fill: int) -> np.ndarray:
    valid = (index >= 0) & (index < buffer.size)
    out = np.full(index.shape, fill, dtype=np.uint8)
    out[valid] = buffer[index[valid]]
    return out


def _grid(frame: RawFrame) -> tuple[np.ndarray, np.ndarray]:
    rows = np.arange(frame.height, dtype=np.int64)[:, None]
    cols = np.arange(frame.width, dtype=np.int64)[None, :]
    return rows, cols


def _stride(plane: FramePlane, minimum: int) -> int:
    return plane.row_stride if plane.row_stride > 0 else minimum


def _interleaved_vu(
    frame: RawFrame,
    luma: np.ndarray,
    y_stride: int,
    chroma: np.ndarray,
    chroma_offset: int,
    chroma_stride: int,
) -> np.ndarray:
    rows, cols = _grid(frame)
    y = _gather(luma, rows * y_stride + cols, 0)

    vu_index = chroma_offset + (rows // 2) * chroma_stride + (cols // 2) * 2
    chroma_ok = (vu_index >= 0) & (vu_index + 1 < chroma.size)
    v = _gather(chroma, np.where(chroma_ok, vu_index, -1), NEUTRAL_CHROMA)
    u = _gather(chroma, np.where(chroma_ok, vu_index + 1, -1), NEUTRAL_CHROMA)
    return yuv_to_rgb(y, u, v)


def decode_nv21_single_plane(frame: RawFrame) -> np.ndarray:
    """Y rows (with padding) followed by interleaved VU rows sharing the luma stride."""
    plane = frame.planes[0]
    data = _plane_array(plane)
    y_stride = _stride(plane, frame.width)
    return _interleaved_vu(
        frame,
        luma=data,
        y_stride=y_stride,
        chroma=data,
        chroma_offset=y_stride * frame.height,
        chroma_stride=y_stride,
    )


def decode_nv21(frame: RawFrame) -> np.ndarray:
    y_plane, vu_plane = frame.planes[0], frame.planes[1]
    return _interleaved_vu(
        frame,
        luma=_plane_array(y_plane),
        y_stride=_stride(y_plane, frame.width),
        chroma=_plane_array(vu_plane),
        chroma_offset=0,
        chroma_stride=_stride(vu_plane, frame.width),
    )


def decode_yuv420(frame: RawFrame) -> np.ndarray:
    y_plane, u_plane, v_plane = frame.planes[0], frame.planes[1], frame.planes[2]
    rows, cols = _grid(frame)

    y = _gather(_plane_array(y_plane), rows * _stride(y_plane, frame.width) + cols, 0)

    chroma_width = (frame.width + 1) // 2
    u_index = (rows // 2) * _stride(u_plane, chroma_width) + (cols // 2) * max(1, u_plane.pixel_stride)
    v_index = (rows // 2) * _stride(v_plane, chroma_width) + (cols // 2) * max(1, v_plane.pixel_stride)
    u = _gather(_plane_array(u_plane), u_index, NEUTRAL_CHROMA)
    v = _gather(_plane_array(v_plane), v_index, NEUTRAL_CHROMA)
    return yuv_to_rgb(y, u, v)


def decode_bgra8888(frame: RawFrame) -> np.ndarray:
    plane = frame.planes[0]
    row_bytes = frame.width * 4
    stride = max(_stride(plane, row_bytes), row_bytes)

    data = _plane_array(plane)
    padded = np.zeros(stride * frame.height, dtype=np.uint8)
    usable = min(data.size, padded.size)
    padded[:usable] = data[:usable]

    bgra = padded.reshape(frame.height, stride)[:, :row_bytes].reshape(frame.height, frame.width, 4)
    return cv2.cvtColor(np.ascontiguousarray(bgra), cv2.COLOR_BGRA2RGB)


def decoder_for_format(pixel_format: PixelFormat, plane_count: int) -> FrameDecoder | None:
    if pixel_format is PixelFormat.NV21:
        if plane_count == 1:
            return decode_nv21_single_plane
        if plane_count >= 2:
            return decode_nv21
        return None
    if pixel_format is PixelFormat.YUV420 and plane_count >= 3:
        return decode_yuv420
    if pixel_format is PixelFormat.BGRA8888 and plane_count >= 1:
        return decode_bgra8888
    return None


def decoder_for_plane_count(plane_count: int) -> FrameDecoder | None:
    if plane_count == 1:
        return decode_nv21_single_plane
    if plane_count == 2:
        return decode_nv21
    if plane_count >= 3:
        return decode_yuv420
    return None


def decode(frame: RawFrame, max_pixels: int = MAX_FRAME_PIXELS) -> np.ndarray:
    """Convert ``frame`` into an ``(height, width, 3)`` uint8 RGB raster."""
    if frame.width <= 0 or frame.height <= 0:
        raise DecodeError(f"Invalid frame dimensions: {frame.width}x{frame.height}")
    if frame.width * frame.height > max_pixels:
        raise DecodeError(f"Frame {frame.width}x{frame.height} exceeds the {max_pixels} pixel limit")

    plane_count = len(frame.planes)
    decoder = decoder_for_format(frame.pixel_format, plane_count)
    if decoder is None:
        decoder = decoder_for_plane_count(plane_count)
    if decoder is None:
        raise DecodeError(
            f"Unsupported frame layout: format={frame.pixel_format.value}, planes={plane_count}"
        )
    return decoder(frame)
