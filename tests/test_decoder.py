import numpy as np
import pytest

from presence_ai.exceptions import DecodeError
from presence_ai.face_module.decoder import (
    decode,
    decode_nv21,
    decode_nv21_single_plane,
    decode_yuv420,
    decoder_for_format,
    decoder_for_plane_count,
    yuv_to_rgb,
)
from presence_ai.utils.types import FramePlane, PixelFormat, RawFrame

WIDTH, HEIGHT = 8, 6


def _nv21_single(stride=WIDTH, luma=128, chroma=128, fmt=PixelFormat.NV21):
    data = bytes([luma]) * (stride * HEIGHT) + bytes([chroma]) * (stride * HEIGHT // 2)
    return RawFrame(WIDTH, HEIGHT, fmt, (FramePlane(data, stride),))


def _nv21_two_plane(stride=WIDTH, fmt=PixelFormat.NV21):
    y = FramePlane(bytes([128]) * (stride * HEIGHT), stride)
    vu = FramePlane(bytes([128]) * (stride * HEIGHT // 2), stride, 2)
    return RawFrame(WIDTH, HEIGHT, fmt, (y, vu))


def _yuv420(y_value=128, u_value=128, v_value=128, pixel_stride=1, fmt=PixelFormat.YUV420):
    chroma_stride = (WIDTH // 2) * pixel_stride
    y = FramePlane(bytes([y_value]) * (WIDTH * HEIGHT), WIDTH)
    u = FramePlane(bytes([u_value]) * (chroma_stride * HEIGHT // 2), chroma_stride, pixel_stride)
    v = FramePlane(bytes([v_value]) * (chroma_stride * HEIGHT // 2), chroma_stride, pixel_stride)
    return RawFrame(WIDTH, HEIGHT, fmt, (y, u, v))


def _bgra(stride=WIDTH * 4, bgr=(128, 128, 128)):
    row = bytes([bgr[0], bgr[1], bgr[2], 255]) * WIDTH + bytes(stride - WIDTH * 4)
    return RawFrame(WIDTH, HEIGHT, PixelFormat.BGRA8888, (FramePlane(row * HEIGHT, stride, 4),))


@pytest.mark.parametrize(
    "frame",
    [
        _nv21_single(),
        _nv21_single(stride=WIDTH + 4),
        _nv21_two_plane(),
        _nv21_two_plane(stride=WIDTH + 8),
        _yuv420(),
        _yuv420(pixel_stride=2),
        _bgra(),
        _bgra(stride=WIDTH * 4 + 16),
    ],
)
def test_mid_gray_decodes_to_mid_gray_for_every_layout(frame):
    rgb = decode(frame)
    assert rgb.shape == (HEIGHT, WIDTH, 3)
    assert rgb.dtype == np.uint8
    assert np.all(np.abs(rgb.astype(int) - 128) <= 1)


def test_bgra_is_reordered_without_color_math():
    rgb = decode(_bgra(bgr=(10, 20, 200)))
    assert tuple(rgb[0, 0]) == (200, 20, 10)


def test_bt601_red():
    rgb = decode(_yuv420(y_value=76, u_value=85, v_value=255))
    r, g, b = (int(c) for c in rgb[3, 3])
    assert r >= 252 and g <= 2 and b <= 2


def test_yuv_to_rgb_clamps_channels():
    rgb = yuv_to_rgb(np.array([255]), np.array([255]), np.array([255]))
    assert rgb.dtype == np.uint8
    assert rgb[0, 0] == 255 and rgb[0, 2] == 255


def test_truncated_chroma_falls_back_to_neutral():
    y = FramePlane(bytes([128]) * (WIDTH * HEIGHT), WIDTH)
    vu = FramePlane(bytes([255]) * 4, WIDTH)
    rgb = decode(RawFrame(WIDTH, HEIGHT, PixelFormat.NV21, (y, vu)))
    # First chroma row is present, later rows read as 128/128.
    assert tuple(rgb[0, 0]) != (128, 128, 128)
    assert np.all(np.abs(rgb[HEIGHT - 1].astype(int) - 128) <= 1)


def test_truncated_luma_does_not_raise():
    frame = RawFrame(WIDTH, HEIGHT, PixelFormat.NV21, (FramePlane(bytes([200]) * 10, WIDTH),))
    rgb = decode(frame)
    assert rgb.shape == (HEIGHT, WIDTH, 3)


def test_declared_format_dispatch():
    assert decoder_for_format(PixelFormat.NV21, 1) is decode_nv21_single_plane
    assert decoder_for_format(PixelFormat.NV21, 2) is decode_nv21
    assert decoder_for_format(PixelFormat.YUV420, 3) is decode_yuv420
    assert decoder_for_format(PixelFormat.YUV420, 1) is None
    assert decoder_for_format(PixelFormat.UNKNOWN, 3) is None


def test_plane_count_fallback():
    assert decoder_for_plane_count(1) is decode_nv21_single_plane
    assert decoder_for_plane_count(2) is decode_nv21
    assert decoder_for_plane_count(3) is decode_yuv420
    assert decoder_for_plane_count(0) is None


@pytest.mark.parametrize(
    "frame",
    [
        _nv21_single(fmt=PixelFormat.UNKNOWN),
        _nv21_two_plane(fmt=PixelFormat.UNKNOWN),
        _yuv420(fmt=PixelFormat.UNKNOWN),
    ],
)
def test_unknown_format_uses_plane_count(frame):
    assert np.all(np.abs(decode(frame).astype(int) - 128) <= 1)


def test_misreported_format_falls_back():
    # Declared YUV420 but only one plane delivered.
    frame = _nv21_single(fmt=PixelFormat.YUV420)
    assert np.all(np.abs(decode(frame).astype(int) - 128) <= 1)


def test_no_planes_is_a_decode_error():
    with pytest.raises(DecodeError):
        decode(RawFrame(WIDTH, HEIGHT, PixelFormat.UNKNOWN, ()))


def test_invalid_dimensions_is_a_decode_error():
    with pytest.raises(DecodeError):
        decode(RawFrame(0, HEIGHT, PixelFormat.NV21, (FramePlane(b"\x00", 1),)))


def test_capture_copies_external_buffers():
    buffer = bytearray([128]) * (WIDTH * HEIGHT * 3 // 2)
    frame = RawFrame.capture(WIDTH, HEIGHT, "nv21", [(buffer, WIDTH)])
    buffer[:] = bytes(len(buffer))
    assert frame.pixel_format is PixelFormat.NV21
    assert np.all(np.abs(decode(frame).astype(int) - 128) <= 1)


def _assert_red(rgb):
    r, g, b = (int(c) for c in rgb[3, 3])
    assert r >= 252 and g <= 2 and b <= 2


def test_nv21_single_plane_reads_v_before_u():
    chroma = bytes([255, 85]) * (WIDTH * HEIGHT // 4)
    data = bytes([76]) * (WIDTH * HEIGHT) + chroma
    _assert_red(decode(RawFrame(WIDTH, HEIGHT, PixelFormat.NV21, (FramePlane(data, WIDTH),))))


def test_nv21_two_plane_reads_v_before_u():
    y = FramePlane(bytes([76]) * (WIDTH * HEIGHT), WIDTH)
    vu = FramePlane(bytes([255, 85]) * (WIDTH * HEIGHT // 4), WIDTH, 2)
    _assert_red(decode(RawFrame(WIDTH, HEIGHT, PixelFormat.NV21, (y, vu))))


def test_oversized_frame_is_rejected_before_decoding():
    frame = RawFrame(100_000, 100_000, PixelFormat.NV21, (FramePlane(b"\x00", 1),))
    with pytest.raises(DecodeError):
        decode(frame)
    with pytest.raises(DecodeError):
        decode(_nv21_single(), max_pixels=WIDTH * HEIGHT - 1)
    assert decode(_nv21_single(), max_pixels=WIDTH * HEIGHT).shape == (HEIGHT, WIDTH, 3)
