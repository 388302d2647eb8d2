"""
Tests for texture channel recoding

Validates per-pixel and vectorized rewrites, dimension preservation and the
async decode -> rewrite -> encode path.
"""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from pbrconvert import Document, PixelBuffer, recode_image, rewrite_pixels, rewrite_texture


def _gradient(width=5, height=3):
    arr = np.zeros((height, width, 4), dtype=np.uint8)
    arr[..., 0] = np.arange(width, dtype=np.uint8)[None, :] * 10
    arr[..., 1] = np.arange(height, dtype=np.uint8)[:, None] * 20
    arr[..., 2] = 7
    arr[..., 3] = 128
    return arr


def _invert_red(src, dst):
    dst[..., 0] = 255 - src[..., 0]


def test_rewrite_pixels_preserves_dimensions_and_untouched_channels():
    source = PixelBuffer(_gradient())
    out = rewrite_pixels(source, _invert_red)
    assert out.size == source.size
    np.testing.assert_array_equal(out.array[..., 0], 255 - source.array[..., 0])
    np.testing.assert_array_equal(out.array[..., 1:], source.array[..., 1:])


def test_rewrite_pixels_does_not_touch_source():
    arr = _gradient()
    source = PixelBuffer(arr.copy())
    rewrite_pixels(source, _invert_red)
    np.testing.assert_array_equal(source.array, arr)


def test_rewrite_pixels_visits_each_pixel_once_in_row_major_order():
    source = PixelBuffer(_gradient(width=3, height=2))
    seen = []

    def record(src, dst):
        seen.append((int(src[0]), int(src[1])))

    rewrite_pixels(source, record)
    assert seen == [(0, 0), (10, 0), (20, 0), (0, 20), (10, 20), (20, 20)]


def test_source_view_is_read_only():
    source = PixelBuffer(_gradient())

    def write_source(src, dst):
        src[0] = 1

    with pytest.raises(ValueError):
        rewrite_pixels(source, write_source)


def test_vectorized_matches_per_pixel():
    source = PixelBuffer(_gradient(width=8, height=6))

    def recode(src, dst):
        dst[..., 2] = np.floor(src[..., 3].astype(np.float64) * 0.37 + 0.5)
        dst[..., 3] = 255

    per_pixel = rewrite_pixels(source, recode)
    vectorized = rewrite_pixels(source, recode, vectorized=True)
    assert per_pixel == vectorized


def test_rewrite_texture_writes_png_to_target():
    doc = Document()
    source = doc.create_texture("src").set_pixels(_gradient())
    target = doc.create_texture("dst")

    result = asyncio.run(rewrite_texture(source, target, _invert_red))
    assert result is target
    assert target.mime_type == "image/png"
    out = target.get_pixels()
    np.testing.assert_array_equal(out.array[..., 0], 255 - _gradient()[..., 0])
    # source image bytes are untouched
    np.testing.assert_array_equal(source.get_pixels().array, _gradient())


def test_recode_image_rewrites_off_the_event_loop_thread():
    doc = Document()
    source = doc.create_texture("src").set_pixels(_gradient(2, 2))
    original = source.image
    seen = set()

    def opaque(src, dst):
        seen.add(threading.get_ident())
        dst[3] = 255

    async def run():
        png, pixels = await recode_image(source, opaque)
        return threading.get_ident(), png, pixels

    loop_thread, png, pixels = asyncio.run(run())
    assert len(seen) == 1
    assert loop_thread not in seen
    assert png[:8] == b"\x89PNG\r\n\x1a\n"
    assert pixels.get(1, 1, 3) == 255
    assert source.image == original


def test_rewrite_texture_without_source_is_noop():
    doc = Document()
    target = doc.create_texture("dst")
    assert asyncio.run(rewrite_texture(None, target, _invert_red)) is None
    assert target.image is None


def test_rewrite_texture_decode_failure_leaves_target_empty():
    doc = Document()
    source = doc.create_texture("broken").set_image(b"definitely not a png", "image/png")
    target = doc.create_texture("dst")

    with pytest.raises(RuntimeError, match="broken"):
        asyncio.run(rewrite_texture(source, target, _invert_red))
    assert target.image is None


def test_rewrite_texture_missing_image_raises():
    doc = Document()
    source = doc.create_texture("empty")
    with pytest.raises(RuntimeError, match="no image data"):
        asyncio.run(rewrite_texture(source, doc.create_texture(), _invert_red))


@pytest.mark.asyncio
async def test_rewrite_texture_uses_given_executor():
    doc = Document()
    source = doc.create_texture("src").set_pixels(_gradient())
    target = doc.create_texture("dst")
    with ThreadPoolExecutor(max_workers=1) as executor:
        await rewrite_texture(source, target, _invert_red, vectorized=True, executor=executor)
    assert target.get_pixels().size == (5, 3)
