"""
Texture channel recoding

Rewrites the texels of one texture into another through a per-pixel function.
Image decode and encode run on an executor so a conversion can await them
without blocking the event loop, and so does the pixel rewrite, which starts
only after the source has been fully decoded.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from concurrent.futures import Executor
from typing import Callable, Optional, Tuple

import numpy as np

from .graph import Texture
from .textures import PixelBuffer, encode_image

logger = logging.getLogger(__name__)

OUTPUT_MIME_TYPE = "image/png"

# fn(src, dst): src is read-only, dst is written in place. Both are either one
# pixel of shape (4,) or, in vectorized mode, the whole (H, W, 4) image.
PixelFn = Callable[[np.ndarray, np.ndarray], None]


def rewrite_pixels(source: PixelBuffer, fn: PixelFn, *, vectorized: bool = False) -> PixelBuffer:
    """Return a new buffer produced by applying ``fn`` to every pixel of ``source``.

    The destination starts as a copy of the source, so channels ``fn`` leaves
    alone pass through unchanged. Pixels are visited in row-major order.

    Args:
        source: Pixels to read. Never modified.
        fn: Callback receiving ``(src, dst)`` views.
        vectorized: Call ``fn`` once with the full arrays instead of once per
            pixel. Equivalent for functions that keep no cross-pixel state.
    """
    src = source.array.copy()
    src.flags.writeable = False
    dst = src.copy()

    if vectorized:
        fn(src, dst)
    else:
        height, width = src.shape[:2]
        for y in range(height):
            for x in range(width):
                fn(src[y, x], dst[y, x])

    return PixelBuffer(dst)


def _decode(texture: Texture) -> PixelBuffer:
    try:
        return texture.get_pixels()
    # Pillow reports some corrupt PNG chunks as SyntaxError
    except (OSError, ValueError, SyntaxError) as exc:
        raise RuntimeError(f"Failed to decode texture {texture.name!r}: {exc}") from exc


async def recode_image(
    source: Texture,
    fn: PixelFn,
    *,
    vectorized: bool = False,
    executor: Optional[Executor] = None,
) -> Tuple[bytes, PixelBuffer]:
    """Decode ``source``, rewrite its pixels with ``fn`` and encode the result as PNG.

    Decode, rewrite and encode all run on ``executor``. Nothing in the document
    changes, so a failure here leaves the graph as it was.

    Returns:
        ``(png_bytes, pixels)`` for the rewritten image.
    """
    loop = asyncio.get_running_loop()
    pixels = await loop.run_in_executor(executor, _decode, source)
    out = await loop.run_in_executor(
        executor, functools.partial(rewrite_pixels, pixels, fn, vectorized=vectorized)
    )
    try:
        image = await loop.run_in_executor(executor, encode_image, out, OUTPUT_MIME_TYPE)
    except (OSError, ValueError) as exc:
        raise RuntimeError(f"Failed to encode texture rewritten from {source.name!r}: {exc}") from exc
    return image, out


async def rewrite_texture(
    source: Optional[Texture],
    target: Texture,
    fn: PixelFn,
    *,
    vectorized: bool = False,
    executor: Optional[Executor] = None,
) -> Optional[Texture]:
    """Recode ``source`` with ``fn`` and store the PNG on ``target``.

    Returns ``target``, or ``None`` when there is no source texture. ``target``
    is left untouched if decoding or encoding fails.
    """
    if source is None:
        return None

    image, out = await recode_image(source, fn, vectorized=vectorized, executor=executor)
    target.set_image(image, OUTPUT_MIME_TYPE)
    logger.debug(f"Rewrote texture {source.name!r} -> {target.name!r} ({out.width}x{out.height})")
    return target
