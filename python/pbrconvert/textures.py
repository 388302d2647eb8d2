# python/pbrconvert/textures.py
# RGBA8 pixel buffers plus Pillow-backed decode/encode of texture images.
# Exists so the converter can read and write texels without caring about image formats.
# RELEVANT FILES:python/pbrconvert/recode.py,python/pbrconvert/graph.py,tests/test_textures.py

from __future__ import annotations

import io
from typing import Tuple, Union

import numpy as np
from PIL import Image

ArrayLike = Union[np.ndarray, "np.typing.NDArray[np.uint8]"]

CHANNELS = 4

_PIL_FORMATS = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
}


def _ensure_rgba8(arr: np.ndarray) -> np.ndarray:
    if not isinstance(arr, np.ndarray):
        raise TypeError("texture must be a numpy array")

    if arr.dtype != np.uint8:
        raise TypeError("texture dtype must be uint8")

    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise ValueError("texture must be (H,W,3|4)")

    if arr.flags.c_contiguous is False:
        arr = np.ascontiguousarray(arr)

    if arr.shape[2] == 3:
        h, w, _ = arr.shape
        rgba = np.empty((h, w, 4), dtype=np.uint8)
        rgba[..., :3] = arr
        rgba[..., 3] = 255
        return rgba
    return arr


class PixelBuffer:
    """Fixed-size grid of RGBA8 texels addressed as ``(x, y, channel)``.

    The backing array is stored row-major with shape ``(height, width, 4)``.
    """

    __slots__ = ("_data",)

    def __init__(self, data: ArrayLike):
        self._data = _ensure_rgba8(np.asarray(data))

    @classmethod
    def blank(cls, width: int, height: int) -> "PixelBuffer":
        if width <= 0 or height <= 0:
            raise ValueError(f"pixel buffer size must be positive, got {width}x{height}")
        return cls(np.zeros((height, width, CHANNELS), dtype=np.uint8))

    @property
    def width(self) -> int:
        return int(self._data.shape[1])

    @property
    def height(self) -> int:
        return int(self._data.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        """``(width, height)``, in the order Pillow reports image sizes."""
        return (self.width, self.height)

    @property
    def array(self) -> np.ndarray:
        return self._data

    def _check(self, x: int, y: int, channel: int) -> None:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height} buffer")
        if not 0 <= channel < CHANNELS:
            raise IndexError(f"channel must be within [0, 3], got {channel}")

    def get(self, x: int, y: int, channel: int) -> int:
        self._check(x, y, channel)
        return int(self._data[y, x, channel])

    def set(self, x: int, y: int, channel: int, value: int) -> None:
        self._check(x, y, channel)
        value = int(value)
        if not 0 <= value <= 255:
            raise ValueError(f"channel value must be within [0, 255], got {value}")
        self._data[y, x, channel] = value

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self._data.copy())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self._data.shape == other._data.shape and bool(np.array_equal(self._data, other._data))

    def __repr__(self) -> str:
        return f"PixelBuffer(width={self.width}, height={self.height})"


def decode_image(data: bytes) -> PixelBuffer:
    """Decode PNG/JPEG bytes into an RGBA8 pixel buffer."""
    with Image.open(io.BytesIO(data)) as img:
        rgba = img.convert("RGBA")
        arr = np.array(rgba, dtype=np.uint8)
    return PixelBuffer(arr)


def encode_image(pixels: PixelBuffer, mime_type: str = "image/png") -> bytes:
    """Encode a pixel buffer. JPEG output drops the alpha channel."""
    fmt = _PIL_FORMATS.get(mime_type)
    if fmt is None:
        raise ValueError(f"Unsupported image mime type: {mime_type!r}")
    img = Image.fromarray(pixels.array)
    if fmt == "JPEG":
        img = img.convert("RGB")
    out = io.BytesIO()
    img.save(out, format=fmt)
    return out.getvalue()


def gltf_mr_channels(pixels: Union[PixelBuffer, np.ndarray]) -> Tuple[np.ndarray, np.ndarray]:
    """Split a glTF metallic-roughness texture into ``(roughness, metallic)`` planes.

    glTF keeps roughness in G and metallic in B; R and A carry nothing.
    """
    rgba = pixels.array if isinstance(pixels, PixelBuffer) else _ensure_rgba8(pixels)
    return rgba[..., 1], rgba[..., 2]
