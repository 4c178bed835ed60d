"""Conversion between image arrays and per-vertex Values.

Pixel ``(x, y)`` maps to vertex ``y * width + x``. Values are always stored
with three channels; grayscale images replicate their single channel.
"""
from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from .constants import VALUE_MIN, VALUE_MAX, NB_CHANNELS

__all__ = ['image_to_samples', 'samples_to_image', 'pack_rgb', 'unpack_rgb']


def unpack_rgb(packed) -> np.ndarray:
    """Split ``0xRRGGBB`` integers into a trailing RGB axis."""
    arr = np.asarray(packed).astype(np.int64)
    return np.stack([(arr >> 16) & 0xFF, (arr >> 8) & 0xFF, arr & 0xFF], axis=-1).astype(np.float64)


def pack_rgb(rgb) -> np.ndarray:
    """Pack a trailing RGB axis into ``0xRRGGBB`` integers (clipped, truncated)."""
    c = np.clip(np.asarray(rgb, dtype=np.float64), VALUE_MIN, VALUE_MAX).astype(np.int64)
    return (c[..., 0] << 16) | (c[..., 1] << 8) | c[..., 2]


def image_to_samples(image, color: Optional[bool] = None, packed: bool = False) -> Tuple[np.ndarray, int, int, bool]:
    """Decode an image into ``(samples, width, height, color)``.

    image : (H,W) grayscale, (H,W,3) RGB, or (H,W) ``0xRRGGBB`` when ``packed``.
    color : force color (True) or grayscale (False) processing; None infers
        it from the array shape. A color image processed as grayscale keeps
        its first channel (red).
    """
    arr = np.asarray(image)
    if packed:
        if arr.ndim != 2:
            raise ValueError(f"packed image must have shape (H,W), got {arr.shape}")
        arr = unpack_rgb(arr)
    else:
        arr = arr.astype(np.float64)
    if arr.ndim == 2:
        h, w = arr.shape
        is_color = False
        rgb = np.repeat(arr[:, :, None], NB_CHANNELS, axis=2)
    elif arr.ndim == 3 and arr.shape[2] in (3, 4):
        h, w = arr.shape[:2]
        is_color = True
        rgb = arr[:, :, :NB_CHANNELS]
    else:
        raise ValueError(f"image must have shape (H,W) or (H,W,3), got {arr.shape}")
    if h < 1 or w < 1:
        raise ValueError("image must contain at least one pixel")
    use_color = is_color if color is None else bool(color)
    samples = np.ascontiguousarray(rgb.reshape(h * w, NB_CHANNELS), dtype=np.float64)
    if not use_color:
        samples[:, 1] = samples[:, 0]
        samples[:, 2] = samples[:, 0]
    return samples, w, h, use_color


def samples_to_image(values, width: int, height: int, color: bool = True) -> np.ndarray:
    """Inverse of ``image_to_samples`` for the initial grid vertices.

    Returns a uint8 (H,W,3) array, or (H,W) when ``color`` is False.
    """
    v = np.asarray(values, dtype=np.float64)[: width * height]
    img = np.clip(v, VALUE_MIN, VALUE_MAX).astype(np.uint8).reshape(height, width, NB_CHANNELS)
    return img if color else img[:, :, 0]
