"""Uniform quantization of the regularized vertex values."""
from __future__ import annotations

import numpy as np

from .constants import VALUE_MIN, VALUE_MAX
from .logging_utils import get_logger

__all__ = ['op_quantize', 'quantize_values']

logger = get_logger('tvflip.quantize')


def quantize_values(values, levels: int) -> np.ndarray:
    """Snap ``values`` to ``levels`` evenly spaced levels of [0, 255].

    Rounding is half away from zero. ``levels == 1`` maps everything to 0.
    """
    v = np.asarray(values, dtype=np.float64)
    if levels == 1:
        return np.zeros_like(v)
    step = VALUE_MAX / (levels - 1)
    x = v / step
    q = np.sign(x) * np.floor(np.abs(x) + 0.5)
    return np.clip(q * step, VALUE_MIN, VALUE_MAX)


def op_quantize(tvt, levels: int) -> bool:
    """Quantize ``tvt.u`` in place and recompute every face energy.

    ``levels <= 0`` leaves the session untouched and returns False.
    """
    stats_fn = getattr(tvt, '_get_op_stats', None)
    stats = stats_fn('quantize') if stats_fn else None
    if stats: stats.attempts += 1
    levels = int(levels)
    if levels <= 0:
        if stats: stats.fail += 1
        return False
    tvt.u[...] = quantize_values(tvt.u, levels)
    total = tvt.energy.compute_all(tvt.u)
    logger.info("quantize: %d levels, energy=%.6g", levels, total)
    if stats: stats.success += 1
    return True
