"""Default parameters and small numeric constants.

This module centralizes the defaults of the TV regularizer and the sentinel
values shared by the mesh substrate and the optimizer, so they are not
scattered as literals across the codebase.
"""
from __future__ import annotations

# Mesh substrate
INVALID_FACE: int = -1            # face index of a boundary arc's missing side

# Value range of 8-bit image channels
VALUE_MIN: float = 0.0
VALUE_MAX: float = 255.0
NB_CHANNELS: int = 3

# TV energy
DEFAULT_POWER: float = 0.5        # |grad u|^(2p): p=0.5 is the plain Euclidean norm

# Dual-ascent denoising
DT_STABILITY_BOUND: float = 0.25  # explicit dual update diverges for dt >= bound
DEFAULT_DT: float = 0.248
DEFAULT_TOLERANCE: float = 0.01
DEFAULT_TV_ITERATIONS: int = 10

# Flip optimizer
DEFAULT_MAX_PASSES: int = 100
DEFAULT_STRATEGY: int = 4
TIE_FLIP_PROBABILITY: float = 0.5
DEFAULT_QUANTIZE_LEVELS: int = 256

__all__ = [
    'INVALID_FACE',
    'VALUE_MIN', 'VALUE_MAX', 'NB_CHANNELS',
    'DEFAULT_POWER',
    'DT_STABILITY_BOUND', 'DEFAULT_DT', 'DEFAULT_TOLERANCE', 'DEFAULT_TV_ITERATIONS',
    'DEFAULT_MAX_PASSES', 'DEFAULT_STRATEGY', 'TIE_FLIP_PROBABILITY',
    'DEFAULT_QUANTIZE_LEVELS',
]
