"""Configuration objects for the TV regularization pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Optional, Any, Dict

from .constants import (
    DEFAULT_DT, DEFAULT_TOLERANCE, DEFAULT_TV_ITERATIONS,
    DEFAULT_MAX_PASSES, DEFAULT_STRATEGY, DEFAULT_POWER, DEFAULT_QUANTIZE_LEVELS,
)

@dataclass
class DenoiseConfig:
    fidelity: float = 0.0          # lambda; <= 0 disables denoising
    dt: float = DEFAULT_DT
    tolerance: float = DEFAULT_TOLERANCE
    max_iterations: int = DEFAULT_TV_ITERATIONS

@dataclass
class FlipConfig:
    max_passes: int = DEFAULT_MAX_PASSES
    strategy: int = DEFAULT_STRATEGY
    # Arcs whose endpoints are both <= dark (or both >= bright) are never flipped
    dark: float = 0.0
    bright: float = 255.0
    seed: Optional[int] = None

@dataclass
class TVConfig:
    """Unified configuration.

    Attributes
    ----------
    power : float
        Exponent ``p`` of the norms (0.5 gives the Euclidean norm).
    color : bool or None
        Force color (True) or grayscale (False) processing; None infers it
        from the image.
    norm : str or None
        Name of a ``NormKind`` ('GRAYSCALE', 'COLOR', 'COLOR_SEPARABLE');
        None picks GRAYSCALE or COLOR from ``color``.
    quantize_levels : int
        Number of levels per channel; values <= 0 skip quantization.
    alternations : int
        Number of denoise/flip alternations.
    denoise : DenoiseConfig
        Dual-ascent parameters.
    flip : FlipConfig
        Flip optimizer parameters.
    """
    power: float = DEFAULT_POWER
    color: Optional[bool] = None
    norm: Optional[str] = None
    quantize_levels: int = DEFAULT_QUANTIZE_LEVELS
    alternations: int = 1
    denoise: DenoiseConfig = field(default_factory=DenoiseConfig)
    flip: FlipConfig = field(default_factory=FlipConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TVConfig':
        data = dict(data or {})
        denoise = DenoiseConfig(**(data.pop('denoise', None) or {}))
        flip = FlipConfig(**(data.pop('flip', None) or {}))
        return cls(denoise=denoise, flip=flip, **data)

__all__ = ['DenoiseConfig', 'FlipConfig', 'TVConfig']
