"""Full regularization pipeline: denoise, quantize, then alternate flips."""
from __future__ import annotations

from typing import Optional

from .config import TVConfig
from .constants import DEFAULT_QUANTIZE_LEVELS
from .logging_utils import get_logger
from .tv_triangulation import TVTriangulation

__all__ = ['regularize']

logger = get_logger('tvflip.driver')


def regularize(image, config: Optional[TVConfig] = None, random_source=None, packed: bool = False) -> TVTriangulation:
    """Build a TV triangulation of ``image`` and optimize it.

    Steps: build the grid session; one TV pass when ``fidelity > 0``;
    quantization when ``quantize_levels > 0``; then ``alternations`` rounds of
    flip optimization, each round after the first preceded by another TV
    pass when denoising is enabled. Quantized runs use a single alternation.

    Returns the session so callers can read ``u``, the mesh and the stats.
    """
    cfg = config or TVConfig()
    dn = cfg.denoise; fl = cfg.flip
    tvt = TVTriangulation.from_image(
        image, color=cfg.color, power=cfg.power, dark=fl.dark, bright=fl.bright,
        norm=cfg.norm, random_source=random_source, seed=fl.seed, packed=packed)
    logger.info("regularize: %dx%d %s image, energy=%.6g",
                tvt.width, tvt.height, 'color' if tvt.color else 'grayscale', tvt.get_energy_tv())
    if dn.fidelity > 0.0:
        tvt.tv_pass(dn.fidelity, dt=dn.dt, tol=dn.tolerance, max_iterations=dn.max_iterations)
    if cfg.quantize_levels > 0:
        tvt.quantize(cfg.quantize_levels)
    alternations = int(cfg.alternations)
    if cfg.quantize_levels != DEFAULT_QUANTIZE_LEVELS and alternations != 1:
        logger.warning("quantization with %d levels forces a single alternation (got %d)",
                       cfg.quantize_levels, alternations)
        alternations = 1
    for n in range(alternations):
        if n > 0 and dn.fidelity > 0.0:
            tvt.tv_pass(dn.fidelity, dt=dn.dt, tol=dn.tolerance, max_iterations=dn.max_iterations)
        history = tvt.optimize(max_passes=fl.max_passes, strategy=fl.strategy)
        logger.info("alternation %d: %d passes, %d flips, %d tie-breaks, energy=%.6g",
                    n + 1, len(history), sum(h[0] for h in history), sum(h[1] for h in history),
                    tvt.get_energy_tv())
    return tvt
