"""Public package API for tvflip.

Piecewise-linear Total-Variation regularization of images on adaptive
triangulations: a grid triangulation of the image is denoised with a dual
TV ascent and its edges are flipped to minimize the TV energy of the
resulting piecewise-linear surface.

This facade provides a flat import surface on top of the internal
implementation package ``tvflip.core`` and defers the pipeline driver until
first use to keep ``import tvflip`` fast.

Example
-------
    from tvflip import regularize, TVConfig

    cfg = TVConfig()
    cfg.denoise.fidelity = 0.05
    tvt = regularize(image, cfg)
    out = tvt.output_image()

The deeper modules (``tvflip.core.*``) are considered internal and may
change; rely on this layer for public symbols.
"""
from importlib import import_module as _imp
import logging as _logging

try:  # Python 3.8+ runtime version export
    from importlib.metadata import version as _pkg_version
    __version__ = _pkg_version("tvflip")  # populated when installed
except Exception:  # pragma: no cover - editable / unknown state
    __version__ = "0.0.0+dev"

_logging.getLogger(__name__).addHandler(_logging.NullHandler())

# Eager light-weight submodules
_geom = _imp('tvflip.core.geometry')
_const = _imp('tvflip.core.constants')
_surf = _imp('tvflip.core.surface')
_calc = _imp('tvflip.core.calculus')
_energy = _imp('tvflip.core.energy')
_flips = _imp('tvflip.core.flips')
_stats = _imp('tvflip.core.stats')
_conf = _imp('tvflip.core.config')
_image = _imp('tvflip.core.image')
_tvt = _imp('tvflip.core.tv_triangulation')
_log = _imp('tvflip.core.logging_utils')

def _lazy_driver_attr(name):
    def _wrapper(*args, **kwargs):
        drv = _imp('tvflip.core.driver')
        return getattr(drv, name)(*args, **kwargs)
    _wrapper.__name__ = name
    return _wrapper

# Public callable entry points
regularize = _lazy_driver_attr('regularize')

# Main classes
TriangulatedSurface = _surf.TriangulatedSurface
DiscreteCalculus = _calc.DiscreteCalculus
NormKind = _calc.NormKind
EnergyModel = _energy.EnergyModel
ArcStatus = _flips.ArcStatus
TVTriangulation = _tvt.TVTriangulation
MeshBuildError = _tvt.MeshBuildError
grid_surface = _tvt.grid_surface

# Configuration
TVConfig = _conf.TVConfig
DenoiseConfig = _conf.DenoiseConfig
FlipConfig = _conf.FlipConfig

# Image adapter
image_to_samples = _image.image_to_samples
samples_to_image = _image.samples_to_image
pack_rgb = _image.pack_rgb

# Logging
get_logger = _log.get_logger
configure_logging = _log.configure_logging

# Namespace submodules for exploratory users
geometry = _geom
constants = _const
surface = _surf
calculus = _calc
energy = _energy
flips = _flips
stats = _stats
config = _conf
image = _image

__all__ = [
    '__version__',
    # pipeline
    'regularize',
    # session and building blocks
    'TVTriangulation', 'MeshBuildError', 'grid_surface', 'TriangulatedSurface',
    'DiscreteCalculus', 'NormKind', 'EnergyModel', 'ArcStatus',
    # configuration
    'TVConfig', 'DenoiseConfig', 'FlipConfig',
    # image adapter
    'image_to_samples', 'samples_to_image', 'pack_rgb',
    # logging
    'get_logger', 'configure_logging',
    # submodules / namespaces
    'geometry', 'constants', 'surface', 'calculus', 'energy', 'flips', 'stats', 'config', 'image',
]
