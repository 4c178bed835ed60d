"""TV triangulation session: one image, one mesh, all mutable caches."""
from __future__ import annotations

import time
from collections import Counter, defaultdict
from typing import Callable, List, Optional

import numpy as np

from .calculus import DiscreteCalculus, NormKind
from .constants import (
    DEFAULT_POWER, VALUE_MIN, VALUE_MAX, NB_CHANNELS,
    DEFAULT_DT, DEFAULT_TOLERANCE, DEFAULT_TV_ITERATIONS,
    DEFAULT_MAX_PASSES, DEFAULT_STRATEGY, TIE_FLIP_PROBABILITY,
)
from .energy import EnergyModel
from .geometry import triangle_aspect_ratio, triangle_diameter
from .image import image_to_samples, samples_to_image
from .logging_utils import get_logger
from .stats import OpStats, print_stats as _print_stats
from .surface import TriangulatedSurface

__all__ = ['TVTriangulation', 'MeshBuildError', 'grid_surface']


class MeshBuildError(RuntimeError):
    """Raised when the input triangles do not form an oriented 2-manifold."""


def grid_surface(width: int, height: int, samples=None, dark: float = VALUE_MIN,
                 bright: float = VALUE_MAX) -> TriangulatedSurface:
    """Regular triangulation of a ``width x height`` pixel grid.

    Vertex ``y * width + x`` sits at ``(x, y)``. Each cell is cut along
    ``v00-v11`` unless lock thresholds are active and both ``v10`` and
    ``v01`` are locked, in which case it is cut along ``v10-v01`` so that
    the locked pair is joined by an edge.
    """
    surf = TriangulatedSurface()
    for y in range(height):
        for x in range(width):
            surf.add_vertex((x, y))
    check = samples is not None and (dark != VALUE_MIN or bright != VALUE_MAX)
    for y in range(height - 1):
        for x in range(width - 1):
            v00 = y * width + x
            v10 = v00 + 1
            v01 = v00 + width
            v11 = v01 + 1
            diag00_11 = True
            if check:
                I = samples
                if ((np.all(I[v01] <= dark) and np.all(I[v10] <= dark))
                        or (np.all(I[v01] >= bright) and np.all(I[v10] >= bright))):
                    diag00_11 = False
            if diag00_11:
                surf.add_triangle(v00, v11, v01)
                surf.add_triangle(v00, v10, v11)
            else:
                surf.add_triangle(v00, v10, v01)
                surf.add_triangle(v10, v11, v01)
    if not surf.build():
        raise MeshBuildError(f"failed to build the {width}x{height} grid triangulation")
    return surf


class TVTriangulation:
    def __init__(self, surface: TriangulatedSurface, samples, color: bool = True,
                 power: float = DEFAULT_POWER, dark: float = VALUE_MIN, bright: float = VALUE_MAX,
                 norm=None, random_source: Optional[Callable[[], float]] = None,
                 seed: Optional[int] = None, width: Optional[int] = None, height: Optional[int] = None):
        """Regularization session over an already built surface.

        Parameters
        ----------
        surface : TriangulatedSurface
            Built surface; the session owns it from now on.
        samples : (N,3) float array-like
            Raw per-vertex values, one row per surface vertex.
        color : bool
            Color or grayscale processing (selects the default norm).
        power : float
            Norm exponent ``p``.
        dark, bright : float
            Lock thresholds; arcs joining two dark (or two bright) samples
            are never flipped. The defaults 0/255 disable locking.
        norm : NormKind, str or None
            Norm family; None picks COLOR or GRAYSCALE from ``color``.
        random_source : callable or None
            Zero-argument callable returning floats in [0, 1); defaults to
            ``numpy.random.default_rng(seed).random``.
        width, height : int or None
            Image grid size when the session was built from an image.
        """
        self.logger = get_logger(f'tvflip.session.{self.__class__.__name__}')
        arr = np.asarray(samples, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] != NB_CHANNELS:
            raise ValueError(f"samples must have shape (N,{NB_CHANNELS})")
        if arr.shape[0] != surface.nb_vertices():
            raise ValueError(f"samples has {arr.shape[0]} rows, surface has {surface.nb_vertices()} vertices")
        self.surface = surface
        self.color = bool(color)
        self.dark = float(dark)
        self.bright = float(bright)
        self.width = width
        self.height = height
        self.calculus = DiscreteCalculus(surface, NormKind.parse(norm, self.color), power)
        self.samples = np.ascontiguousarray(arr.copy())
        self.u = self.samples.copy()
        self.p = np.zeros((surface.nb_faces(), 2, NB_CHANNELS), dtype=np.float64)
        self.energy = EnergyModel(self.calculus, surface.nb_faces())
        self.queue: List[int] = []
        self.equal_queue: List[int] = []
        self.nb_initial_vertices = surface.nb_vertices()
        self.random_source = random_source if random_source is not None else np.random.default_rng(seed).random
        # Unified operation stats registry
        self._op_stats = defaultdict(OpStats)
        self.status_counts = Counter()
        total = self.energy.compute_all(self.u)
        self.logger.info("session: %d vertices, %d faces, norm=%s, energy=%.6g",
                         surface.nb_vertices(), surface.nb_faces(), self.calculus.norm_kind.name, total)

    # -----------------------
    # Constructors
    # -----------------------
    @classmethod
    def from_image(cls, image, color: Optional[bool] = None, power: float = DEFAULT_POWER,
                   dark: float = VALUE_MIN, bright: float = VALUE_MAX, norm=None,
                   random_source=None, seed: Optional[int] = None, packed: bool = False) -> 'TVTriangulation':
        samples, width, height, use_color = image_to_samples(image, color=color, packed=packed)
        surface = grid_surface(width, height, samples, dark=dark, bright=bright)
        return cls(surface, samples, color=use_color, power=power, dark=dark, bright=bright, norm=norm,
                   random_source=random_source, seed=seed, width=width, height=height)

    @classmethod
    def from_mesh(cls, points, triangles, samples, color: Optional[bool] = None,
                  power: float = DEFAULT_POWER, dark: float = VALUE_MIN, bright: float = VALUE_MAX,
                  norm=None, random_source=None, seed: Optional[int] = None) -> 'TVTriangulation':
        """Session over an arbitrary counter-clockwise triangle mesh.

        ``samples`` is (N,) for grayscale values or (N,3) for colors.
        """
        pts = np.asarray(points, dtype=np.float64)
        tris = np.asarray(triangles, dtype=np.int64)
        if pts.ndim != 2 or pts.shape[1] != 2:
            raise ValueError("points must have shape (N,2)")
        if tris.ndim != 2 or tris.shape[1] != 3:
            raise ValueError("triangles must have shape (M,3)")
        vals = np.asarray(samples, dtype=np.float64)
        if vals.ndim == 1:
            vals = np.repeat(vals[:, None], NB_CHANNELS, axis=1)
            use_color = False if color is None else bool(color)
        else:
            use_color = True if color is None else bool(color)
        surface = TriangulatedSurface()
        for p in pts:
            surface.add_vertex(p)
        for t in tris:
            surface.add_triangle(*t)
        if not surface.build():
            raise MeshBuildError("triangles do not form an oriented 2-manifold")
        return cls(surface, vals, color=use_color, power=power, dark=dark, bright=bright, norm=norm,
                   random_source=random_source, seed=seed)

    # --- Canonical storage guards ---
    def _assert_canonical(self):
        """Validate that every per-vertex and per-face array matches the surface.

        Raises ValueError if not satisfied.
        """
        nv = self.surface.nb_vertices(); nf = self.surface.nb_faces()
        if self.samples.shape != (nv, NB_CHANNELS) or self.u.shape != (nv, NB_CHANNELS):
            raise ValueError(f"vertex fields must have shape ({nv},{NB_CHANNELS})")
        if self.p.shape != (nf, 2, NB_CHANNELS) or len(self.energy) != nf:
            raise ValueError(f"face fields must have {nf} rows")

    # --- Stats helpers ---
    def _get_op_stats(self, name: str) -> OpStats:
        return self._op_stats[name]

    def stats_summary(self):
        return {k: v.to_dict() for k, v in self._op_stats.items()}

    def print_stats(self, pretty: bool = True, file=None):
        """Delegate to `stats.print_stats` for presentation."""
        _print_stats(self.stats_summary(), file=file, pretty=pretty, status_counts=dict(self.status_counts))

    def _record_time(self, op_name: str, duration: float):
        stats = self._op_stats[op_name]
        stats.time_total += duration
        if duration > stats.time_max:
            stats.time_max = duration
        if stats.time_min == 0.0 or duration < stats.time_min:
            stats.time_min = duration

    def reset_stats(self, drop_ops: bool = False):
        """Reset operation statistics counters, timings and arc status counts.

        With ``drop_ops`` the registry is cleared so only future operations
        recreate entries; otherwise existing keys are kept and zeroed.
        """
        self.status_counts.clear()
        if drop_ops:
            self._op_stats.clear()
            return
        for key in list(self._op_stats.keys()):
            self._op_stats[key] = OpStats()

    # -----------------------
    # Operations (timed wrappers)
    # -----------------------
    def tv_pass(self, fidelity, dt=DEFAULT_DT, tol=DEFAULT_TOLERANCE, max_iterations=DEFAULT_TV_ITERATIONS):
        from .denoise import op_tv_pass
        t0 = time.perf_counter()
        try:
            self._assert_canonical()
            return op_tv_pass(self, fidelity, dt=dt, tol=tol, max_iterations=max_iterations)
        finally:
            self._record_time('tv_pass', time.perf_counter() - t0)

    def quantize(self, levels: int):
        from .quantize import op_quantize
        t0 = time.perf_counter()
        try:
            self._assert_canonical()
            return op_quantize(self, levels)
        finally:
            self._record_time('quantize', time.perf_counter() - t0)

    def evaluate_arc(self, a):
        from .flips import op_evaluate_arc
        return op_evaluate_arc(self, a)

    def update_arc(self, a):
        from .flips import op_update_arc
        t0 = time.perf_counter()
        try:
            self._assert_canonical()
            return op_update_arc(self, a)
        finally:
            self._record_time('update_arc', time.perf_counter() - t0)

    def force_flip(self, a):
        from .flips import op_force_flip
        t0 = time.perf_counter()
        try:
            self._assert_canonical()
            return op_force_flip(self, a)
        finally:
            self._record_time('force_flip', time.perf_counter() - t0)

    def one_pass(self, strategy: int = DEFAULT_STRATEGY):
        from .flips import op_one_pass
        t0 = time.perf_counter()
        try:
            self._assert_canonical()
            return op_one_pass(self, strategy)
        finally:
            self._record_time('one_pass', time.perf_counter() - t0)

    def flip_equal(self, arcs=None):
        """Flip the given ties (default: the pending EQUAL arcs)."""
        from .flips import op_flip_equal
        t0 = time.perf_counter()
        try:
            self._assert_canonical()
            return op_flip_equal(self, self._take_pending(arcs))
        finally:
            self._record_time('flip_equal', time.perf_counter() - t0)

    def flip_equal_with_prob(self, arcs=None, probability: float = TIE_FLIP_PROBABILITY):
        from .flips import op_flip_equal_with_prob
        t0 = time.perf_counter()
        try:
            self._assert_canonical()
            return op_flip_equal_with_prob(self, self._take_pending(arcs), probability)
        finally:
            self._record_time('flip_equal_with_prob', time.perf_counter() - t0)

    def subdivide(self, arcs=None):
        from .flips import op_subdivide
        t0 = time.perf_counter()
        try:
            self._assert_canonical()
            return op_subdivide(self, self._take_pending(arcs))
        finally:
            self._record_time('subdivide', time.perf_counter() - t0)

    def optimize(self, max_passes: int = DEFAULT_MAX_PASSES, strategy: int = DEFAULT_STRATEGY):
        from .flips import op_optimize
        t0 = time.perf_counter()
        try:
            self._assert_canonical()
            return op_optimize(self, max_passes, strategy)
        finally:
            self._record_time('optimize', time.perf_counter() - t0)

    def _take_pending(self, arcs):
        if arcs is not None:
            return list(arcs)
        pending = list(dict.fromkeys(self.equal_queue))
        self.equal_queue = []
        return pending

    # -----------------------
    # Energy reads
    # -----------------------
    def energy_tv(self, f: int) -> float:
        return self.energy.energy_tv(f)

    def get_energy_tv(self) -> float:
        return self.energy.total

    def compute_energy_tv(self, f: Optional[int] = None) -> float:
        """Recompute one face (keeping the total in sync) or, with no face, everything."""
        if f is None:
            return self.energy.compute_all(self.u)
        old = self.energy.energy_tv(f)
        e = self.energy.compute_energy_tv(f, self.u)
        self.energy.adjust_total(e - old)
        return e

    def u_at(self, v: int) -> np.ndarray:
        return self.u[v]

    # -----------------------
    # Face measures and renderer inputs
    # -----------------------
    def _face_points(self, f):
        pts = self.surface.points
        return [pts[v] for v in self.surface.vertices_around_face(f)]

    def aspect_ratio(self, f: int) -> float:
        return triangle_aspect_ratio(*self._face_points(f))

    def diameter(self, f: int) -> float:
        return triangle_diameter(*self._face_points(f))

    def face_values(self, mode: str = 'mean') -> np.ndarray:
        """Flat color per face, ``(nb_faces, 3)``.

        ``mean`` averages the three vertex values; ``median`` picks the vertex
        whose value has the median Euclidean norm (first match on ties).
        """
        T = self.surface.triangles
        vals = self.u[T]
        if mode == 'mean':
            return vals.mean(axis=1)
        if mode != 'median':
            raise ValueError(f"unknown face value mode: {mode!r}")
        n = np.linalg.norm(vals, axis=2)
        n0, n1, n2 = n[:, 0], n[:, 1], n[:, 2]
        c0 = ((n0 >= n1) & (n0 <= n2)) | ((n0 <= n1) & (n0 >= n2))
        c1 = ((n1 <= n0) & (n1 >= n2)) | ((n1 >= n0) & (n1 <= n2))
        idx = np.where(c0, 0, np.where(c1, 1, 2))
        return vals[np.arange(T.shape[0]), idx]

    def discontinuities(self, fraction: float) -> List[int]:
        """Faces of highest ``energy * diameter`` whose cumulated energy stays
        below ``fraction`` of the total energy."""
        nf = self.surface.nb_faces()
        keys = np.array([self.energy.energy_tv(f) * self.diameter(f) for f in range(nf)])
        order = np.argsort(-keys, kind='stable')
        limit = self.energy.total * float(fraction)
        out: List[int] = []
        acc = 0.0
        for f in order:
            acc += self.energy.energy_tv(int(f))
            if acc >= limit:
                break
            out.append(int(f))
        return out

    def output_image(self) -> np.ndarray:
        """Regularized values of the grid vertices as an 8-bit image."""
        if self.width is None or self.height is None:
            raise ValueError("session was not built from an image")
        return samples_to_image(self.u, self.width, self.height, color=self.color)

    def __repr__(self):
        return (f"TVTriangulation(nb_vertices={self.surface.nb_vertices()}, "
                f"nb_faces={self.surface.nb_faces()}, energy={self.energy.total:.6g})")
