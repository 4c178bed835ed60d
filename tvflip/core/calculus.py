"""Discrete calculus on a triangulated surface carrying per-vertex values.

Values are ``(nb_vertices, 3)`` arrays, per-face vector fields are
``(nb_faces, 2, 3)`` arrays (row 0 holds the x components, row 1 the y
components). The face gradient is area-weighted: for an affine function
``u = a*x + b*y`` on a counter-clockwise triangle of area ``A`` it equals
``A * (a, b)``.
"""
from __future__ import annotations

from enum import Enum
from typing import Tuple

import numpy as np
from scipy import sparse

from .constants import DEFAULT_POWER, NB_CHANNELS

__all__ = ['NormKind', 'DiscreteCalculus']


class NormKind(Enum):
    GRAYSCALE = 'grayscale'
    COLOR = 'color'
    COLOR_SEPARABLE = 'color_separable'

    @classmethod
    def parse(cls, value, color: bool = True) -> 'NormKind':
        """Accept a NormKind, its name or value (any case), or None for the default of ``color``."""
        if value is None:
            return cls.COLOR if color else cls.GRAYSCALE
        if isinstance(value, cls):
            return value
        key = str(value).strip()
        for kind in cls:
            if key.upper() == kind.name or key.lower() == kind.value:
                return kind
        raise ValueError(f"unknown norm kind: {value!r}")


class DiscreteCalculus:
    """Gradient, divergence and norms bound to a surface.

    Global ``grad``/``div`` go through sparse ``(Dx, Dy)`` operators of shape
    ``(nb_faces, nb_vertices)``; ``div`` is their negative adjoint so that
    ``<grad u, G> == -<u, div G>``. The operators are rebuilt lazily when the
    surface topology changes.
    """

    def __init__(self, surface, norm: NormKind = NormKind.COLOR, power: float = DEFAULT_POWER):
        self.surface = surface
        self.norm_kind = NormKind.parse(norm)
        self.power = float(power)
        self._ops = None
        self._ops_key = None

    @property
    def channels(self) -> int:
        """Number of channels taking part in computations (1 for grayscale)."""
        return 1 if self.norm_kind is NormKind.GRAYSCALE else NB_CHANNELS

    # -----------------------
    # Per-face gradient
    # -----------------------
    def grad_vertices(self, i: int, j: int, k: int, u) -> np.ndarray:
        """Gradient of ``u`` on the (possibly virtual) triangle ``(i, j, k)``."""
        d = self.channels
        pts = self.surface.points
        xi, yi = pts[i]; xj, yj = pts[j]; xk, yk = pts[k]
        ui = u[i, :d]; uj = u[j, :d]; uk = u[k, :d]
        G = np.zeros((2, NB_CHANNELS), dtype=np.float64)
        G[0, :d] = 0.5 * (ui * (yj - yk) + uj * (yk - yi) + uk * (yi - yj))
        G[1, :d] = 0.5 * (ui * (xk - xj) + uj * (xi - xk) + uk * (xj - xi))
        return G

    def grad(self, face: int, u) -> np.ndarray:
        i, j, k = self.surface.vertices_around_face(face)
        return self.grad_vertices(i, j, k, u)

    # -----------------------
    # Global operators
    # -----------------------
    def operators(self) -> Tuple[sparse.csr_matrix, sparse.csr_matrix]:
        """Return the sparse ``(Dx, Dy)`` gradient operators of the current topology."""
        surf = self.surface
        key = (surf.revision, surf.nb_vertices(), surf.nb_faces())
        if self._ops is not None and self._ops_key == key:
            return self._ops
        T = surf.triangles
        P = surf.points
        F = T.shape[0]; N = P.shape[0]
        xs = P[T, 0]; ys = P[T, 1]
        # cyclic (i, j, k) -> coefficient of u_i
        dx = 0.5 * (ys[:, [1, 2, 0]] - ys[:, [2, 0, 1]])
        dy = 0.5 * (xs[:, [2, 0, 1]] - xs[:, [1, 2, 0]])
        rows = np.repeat(np.arange(F), 3)
        cols = T.ravel()
        Dx = sparse.csr_matrix((dx.ravel(), (rows, cols)), shape=(F, N))
        Dy = sparse.csr_matrix((dy.ravel(), (rows, cols)), shape=(F, N))
        self._ops = (Dx, Dy)
        self._ops_key = key
        return self._ops

    def grad_all(self, u) -> np.ndarray:
        """Per-face gradient field ``(nb_faces, 2, 3)`` of the vertex values ``u``."""
        u = np.asarray(u, dtype=np.float64)
        if u.ndim != 2 or u.shape[1] != NB_CHANNELS:
            raise ValueError(f"values must have shape (N,{NB_CHANNELS}), got {u.shape}")
        Dx, Dy = self.operators()
        d = self.channels
        G = np.zeros((Dx.shape[0], 2, NB_CHANNELS), dtype=np.float64)
        G[:, 0, :d] = Dx @ u[:, :d]
        G[:, 1, :d] = Dy @ u[:, :d]
        return G

    def div(self, G) -> np.ndarray:
        """Vertex divergence ``(nb_vertices, 3)`` of a face field, ``-(Dx^T Gx + Dy^T Gy)``."""
        G = np.asarray(G, dtype=np.float64)
        if G.ndim != 3 or G.shape[1:] != (2, NB_CHANNELS):
            raise ValueError(f"field must have shape (F,2,{NB_CHANNELS}), got {G.shape}")
        Dx, Dy = self.operators()
        d = self.channels
        S = np.zeros((Dx.shape[1], NB_CHANNELS), dtype=np.float64)
        S[:, :d] = -(Dx.T @ G[:, 0, :d] + Dy.T @ G[:, 1, :d])
        return S

    # -----------------------
    # Norms
    # -----------------------
    def _pow(self, x):
        # sqrt at p=0.5; sparse and per-face gradients may still differ in the last bits
        if self.power == 0.5:
            return np.sqrt(x)
        return np.power(x, self.power)

    def norm_x(self, v) -> float:
        """Norm of a single Value."""
        v = np.asarray(v, dtype=np.float64)
        if self.norm_kind is NormKind.GRAYSCALE:
            return float(self._pow(v[0] * v[0]))
        return float(self._pow(np.dot(v, v)))

    def norm_y(self, G) -> float:
        """Norm of a single VectorValue ``(2, 3)``."""
        G = np.asarray(G, dtype=np.float64)
        if self.norm_kind is NormKind.GRAYSCALE:
            return float(self._pow(G[0, 0] * G[0, 0] + G[1, 0] * G[1, 0]))
        sq = G[0] * G[0] + G[1] * G[1]
        if self.norm_kind is NormKind.COLOR_SEPARABLE:
            return float(np.sum(self._pow(sq)))
        return float(self._pow(np.sum(sq)))

    def norm(self, G) -> np.ndarray:
        """Vectorized ``norm_y`` over a face field, returns ``(nb_faces,)``."""
        G = np.asarray(G, dtype=np.float64)
        if self.norm_kind is NormKind.GRAYSCALE:
            return self._pow(G[:, 0, 0] * G[:, 0, 0] + G[:, 1, 0] * G[:, 1, 0])
        sq = G[:, 0, :] * G[:, 0, :] + G[:, 1, :] * G[:, 1, :]
        if self.norm_kind is NormKind.COLOR_SEPARABLE:
            return np.sum(self._pow(sq), axis=1)
        return self._pow(np.sum(sq, axis=1))
