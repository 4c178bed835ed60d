"""Per-face TV energy cache with a running total."""
from __future__ import annotations

import numpy as np

__all__ = ['EnergyModel']


class EnergyModel:
    """Cache of ``norm_y(grad(f, u))`` for every face plus their sum.

    Callers that mutate faces (flips, splits) update the affected entries with
    ``set_face``/``compute_energy_tv`` and keep ``total`` in sync with
    ``adjust_total``; bulk changes of ``u`` go through ``compute_all``.
    """

    def __init__(self, calculus, nb_faces: int = 0):
        self.calculus = calculus
        self._per_face = np.zeros(int(nb_faces), dtype=np.float64)
        self._total = 0.0

    @property
    def total(self) -> float:
        return self._total

    @property
    def per_face(self) -> np.ndarray:
        return self._per_face

    def __len__(self):
        return self._per_face.shape[0]

    def energy_tv(self, f: int) -> float:
        return float(self._per_face[f])

    def compute_energy_tv(self, f: int, u) -> float:
        e = self.calculus.norm_y(self.calculus.grad(f, u))
        self._per_face[f] = e
        return e

    def compute_energy_tv_vertices(self, i: int, j: int, k: int, u) -> float:
        # Virtual triangle, nothing cached
        return self.calculus.norm_y(self.calculus.grad_vertices(i, j, k, u))

    def compute_all(self, u) -> float:
        self.resize(self.calculus.surface.nb_faces())
        self._per_face[:] = self.calculus.norm(self.calculus.grad_all(u))
        self._total = float(np.sum(self._per_face))
        return self._total

    def set_face(self, f: int, value: float):
        self._per_face[f] = value

    def adjust_total(self, delta: float):
        self._total += float(delta)

    def resize(self, nb_faces: int):
        n = int(nb_faces)
        cur = self._per_face.shape[0]
        if n > cur:
            self._per_face = np.concatenate([self._per_face, np.zeros(n - cur, dtype=np.float64)])
        elif n < cur:
            self._per_face = self._per_face[:n].copy()
