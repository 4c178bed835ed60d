"""Indexed triangulated surface with half-edge arcs.

The surface is an arena of growable indexed arrays: vertex positions,
triangles and directed arcs (half-edges). All relations are integer indices;
nothing is ever deleted, so indices stay valid for the lifetime of the
surface. Flips rewrite faces and arcs in place, splits append.

Arc conventions
---------------
For an arc ``a = (t -> h)``:

* ``face_around_arc(a)`` is the triangle whose winding contains ``t -> h``,
  or ``INVALID_FACE`` when ``a`` lies on the boundary;
* ``vertices_around_arc(a)`` returns ``[h, k, t, l]`` where ``k`` is the third
  vertex of ``face(a)`` and ``l`` the third vertex of ``face(opposite(a))``.
  Hence ``face(a) = (P0, P1, P2)`` and ``face(opposite(a)) = (P0, P2, P3)``.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Set, Tuple

import numpy as np

from .constants import INVALID_FACE
from .logging_utils import get_logger

__all__ = ['TriangulatedSurface', 'INVALID_FACE']

logger = get_logger('tvflip.surface')


class TriangulatedSurface:
    """Triangulated planar mesh addressed by vertex, face and arc indices.

    Usage mirrors a two-phase builder: ``add_vertex`` / ``add_triangle`` then
    ``build()``, after which traversal and the ``flip`` / ``split`` mutations
    are available.
    """

    INVALID_FACE = INVALID_FACE

    def __init__(self):
        self._pending_points: List[Tuple[float, float]] = []
        self._pending_tris: List[Tuple[int, int, int]] = []
        self._points = np.empty((0, 2), dtype=np.float64)
        self._triangles = np.empty((0, 3), dtype=np.int64)
        # Arc arena (parallel lists, one entry per directed half-edge)
        self._tail: List[int] = []
        self._head: List[int] = []
        self._face: List[int] = []
        self._next: List[int] = []
        self._opp: List[int] = []
        # Derived maps, kept up to date incrementally by flip/split
        self.arc_map: Dict[Tuple[int, int], int] = {}
        self.v_map: Dict[int, Set[int]] = {}
        self._built = False
        # Bumped by every topology change; lets callers cache derived operators
        self.revision = 0

    # -----------------------
    # Construction
    # -----------------------
    def add_vertex(self, point) -> int:
        if self._built:
            raise ValueError("add_vertex after build(); use split() to insert vertices")
        self._pending_points.append((float(point[0]), float(point[1])))
        return len(self._pending_points) - 1

    def add_triangle(self, v0: int, v1: int, v2: int) -> int:
        if self._built:
            raise ValueError("add_triangle after build()")
        self._pending_tris.append((int(v0), int(v1), int(v2)))
        return len(self._pending_tris) - 1

    def build(self) -> bool:
        """Create the arcs of all added triangles.

        Returns False when the triangles do not describe an oriented
        2-manifold: an index out of range, a directed edge used twice
        (inconsistent orientation or more than two faces on an edge), or a
        vertex where two boundary arcs start (pinched boundary).
        """
        points = np.asarray(self._pending_points, dtype=np.float64).reshape(-1, 2)
        tris = np.asarray(self._pending_tris, dtype=np.int64).reshape(-1, 3)
        nv = points.shape[0]
        if tris.size and (tris.min() < 0 or tris.max() >= nv):
            logger.warning("build: triangle references a vertex out of range [0,%d)", nv)
            return False
        tail: List[int] = []; head: List[int] = []; face: List[int] = []; nxt: List[int] = []
        arc_map: Dict[Tuple[int, int], int] = {}
        for f, tri in enumerate(tris):
            base = len(tail)
            for i in range(3):
                a, b = int(tri[i]), int(tri[(i+1) % 3])
                if a == b or (a, b) in arc_map:
                    logger.warning("build: directed edge (%d,%d) repeated or degenerate", a, b)
                    return False
                arc_map[(a, b)] = base + i
                tail.append(a); head.append(b); face.append(f); nxt.append(base + (i+1) % 3)
        opp = [-1] * len(tail)
        # Boundary arcs close every unmatched half-edge
        boundary_from: Dict[int, int] = {}
        nb_inner = len(tail)
        for arc in range(nb_inner):
            a, b = tail[arc], head[arc]
            twin = arc_map.get((b, a))
            if twin is None:
                twin = len(tail)
                arc_map[(b, a)] = twin
                tail.append(b); head.append(a); face.append(INVALID_FACE); nxt.append(-1); opp.append(arc)
                if b in boundary_from:
                    logger.warning("build: vertex %d has several outgoing boundary arcs", b)
                    return False
                boundary_from[b] = twin
            opp[arc] = twin
        for arc in range(nb_inner, len(tail)):
            nxt[arc] = boundary_from[head[arc]]
        self._points = np.ascontiguousarray(points)
        self._triangles = np.ascontiguousarray(tris)
        self._tail, self._head, self._face, self._next, self._opp = tail, head, face, nxt, opp
        self.arc_map = arc_map
        self.v_map = {v: set() for v in range(nv)}
        for f in range(tris.shape[0]):
            self._add_face_to_maps(f)
        self._built = True
        logger.debug("build: %d vertices, %d faces, %d arcs", nv, tris.shape[0], len(tail))
        return True

    # -----------------------
    # Canonical storage views
    # -----------------------
    @property
    def points(self) -> np.ndarray:
        """(N,2) float64 vertex positions."""
        return self._points

    @property
    def triangles(self) -> np.ndarray:
        """(M,3) int64 face vertex triples in winding order."""
        return self._triangles

    # -----------------------
    # Sizes and accessors
    # -----------------------
    def nb_vertices(self) -> int:
        return self._points.shape[0]

    def nb_faces(self) -> int:
        return self._triangles.shape[0]

    def nb_arcs(self) -> int:
        return len(self._tail)

    def position(self, v: int) -> np.ndarray:
        return self._points[v]

    def head(self, a: int) -> int:
        return self._head[a]

    def tail(self, a: int) -> int:
        return self._tail[a]

    def opposite(self, a: int) -> int:
        return self._opp[a]

    def next(self, a: int) -> int:
        return self._next[a]

    def face_around_arc(self, a: int) -> int:
        return self._face[a]

    def arc(self, tail: int, head: int) -> Optional[int]:
        """Index of the arc ``tail -> head`` or None if the edge does not exist."""
        return self.arc_map.get((int(tail), int(head)))

    def vertices_around_face(self, f: int) -> List[int]:
        t = self._triangles[f]
        return [int(t[0]), int(t[1]), int(t[2])]

    def faces_around_vertex(self, v: int) -> List[int]:
        return sorted(self.v_map.get(int(v), ()))

    def is_flippable(self, a: int) -> bool:
        return self._face[a] != INVALID_FACE and self._face[self._opp[a]] != INVALID_FACE

    def vertices_around_arc(self, a: int) -> List[int]:
        """Quad ``[P0, P1, P2, P3]`` around an interior arc, empty on the boundary."""
        if not self.is_flippable(a):
            return []
        b = self._opp[a]
        return [self._head[a], self._head[self._next[a]], self._tail[a], self._head[self._next[b]]]

    # -----------------------
    # Incremental maps
    # -----------------------
    def _add_face_to_maps(self, f: int):
        for v in self._triangles[f]:
            self.v_map.setdefault(int(v), set()).add(f)

    def _remove_face_from_maps(self, f: int):
        for v in self._triangles[f]:
            faces = self.v_map.get(int(v))
            if faces is not None:
                faces.discard(f)

    def _set_arc(self, arc: int, tail: int, head: int):
        old = (self._tail[arc], self._head[arc])
        if self.arc_map.get(old) == arc:
            del self.arc_map[old]
        self._tail[arc] = tail; self._head[arc] = head
        self.arc_map[(tail, head)] = arc

    def _new_arc(self, tail: int, head: int, face: int) -> int:
        arc = len(self._tail)
        self._tail.append(tail); self._head.append(head); self._face.append(face)
        self._next.append(-1); self._opp.append(-1)
        self.arc_map[(tail, head)] = arc
        return arc

    # -----------------------
    # Mutations
    # -----------------------
    def flip(self, a: int):
        """Replace the diagonal of the quad around ``a`` by the other diagonal.

        ``face(a)`` becomes ``(P1, P2, P3)``, ``face(opposite(a))`` becomes
        ``(P3, P0, P1)`` and ``a`` becomes the arc ``P3 -> P1``. No index is
        created or destroyed.
        """
        if not self.is_flippable(a):
            raise ValueError(f"arc {a} is on the boundary and cannot be flipped")
        b = self._opp[a]
        h, t = self._head[a], self._tail[a]
        a_n = self._next[a]; a_nn = self._next[a_n]
        b_n = self._next[b]; b_nn = self._next[b_n]
        k = self._head[a_n]; l = self._head[b_n]
        f, g = self._face[a], self._face[b]
        if (l, k) in self.arc_map:
            raise ValueError(f"flip of arc {a} would duplicate edge ({l},{k})")
        self._remove_face_from_maps(f)
        self._remove_face_from_maps(g)
        self._triangles[f] = (k, t, l)
        self._triangles[g] = (l, h, k)
        self._add_face_to_maps(f)
        self._add_face_to_maps(g)
        self._set_arc(a, l, k)
        self._set_arc(b, k, l)
        # f: k->t, t->l, l->k    g: l->h, h->k, k->l
        self._next[a_nn] = b_n; self._next[b_n] = a; self._next[a] = a_nn
        self._next[b_nn] = a_n; self._next[a_n] = b; self._next[b] = b_nn
        self._face[b_n] = f
        self._face[a_n] = g
        self.revision += 1

    def split(self, a: int, point) -> int:
        """Insert a vertex at ``point`` inside the quad around ``a``.

        The quad ``(P0, P1, P2, P3)`` is fanned into four triangles around
        the new vertex: ``face(a)`` and ``face(opposite(a))`` are rewritten and
        two faces are appended. Returns the new vertex index.
        """
        if not self.is_flippable(a):
            raise ValueError(f"arc {a} is on the boundary and cannot be split")
        b = self._opp[a]
        h, t = self._head[a], self._tail[a]
        a_n = self._next[a]; a_nn = self._next[a_n]
        b_n = self._next[b]; b_nn = self._next[b_n]
        k = self._head[a_n]; l = self._head[b_n]
        f, g = self._face[a], self._face[b]
        v = self.nb_vertices()
        self._points = np.ascontiguousarray(np.vstack([self._points, np.asarray(point, dtype=np.float64).reshape(1, 2)]))
        self.v_map[v] = set()
        f1 = self.nb_faces(); f2 = f1 + 1
        self._remove_face_from_maps(f)
        self._remove_face_from_maps(g)
        self._triangles = np.ascontiguousarray(np.vstack([self._triangles, np.zeros((2, 3), dtype=np.int64)]))
        self._triangles[f] = (v, h, k)
        self._triangles[g] = (v, k, t)
        self._triangles[f1] = (v, t, l)
        self._triangles[f2] = (v, l, h)
        for face in (f, g, f1, f2):
            self._add_face_to_maps(face)
        # Former diagonal pair becomes the spoke t <-> v
        self._set_arc(a, t, v)
        self._set_arc(b, v, t)
        vh = self._new_arc(v, h, f); hv = self._new_arc(h, v, f2)
        kv = self._new_arc(k, v, f); vk = self._new_arc(v, k, g)
        lv = self._new_arc(l, v, f1); vl = self._new_arc(v, l, f2)
        for x, y in ((vh, hv), (kv, vk), (lv, vl)):
            self._opp[x] = y; self._opp[y] = x
        self._face[a] = g; self._face[b] = f1
        self._face[b_n] = f1; self._face[b_nn] = f2
        self._face[a_nn] = g
        # f: v->h, h->k, k->v    g: v->k, k->t, t->v
        self._next[vh] = a_n; self._next[a_n] = kv; self._next[kv] = vh
        self._next[vk] = a_nn; self._next[a_nn] = a; self._next[a] = vk
        # f1: v->t, t->l, l->v   f2: v->l, l->h, h->v
        self._next[b] = b_n; self._next[b_n] = lv; self._next[lv] = b
        self._next[vl] = b_nn; self._next[b_nn] = hv; self._next[hv] = vl
        self.revision += 1
        return v

    def __repr__(self):
        return (f"TriangulatedSurface(nb_vertices={self.nb_vertices()}, "
                f"nb_faces={self.nb_faces()}, nb_arcs={self.nb_arcs()})")
