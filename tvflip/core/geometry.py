"""Geometry primitives on planar points.

Orientation and convexity predicates used by the flip optimizer, plus the
triangle shape measures used to rank discontinuities.
"""
from __future__ import annotations
import math
import numpy as np

__all__ = [
	'orient', 'triangles_signed_areas', 'is_strictly_convex',
	'triangle_diameter', 'triangle_aspect_ratio', 'quad_centroid',
]


def orient(a, b, c):
	"""2D orientation (signed area * 2) for points a,b,c.

	Returns a positive value when (a,b,c) are counter-clockwise, negative when clockwise,
	and zero when colinear.
	"""
	return (b[0]-a[0])*(c[1]-a[1]) - (b[1]-a[1])*(c[0]-a[0])


def triangles_signed_areas(points, tris):
	"""Vectorized signed area for a batch of triangles.

	points: (N,2) float array
	tris:   (M,3) int array
	Returns: (M,) float64 array of signed areas (0.5 * cross).
	"""
	pts = np.asarray(points, dtype=np.float64)
	T = np.asarray(tris, dtype=np.int64)
	if T.size == 0:
		return np.empty((0,), dtype=float)
	p0 = pts[T[:, 0]]; p1 = pts[T[:, 1]]; p2 = pts[T[:, 2]]
	e1 = p1 - p0; e2 = p2 - p0
	return 0.5 * (e1[:, 0]*e2[:, 1] - e1[:, 1]*e2[:, 0])


def is_strictly_convex(quad) -> bool:
	"""Return True if the closed polygon ``quad`` (4 points in cyclic order)
	turns strictly in the same direction at every corner.

	Colinear corners (zero turn) are rejected: flipping such a quad would
	create a degenerate triangle.
	"""
	n = len(quad)
	turns = []
	for i in range(n):
		p = quad[i]; q = quad[(i+1) % n]; r = quad[(i+2) % n]
		turns.append(orient(p, q, r))
	return all(t > 0 for t in turns) or all(t < 0 for t in turns)


def triangle_diameter(p0, p1, p2) -> float:
	"""Length of the longest side."""
	return max(math.dist(p0, p1), math.dist(p1, p2), math.dist(p2, p0))


def triangle_aspect_ratio(p0, p1, p2) -> float:
	"""Largest side/height ratio of the triangle (the greater, the more elongated)."""
	a = np.asarray(p0, dtype=np.float64); b = np.asarray(p1, dtype=np.float64); c = np.asarray(p2, dtype=np.float64)
	ab = b - a; bc = c - b; ca = a - c
	dab = np.linalg.norm(ab); dbc = np.linalg.norm(bc); dca = np.linalg.norm(ca)
	uab = ab / dab; ubc = bc / dbc; uca = ca / dca
	# height through each vertex, measured against the opposite side
	ha = np.linalg.norm(ab - ab.dot(ubc) * ubc)
	hb = np.linalg.norm(bc - bc.dot(uca) * uca)
	hc = np.linalg.norm(ca - ca.dot(uab) * uab)
	return float(max(dab / hc, dbc / ha, dca / hb))


def quad_centroid(points):
	"""Average of the quad corners (vertex centroid, not area centroid)."""
	return np.mean(np.asarray(points, dtype=np.float64), axis=0)
