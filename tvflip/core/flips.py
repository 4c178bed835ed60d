"""Greedy edge-flip optimization of the TV energy.

Every interior edge is visited through its canonical arc (the direction whose
tail index is smaller than its head index). An arc is flipped when replacing
its diagonal strictly lowers the summed energy of the two adjacent faces;
arcs whose flip leaves the energy unchanged are handed to a tie-break policy:

====  =====================================================================
0     ignore ties
1     subdivide tie quads at their centroid
2     flip every tie
3     flip every tie, only after a pass with no improving flip
4     flip each tie with probability 0.5, only after a pass with no
      improving flip (ties are re-queued)
5     as 4, then one subdivision pass once the optimization has converged
====  =====================================================================
"""
from __future__ import annotations

from enum import IntEnum
from typing import List, NamedTuple, Sequence, Tuple

import numpy as np

from .constants import VALUE_MIN, VALUE_MAX, TIE_FLIP_PROBABILITY
from .geometry import is_strictly_convex, quad_centroid
from .logging_utils import get_logger

__all__ = [
    'ArcStatus', 'ArcEvaluation', 'STRATEGIES',
    'op_evaluate_arc', 'op_update_arc', 'op_force_flip', 'op_one_pass',
    'op_flip_equal', 'op_flip_equal_with_prob', 'op_subdivide', 'op_optimize',
    'queue_surrounding_arcs',
]

logger = get_logger('tvflip.flips')

STRATEGIES = (0, 1, 2, 3, 4, 5)


class ArcStatus(IntEnum):
    IMPROVED = 1
    EQUAL = 0
    BOUNDARY = -1
    DUPLICATE = -2
    NON_CONVEX = -3
    LOCKED_DARK = -4
    LOCKED_BRIGHT = -5
    WORSE = -6


class ArcEvaluation(NamedTuple):
    status: ArcStatus
    quad: Tuple[int, ...] = ()
    faces: Tuple[int, ...] = ()
    e_current: float = 0.0
    e_flip: float = 0.0
    e013: float = 0.0
    e123: float = 0.0


def _locks_active(tvt) -> bool:
    return tvt.dark != VALUE_MIN or tvt.bright != VALUE_MAX


def op_evaluate_arc(tvt, a) -> ArcEvaluation:
    """Classify arc ``a`` without touching the session."""
    surf = tvt.surface
    P = surf.vertices_around_arc(a)
    if len(P) != 4:
        return ArcEvaluation(ArcStatus.BOUNDARY)
    quad = tuple(P)
    if P[0] < P[2]:
        return ArcEvaluation(ArcStatus.DUPLICATE, quad)
    pts = surf.points
    if not is_strictly_convex([pts[v] for v in P]):
        return ArcEvaluation(ArcStatus.NON_CONVEX, quad)
    if _locks_active(tvt):
        I = tvt.samples
        if np.all(I[P[0]] <= tvt.dark) and np.all(I[P[2]] <= tvt.dark):
            return ArcEvaluation(ArcStatus.LOCKED_DARK, quad)
        if np.all(I[P[0]] >= tvt.bright) and np.all(I[P[2]] >= tvt.bright):
            return ArcEvaluation(ArcStatus.LOCKED_BRIGHT, quad)
    f012 = surf.face_around_arc(a)
    f023 = surf.face_around_arc(surf.opposite(a))
    energy = tvt.energy
    e_cur = energy.energy_tv(f012) + energy.energy_tv(f023)
    e013 = energy.compute_energy_tv_vertices(P[0], P[1], P[3], tvt.u)
    e123 = energy.compute_energy_tv_vertices(P[1], P[2], P[3], tvt.u)
    e_flip = e013 + e123
    if e_flip < e_cur:
        status = ArcStatus.IMPROVED
    elif e_flip == e_cur:
        status = ArcStatus.EQUAL
    else:
        status = ArcStatus.WORSE
    return ArcEvaluation(status, quad, (f012, f023), e_cur, e_flip, e013, e123)


def queue_surrounding_arcs(tvt, a):
    """Queue the four outer edges of the quad around ``a`` (both directions)."""
    surf = tvt.surface
    b = surf.opposite(a)
    an = surf.next(a); bn = surf.next(b)
    for x in (an, surf.next(an), bn, surf.next(bn)):
        tvt.queue.append(x)
        tvt.queue.append(surf.opposite(x))


def _apply_flip(tvt, a, ev: ArcEvaluation):
    queue_surrounding_arcs(tvt, a)
    tvt.surface.flip(a)
    f012, f023 = ev.faces
    tvt.energy.set_face(f012, ev.e123)
    tvt.energy.set_face(f023, ev.e013)
    tvt.energy.adjust_total(ev.e_flip - ev.e_current)


def _count(tvt, status):
    counts = getattr(tvt, 'status_counts', None)
    if counts is not None:
        counts[status.name] += 1


def op_update_arc(tvt, a) -> ArcStatus:
    """Flip ``a`` when it strictly lowers the energy; returns the arc status."""
    stats_fn = getattr(tvt, '_get_op_stats', None)
    stats = stats_fn('update_arc') if stats_fn else None
    if stats: stats.attempts += 1
    ev = op_evaluate_arc(tvt, a)
    _count(tvt, ev.status)
    if ev.status is ArcStatus.IMPROVED:
        _apply_flip(tvt, a, ev)
        if stats: stats.success += 1; stats.flips += 1
    elif stats:
        stats.fail += 1
    return ev.status


def op_force_flip(tvt, a) -> bool:
    """Flip ``a`` if it is flippable and not locked, whatever the energy change."""
    stats_fn = getattr(tvt, '_get_op_stats', None)
    stats = stats_fn('force_flip') if stats_fn else None
    if stats: stats.attempts += 1
    ev = op_evaluate_arc(tvt, a)
    if ev.status not in (ArcStatus.IMPROVED, ArcStatus.EQUAL, ArcStatus.WORSE):
        if stats: stats.fail += 1
        return False
    _apply_flip(tvt, a, ev)
    if stats: stats.success += 1; stats.flips += 1
    return True


def op_flip_equal(tvt, arcs: Sequence[int]) -> int:
    """Flip every arc of ``arcs`` that still evaluates EQUAL (or IMPROVED)."""
    stats_fn = getattr(tvt, '_get_op_stats', None)
    stats = stats_fn('flip_equal') if stats_fn else None
    if stats: stats.attempts += 1
    nb = 0
    for a in arcs:
        ev = op_evaluate_arc(tvt, a)
        if ev.status in (ArcStatus.EQUAL, ArcStatus.IMPROVED):
            _apply_flip(tvt, a, ev)
            nb += 1
    if stats:
        stats.tie_breaks += nb
        if nb: stats.success += 1
        else: stats.fail += 1
    logger.debug("flip_equal: %d/%d arcs flipped", nb, len(arcs))
    return nb


def op_flip_equal_with_prob(tvt, arcs: Sequence[int], probability: float = TIE_FLIP_PROBABILITY) -> int:
    """Flip each tie with the given probability; every tie is queued again."""
    stats_fn = getattr(tvt, '_get_op_stats', None)
    stats = stats_fn('flip_equal_with_prob') if stats_fn else None
    if stats: stats.attempts += 1
    surf = tvt.surface
    nb = 0
    for a in arcs:
        ev = op_evaluate_arc(tvt, a)
        if ev.status is ArcStatus.IMPROVED:
            _apply_flip(tvt, a, ev)
            nb += 1
        elif ev.status is ArcStatus.EQUAL:
            tvt.queue.append(a)
            tvt.queue.append(surf.opposite(a))
            if tvt.random_source() < probability:
                _apply_flip(tvt, a, ev)
                nb += 1
    if stats:
        stats.tie_breaks += nb
        if nb: stats.success += 1
        else: stats.fail += 1
    logger.debug("flip_equal_with_prob: %d/%d arcs flipped (p=%g)", nb, len(arcs), probability)
    return nb


def op_subdivide(tvt, arcs: Sequence[int]) -> int:
    """Split each tie quad made of initial vertices at its centroid.

    The new vertex gets the average raw and regularized values of the quad
    corners; the four faces around it get fresh energies.
    """
    stats_fn = getattr(tvt, '_get_op_stats', None)
    stats = stats_fn('subdivide') if stats_fn else None
    if stats: stats.attempts += 1
    surf = tvt.surface
    nb = 0
    for a in arcs:
        ev = op_evaluate_arc(tvt, a)
        if ev.status is ArcStatus.IMPROVED:
            _apply_flip(tvt, a, ev)
            nb += 1
            continue
        if ev.status is not ArcStatus.EQUAL:
            continue
        P = list(ev.quad)
        if max(P) >= tvt.nb_initial_vertices:
            continue
        queue_surrounding_arcs(tvt, a)
        center = quad_centroid(surf.points[P])
        tvt.samples = np.vstack([tvt.samples, tvt.samples[P].mean(axis=0)])
        tvt.u = np.vstack([tvt.u, tvt.u[P].mean(axis=0)])
        v = surf.split(a, center)
        tvt.p = np.concatenate([tvt.p, np.zeros((2,) + tvt.p.shape[1:], dtype=np.float64)])
        tvt.energy.resize(surf.nb_faces())
        e_new = sum(tvt.energy.compute_energy_tv(f, tvt.u) for f in surf.faces_around_vertex(v))
        tvt.energy.adjust_total(e_new - ev.e_current)
        for x in P:
            spoke = surf.arc(x, v)
            tvt.queue.append(spoke)
            tvt.queue.append(surf.opposite(spoke))
        nb += 1
        if stats: stats.splits += 1
    if stats:
        stats.tie_breaks += nb
        if nb: stats.success += 1
        else: stats.fail += 1
    logger.debug("subdivide: %d/%d arcs handled, %d vertices", nb, len(arcs), surf.nb_vertices())
    return nb


def op_one_pass(tvt, strategy: int) -> Tuple[int, int]:
    """Update every queued arc (all arcs when the queue is empty), then break ties.

    Returns ``(nb_flipped, nb_tie_break)``.
    """
    if strategy not in STRATEGIES:
        raise ValueError(f"unknown tie-break strategy {strategy!r}, expected one of {STRATEGIES}")
    stats_fn = getattr(tvt, '_get_op_stats', None)
    stats = stats_fn('one_pass') if stats_fn else None
    if stats: stats.attempts += 1
    Q = tvt.queue
    tvt.queue = []
    if not Q:
        Q = range(tvt.surface.nb_arcs())
    nb_flipped = 0
    for a in Q:
        status = op_update_arc(tvt, a)
        if status is ArcStatus.IMPROVED:
            nb_flipped += 1
        elif status is ArcStatus.EQUAL:
            tvt.equal_queue.append(a)
    nb_tie = 0
    fire = (strategy in (1, 2)) or (strategy in (3, 4, 5) and nb_flipped == 0)
    if strategy == 0:
        tvt.equal_queue = []
    elif fire:
        pending = list(dict.fromkeys(tvt.equal_queue))
        tvt.equal_queue = []
        if strategy == 1:
            nb_tie = op_subdivide(tvt, pending)
        elif strategy in (2, 3):
            nb_tie = op_flip_equal(tvt, pending)
        else:
            nb_tie = op_flip_equal_with_prob(tvt, pending)
    if stats:
        stats.flips += nb_flipped
        stats.tie_breaks += nb_tie
        if nb_flipped or nb_tie: stats.success += 1
        else: stats.fail += 1
    return nb_flipped, nb_tie


def op_optimize(tvt, max_passes: int, strategy: int) -> List[Tuple[int, int]]:
    """Run passes until one changes nothing or ``max_passes`` passes ran."""
    stats_fn = getattr(tvt, '_get_op_stats', None)
    stats = stats_fn('optimize') if stats_fn else None
    if stats: stats.attempts += 1
    history: List[Tuple[int, int]] = []
    subdivided = False
    while len(history) < max_passes:
        nb_flipped, nb_tie = op_one_pass(tvt, strategy)
        history.append((nb_flipped, nb_tie))
        logger.info("pass %d: flipped=%d ties=%d energy=%.6g",
                    len(history), nb_flipped, nb_tie, tvt.energy.total)
        if nb_flipped or nb_tie:
            continue
        if strategy == 5 and not subdivided and len(history) < max_passes:
            subdivided = True
            res = op_one_pass(tvt, 1)
            history.append(res)
            logger.info("subdivision pass: flipped=%d subdivided=%d nb_vertices=%d",
                        res[0], res[1], tvt.surface.nb_vertices())
            if res[0] or res[1]:
                continue
        break
    if stats:
        if any(h[0] or h[1] for h in history): stats.success += 1
        else: stats.fail += 1
    return history
