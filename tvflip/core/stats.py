"""Operation statistics data structures and presentation utilities.

Centralizes the OpStats dataclass and the table helpers so that the session
object (`tv_triangulation.TVTriangulation`) can focus on orchestration.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Any

@dataclass
class OpStats:
    attempts: int = 0
    success: int = 0
    fail: int = 0
    # Flip/tie-break specific extras (no-ops for denoise/quantize)
    flips: int = 0
    tie_breaks: int = 0
    splits: int = 0
    # Timing (seconds)
    time_total: float = 0.0
    time_max: float = 0.0
    time_min: float = 0.0  # 0 means uninitialized

    def to_dict(self) -> Dict[str, Any]:  # pragma: no cover - simple mapping
        return {
            'attempts': self.attempts,
            'success': self.success,
            'fail': self.fail,
            'flips': self.flips,
            'tie_breaks': self.tie_breaks,
            'splits': self.splits,
            'success_rate': (self.success / self.attempts) if self.attempts else 0.0,
            'time_total': self.time_total,
            'time_max': self.time_max,
            'time_min': (self.time_min if self.time_min != 0.0 else 0.0),
            'time_avg': (self.time_total / self.attempts) if self.attempts else 0.0,
        }

def format_stats_table(stats_dict) -> str:
    """Return a human readable multi-line table summarizing op stats."""
    if not stats_dict:
        return "<no stats>"
    header = ["op", "attempts", "succ", "fail", "flips", "ties", "splits", "succ%", "avg_ms", "min_ms", "max_ms"]
    rows = []
    for op in sorted(stats_dict.keys()):
        s = stats_dict[op]
        attempts = s['attempts']; succ = s['success']; fail = s['fail']
        succ_pct = (succ / attempts * 100.0) if attempts else 0.0
        avg_ms = s['time_avg'] * 1000.0; min_ms = s['time_min'] * 1000.0; max_ms = s['time_max'] * 1000.0
        rows.append([
            op, str(attempts), str(succ), str(fail), str(s['flips']), str(s['tie_breaks']), str(s['splits']),
            f"{succ_pct:6.2f}", f"{avg_ms:8.3f}", f"{min_ms:8.3f}", f"{max_ms:8.3f}"
        ])
    col_w = [len(h) for h in header]
    for r in rows:
        for i,v in enumerate(r):
            if len(v) > col_w[i]: col_w[i] = len(v)
    def fmt(r):
        return " ".join(r[i].rjust(col_w[i]) for i in range(len(r)))
    lines = [fmt(header), "-" * (sum(col_w) + len(col_w) - 1)] + [fmt(r) for r in rows]
    return "\n".join(lines)

def format_status_counts(status_counts) -> str:
    """One line per arc status, e.g. ``IMPROVED      12``."""
    if not status_counts:
        return "<no arc updates>"
    width = max(len(str(k)) for k in status_counts)
    return "\n".join(f"{str(k).ljust(width)} {v:8d}" for k, v in sorted(status_counts.items(), key=lambda kv: -kv[1]))

def print_stats(stats_dict, file=None, pretty=True, status_counts=None):  # pragma: no cover - formatting wrapper
    import sys
    out = file or sys.stdout
    if not pretty:
        print(stats_dict, file=out)
        if status_counts:
            print(status_counts, file=out)
        return
    print(format_stats_table(stats_dict), file=out)
    if status_counts:
        print("\nArc statuses:", file=out)
        print(format_status_counts(status_counts), file=out)

__all__ = ["OpStats", "print_stats", "format_stats_table", "format_status_counts"]
