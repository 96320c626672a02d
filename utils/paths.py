"""
Path smoothing — Chaikin corner cutting and arc-length helpers.

Used by the host's freehand path tool (to smooth drawn points) and by the
sampler (to walk a path clip by distance travelled rather than point index).
"""

import numpy as np

from document.model import Vec2


def _as_array(points):
    return np.array([[p.x, p.y] for p in points], dtype=float).reshape(-1, 2)


def _as_points(array):
    return [Vec2(float(x), float(y)) for x, y in array]


def chaikin_smooth(points, iterations=2, tension=0.25):
    """
    Smooth a polyline with Chaikin's corner-cutting algorithm.

    Each iteration replaces every segment with two points at `tension` and
    `1 - tension` along it, except the first segment's leading cut, which
    the kept start point stands in for. The first and last points are kept
    exactly, so n points become 2n - 1.

    Args:
        points: List of Vec2
        iterations: Number of smoothing passes
        tension: How much to cut corners (0.25 = standard Chaikin)

    Returns:
        Smoothed list of Vec2 (the input itself when fewer than 3 points)
    """
    if len(points) < 3 or iterations <= 0:
        return points

    result = _as_array(points)
    for _ in range(iterations):
        p0 = result[:-1]
        p1 = result[1:]
        r = p0 + tension * (p1 - p0)
        q = p0 + (1.0 - tension) * (p1 - p0)
        cut = np.empty((len(p0) * 2, 2))
        cut[0::2] = r
        cut[1::2] = q
        result = np.vstack([result[:1], cut[1:], result[-1:]])

    smoothed = _as_points(result)
    smoothed[0] = points[0]
    smoothed[-1] = points[-1]
    return smoothed


def cumulative_lengths(points):
    """Cumulative distance along the path at each point (starts at 0)."""
    if len(points) == 0:
        return np.zeros(0)
    arr = _as_array(points)
    seg = np.hypot(np.diff(arr[:, 0]), np.diff(arr[:, 1]))
    return np.concatenate([[0.0], np.cumsum(seg)])


def calculate_path_length(points):
    """Total Euclidean length of a polyline."""
    if len(points) < 2:
        return 0.0
    return float(cumulative_lengths(points)[-1])


def point_along_path(points, fraction):
    """
    Locate the point a given fraction of the way along the path by arc length.

    Args:
        points: List of Vec2 (at least 1)
        fraction: 0.0 = first point, 1.0 = last point (clamped)

    Returns:
        Vec2 on the polyline, or None for an empty path
    """
    if len(points) == 0:
        return None
    if len(points) == 1:
        return points[0]

    distances = cumulative_lengths(points)
    total = distances[-1]
    target = max(0.0, min(1.0, fraction)) * total

    i = int(np.searchsorted(distances, target, side="left"))
    i = max(1, min(i, len(points) - 1))
    seg_len = distances[i] - distances[i - 1]
    local_t = 0.0 if seg_len == 0 else (target - distances[i - 1]) / seg_len
    a, b = points[i - 1], points[i]
    return Vec2(a.x + (b.x - a.x) * local_t, a.y + (b.y - a.y) * local_t)
