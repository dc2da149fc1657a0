"""
Geometry kernel: segment intersection, nearest-wall search and reflection.

The numba kernels work on raw scalars (x0, y0, x1, y1) so they can be called
from the trajectory loop without allocating. The Point/Segment wrappers at
the bottom are the Python-facing API.
"""

from __future__ import annotations

import math
from typing import NamedTuple, Optional, Tuple

import numpy as np
from numba import njit

from .config import RAY_LENGTH, REFLECT_OFFSET, TRAP_EPSILON

###############################################################################
# Constants
###############################################################################

DETERMINANT_EPSILON = 1e-12  # |cross(r, s)| below this counts as parallel
DEGENERATE_EPSILON = 1e-12  # Vectors shorter than this cannot be normalized


class Point(NamedTuple):
    x: float
    y: float


class Segment(NamedTuple):
    start: Point
    end: Point

    @classmethod
    def from_row(cls, row) -> "Segment":
        return cls(Point(float(row[0]), float(row[1])), Point(float(row[2]), float(row[3])))

    def as_row(self) -> Tuple[float, float, float, float]:
        return (self.start.x, self.start.y, self.end.x, self.end.y)


###############################################################################
# Kernels
###############################################################################


@njit(cache=True)
def segment_intersection(
    ax0: float, ay0: float, ax1: float, ay1: float,
    bx0: float, by0: float, bx1: float, by1: float,
) -> Tuple[bool, float, float]:
    """
    Intersect segment a with segment b.

    Solves a0 + t * r = b0 + u * s with r = a1 - a0 and s = b1 - b0 using 2-D
    cross products. Endpoints are inclusive.

    Returns:
        (found, x, y). (False, 0.0, 0.0) for parallel, coincident or
        non-overlapping segments.
    """
    # Bounding boxes must overlap
    if max(ax0, ax1) < min(bx0, bx1) or max(bx0, bx1) < min(ax0, ax1):
        return False, 0.0, 0.0
    if max(ay0, ay1) < min(by0, by1) or max(by0, by1) < min(ay0, ay1):
        return False, 0.0, 0.0

    rx = ax1 - ax0
    ry = ay1 - ay0
    sx = bx1 - bx0
    sy = by1 - by0

    denom = rx * sy - ry * sx
    if abs(denom) < DETERMINANT_EPSILON:
        return False, 0.0, 0.0

    qx = bx0 - ax0
    qy = by0 - ay0
    t = (qx * sy - qy * sx) / denom
    u = (qx * ry - qy * rx) / denom

    if t < 0.0 or t > 1.0 or u < 0.0 or u > 1.0:
        return False, 0.0, 0.0

    return True, ax0 + t * rx, ay0 + t * ry


@njit(cache=True)
def nearest_wall(
    walls: np.ndarray,
    count: int,
    x0: float, y0: float, x1: float, y1: float,
) -> Tuple[int, float, float, float]:
    """
    Find the wall whose intersection with the ray is closest to the ray start.

    Scans walls[0:count] in order and only replaces the incumbent on a
    strictly smaller distance, so the first wall wins exact ties.

    Returns:
        (index, hit_x, hit_y, distance); index is -1 when nothing is hit.
    """
    best = -1
    best_x = 0.0
    best_y = 0.0
    best_dist = math.inf

    for i in range(count):
        found, hx, hy = segment_intersection(
            walls[i, 0], walls[i, 1], walls[i, 2], walls[i, 3],
            x0, y0, x1, y1,
        )
        if not found:
            continue
        dx = hx - x0
        dy = hy - y0
        dist = math.sqrt(dx * dx + dy * dy)
        if dist < best_dist:
            best = i
            best_x = hx
            best_y = hy
            best_dist = dist

    return best, best_x, best_y, best_dist


@njit(cache=True)
def reflect_ray(
    ix: float, iy: float,
    wx0: float, wy0: float, wx1: float, wy1: float,
    hx: float, hy: float,
    offset: float,
    length: float,
    corner_epsilon: float,
) -> Tuple[bool, float, float, float, float]:
    """
    Mirror the incoming leg (ix, iy) -> (hx, hy) about the wall direction.

    The outgoing ray starts `offset` past the hit point so the next search
    does not find the wall that was just hit.

    Returns:
        (ok, x0, y0, x1, y1). ok is False when the incoming leg or the wall
        has zero length, when the leg runs parallel to the wall, or when the
        hit lies on a wall endpoint.
    """
    dx = hx - ix
    dy = hy - iy
    d_len = math.sqrt(dx * dx + dy * dy)

    wx = wx1 - wx0
    wy = wy1 - wy0
    w_len = math.sqrt(wx * wx + wy * wy)

    if d_len < DEGENERATE_EPSILON or w_len < DEGENERATE_EPSILON:
        return False, 0.0, 0.0, 0.0, 0.0

    # Corners have no tangent
    ex = hx - wx0
    ey = hy - wy0
    if math.sqrt(ex * ex + ey * ey) < corner_epsilon:
        return False, 0.0, 0.0, 0.0, 0.0
    ex = hx - wx1
    ey = hy - wy1
    if math.sqrt(ex * ex + ey * ey) < corner_epsilon:
        return False, 0.0, 0.0, 0.0, 0.0

    dx /= d_len
    dy /= d_len
    wx /= w_len
    wy /= w_len

    if abs(dx * wy - dy * wx) < DEGENERATE_EPSILON:
        return False, 0.0, 0.0, 0.0, 0.0

    # r = 2 (d . w) w - d
    dot = dx * wx + dy * wy
    rx = 2.0 * dot * wx - dx
    ry = 2.0 * dot * wy - dy

    sx = hx + offset * rx
    sy = hy + offset * ry
    return True, sx, sy, sx + length * rx, sy + length * ry


###############################################################################
# Python API
###############################################################################


def intersect(a: Segment, b: Segment) -> Optional[Point]:
    """Return the crossing point of two segments, or None."""
    found, x, y = segment_intersection(
        a.start.x, a.start.y, a.end.x, a.end.y,
        b.start.x, b.start.y, b.end.x, b.end.y,
    )
    if not found:
        return None
    return Point(x, y)


def nearest_hit(ray: Segment, obstacles) -> Optional[Tuple[int, Segment, Point, float]]:
    """
    Closest wall hit by `ray`, as (index, wall, hit, distance), or None.

    `obstacles` is an ObstacleCollection or any sequence of Segments.
    """
    walls = _as_wall_array(obstacles)
    index, hx, hy, dist = nearest_wall(
        walls, walls.shape[0], ray.start.x, ray.start.y, ray.end.x, ray.end.y
    )
    if index < 0:
        return None
    return index, Segment.from_row(walls[index]), Point(hx, hy), dist


def reflect(
    incoming: Point,
    wall: Segment,
    hit: Point,
    *,
    offset: float = REFLECT_OFFSET,
    length: float = RAY_LENGTH,
    corner_epsilon: float = TRAP_EPSILON,
) -> Optional[Segment]:
    """Reflected ray leaving `hit`, or None when reflection is undefined."""
    ok, x0, y0, x1, y1 = reflect_ray(
        incoming.x, incoming.y,
        wall.start.x, wall.start.y, wall.end.x, wall.end.y,
        hit.x, hit.y,
        offset, length, corner_epsilon,
    )
    if not ok:
        return None
    return Segment(Point(x0, y0), Point(x1, y1))


def _as_wall_array(obstacles) -> np.ndarray:
    if hasattr(obstacles, "walls"):
        return obstacles.walls()
    rows = [seg.as_row() for seg in obstacles]
    if not rows:
        return np.zeros((0, 4), dtype=np.float64)
    return np.asarray(rows, dtype=np.float64)
