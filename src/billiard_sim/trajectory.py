"""
Trajectory simulator for the self-caging billiard.

A ball leaves its launch point in a straight line. At every wall hit the leg
it just travelled is appended to the obstacle collection as a new wall and the
ball is reflected. The cage therefore shrinks around the ball until the next
hit is closer than `trap_epsilon`, the reflection is undefined, or the
obstacle collection is full. That point is where the trajectory's score is
accumulated.
"""

from __future__ import annotations

import math
from enum import IntEnum
from typing import Callable, Dict, NamedTuple, Optional, Tuple

import numpy as np
from numba import njit
from numba.extending import is_jitted

from .config import RAY_LENGTH, REFLECT_OFFSET, TRAP_EPSILON, BilliardParams
from .geometry import Point, nearest_wall, reflect_ray

###############################################################################
# Outcomes
###############################################################################

ESCAPED = 0
TRAPPED = 1
BOUNCED = 2


class Outcome(IntEnum):
    ESCAPED = ESCAPED
    TRAPPED = TRAPPED
    BOUNCED = BOUNCED


class TrajectoryResult(NamedTuple):
    outcome: Outcome
    hit: Optional[Point]
    path_length: float
    bounces: int


###############################################################################
# Scoring functions
###############################################################################
# Signature: (launch, path_length, bounces) -> float, where launch is an
# (x, y) tuple. They run once per trapped trajectory inside the batch kernel.


@njit(cache=True)
def path_length_score(launch, path_length, bounces):
    return path_length


@njit(cache=True)
def bounce_count_score(launch, path_length, bounces):
    return float(bounces)


@njit(cache=True)
def unit_score(launch, path_length, bounces):
    return 1.0


@njit(cache=True)
def mean_free_path_score(launch, path_length, bounces):
    if bounces == 0:
        return 0.0
    return path_length / bounces


SCORERS: Dict[str, Callable] = {
    "path_length": path_length_score,
    "bounces": bounce_count_score,
    "unit": unit_score,
    "mean_free_path": mean_free_path_score,
}


def get_scorer(score):
    """Resolve a scorer name or callable to a numba-compiled function."""
    if isinstance(score, str):
        try:
            return SCORERS[score]
        except KeyError:
            raise ValueError(
                f"Unknown score '{score}'. Choose from: {', '.join(sorted(SCORERS))}"
            ) from None
    if is_jitted(score):
        return score
    if callable(score):
        return njit(score)
    raise TypeError(f"score must be a name or a callable, got {type(score).__name__}")


###############################################################################
# Kernels
###############################################################################


@njit(cache=True)
def bounce(
    walls: np.ndarray,
    count: int,
    x0: float, y0: float, x1: float, y1: float,
    ray_length: float,
    trap_epsilon: float,
    reflect_offset: float,
):
    """
    Run one bounce test for the ray (x0, y0) -> (x1, y1).

    Appends the travelled leg to walls[count] when the ball bounces.

    Returns:
        (outcome, count, hit_x, hit_y, distance, nx0, ny0, nx1, ny1) where the
        last four values are the next ray when outcome is BOUNCED.
    """
    index, hx, hy, dist = nearest_wall(walls, count, x0, y0, x1, y1)
    if index < 0:
        return ESCAPED, count, 0.0, 0.0, 0.0, x0, y0, x1, y1

    if dist < trap_epsilon or count >= walls.shape[0]:
        return TRAPPED, count, hx, hy, dist, x0, y0, x1, y1

    # The ball's own path becomes a wall
    walls[count, 0] = x0
    walls[count, 1] = y0
    walls[count, 2] = hx
    walls[count, 3] = hy
    count += 1

    ok, nx0, ny0, nx1, ny1 = reflect_ray(
        x0, y0,
        walls[index, 0], walls[index, 1], walls[index, 2], walls[index, 3],
        hx, hy,
        reflect_offset, ray_length, trap_epsilon,
    )
    if not ok:
        return TRAPPED, count, hx, hy, dist, x0, y0, x1, y1

    return BOUNCED, count, hx, hy, dist, nx0, ny0, nx1, ny1


@njit(cache=True)
def trace_trajectory(
    walls: np.ndarray,
    baseline: int,
    launch_x: float,
    launch_y: float,
    angle: float,
    ray_length: float,
    trap_epsilon: float,
    reflect_offset: float,
):
    """
    Bounce a ball from (launch_x, launch_y) until it is trapped or escapes.

    Walls past `baseline` are overwritten, so each call starts from a clean
    arena no matter what the previous trajectory appended.

    Returns:
        (outcome, count, hit_x, hit_y, path_length, bounces)
    """
    count = baseline
    x0 = launch_x
    y0 = launch_y
    x1 = launch_x + ray_length * math.cos(angle)
    y1 = launch_y + ray_length * math.sin(angle)
    path_length = 0.0
    bounces = 0
    hx = 0.0
    hy = 0.0
    outcome = BOUNCED

    while outcome == BOUNCED:
        outcome, count, hx, hy, dist, x0, y0, x1, y1 = bounce(
            walls, count, x0, y0, x1, y1, ray_length, trap_epsilon, reflect_offset
        )
        if outcome != ESCAPED:
            path_length += dist
            bounces += 1

    if outcome == ESCAPED:
        return ESCAPED, count, 0.0, 0.0, path_length, bounces
    return TRAPPED, count, hx, hy, path_length, bounces


@njit(cache=True)
def to_pixel(x: float, y: float, width: int, height: int) -> Tuple[int, int]:
    """Map unit-square coordinates to clamped pixel indices."""
    px = int(math.floor(x * width))
    py = int(math.floor(y * height))
    if px < 0:
        px = 0
    elif px > width - 1:
        px = width - 1
    if py < 0:
        py = 0
    elif py > height - 1:
        py = height - 1
    return px, py


@njit
def simulate_batch(
    walls: np.ndarray,
    baseline: int,
    launches: np.ndarray,
    angles: np.ndarray,
    buffer: np.ndarray,
    score,
    ray_length: float,
    trap_epsilon: float,
    reflect_offset: float,
) -> int:
    """
    Run len(angles) independent trajectories into `buffer`.

    Returns:
        Number of trajectories that ended trapped (and were scored).
    """
    height = buffer.shape[0]
    width = buffer.shape[1]
    trapped = 0

    for i in range(angles.shape[0]):
        lx = launches[i, 0]
        ly = launches[i, 1]
        outcome, count, hx, hy, path_length, bounces = trace_trajectory(
            walls, baseline, lx, ly, angles[i], ray_length, trap_epsilon, reflect_offset
        )
        if outcome == TRAPPED:
            px, py = to_pixel(hx, hy, width, height)
            buffer[py, px] += score((lx, ly), path_length, bounces)
            trapped += 1

    return trapped


###############################################################################
# Python API
###############################################################################


def single_simulation(
    obstacles,
    buffer: np.ndarray,
    score,
    launch: Tuple[float, float],
    angle: float,
    params: BilliardParams | None = None,
) -> TrajectoryResult:
    """
    Simulate one trajectory and score it into `buffer` if it gets trapped.

    The obstacle collection is truncated back to its pre-call length before
    returning, whatever the outcome.
    """
    score = get_scorer(score)
    if params is None:
        ray_length, trap_epsilon, reflect_offset = RAY_LENGTH, TRAP_EPSILON, REFLECT_OFFSET
    else:
        ray_length = params.ray_length
        trap_epsilon = params.trap_epsilon
        reflect_offset = params.reflect_offset

    launch = Point(float(launch[0]), float(launch[1]))
    before = len(obstacles)
    code, count, hx, hy, path_length, bounces = trace_trajectory(
        obstacles.segments,
        before,
        launch.x,
        launch.y,
        float(angle),
        ray_length,
        trap_epsilon,
        reflect_offset,
    )
    obstacles.length = count
    try:
        if code == TRAPPED:
            height, width = buffer.shape
            px, py = to_pixel(hx, hy, width, height)
            buffer[py, px] += score((launch.x, launch.y), path_length, bounces)
            return TrajectoryResult(Outcome.TRAPPED, Point(hx, hy), path_length, bounces)
        return TrajectoryResult(Outcome(code), None, path_length, bounces)
    finally:
        obstacles.reset(before)
