"""
Tests for the trajectory simulator: single trajectories, batches and scoring.
"""

import math

import numpy as np
import pytest

from billiard_sim.arena import ObstacleCollection, build_arena
from billiard_sim.config import BilliardParams
from billiard_sim.geometry import Point, Segment
from billiard_sim.trajectory import (
    SCORERS,
    TRAPPED,
    Outcome,
    bounce_count_score,
    get_scorer,
    path_length_score,
    simulate_batch,
    single_simulation,
    to_pixel,
    unit_score,
)


def test_center_launch_square_arena_traps_once():
    """Square arena, launch from the centre towards the first vertex."""
    arena = build_arena(4, 0.98)
    buffer = np.zeros((64, 64), dtype=np.float64)

    result = single_simulation(arena, buffer, unit_score, (0.5, 0.5), 0.0)

    assert result.outcome == Outcome.TRAPPED
    assert result.bounces >= 1
    assert buffer.sum() == 1.0
    assert result.hit.x == pytest.approx(0.99)
    assert result.hit.y == pytest.approx(0.5)
    # The hit is the vertex at (0.99, 0.5); rounding can put it on either side of row 32
    ys, xs = np.nonzero(buffer)
    assert list(xs) == [63]
    assert ys[0] in (31, 32)
    assert result.path_length == pytest.approx(0.49)


def test_capacity_exhaustion_traps_at_first_hit():
    """With room for a single wall, the first hit cannot append and must trap."""
    obstacles = ObstacleCollection(capacity=1)
    obstacles.append(Segment(Point(0.8, 0.0), Point(0.8, 1.0)))
    obstacles.freeze()
    buffer = np.zeros((10, 10), dtype=np.float64)

    result = single_simulation(obstacles, buffer, path_length_score, (0.2, 0.5), 0.0)

    assert result.outcome == Outcome.TRAPPED
    assert result.bounces == 1
    assert result.hit.x == pytest.approx(0.8)
    assert result.hit.y == pytest.approx(0.5)
    assert result.path_length == pytest.approx(0.6)
    assert buffer[5, 8] == pytest.approx(0.6)
    assert len(obstacles) == 1


def test_full_arena_traps_after_one_bounce():
    arena = build_arena(4, 0.98, capacity=4)
    buffer = np.zeros((16, 16), dtype=np.float64)
    result = single_simulation(arena, buffer, bounce_count_score, (0.5, 0.5), 0.3)
    assert result.outcome == Outcome.TRAPPED
    assert result.bounces == 1
    assert buffer.sum() == 1.0


def test_launch_outside_escapes_without_write():
    arena = build_arena(4, 0.2)
    buffer = np.zeros((32, 32), dtype=np.float64)

    result = single_simulation(arena, buffer, unit_score, (0.1, 0.1), 1.25 * math.pi)

    assert result.outcome == Outcome.ESCAPED
    assert result.hit is None
    assert result.bounces == 0
    assert not buffer.any()
    assert len(arena) == 4


def test_repeated_runs_leave_collection_at_baseline():
    arena = build_arena(5, 0.98)
    walls_before = arena.walls().copy()
    buffer = np.zeros((32, 32), dtype=np.float64)
    rng = np.random.default_rng(11)

    bounced = 0
    for _ in range(50):
        result = single_simulation(
            arena, buffer, path_length_score, rng.random(2), rng.uniform(0.0, 2.0 * math.pi)
        )
        assert len(arena) == 5
        bounced += result.bounces > 1
    np.testing.assert_array_equal(arena.walls(), walls_before)
    assert bounced > 0, "Some trajectories should bounce more than once"


def test_interior_launches_get_trapped_with_finite_values():
    params = BilliardParams(num_workers=1, verbose=False)
    arena = build_arena(6, 0.98)
    buffer = np.zeros((32, 32), dtype=np.float64)
    rng = np.random.default_rng(5)

    outcomes = []
    for _ in range(200):
        r = 0.3 * math.sqrt(rng.random())
        phi = rng.uniform(0.0, 2.0 * math.pi)
        launch = (0.5 + r * math.cos(phi), 0.5 + r * math.sin(phi))
        result = single_simulation(
            arena, buffer, path_length_score, launch, rng.uniform(0.0, 2.0 * math.pi), params
        )
        outcomes.append(result.outcome)
        assert math.isfinite(result.path_length)
        assert 0 <= result.bounces <= arena.capacity
        if result.hit is not None:
            assert math.isfinite(result.hit.x) and math.isfinite(result.hit.y)

    trapped = sum(o == Outcome.TRAPPED for o in outcomes)
    assert trapped >= 0.99 * len(outcomes)
    assert np.all(np.isfinite(buffer))


def test_to_pixel_scales_and_clamps():
    assert to_pixel(0.55, 0.05, 10, 20) == (5, 1)
    assert to_pixel(1.0, -0.2, 10, 10) == (9, 0)
    assert to_pixel(0.0, 0.999, 4, 4) == (0, 3)


def test_buffer_is_row_major():
    """Cell (x, y) of the image is flat index x + width * y."""
    obstacles = ObstacleCollection(capacity=1)
    obstacles.append(Segment(Point(0.8, 0.0), Point(0.8, 1.0)))
    obstacles.freeze()
    width, height = 10, 4
    buffer = np.zeros((height, width), dtype=np.float64)

    single_simulation(obstacles, buffer, unit_score, (0.2, 0.6), 0.0)

    x, y = 8, 2
    assert buffer.ravel()[x + width * y] == 1.0


def test_simulate_batch_unit_score_counts_trapped():
    arena = build_arena(5, 0.98)
    walls_before = arena.walls().copy()
    buffer = np.zeros((16, 16), dtype=np.float64)
    rng = np.random.default_rng(2)
    n = 2000
    launches = rng.random((n, 2))
    angles = rng.uniform(0.0, 2.0 * math.pi, n)

    trapped = simulate_batch(
        arena.segments, arena.baseline, launches, angles, buffer, unit_score, 4.0, 1e-6, 1e-9
    )

    assert 0 < trapped < n, "Launches outside the pentagon should escape"
    assert buffer.sum() == float(trapped)
    # A regular pentagon in a circle of radius 0.49 covers ~57% of the square
    assert trapped / n == pytest.approx(0.571, abs=0.05)
    np.testing.assert_array_equal(arena.walls(), walls_before)


def test_simulate_batch_is_deterministic():
    arena = build_arena(5, 0.98)
    rng = np.random.default_rng(9)
    launches = rng.random((300, 2))
    angles = rng.uniform(0.0, 2.0 * math.pi, 300)

    a = np.zeros((8, 8))
    b = np.zeros((8, 8))
    simulate_batch(arena.segments, 5, launches, angles, a, path_length_score, 4.0, 1e-6, 1e-9)
    simulate_batch(arena.segments, 5, launches, angles, b, path_length_score, 4.0, 1e-6, 1e-9)
    np.testing.assert_array_equal(a, b)


def _double_path(launch, path_length, bounces):
    return 2.0 * path_length


def test_get_scorer():
    assert get_scorer("path_length") is SCORERS["path_length"]
    assert get_scorer(unit_score) is unit_score
    with pytest.raises(ValueError):
        get_scorer("nope")
    with pytest.raises(TypeError):
        get_scorer(3)

    obstacles = ObstacleCollection(capacity=1)
    obstacles.append(Segment(Point(0.8, 0.0), Point(0.8, 1.0)))
    obstacles.freeze()
    buffer = np.zeros((4, 4), dtype=np.float64)
    result = single_simulation(obstacles, buffer, _double_path, (0.2, 0.5), 0.0)
    assert result.outcome == TRAPPED
    assert buffer.sum() == pytest.approx(1.2)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
