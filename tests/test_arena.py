"""
Unit tests for the arena model and obstacle collection.
"""

import math

import numpy as np
import pytest

from billiard_sim.arena import ObstacleCollection, build_arena, polygon_vertices
from billiard_sim.config import OBSTACLE_CAPACITY
from billiard_sim.geometry import Point, Segment


@pytest.mark.parametrize("edges", [3, 4, 5, 8])
def test_build_arena_closed_regular_polygon(edges):
    arena = build_arena(edges, 0.98)

    assert len(arena) == edges
    assert arena.baseline == edges
    assert arena.capacity == OBSTACLE_CAPACITY

    walls = list(arena)
    for i, wall in enumerate(walls):
        # Every vertex sits on the circle of diameter 0.98 around (0.5, 0.5)
        r = math.hypot(wall.start.x - 0.5, wall.start.y - 0.5)
        assert r == pytest.approx(0.49)
        # Consecutive walls share a vertex and the polygon closes
        nxt = walls[(i + 1) % edges]
        assert wall.end.x == pytest.approx(nxt.start.x)
        assert wall.end.y == pytest.approx(nxt.start.y)


def test_build_arena_angular_order():
    arena = build_arena(6, 0.5)
    angles = [
        math.atan2(wall.start.y - 0.5, wall.start.x - 0.5) % (2.0 * math.pi)
        for wall in arena
    ]
    assert angles[0] == pytest.approx(0.0)
    assert all(a < b for a, b in zip(angles, angles[1:]))


def test_polygon_vertices_first_vertex_on_x_axis():
    vertices = polygon_vertices(4, 0.98)
    assert vertices.shape == (4, 2)
    assert vertices[0, 0] == pytest.approx(0.99)
    assert vertices[0, 1] == pytest.approx(0.5)


@pytest.mark.parametrize(
    "edges, size, capacity",
    [(2, 0.98, None), (4, 0.0, None), (4, -1.0, None), (4, 0.98, 3)],
)
def test_build_arena_rejects_bad_input(edges, size, capacity):
    with pytest.raises(ValueError):
        build_arena(edges, size, capacity)


def test_build_arena_capacity_exactly_edges():
    arena = build_arena(4, 0.98, capacity=4)
    assert arena.is_full()
    assert not arena.append(Segment(Point(0.0, 0.0), Point(1.0, 1.0)))
    assert len(arena) == 4


def test_collection_append_until_full():
    obstacles = ObstacleCollection(capacity=2)
    wall = Segment(Point(0.0, 0.0), Point(1.0, 0.0))

    assert obstacles.append(wall)
    assert obstacles.append(wall)
    assert obstacles.is_full()
    assert not obstacles.append(wall), "Full collection must refuse new walls"
    assert len(obstacles) == 2
    assert obstacles[-1] == wall


def test_collection_reset_to_baseline():
    arena = build_arena(5, 0.9, capacity=10)
    before = arena.walls().copy()

    for i in range(3):
        assert arena.append(Segment(Point(0.5, 0.5), Point(0.1 * i, 0.2)))
    assert len(arena) == 8

    arena.reset()
    assert len(arena) == 5
    np.testing.assert_array_equal(arena.walls(), before)

    arena.append(Segment(Point(0.5, 0.5), Point(0.6, 0.6)))
    arena.reset(5)
    assert len(arena) == 5


def test_collection_reset_out_of_range():
    obstacles = ObstacleCollection(capacity=3)
    obstacles.append(Segment(Point(0.0, 0.0), Point(1.0, 0.0)))
    with pytest.raises(ValueError):
        obstacles.reset(2)
    with pytest.raises(ValueError):
        obstacles.reset(-1)


def test_collection_indexing():
    obstacles = ObstacleCollection(capacity=4)
    wall = Segment(Point(0.1, 0.2), Point(0.3, 0.4))
    obstacles.append(wall)
    obstacles.freeze()

    assert obstacles.baseline == 1
    assert obstacles[0] == wall
    with pytest.raises(IndexError):
        obstacles[1]
    with pytest.raises(ValueError):
        ObstacleCollection(capacity=0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
