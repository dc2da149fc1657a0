from __future__ import annotations

import math
from typing import Iterator, Optional

import numpy as np

from .config import OBSTACLE_CAPACITY
from .geometry import Segment


class ObstacleCollection:
    """
    Fixed-capacity list of wall segments.

    Rows [0, baseline) are the permanent arena boundary. Rows appended after
    that belong to a single trajectory and are dropped by `reset()`.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.segments = np.zeros((capacity, 4), dtype=np.float64)
        self.length = 0
        self.baseline = 0

    @property
    def capacity(self) -> int:
        return self.segments.shape[0]

    def is_full(self) -> bool:
        return self.length >= self.capacity

    def append(self, segment: Segment) -> bool:
        """Append a wall. Returns False when the collection is full."""
        if self.is_full():
            return False
        self.segments[self.length] = segment.as_row()
        self.length += 1
        return True

    def freeze(self) -> None:
        """Make the current walls the permanent baseline."""
        self.baseline = self.length

    def reset(self, baseline_length: Optional[int] = None) -> None:
        """Truncate back to `baseline_length` walls (default: the baseline)."""
        if baseline_length is None:
            baseline_length = self.baseline
        if not 0 <= baseline_length <= self.length:
            raise ValueError(
                f"Cannot reset to {baseline_length} walls, collection holds {self.length}"
            )
        self.length = baseline_length

    def walls(self) -> np.ndarray:
        return self.segments[: self.length]

    def __len__(self) -> int:
        return self.length

    def __getitem__(self, index: int) -> Segment:
        if index < 0:
            index += self.length
        if not 0 <= index < self.length:
            raise IndexError(index)
        return Segment.from_row(self.segments[index])

    def __iter__(self) -> Iterator[Segment]:
        for i in range(self.length):
            yield Segment.from_row(self.segments[i])

    def __repr__(self) -> str:
        return (
            f"ObstacleCollection(length={self.length}, baseline={self.baseline}, "
            f"capacity={self.capacity})"
        )


def polygon_vertices(edge_count: int, arena_size: float) -> np.ndarray:
    """Vertices evenly spaced on a circle of diameter `arena_size` around (0.5, 0.5)."""
    radius = arena_size / 2.0
    theta = 2.0 * math.pi * np.arange(edge_count) / edge_count
    vertices = np.empty((edge_count, 2), dtype=np.float64)
    vertices[:, 0] = 0.5 + radius * np.cos(theta)
    vertices[:, 1] = 0.5 + radius * np.sin(theta)
    return vertices


def build_arena(
    edge_count: int,
    arena_size: float,
    capacity: Optional[int] = None,
) -> ObstacleCollection:
    """
    Build the closed regular polygon the ball bounces in.

    Walls connect consecutive vertices in angular order; nearest-hit ties are
    broken by this order.
    """
    if edge_count < 3:
        raise ValueError(f"An arena needs at least 3 edges, got {edge_count}")
    if arena_size <= 0.0:
        raise ValueError(f"arena_size must be positive, got {arena_size}")
    if capacity is None:
        capacity = max(OBSTACLE_CAPACITY, edge_count)
    if capacity < edge_count:
        raise ValueError(f"capacity {capacity} cannot hold {edge_count} arena walls")

    vertices = polygon_vertices(edge_count, arena_size)
    obstacles = ObstacleCollection(capacity)
    for i in range(edge_count):
        j = (i + 1) % edge_count
        obstacles.segments[i] = (
            vertices[i, 0], vertices[i, 1], vertices[j, 0], vertices[j, 1]
        )
    obstacles.length = edge_count
    obstacles.freeze()
    return obstacles
