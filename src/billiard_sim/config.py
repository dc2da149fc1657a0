"""
Configuration surface for the self-caging billiard sampler.

All lengths are in unit-square coordinates: the arena is centred at
(0.5, 0.5) and the image covers [0, 1) x [0, 1).
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

###############################################################################
# Constants
###############################################################################

DEFAULT_WIDTH = 1024
DEFAULT_HEIGHT = 1024
ARENA_EDGES = 5
ARENA_SIZE = 0.98  # Diameter of the arena's circumscribed circle
OBSTACLE_CAPACITY = 1024  # Arena walls + trajectory walls
MIN_SAMPLES = 100_000_000
BATCH_SIZE = 10_000
TRAP_EPSILON = 1e-6  # Hit closer than this means the ball is wedged
RAY_LENGTH = 4.0  # Longer than the unit square's diagonal
REFLECT_OFFSET = 1e-9  # Step off the wall before the next search
POLL_TIMEOUT = 0.05  # Seconds per bounded receive in the coordinator


def default_workers() -> int:
    return os.cpu_count() or 1


@dataclass
class BilliardParams:
    """Run configuration shared by the coordinator and every worker."""

    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    arena_edges: int = ARENA_EDGES
    arena_size: float = ARENA_SIZE
    obstacle_capacity: int = OBSTACLE_CAPACITY
    num_workers: int = 0  # 0 -> os.cpu_count()
    min_samples: int = MIN_SAMPLES
    batch_size: int = BATCH_SIZE
    trap_epsilon: float = TRAP_EPSILON
    ray_length: float = RAY_LENGTH
    reflect_offset: float = REFLECT_OFFSET
    score: str = "path_length"
    poll_timeout: float = POLL_TIMEOUT
    seed: Optional[int] = None
    start_method: Optional[str] = None
    verbose: bool = True

    def __post_init__(self) -> None:
        if self.num_workers == 0:
            self.num_workers = default_workers()
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Image must be at least 1x1, got {self.width}x{self.height}")
        if self.arena_edges < 3:
            raise ValueError(f"Arena needs at least 3 edges, got {self.arena_edges}")
        if self.arena_size <= 0.0:
            raise ValueError(f"arena_size must be positive, got {self.arena_size}")
        if self.obstacle_capacity < self.arena_edges:
            raise ValueError(
                f"obstacle_capacity ({self.obstacle_capacity}) cannot hold "
                f"{self.arena_edges} arena walls"
            )
        if self.num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {self.num_workers}")
        if self.min_samples < 1 or self.batch_size < 1:
            raise ValueError("min_samples and batch_size must be >= 1")
        if self.trap_epsilon < 0.0 or self.reflect_offset < 0.0:
            raise ValueError("Epsilons must be non-negative")
        if self.ray_length <= 0.0:
            raise ValueError(f"ray_length must be positive, got {self.ray_length}")
        if self.poll_timeout <= 0.0:
            raise ValueError(f"poll_timeout must be positive, got {self.poll_timeout}")

    @classmethod
    def from_dict(cls, config: Dict[str, Any] | None) -> "BilliardParams":
        return cls(**(config or {}))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
