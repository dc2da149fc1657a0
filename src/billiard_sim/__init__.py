"""
Self-Caging Billiard Sampler

A ball bounces inside a regular polygon and every leg it travels becomes a
new wall, so each trajectory traps itself. This package estimates per-pixel
statistics of where and how trajectories get trapped:
- geometry / arena: segment intersection, reflection and the obstacle walls
- trajectory: numba kernels for single trajectories and batches
- worker / coordinator: multi-process sampling and buffer merging
- render: tone mapping and image output (import separately, pulls in matplotlib)
"""

from .arena import ObstacleCollection, build_arena
from .config import BilliardParams
from .coordinator import Coordinator, SharedBuffer, WorkerDisconnectedError, run_model
from .geometry import Point, Segment, intersect, nearest_hit, reflect
from .trajectory import (
    SCORERS,
    Outcome,
    TrajectoryResult,
    get_scorer,
    single_simulation,
)
from .worker import Instruction, Report, ReportKind, Worker
from . import utils

__all__ = [
    # Geometry and arena
    "Point",
    "Segment",
    "intersect",
    "nearest_hit",
    "reflect",
    "ObstacleCollection",
    "build_arena",
    # Simulation
    "Outcome",
    "TrajectoryResult",
    "SCORERS",
    "get_scorer",
    "single_simulation",
    # Sampling protocol
    "BilliardParams",
    "Coordinator",
    "SharedBuffer",
    "Worker",
    "Instruction",
    "Report",
    "ReportKind",
    "WorkerDisconnectedError",
    "run_model",
    # Utilities
    "utils",
]
