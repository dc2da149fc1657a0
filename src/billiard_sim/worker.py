"""
Worker side of the sampling protocol.

Each worker owns a private accumulation buffer, a private obstacle collection
and a private random generator. It runs batches forever, reports each batch,
and polls its control queue without blocking between batches.
"""

from __future__ import annotations

import math
import queue
from enum import IntEnum
from typing import NamedTuple

import numpy as np

from .arena import build_arena
from .config import BilliardParams
from .trajectory import get_scorer, simulate_batch


class Instruction(IntEnum):
    ACCUMULATE = 1
    STOP = 2


class ReportKind(IntEnum):
    PROGRESS = 1
    MERGED = 2


class Report(NamedTuple):
    worker_id: int
    kind: ReportKind
    count: int
    trapped: int = 0


class Worker:
    def __init__(self, worker_id: int, params: BilliardParams, seed=None) -> None:
        self.worker_id = worker_id
        self.params = params
        self.rng = np.random.default_rng(seed)
        self.score = get_scorer(params.score)
        self.buffer = np.zeros((params.height, params.width), dtype=np.float64)
        self.obstacles = build_arena(
            params.arena_edges, params.arena_size, params.obstacle_capacity
        )
        # Trajectories in self.buffer that have not been merged yet
        self.pending_samples = 0
        self.pending_trapped = 0

    def run_batch(self) -> int:
        """Run one batch of trajectories into the private buffer."""
        n = self.params.batch_size
        launches = self.rng.random((n, 2))
        angles = self.rng.uniform(0.0, 2.0 * math.pi, n)
        trapped = simulate_batch(
            self.obstacles.segments,
            self.obstacles.baseline,
            launches,
            angles,
            self.buffer,
            self.score,
            self.params.ray_length,
            self.params.trap_epsilon,
            self.params.reflect_offset,
        )
        self.obstacles.reset()
        self.pending_samples += n
        self.pending_trapped += int(trapped)
        return n

    def accumulate(self, shared) -> Report:
        """
        Merge the private buffer into `shared` and clear it.

        Clearing keeps repeated ACCUMULATE instructions from counting a batch
        twice.
        """
        shared.merge(self.buffer)
        self.buffer.fill(0.0)
        report = Report(
            self.worker_id, ReportKind.MERGED, self.pending_samples, self.pending_trapped
        )
        self.pending_samples = 0
        self.pending_trapped = 0
        return report

    def run(self, shared, control, reports) -> None:
        while True:
            completed = self.run_batch()
            reports.put(Report(self.worker_id, ReportKind.PROGRESS, completed))

            while True:
                try:
                    instruction = control.get_nowait()
                except queue.Empty:
                    break
                if instruction == Instruction.ACCUMULATE:
                    reports.put(self.accumulate(shared))
                elif instruction == Instruction.STOP:
                    return
                else:
                    raise ValueError(f"Unknown instruction: {instruction!r}")


def run_worker(worker_id, params, seed, shared, control, reports) -> None:
    """Process entry point. Must stay at module level for pickling."""
    Worker(worker_id, params, seed).run(shared, control, reports)
