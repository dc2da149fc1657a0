"""
Coordinator side of the sampling protocol.

Spawns a fixed pool of worker processes, each with its own control queue and
report queue, counts finished trajectories from the reports, and once enough
samples are in asks every worker to merge its private buffer into the shared
one and stop.
"""

from __future__ import annotations

import multiprocessing as mp
import queue
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import numpy as np

from . import utils
from .config import BilliardParams
from .worker import Instruction, ReportKind, run_worker


class WorkerDisconnectedError(RuntimeError):
    """A worker went away before its samples were merged; the run is lost."""


class SharedBuffer:
    """
    The run's single shared accumulation buffer.

    Lives in shared memory so worker processes can merge into it. `merge` is
    the only mutating operation and holds a non-reentrant lock while it runs.
    """

    def __init__(self, width: int, height: int, ctx=None) -> None:
        ctx = ctx or mp.get_context()
        self.width = width
        self.height = height
        self._array = ctx.Array("d", width * height, lock=ctx.Lock())

    def _view(self) -> np.ndarray:
        raw = np.frombuffer(self._array.get_obj(), dtype=np.float64)
        return raw.reshape(self.height, self.width)

    def merge(self, private: np.ndarray) -> None:
        if private.shape != (self.height, self.width):
            raise ValueError(
                f"Cannot merge buffer of shape {private.shape} into "
                f"{(self.height, self.width)}"
            )
        with self._array.get_lock():
            view = self._view()
            view += private

    def to_numpy(self) -> np.ndarray:
        with self._array.get_lock():
            return self._view().copy()


@dataclass
class _WorkerHandle:
    worker_id: int
    process: Any
    control: Any
    reports: Any
    merged: bool = False


class Coordinator:
    """
    Runs `params.num_workers` workers until `params.min_samples` trajectories
    have been reported, then merges and joins them.

    Args:
        params: Run configuration.
        progress: Optional sink called with the running total of completed
            trajectories after every progress report.
        target: Worker process entry point.
    """

    def __init__(
        self,
        params: BilliardParams,
        progress: Optional[Callable[[int], None]] = None,
        target: Callable = run_worker,
    ) -> None:
        self.params = params
        self.progress = progress
        self.target = target
        self.ctx = mp.get_context(params.start_method)
        self.shared = SharedBuffer(params.width, params.height, self.ctx)
        self.handles: List[_WorkerHandle] = []
        self.reported = 0
        self.samples = 0
        self.trapped = 0

    # ------------------------------------------------------------------ public
    def run(self) -> utils.RenderResult:
        t_start = time.perf_counter()
        if self.params.verbose:
            print(
                f"[billiard] {self.params.num_workers} workers, "
                f"{self.params.width}x{self.params.height}, "
                f"target {self.params.min_samples} samples"
            )

        try:
            self._spawn()
            self._poll()
            self._finish()
        except BaseException:
            self._abort()
            raise

        elapsed = time.perf_counter() - t_start
        rate = self.samples / elapsed if elapsed > 0 else 0.0
        if self.params.verbose:
            print(
                f"[billiard] merged {self.samples} samples "
                f"({self.trapped} trapped) in {elapsed:.2f}s ({rate:.0f} samples/s)"
            )

        meta = self.params.to_dict()
        meta["elapsed_seconds"] = elapsed
        return utils.RenderResult(
            buffer=self.shared.to_numpy(),
            samples=self.samples,
            trapped=self.trapped,
            meta=meta,
        )

    # ------------------------------------------------------------------ phases
    def _spawn(self) -> None:
        seeds = utils.seed_sequence(self.params.seed, self.params.num_workers)
        for worker_id, seed in enumerate(seeds):
            control = self.ctx.Queue()
            reports = self.ctx.Queue()
            process = self.ctx.Process(
                target=self.target,
                args=(worker_id, self.params, seed, self.shared, control, reports),
                name=f"billiard-worker-{worker_id}",
                daemon=True,
            )
            process.start()
            self.handles.append(_WorkerHandle(worker_id, process, control, reports))

    def _poll(self) -> None:
        while self.reported < self.params.min_samples:
            for handle in self.handles:
                try:
                    report = handle.reports.get(timeout=self.params.poll_timeout)
                except queue.Empty:
                    self._check_alive(handle)
                    continue
                self._handle_report(handle, report)
                if self.reported >= self.params.min_samples:
                    break

    def _finish(self) -> None:
        for handle in self.handles:
            handle.control.put(Instruction.ACCUMULATE)
            handle.control.put(Instruction.STOP)

        # Keep draining while joining; a child cannot exit with unflushed queue data
        pending = list(self.handles)
        while pending:
            for handle in list(pending):
                self._drain(handle)
                handle.process.join(timeout=self.params.poll_timeout)
                if handle.process.is_alive():
                    continue
                self._drain(handle)
                if handle.process.exitcode != 0:
                    raise WorkerDisconnectedError(
                        f"Worker {handle.worker_id} exited with code "
                        f"{handle.process.exitcode}"
                    )
                if not handle.merged:
                    raise WorkerDisconnectedError(
                        f"Worker {handle.worker_id} stopped without merging its samples"
                    )
                pending.remove(handle)

    def _abort(self) -> None:
        for handle in self.handles:
            if handle.process.is_alive():
                handle.process.terminate()
        for handle in self.handles:
            handle.process.join(timeout=1.0)

    # ------------------------------------------------------------------ helpers
    def _handle_report(self, handle: _WorkerHandle, report) -> None:
        if report.kind == ReportKind.PROGRESS:
            self.reported += report.count
            if self.progress is not None:
                self.progress(self.reported)
        elif report.kind == ReportKind.MERGED:
            handle.merged = True
            self.samples += report.count
            self.trapped += report.trapped

    def _drain(self, handle: _WorkerHandle) -> None:
        while True:
            try:
                report = handle.reports.get_nowait()
            except queue.Empty:
                return
            self._handle_report(handle, report)

    def _check_alive(self, handle: _WorkerHandle) -> None:
        if not handle.process.is_alive():
            raise WorkerDisconnectedError(
                f"Worker {handle.worker_id} disconnected (exit code "
                f"{handle.process.exitcode}) after {self.reported} samples"
            )


def run_model(
    params: BilliardParams | dict | None = None,
    progress: Optional[Callable[[int], None]] = None,
) -> utils.RenderResult:
    """
    Run a full render and return the merged RenderResult.
    """
    if params is None:
        params = BilliardParams()
    elif isinstance(params, dict):
        params = BilliardParams.from_dict(params)
    return Coordinator(params, progress=progress).run()
