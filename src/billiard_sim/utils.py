# src/billiard_sim/utils.py
from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover
    tomllib = None  # type: ignore


@dataclass
class RenderResult:
    """Accumulated image plus the sample counts needed to normalize it."""

    buffer: np.ndarray
    samples: int = 0
    trapped: int = 0
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def width(self) -> int:
        return int(self.buffer.shape[1])

    @property
    def height(self) -> int:
        return int(self.buffer.shape[0])

    def estimate(self) -> np.ndarray:
        """Per-launch estimate of the scored statistic for every pixel."""
        if self.samples <= 0:
            return np.zeros_like(self.buffer)
        return self.buffer / float(self.samples)


def new_buffer(width: int, height: int) -> np.ndarray:
    """Zeroed accumulation buffer; buffer[y, x] is cell x + width * y."""
    return np.zeros((height, width), dtype=np.float64)


def seed_sequence(seed: Optional[int], n: int) -> list[np.random.SeedSequence]:
    """Independent child seeds, one per worker."""
    return np.random.SeedSequence(seed).spawn(n)


def now_str() -> str:
    return time.strftime("%Y%m%d-%H%M%S")


def save_result(
    path: str | os.PathLike[str], result: RenderResult, *, overwrite: bool = True
) -> None:
    """Serialize a RenderResult to a compressed .npz file."""
    out_dir = Path(path).parent
    out_dir.mkdir(parents=True, exist_ok=True)
    if not overwrite and Path(path).exists():
        raise FileExistsError(f"{path} already exists")
    np.savez_compressed(
        path,
        buffer=np.asarray(result.buffer, dtype=np.float64),
        samples=np.int64(result.samples),
        trapped=np.int64(result.trapped),
        meta=dict(result.meta or {}),
    )


def load_result(path: str | os.PathLike[str]) -> RenderResult:
    """Load a .npz written by save_result."""
    with np.load(path, allow_pickle=True) as data:
        if "buffer" not in data:
            raise ValueError(f"{path} does not contain an accumulation buffer")
        buffer = data["buffer"].astype(np.float64)
        samples = int(data["samples"]) if "samples" in data else 0
        trapped = int(data["trapped"]) if "trapped" in data else 0
        meta: Dict[str, Any] = {}
        if "meta" in data:
            meta_raw = data["meta"]
            try:
                meta = meta_raw.item()
            except ValueError:
                meta = {}
    return RenderResult(buffer=buffer, samples=samples, trapped=trapped, meta=meta)


def load_params(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """
    Load simulation parameters from JSON or TOML.
    """
    path = str(path)
    with open(path, "rb") as fh:
        data = fh.read()
    suffix = Path(path).suffix.lower()
    if suffix in {".json", ""}:
        return json.loads(data.decode("utf-8"))
    if suffix in {".toml", ".tml"}:
        if tomllib is None:
            raise RuntimeError("tomllib is unavailable; cannot parse TOML files")
        return tomllib.loads(data.decode("utf-8"))
    raise ValueError(f"Unsupported parameter file format: {suffix}")
