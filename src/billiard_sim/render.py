"""
Post-processing for accumulation buffers: normalization, tone mapping,
colormaps and PNG output.
"""

from __future__ import annotations

import os
from pathlib import Path

import matplotlib
import matplotlib.pyplot as plt
import numpy as np

TONE_MODES = ("log", "sqrt", "linear")


def normalize(buffer: np.ndarray, samples: int) -> np.ndarray:
    """Divide by the number of launched trajectories."""
    if samples <= 0:
        raise ValueError(f"samples must be positive, got {samples}")
    return np.asarray(buffer, dtype=np.float64) / float(samples)


def tone_map(buffer: np.ndarray, mode: str = "log", percentile: float = 99.9) -> np.ndarray:
    """
    Compress a buffer into [0, 1].

    Values are clipped at the given percentile of the non-zero cells so a
    handful of hot pixels do not wash out the rest of the image.
    """
    if mode not in TONE_MODES:
        raise ValueError(f"Unknown tone mapping '{mode}'. Choose from: {', '.join(TONE_MODES)}")
    if not 0.0 < percentile <= 100.0:
        raise ValueError(f"percentile must be in (0, 100], got {percentile}")

    values = np.clip(np.asarray(buffer, dtype=np.float64), 0.0, None)
    nonzero = values[values > 0.0]
    if nonzero.size == 0:
        return np.zeros_like(values)

    ceiling = float(np.percentile(nonzero, percentile))
    if ceiling <= 0.0:
        ceiling = float(nonzero.max())
    values = np.minimum(values, ceiling) / ceiling

    if mode == "log":
        # log1p keeps zero at zero; the scale factor stretches the low end
        values = np.log1p(values * 1000.0) / np.log1p(1000.0)
    elif mode == "sqrt":
        values = np.sqrt(values)
    return values


def colorize(values: np.ndarray, cmap: str = "magma") -> np.ndarray:
    """Apply a matplotlib colormap; returns an (H, W, 4) uint8 image."""
    colormap = matplotlib.colormaps[cmap]
    rgba = colormap(np.clip(values, 0.0, 1.0))
    return (rgba * 255.0).round().astype(np.uint8)


def save_image(
    buffer: np.ndarray,
    path: str | os.PathLike[str],
    *,
    mode: str = "log",
    cmap: str = "magma",
    percentile: float = 99.9,
    origin: str = "lower",
) -> Path:
    """
    Tone-map a buffer and write it as an image (format from the suffix).

    With origin="lower" row 0 of the buffer (y = 0) ends up at the bottom.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    image = colorize(tone_map(buffer, mode=mode, percentile=percentile), cmap=cmap)
    plt.imsave(path, image, origin=origin)
    return path
