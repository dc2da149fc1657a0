#!/usr/bin/env python3
"""
Billiard Render Runner

Runs the multi-process sampler, saves the raw accumulation buffer as .npz
and a tone-mapped PNG next to it.
"""

import argparse
import json
import sys
import time
from pathlib import Path

from tqdm import tqdm

from billiard_sim import BilliardParams, Coordinator, SCORERS, render, utils
from billiard_sim.render import TONE_MODES


def build_params(args) -> BilliardParams:
    config = utils.load_params(args.config) if args.config else {}
    overrides = {
        "width": args.width,
        "height": args.height,
        "arena_edges": args.edges,
        "arena_size": args.arena_size,
        "obstacle_capacity": args.capacity,
        "num_workers": args.workers,
        "min_samples": args.samples,
        "batch_size": args.batch_size,
        "score": args.score,
        "seed": args.seed,
    }
    config.update({k: v for k, v in overrides.items() if v is not None})
    return BilliardParams.from_dict(config)


def main():
    parser = argparse.ArgumentParser(
        description="Render a self-caging billiard image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=str, default=None, help="JSON or TOML parameter file")
    parser.add_argument("--width", type=int, default=None, help="Image width in pixels")
    parser.add_argument("--height", type=int, default=None, help="Image height in pixels")
    parser.add_argument("--edges", type=int, default=None, help="Arena edge count")
    parser.add_argument("--arena-size", type=float, default=None, help="Arena diameter (unit square)")
    parser.add_argument("--capacity", type=int, default=None, help="Obstacle capacity per trajectory")
    parser.add_argument("--workers", type=int, default=None, help="Worker processes (default: CPU count)")
    parser.add_argument("--samples", type=int, default=None, help="Minimum total trajectories")
    parser.add_argument("--batch-size", type=int, default=None, help="Trajectories per worker batch")
    parser.add_argument("--score", choices=sorted(SCORERS), default=None, help="Scoring function")
    parser.add_argument("--seed", type=int, default=None, help="Base random seed")
    parser.add_argument("--mode", choices=TONE_MODES, default="log", help="Tone mapping (default: log)")
    parser.add_argument("--cmap", type=str, default="magma", help="Matplotlib colormap (default: magma)")
    parser.add_argument(
        "--out",
        type=str,
        default=None,
        help="Output .npz path (auto-generated if not provided); PNG uses the same stem",
    )

    args = parser.parse_args()
    params = build_params(args)

    if args.out is None:
        output_dir = Path("results")
        args.out = str(
            output_dir
            / f"billiard_E{params.arena_edges}_{params.width}x{params.height}_{utils.now_str()}.npz"
        )

    start_time = time.time()
    with tqdm(total=params.min_samples, unit="traj", unit_scale=True) as bar:

        def progress(total: int) -> None:
            bar.update(min(total, params.min_samples) - bar.n)

        result = Coordinator(params, progress=progress).run()
    elapsed_time = time.time() - start_time

    utils.save_result(args.out, result)
    image_path = render.save_image(
        result.estimate(), Path(args.out).with_suffix(".png"), mode=args.mode, cmap=args.cmap
    )
    with open(Path(args.out).with_suffix(".json"), "w") as f:
        json.dump(result.meta, f, indent=2)

    print()
    print("=" * 60)
    print("Render completed!")
    print(f"  Samples merged: {result.samples} ({result.trapped} trapped)")
    print(f"  Total time: {elapsed_time:.2f} seconds")
    print(f"  Buffer: {args.out}")
    print(f"  Image: {image_path}")
    print("=" * 60)

    return 0


if __name__ == "__main__":
    sys.exit(main())
