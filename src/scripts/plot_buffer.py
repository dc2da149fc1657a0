"""
Re-render a saved accumulation buffer with different tone mapping settings.
"""
import argparse
from pathlib import Path

from billiard_sim import render, utils


def main():
    parser = argparse.ArgumentParser(description="Render a saved billiard buffer (.npz)")
    parser.add_argument("input", type=str, help="Path to .npz written by run_render.py")
    parser.add_argument("--out", type=str, default=None, help="Output image (default: <input>.png)")
    parser.add_argument("--mode", choices=render.TONE_MODES, default="log")
    parser.add_argument("--cmap", type=str, default="magma")
    parser.add_argument("--percentile", type=float, default=99.9)
    parser.add_argument("--raw", action="store_true", help="Skip per-sample normalization")
    args = parser.parse_args()

    result = utils.load_result(args.input)
    print(f"Loaded {result.width}x{result.height} buffer, samples={result.samples}, "
          f"trapped={result.trapped}")

    if args.raw or result.samples == 0:
        buffer = result.buffer
    else:
        buffer = render.normalize(result.buffer, result.samples)
    out = args.out or str(Path(args.input).with_suffix(".png"))
    path = render.save_image(
        buffer, out, mode=args.mode, cmap=args.cmap, percentile=args.percentile
    )
    print(f"✅ Image saved to {path}")


if __name__ == "__main__":
    main()
