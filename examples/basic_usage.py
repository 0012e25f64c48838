#!/usr/bin/env python3
"""Basic usage example for lwvideo.

Builds a tiny Logic World save in memory, injects a short synthetic
animation (a bar sweeping across an 8x6 display), and writes both the
save and a preview contact sheet to the current directory.

Usage:
    python examples/basic_usage.py
"""

import tempfile
from pathlib import Path

import numpy as np
from PIL import Image

from lwvideo.blotter import BlotterFile, ComponentType, write_file
from lwvideo.frames import list_frames, load_frames
from lwvideo.inject import inject
from lwvideo.preview import render_svg

WIDTH, HEIGHT, FRAMES = 8, 6, 8


def make_frames(frames_dir: Path) -> None:
    """Write a vertical white bar moving one column per frame."""
    for i in range(FRAMES):
        pixels = np.zeros((HEIGHT, WIDTH), dtype=np.uint8)
        pixels[:, i % WIDTH] = 255
        Image.fromarray(pixels).save(frames_dir / f"{i + 1:05d}.png")


def main():
    print("=" * 60)
    print("Inject a sweeping bar into an empty world")
    print("=" * 60)

    save = BlotterFile(
        game_version=(0, 91, 1, 0),
        component_types=[
            ComponentType(1, "MHG.CircuitBoard"),
            ComponentType(2, "MHG.Delayer"),
            ComponentType(3, "MHG.Peg"),
            ComponentType(4, "MHG.ChubbySocket"),
        ],
    )

    with tempfile.TemporaryDirectory() as tmp:
        frames_dir = Path(tmp)
        make_frames(frames_dir)
        paths = list_frames(frames_dir)
        stats = inject(save, paths)
        bitmaps = [bitmap for _path, bitmap in load_frames(paths)]

    print(f"  Frames:      {stats.frames} at {stats.width}x{stats.height}")
    print(f"  Components:  +{stats.components_added}")
    print(f"  Wires:       +{stats.wires_added}")

    write_file(save, "sweep.logicworld")
    Path("sweep_preview.svg").write_text(render_svg(bitmaps, columns=4, scale=8))
    print("  Wrote sweep.logicworld and sweep_preview.svg")


if __name__ == "__main__":
    main()
