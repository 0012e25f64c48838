"""Frame discovery and 1-bit conversion.

Frames are the numbered PNGs written by ffmpeg. Each one is reduced to
a boolean bitmap: a pixel is lit when its Rec.709 luma exceeds
LUMA_THRESHOLD.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path

import numpy as np
import structlog
from PIL import Image

logger = structlog.get_logger(__name__)

LUMA_THRESHOLD = 127

# Integer Rec.709 weights, scaled by 10000
_LUMA_WEIGHTS = np.array([2126, 7152, 722], dtype=np.uint32)

# Pillow modes holding 16-bit grayscale samples
_WIDE_GRAY_MODES = ("I", "I;16", "I;16L", "I;16B", "I;16N")


class FrameError(ValueError):
    """Raised when the frame set is empty or inconsistent."""


def list_frames(frames_dir: Path | str) -> list[Path]:
    """List frame files in a directory, sorted by path.

    Raises:
        FrameError: If the directory holds no files.
    """
    frames_dir = Path(frames_dir)
    if not frames_dir.is_dir():
        raise FrameError(f"Frames directory not found: {frames_dir}")
    paths = sorted(p for p in frames_dir.iterdir() if p.is_file())
    if not paths:
        raise FrameError(f"No frames in {frames_dir}")
    return paths


def to_1bit(img: Image.Image) -> np.ndarray:
    """Threshold an image into a (height, width) boolean array.

    Alpha is ignored; palette and grayscale images are expanded to RGB
    first, so a gray value g has luma g. 16-bit grayscale is scaled down
    to 8 bits with rounding rather than clipped.
    """
    if img.mode in _WIDE_GRAY_MODES:
        wide = np.clip(np.asarray(img, dtype=np.int64), 0, 65535)
        gray = (wide * 255 + 32767) // 65535
        return gray > LUMA_THRESHOLD
    rgb = np.asarray(img.convert("RGB"), dtype=np.uint32)
    luma = (rgb @ _LUMA_WEIGHTS) // 10000
    return luma > LUMA_THRESHOLD


def load_bitmap(path: Path | str) -> np.ndarray:
    with Image.open(path) as img:
        return to_1bit(img)


def load_frames(paths: Iterable[Path]) -> Iterator[tuple[Path, np.ndarray]]:
    """Yield (path, bitmap) for each frame, in order.

    Raises:
        FrameError: If a frame's size differs from the first frame's.
    """
    shape: tuple[int, ...] | None = None
    for path in paths:
        bitmap = load_bitmap(path)
        if shape is None:
            shape = bitmap.shape
        elif bitmap.shape != shape:
            raise FrameError(
                f"{path}: frame size {bitmap.shape[1]}x{bitmap.shape[0]} does not match "
                f"first frame ({shape[1]}x{shape[0]})"
            )
        yield path, bitmap


def frame_size(path: Path | str) -> tuple[int, int]:
    """Return (width, height) of a frame without decoding pixel data."""
    with Image.open(path) as img:
        return img.size
