"""SVG and PNG previews of the 1-bit frames a display will show.

Frames are laid out left to right, top to bottom in a grid of
``columns`` tiles. Each lit pixel is drawn as a square of ``scale``
pixels; unlit pixels stay the tile's dark background.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import structlog

logger = structlog.get_logger(__name__)

BACKGROUND = "#1A202C"
TILE_COLOR = "#2D3748"
LIT_COLOR = "#FFFFFF"
GAP = 2


def sheet_size(
    frame_count: int, width: int, height: int, columns: int, scale: int
) -> tuple[int, int]:
    """Pixel size (width, height) of a contact sheet."""
    cols = max(1, min(columns, frame_count))
    rows = -(-frame_count // cols)
    return (
        cols * width * scale + (cols + 1) * GAP,
        rows * height * scale + (rows + 1) * GAP,
    )


def render_svg(bitmaps: Sequence[np.ndarray], columns: int = 10, scale: int = 4) -> str:
    """Render thresholded frames as an SVG contact sheet.

    Args:
        bitmaps: Boolean (height, width) arrays, all the same shape.
        columns: Tiles per row.
        scale: Output pixels per display pixel.

    Returns:
        Complete SVG document as a string.

    Raises:
        ValueError: If there are no frames, the shapes differ, or
            columns/scale are not positive.
    """
    if not bitmaps:
        raise ValueError("No frames to preview")
    if columns < 1 or scale < 1:
        raise ValueError("columns and scale must be positive")
    height, width = bitmaps[0].shape
    if any(b.shape != (height, width) for b in bitmaps):
        raise ValueError("All frames must have the same size")

    cols = min(columns, len(bitmaps))
    total_w, total_h = sheet_size(len(bitmaps), width, height, columns, scale)

    svg_parts: list[str] = [
        f'<svg xmlns="http://www.w3.org/2000/svg" '
        f'viewBox="0 0 {total_w} {total_h}" '
        f'width="{total_w}" height="{total_h}" shape-rendering="crispEdges">',
        f'  <rect width="{total_w}" height="{total_h}" fill="{BACKGROUND}"/>',
    ]

    for index, bitmap in enumerate(bitmaps):
        ox = GAP + (index % cols) * (width * scale + GAP)
        oy = GAP + (index // cols) * (height * scale + GAP)
        svg_parts.append(f'  <g class="frame" transform="translate({ox},{oy})">')
        svg_parts.append(
            f'    <rect width="{width * scale}" height="{height * scale}" fill="{TILE_COLOR}"/>'
        )
        for y, x in np.argwhere(bitmap).tolist():
            svg_parts.append(
                f'    <rect x="{x * scale}" y="{y * scale}" '
                f'width="{scale}" height="{scale}" fill="{LIT_COLOR}"/>'
            )
        svg_parts.append("  </g>")

    svg_parts.append("</svg>")
    svg_content = "\n".join(svg_parts)

    logger.debug("preview_svg_rendered", frames=len(bitmaps), width=total_w, height=total_h)
    return svg_content


def render_png(bitmaps: Sequence[np.ndarray], columns: int = 10, scale: int = 4) -> bytes:
    """Render the contact sheet as PNG via CairoSVG."""
    import cairosvg

    svg = render_svg(bitmaps, columns, scale)
    png_bytes = cairosvg.svg2png(bytestring=svg.encode("utf-8"))

    logger.debug("preview_png_rendered", frames=len(bitmaps), bytes=len(png_bytes))
    return png_bytes
