"""Encode a frame sequence as a delay-line display circuit.

Layout, per display row (one circuit board each, stacked vertically):

- A timing chain of ``2 * frames + 1`` delayers runs along the board's
  depth. A pulse entering the chain reaches slot ``z = 2 * (i + 1)``
  when frame ``i`` should be shown.
- Each column ends in a chubby socket (the "pixel"). All pegs feeding a
  column share one column cluster.
- For every frame, each pixel that changes relative to the previous
  frame gets a one-tick delayer driven from the timing slot and wired
  into its column. A column therefore toggles once per change.

Every CHUNK_FRAMES frames a delayer is inserted into every column to
split the otherwise enormous column nets, which keeps simulation
updates-per-second manageable. The extra tick is taken back from the
timing chain every CHUNK_SLOTS slots.
"""

from __future__ import annotations

import struct
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import structlog

from .blotter import (
    IDENTITY_ROTATION,
    BlotterFile,
    Component,
    PegAddress,
    Wire,
    read_file,
    write_file,
)
from .frames import FrameError, frame_size, list_frames, load_frames

logger = structlog.get_logger(__name__)

CIRCUIT_BOARD = "MHG.CircuitBoard"
DELAYER = "MHG.Delayer"
PEG = "MHG.Peg"
CHUBBY_SOCKET = "MHG.ChubbySocket"
REQUIRED_TYPES = (CIRCUIT_BOARD, DELAYER, PEG, CHUBBY_SOCKET)

# Board placement
ROW_SPACING = 0.90
BOARD_COLOR = (51, 51, 51)

# Grid geometry on each row board
SLOT_SPACING = 0.60
COLUMN_SPACING = 0.90
SQUARE = 0.15
COLUMN_OFFSET = 0.75
PIXEL_DELAYER_OFFSET = 0.45
PEG_SLOT_OFFSET = 0.45

FACING_BACK = (0.0, 1.0, 0.0, 0.0)

# Delays in ticks
FRAME_DELAY = 10
PIXEL_DELAY = 1

CHUNK_FRAMES = 200
CHUNK_SLOTS = 2 * CHUNK_FRAMES


class InjectError(ValueError):
    """Raised when a save cannot host the display circuit."""


@dataclass
class InjectStats:
    """Summary of one injection run."""

    frames: int
    width: int
    height: int
    components_added: int
    wires_added: int


def delayer_data(ticks: int) -> bytes:
    """Custom data for an MHG.Delayer with the given delay."""
    return struct.pack("<iI", 0, ticks)


def board_data(width: int, depth: int) -> bytes:
    """Custom data for an MHG.CircuitBoard: RGB colour then size in squares."""
    return bytes(BOARD_COLOR) + struct.pack("<ii", width, depth)


class _Counter:
    """Pre-incrementing id source."""

    def __init__(self, last: int):
        self.last = last

    def next(self) -> int:
        self.last += 1
        return self.last

    def take(self, n: int) -> list[int]:
        return [self.next() for _ in range(n)]


def _wire(start: int, start_is_input: bool, end: int, cluster: int) -> Wire:
    return Wire(
        start=PegAddress(is_input=start_is_input, component_address=start),
        end=PegAddress(is_input=True, component_address=end),
        circuit_state_id=cluster,
    )


def inject(save: BlotterFile, frame_paths: Sequence[Path]) -> InjectStats:
    """Add a display circuit playing ``frame_paths`` to ``save``.

    Raises:
        FrameError: If there are no frames or their sizes differ.
        InjectError: If the save lacks a required component type.
    """
    if not frame_paths:
        raise FrameError("No frames to inject")

    type_ids = save.component_type_ids()
    missing = [t for t in REQUIRED_TYPES if t not in type_ids]
    if missing:
        raise InjectError(f"Save is missing component types: {', '.join(missing)}")
    board_type = type_ids[CIRCUIT_BOARD]
    delayer_type = type_ids[DELAYER]
    peg_type = type_ids[PEG]
    socket_type = type_ids[CHUBBY_SOCKET]

    width, height = frame_size(frame_paths[0])
    depth = len(frame_paths) * 2 + 1

    components_before = len(save.components)
    wires_before = len(save.wires)
    components = save.components
    wires = save.wires

    addresses = _Counter(save.max_address())
    clusters = _Counter(save.max_circuit_state())

    logger.info(
        "inject_started",
        frames=len(frame_paths),
        width=width,
        height=height,
        first_address=addresses.last + 1,
        first_cluster=clusters.last + 1,
    )

    row_boards = addresses.take(height)
    for y, board in enumerate(row_boards):
        components.append(
            Component(
                address=board,
                parent=0,
                type_id=board_type,
                position=(0.0, y * ROW_SPACING, 0.0),
                rotation=IDENTITY_ROTATION,
                custom_data=board_data(1 + 3 * width, 2 * depth),
            )
        )

    # Timing chains
    slot_clusters: list[list[int]] = []
    slot_delayers: list[list[int]] = []
    for y in range(height):
        chain_clusters = clusters.take(depth + 1)
        chain_delayers = addresses.take(depth)
        for z in range(depth):
            compensation = 1 if (z + 1) % CHUNK_SLOTS == 0 else 0
            components.append(
                Component(
                    address=chain_delayers[z],
                    parent=row_boards[y],
                    type_id=delayer_type,
                    position=(SQUARE, SQUARE, z * SLOT_SPACING + SQUARE),
                    rotation=IDENTITY_ROTATION,
                    inputs=[chain_clusters[z]],
                    outputs=[chain_clusters[z + 1]],
                    custom_data=delayer_data(FRAME_DELAY - compensation),
                )
            )
        for z in range(1, depth):
            wires.append(_wire(chain_delayers[z - 1], False, chain_delayers[z], chain_clusters[z]))
        slot_clusters.append(chain_clusters)
        slot_delayers.append(chain_delayers)

    column_clusters = [clusters.take(width) for _ in range(height)]

    # Column sockets; the last peg of each column is where new pegs attach
    last_pegs: list[list[int]] = []
    for y in range(height):
        sockets = addresses.take(width)
        for x in range(width):
            components.append(
                Component(
                    address=sockets[x],
                    parent=row_boards[y],
                    type_id=socket_type,
                    position=(x * COLUMN_SPACING + COLUMN_OFFSET, SQUARE, SQUARE),
                    rotation=FACING_BACK,
                    inputs=[column_clusters[y][x]],
                )
            )
        last_pegs.append(sockets)

    previous = np.zeros((height, width), dtype=bool)
    frame_count = 0

    # load_frames rejects any frame whose size differs from the first
    for frame_index, (path, current) in enumerate(load_frames(frame_paths)):
        z = (frame_index + 1) * 2
        chunk_boundary = (frame_index + 1) % CHUNK_FRAMES == 0

        if chunk_boundary:
            for y in range(height):
                for x in range(width):
                    chunk_delayer = addresses.next()
                    new_cluster = clusters.next()
                    components.append(
                        Component(
                            address=chunk_delayer,
                            parent=row_boards[y],
                            type_id=delayer_type,
                            position=(
                                x * COLUMN_SPACING + COLUMN_OFFSET,
                                SQUARE,
                                z * SLOT_SPACING - PEG_SLOT_OFFSET,
                            ),
                            rotation=FACING_BACK,
                            inputs=[new_cluster],
                            outputs=[column_clusters[y][x]],
                            custom_data=delayer_data(PIXEL_DELAY),
                        )
                    )
                    wires.append(
                        _wire(chunk_delayer, False, last_pegs[y][x], column_clusters[y][x])
                    )
                    last_pegs[y][x] = chunk_delayer
                    column_clusters[y][x] = new_cluster

        # Row 0 is the bottom board, so it shows the last image row
        changed = np.flipud(current != previous)
        for y in range(height):
            row_last = slot_delayers[y][z]
            slot_cluster = slot_clusters[y][z]
            for x in np.flatnonzero(changed[y]).tolist():
                pixel_delayer = addresses.next()
                components.append(
                    Component(
                        address=pixel_delayer,
                        parent=row_boards[y],
                        type_id=delayer_type,
                        position=(
                            x * COLUMN_SPACING + PIXEL_DELAYER_OFFSET,
                            SQUARE,
                            z * SLOT_SPACING - SQUARE,
                        ),
                        rotation=FACING_BACK,
                        inputs=[slot_cluster],
                        outputs=[column_clusters[y][x]],
                        custom_data=delayer_data(PIXEL_DELAY),
                    )
                )

                # On chunk boundaries the chunk delayer stands in for the peg
                if chunk_boundary:
                    pixel_peg = last_pegs[y][x]
                else:
                    pixel_peg = addresses.next()
                    components.append(
                        Component(
                            address=pixel_peg,
                            parent=row_boards[y],
                            type_id=peg_type,
                            position=(
                                x * COLUMN_SPACING + COLUMN_OFFSET,
                                SQUARE,
                                z * SLOT_SPACING - PEG_SLOT_OFFSET,
                            ),
                            rotation=IDENTITY_ROTATION,
                            inputs=[column_clusters[y][x]],
                        )
                    )

                wires.append(_wire(row_last, True, pixel_delayer, slot_cluster))
                wires.append(_wire(pixel_delayer, False, pixel_peg, column_clusters[y][x]))
                if not chunk_boundary:
                    wires.append(_wire(pixel_peg, True, last_pegs[y][x], column_clusters[y][x]))

                row_last = pixel_delayer
                last_pegs[y][x] = pixel_peg

        previous = current
        frame_count += 1
        logger.debug(
            "frame_injected",
            frame=path.name,
            index=frame_index,
            changed=int(changed.sum()),
            chunk_boundary=chunk_boundary,
        )

    save.resize_circuit_states(clusters.last + 1)

    stats = InjectStats(
        frames=frame_count,
        width=width,
        height=height,
        components_added=len(components) - components_before,
        wires_added=len(wires) - wires_before,
    )
    logger.info(
        "circuit_injected",
        frames=stats.frames,
        components_added=stats.components_added,
        wires_added=stats.wires_added,
        clusters=clusters.last,
    )
    return stats


def inject_file(path: Path | str, frames_dir: Path | str = "frames") -> InjectStats:
    """Read the save at ``path``, inject the frames and write it back in place."""
    save = read_file(path)
    stats = inject(save, list_frames(frames_dir))
    write_file(save, path)
    logger.info("save_written", path=str(path))
    return stats
