"""Shared fixtures: minimal Logic World saves and synthetic frames."""

from __future__ import annotations

import io
import subprocess
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from lwvideo.blotter import (
    BlotterFile,
    Component,
    ComponentType,
    Mod,
    PegAddress,
    Wire,
)

COMPONENT_TYPES = [
    ComponentType(1, "MHG.CircuitBoard"),
    ComponentType(2, "MHG.Delayer"),
    ComponentType(3, "MHG.Peg"),
    ComponentType(4, "MHG.ChubbySocket"),
    ComponentType(5, "MHG.Inverter"),
]


def make_save(**kwargs) -> BlotterFile:
    """A small world save: one board holding an inverter wired to a peg."""
    save = BlotterFile(
        version=6,
        game_version=(0, 91, 1, 0),
        mods=[Mod("MHG", (0, 91, 0, 0))],
        component_types=list(COMPONENT_TYPES),
        components=[
            Component(
                address=1,
                parent=0,
                type_id=1,
                custom_data=bytes([51, 51, 51]) + (8).to_bytes(4, "little") * 2,
            ),
            Component(
                address=2,
                parent=1,
                type_id=5,
                position=(0.15, 0.15, 0.15),
                inputs=[1],
                outputs=[2],
            ),
            Component(address=3, parent=1, type_id=3, position=(0.45, 0.15, 0.15), inputs=[2]),
        ],
        wires=[
            Wire(
                start=PegAddress(is_input=False, component_address=2),
                end=PegAddress(is_input=True, component_address=3),
                circuit_state_id=2,
                rotation=0.5,
            )
        ],
        circuit_states=bytearray([0b00000010]),
    )
    for key, value in kwargs.items():
        setattr(save, key, value)
    return save


def save_bytes(save: BlotterFile) -> bytes:
    buf = io.BytesIO()
    save.write(buf)
    return buf.getvalue()


def write_frame(path: Path, pixels: list[list[int]]) -> Path:
    """Write a grayscale frame from rows of 0-255 values."""
    Image.fromarray(np.array(pixels, dtype=np.uint8)).save(path)
    return path


@pytest.fixture
def world_save() -> BlotterFile:
    return make_save()


@pytest.fixture
def frames_dir(tmp_path):
    """Directory factory: pass a list of frames (rows of 0-255 values)."""

    def _make(frames: list[list[list[int]]], name: str = "frames") -> Path:
        d = tmp_path / name
        d.mkdir()
        for i, pixels in enumerate(frames, start=1):
            write_frame(d / f"{i:05d}.png", pixels)
        return d

    return _make


def fake_ffmpeg(frame_count: int = 3, calls: list | None = None):
    """Stand-in for subprocess.run that writes black frames like ffmpeg would."""

    def _run(cmd, **kwargs):
        if calls is not None:
            calls.append(cmd)
        vf = cmd[cmd.index("-vf") + 1]
        width, height = (int(v) for v in vf.split("scale=")[1].split(":"))
        pattern = cmd[-1]
        for i in range(1, frame_count + 1):
            Image.fromarray(np.zeros((height, width), dtype=np.uint8)).save(pattern % i)
        return subprocess.CompletedProcess(cmd, 0, b"", b"")

    return _run
