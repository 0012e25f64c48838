"""Reader and writer for Logic World "Blotter" save files.

A Blotter file is a little-endian binary stream:

1. 16-byte header magic, format version, game version and save type
2. Component and wire counts
3. Mod list and component type map (numeric id <-> text id)
4. Components, then wires
5. Circuit states (packed bit array for worlds, on-list for subassemblies)
6. 16-byte footer

Only format version 6 is supported. Reading then writing an unmodified
file reproduces it byte for byte.
"""

from __future__ import annotations

import io
import os
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

import structlog

logger = structlog.get_logger(__name__)

HEADER_MAGIC = b"Logic World save"
FOOTER_MAGIC = b"redstone sux lol"
SUPPORTED_VERSIONS = (6,)

SAVE_TYPE_UNKNOWN = 0
SAVE_TYPE_WORLD = 1
SAVE_TYPE_SUBASSEMBLY = 2

SAVE_TYPE_NAMES: dict[int, str] = {
    SAVE_TYPE_UNKNOWN: "UNKNOWN",
    SAVE_TYPE_WORLD: "WORLD",
    SAVE_TYPE_SUBASSEMBLY: "SUBASSEMBLY",
}

PEG_TYPE_INPUT = 1
PEG_TYPE_OUTPUT = 2

IDENTITY_ROTATION = (0.0, 0.0, 0.0, 1.0)

_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_I32 = struct.Struct("<i")
_U32 = struct.Struct("<I")
_F32 = struct.Struct("<f")
_VERSION = struct.Struct("<4i")
_VEC3 = struct.Struct("<3f")
_QUAT = struct.Struct("<4f")


class BlotterError(ValueError):
    """Raised for malformed or unsupported save data."""


@dataclass
class Mod:
    """A mod the save depends on."""

    mod_id: str
    version: tuple[int, int, int, int] = (0, 0, 0, 0)


@dataclass
class ComponentType:
    """Entry in the component type map.

    Attributes:
        numeric_id: Id used by components in this file.
        text_id: Stable name, e.g. "MHG.Delayer".
    """

    numeric_id: int
    text_id: str


@dataclass
class Component:
    """A placed component.

    Attributes:
        address: Unique component address (> 0).
        parent: Address of the parent component, 0 for the world root.
        type_id: Numeric id from the component type map.
        position: (x, y, z) relative to the parent.
        rotation: Quaternion (x, y, z, w).
        inputs: Circuit state id of each input peg.
        outputs: Circuit state id of each output.
        custom_data: Component-specific bytes, or None.
    """

    address: int
    parent: int
    type_id: int
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: tuple[float, float, float, float] = IDENTITY_ROTATION
    inputs: list[int] = field(default_factory=list)
    outputs: list[int] = field(default_factory=list)
    custom_data: bytes | None = None


@dataclass(frozen=True)
class PegAddress:
    """One end of a wire: a peg on a component."""

    is_input: bool
    component_address: int
    peg_index: int = 0


@dataclass
class Wire:
    """A wire between two pegs, carrying one circuit state."""

    start: PegAddress
    end: PegAddress
    circuit_state_id: int
    rotation: float = 0.0


@dataclass
class BlotterFile:
    """In-memory representation of a Blotter save.

    ``circuit_states`` holds the packed bit array for world saves and the
    list of on-state ids for subassemblies.
    """

    version: int = 6
    game_version: tuple[int, int, int, int] = (0, 0, 0, 0)
    save_type: int = SAVE_TYPE_WORLD
    mods: list[Mod] = field(default_factory=list)
    component_types: list[ComponentType] = field(default_factory=list)
    components: list[Component] = field(default_factory=list)
    wires: list[Wire] = field(default_factory=list)
    circuit_states: bytearray | list[int] = field(default_factory=bytearray)

    @property
    def is_world(self) -> bool:
        return self.save_type != SAVE_TYPE_SUBASSEMBLY

    def component_type_ids(self) -> dict[str, int]:
        """Map component text ids to their numeric ids in this file."""
        return {ct.text_id: ct.numeric_id for ct in self.component_types}

    def max_address(self) -> int:
        """Highest component address in use, or 0."""
        return max((c.address for c in self.components), default=0)

    def max_circuit_state(self) -> int:
        """Highest circuit state id on any component peg, or 0."""
        return max(
            (sid for c in self.components for sid in (*c.inputs, *c.outputs)),
            default=0,
        )

    def resize_circuit_states(self, cluster_count: int) -> None:
        """Size the world bit array to hold ``cluster_count`` states.

        New states are off. Subassembly saves are left untouched.
        """
        if not self.is_world:
            return
        size = (cluster_count - 1) // 8 + 1
        states = bytearray(self.circuit_states)
        if len(states) < size:
            states.extend(bytes(size - len(states)))
        else:
            del states[size:]
        self.circuit_states = states

    def summary(self) -> dict:
        """Header-level description used by the CLI and HTTP service."""
        return {
            "version": self.version,
            "game_version": ".".join(str(v) for v in self.game_version),
            "save_type": SAVE_TYPE_NAMES.get(self.save_type, str(self.save_type)),
            "components": len(self.components),
            "wires": len(self.wires),
            "mods": [m.mod_id for m in self.mods],
            "component_types": sorted(ct.text_id for ct in self.component_types),
        }

    @classmethod
    def read(cls, stream: BinaryIO) -> BlotterFile:
        """Parse a Blotter file from a binary stream.

        Raises:
            BlotterError: If the data is malformed or the version is unsupported.
        """
        r = _Reader(stream)

        if r.read(len(HEADER_MAGIC)) != HEADER_MAGIC:
            raise BlotterError("Not a Logic World save (bad header magic)")
        version = r.unpack(_U8)
        if version not in SUPPORTED_VERSIONS:
            raise BlotterError(f"Unsupported save format version {version}")

        game_version = r.unpack_many(_VERSION)
        save_type = r.unpack(_U8)
        component_count = r.count()
        wire_count = r.count()

        mods = [Mod(r.string(), r.unpack_many(_VERSION)) for _ in range(r.count())]
        component_types = [
            ComponentType(numeric_id=r.unpack(_U16), text_id=r.string())
            for _ in range(r.count())
        ]
        components = [_read_component(r) for _ in range(component_count)]
        wires = [_read_wire(r) for _ in range(wire_count)]

        circuit_states: bytearray | list[int]
        if save_type == SAVE_TYPE_SUBASSEMBLY:
            circuit_states = [r.unpack(_I32) for _ in range(r.count())]
        else:
            circuit_states = bytearray(r.read(r.count()))

        if r.read(len(FOOTER_MAGIC)) != FOOTER_MAGIC:
            raise BlotterError("Bad footer magic")
        if not r.at_end():
            raise BlotterError("Trailing data after footer")

        logger.debug(
            "blotter_read",
            version=version,
            components=len(components),
            wires=len(wires),
        )
        return cls(
            version=version,
            game_version=game_version,
            save_type=save_type,
            mods=mods,
            component_types=component_types,
            components=components,
            wires=wires,
            circuit_states=circuit_states,
        )

    def write(self, stream: BinaryIO) -> None:
        """Serialize this save to a binary stream."""
        if self.version not in SUPPORTED_VERSIONS:
            raise BlotterError(f"Unsupported save format version {self.version}")

        w = _Writer(stream)
        w.write(HEADER_MAGIC)
        w.pack(_U8, self.version)
        w.pack(_VERSION, *self.game_version)
        w.pack(_U8, self.save_type)
        w.pack(_I32, len(self.components))
        w.pack(_I32, len(self.wires))

        w.pack(_I32, len(self.mods))
        for mod in self.mods:
            w.string(mod.mod_id)
            w.pack(_VERSION, *mod.version)

        w.pack(_I32, len(self.component_types))
        for ct in self.component_types:
            w.pack(_U16, ct.numeric_id)
            w.string(ct.text_id)

        for component in self.components:
            _write_component(w, component)
        for wire in self.wires:
            _write_wire(w, wire)

        if self.is_world:
            w.pack(_I32, len(self.circuit_states))
            w.write(bytes(self.circuit_states))
        else:
            w.pack(_I32, len(self.circuit_states))
            for state_id in self.circuit_states:
                w.pack(_I32, state_id)

        w.write(FOOTER_MAGIC)


def read_file(path: Path | str) -> BlotterFile:
    """Read a save file from disk."""
    with open(path, "rb") as f:
        return BlotterFile.read(f)


def write_file(save: BlotterFile, path: Path | str) -> None:
    """Write a save file to disk, replacing any existing file.

    The save is fully serialized before the target is touched, and the
    new bytes are swapped in with a rename, so a failed write leaves the
    old file intact.
    """
    buf = io.BytesIO()
    save.write(buf)
    path = Path(path)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(buf.getvalue())
    os.replace(tmp, path)


# ---------------------------------------------------------------------------
# Record codecs
# ---------------------------------------------------------------------------


def _read_component(r: _Reader) -> Component:
    address = r.unpack(_U32)
    parent = r.unpack(_U32)
    type_id = r.unpack(_U16)
    position = r.unpack_many(_VEC3)
    rotation = r.unpack_many(_QUAT)
    inputs = [r.unpack(_I32) for _ in range(r.count())]
    outputs = [r.unpack(_I32) for _ in range(r.count())]
    data_len = r.unpack(_I32)
    if data_len < -1:
        raise BlotterError(f"Component {address}: invalid custom data length {data_len}")
    custom_data = None if data_len == -1 else r.read(data_len)
    return Component(
        address=address,
        parent=parent,
        type_id=type_id,
        position=position,
        rotation=rotation,
        inputs=inputs,
        outputs=outputs,
        custom_data=custom_data,
    )


def _write_component(w: _Writer, component: Component) -> None:
    w.pack(_U32, component.address)
    w.pack(_U32, component.parent)
    w.pack(_U16, component.type_id)
    w.pack(_VEC3, *component.position)
    w.pack(_QUAT, *component.rotation)
    w.pack(_I32, len(component.inputs))
    for state_id in component.inputs:
        w.pack(_I32, state_id)
    w.pack(_I32, len(component.outputs))
    for state_id in component.outputs:
        w.pack(_I32, state_id)
    if component.custom_data is None:
        w.pack(_I32, -1)
    else:
        w.pack(_I32, len(component.custom_data))
        w.write(bytes(component.custom_data))


def _read_peg(r: _Reader) -> PegAddress:
    peg_type = r.unpack(_U8)
    if peg_type not in (PEG_TYPE_INPUT, PEG_TYPE_OUTPUT):
        raise BlotterError(f"Invalid peg type {peg_type}")
    return PegAddress(
        is_input=peg_type == PEG_TYPE_INPUT,
        component_address=r.unpack(_U32),
        peg_index=r.unpack(_I32),
    )


def _write_peg(w: _Writer, peg: PegAddress) -> None:
    w.pack(_U8, PEG_TYPE_INPUT if peg.is_input else PEG_TYPE_OUTPUT)
    w.pack(_U32, peg.component_address)
    w.pack(_I32, peg.peg_index)


def _read_wire(r: _Reader) -> Wire:
    start = _read_peg(r)
    end = _read_peg(r)
    return Wire(
        start=start,
        end=end,
        circuit_state_id=r.unpack(_I32),
        rotation=r.unpack(_F32),
    )


def _write_wire(w: _Writer, wire: Wire) -> None:
    _write_peg(w, wire.start)
    _write_peg(w, wire.end)
    w.pack(_I32, wire.circuit_state_id)
    w.pack(_F32, wire.rotation)


class _Reader:
    """Thin struct-based reader that turns short reads into BlotterError."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    def read(self, n: int) -> bytes:
        data = self._stream.read(n)
        if len(data) != n:
            raise BlotterError(f"Unexpected end of file (wanted {n} bytes, got {len(data)})")
        return data

    def at_end(self) -> bool:
        return not self._stream.read(1)

    def unpack(self, fmt: struct.Struct):
        return fmt.unpack(self.read(fmt.size))[0]

    def unpack_many(self, fmt: struct.Struct) -> tuple:
        return fmt.unpack(self.read(fmt.size))

    def count(self) -> int:
        n = self.unpack(_I32)
        if n < 0:
            raise BlotterError(f"Negative length {n}")
        return n

    def string(self) -> str:
        raw = self.read(self.count())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise BlotterError(f"Invalid UTF-8 string: {e}") from e


class _Writer:
    def __init__(self, stream: BinaryIO):
        self._stream = stream

    def write(self, data: bytes) -> None:
        self._stream.write(data)

    def pack(self, fmt: struct.Struct, *values) -> None:
        try:
            self._stream.write(fmt.pack(*values))
        except struct.error as e:
            raise BlotterError(f"Value out of range: {values!r}") from e

    def string(self, value: str) -> None:
        raw = value.encode("utf-8")
        self.pack(_I32, len(raw))
        self.write(raw)
