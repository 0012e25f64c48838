"""Tests for the Blotter save-file codec."""

import io
import struct

import pytest
from conftest import make_save, save_bytes

from lwvideo.blotter import (
    FOOTER_MAGIC,
    HEADER_MAGIC,
    SAVE_TYPE_SUBASSEMBLY,
    BlotterError,
    BlotterFile,
    PegAddress,
    read_file,
    write_file,
)


def _read(data: bytes) -> BlotterFile:
    return BlotterFile.read(io.BytesIO(data))


class TestHeader:
    def test_starts_with_magic_and_version(self):
        data = save_bytes(make_save())
        assert data.startswith(HEADER_MAGIC)
        assert data[16] == 6
        assert struct.unpack_from("<4i", data, 17) == (0, 91, 1, 0)
        assert data[33] == 1  # world

    def test_counts_derived_from_lists(self):
        save = make_save()
        data = save_bytes(save)
        assert struct.unpack_from("<ii", data, 34) == (3, 1)

        save.components.pop()
        data = save_bytes(save)
        assert struct.unpack_from("<ii", data, 34) == (2, 1)

    def test_ends_with_footer(self):
        assert save_bytes(make_save()).endswith(FOOTER_MAGIC)

    def test_bad_magic_raises(self):
        data = save_bytes(make_save())
        with pytest.raises(BlotterError, match="header magic"):
            _read(b"Logic World SAVE" + data[16:])

    def test_unsupported_version_raises(self):
        data = bytearray(save_bytes(make_save()))
        data[16] = 5
        with pytest.raises(BlotterError, match="Unsupported save format version 5"):
            _read(bytes(data))

    def test_write_rejects_unsupported_version(self):
        with pytest.raises(BlotterError, match="Unsupported"):
            save_bytes(make_save(version=7))


class TestRoundtrip:
    def test_unmodified_file_is_byte_identical(self):
        original = save_bytes(make_save())
        assert save_bytes(_read(original)) == original

    def test_fields_survive(self):
        save = _read(save_bytes(make_save()))
        assert save.game_version == (0, 91, 1, 0)
        assert [m.mod_id for m in save.mods] == ["MHG"]
        assert save.mods[0].version == (0, 91, 0, 0)
        assert save.component_type_ids()["MHG.Delayer"] == 2

        inverter = save.components[1]
        assert inverter.address == 2
        assert inverter.parent == 1
        assert inverter.inputs == [1]
        assert inverter.outputs == [2]
        assert inverter.position == pytest.approx((0.15, 0.15, 0.15))
        assert inverter.custom_data is None

        wire = save.wires[0]
        assert wire.start == PegAddress(is_input=False, component_address=2, peg_index=0)
        assert wire.end.is_input
        assert wire.rotation == 0.5
        assert save.circuit_states == bytearray([0b10])

    def test_empty_custom_data_distinct_from_none(self):
        save = make_save()
        save.components[2].custom_data = b""
        parsed = _read(save_bytes(save))
        assert parsed.components[2].custom_data == b""
        assert parsed.components[1].custom_data is None

    def test_unicode_strings(self):
        save = make_save()
        save.mods[0].mod_id = "Mödpack"
        assert _read(save_bytes(save)).mods[0].mod_id == "Mödpack"

    def test_subassembly_states_are_id_list(self):
        save = make_save(save_type=SAVE_TYPE_SUBASSEMBLY, circuit_states=[2, 7])
        parsed = _read(save_bytes(save))
        assert not parsed.is_world
        assert parsed.circuit_states == [2, 7]

    def test_file_helpers(self, tmp_path):
        path = tmp_path / "data.logicworld"
        write_file(make_save(), path)
        assert read_file(path).max_address() == 3

    def test_failed_write_keeps_existing_file(self, tmp_path):
        path = tmp_path / "data.logicworld"
        write_file(make_save(), path)
        original = path.read_bytes()

        with pytest.raises(BlotterError, match="Unsupported"):
            write_file(make_save(version=7), path)
        assert path.read_bytes() == original
        assert [p.name for p in tmp_path.iterdir()] == ["data.logicworld"]

    def test_out_of_range_value_keeps_existing_file(self, tmp_path):
        path = tmp_path / "data.logicworld"
        write_file(make_save(), path)
        original = path.read_bytes()

        save = make_save()
        save.components[0].address = 2**32
        with pytest.raises(BlotterError, match="out of range"):
            write_file(save, path)
        assert path.read_bytes() == original


class TestMalformed:
    def test_truncated_raises(self):
        data = save_bytes(make_save())
        with pytest.raises(BlotterError, match="Unexpected end of file"):
            _read(data[:-20])

    def test_bad_footer_raises(self):
        data = save_bytes(make_save())
        with pytest.raises(BlotterError, match="footer"):
            _read(data[:-16] + b"x" * 16)

    def test_bad_peg_type_raises(self):
        save = make_save()
        data = bytearray(save_bytes(save))
        # The only wire (26 bytes) sits just before the circuit states
        offset = len(data) - len(FOOTER_MAGIC) - len(save.circuit_states) - 4 - 26
        assert data[offset] == 2  # start peg is an output
        data[offset] = 9
        with pytest.raises(BlotterError, match="Invalid peg type 9"):
            _read(bytes(data))

    def test_trailing_bytes_raise(self):
        data = save_bytes(make_save())
        with pytest.raises(BlotterError, match="Trailing data"):
            _read(data + b"\x00")

    def test_empty_stream_raises(self):
        with pytest.raises(BlotterError):
            _read(b"")


class TestHelpers:
    def test_max_address_and_state(self):
        save = make_save()
        assert save.max_address() == 3
        assert save.max_circuit_state() == 2

    def test_max_on_empty_save_is_zero(self):
        save = BlotterFile()
        assert save.max_address() == 0
        assert save.max_circuit_state() == 0

    def test_resize_pads_with_zeros(self):
        save = make_save()
        save.resize_circuit_states(20)
        assert save.circuit_states == bytearray([0b10, 0, 0])

    def test_resize_truncates(self):
        save = make_save(circuit_states=bytearray(b"\xff" * 4))
        save.resize_circuit_states(8)
        assert save.circuit_states == bytearray([0xFF])

    def test_resize_ignores_subassembly(self):
        save = make_save(save_type=SAVE_TYPE_SUBASSEMBLY, circuit_states=[1])
        save.resize_circuit_states(100)
        assert save.circuit_states == [1]

    def test_summary(self):
        summary = make_save().summary()
        assert summary["version"] == 6
        assert summary["game_version"] == "0.91.1.0"
        assert summary["save_type"] == "WORLD"
        assert summary["components"] == 3
        assert summary["wires"] == 1
        assert "MHG.ChubbySocket" in summary["component_types"]
