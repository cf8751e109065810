"""
Object image (.obj) loader tests.
"""

import struct

import pytest

from lc3vm import ImageError, LC3Machine, ObjectImage, ScriptedConsole, StopReason
from lc3vm.loader import load_image, read_image
from lc3vm.mem.memory import Memory

from lc3_asm import HALT, LEA, PUTS, string_words


def obj_bytes(origin, words):
    return struct.pack(f'>{len(words) + 1}H', origin, *words)


class TestReadImage:

    def test_big_endian_words(self):
        image = read_image(b"\x30\x00\x12\x34\xAB\xCD")
        assert image.origin == 0x3000
        assert image.words == [0x1234, 0xABCD]
        assert image.end == 0x3001

    def test_origin_only(self):
        image = read_image(b"\x40\x00")
        assert image.origin == 0x4000
        assert image.words == []

    def test_to_bytes_matches_file_format(self):
        image = ObjectImage(0x3000, [0xF025])
        assert image.to_bytes() == b"\x30\x00\xF0\x25"

    def test_from_path(self, tmp_path):
        path = tmp_path / "prog.obj"
        path.write_bytes(obj_bytes(0x3000, [HALT]))
        assert read_image(path).words == [HALT]
        assert read_image(str(path)).origin == 0x3000

    @pytest.mark.parametrize("data", [b"", b"\x30"])
    def test_too_short(self, data):
        with pytest.raises(ImageError, match="too short"):
            read_image(data)

    def test_odd_length(self):
        with pytest.raises(ImageError, match="odd length"):
            read_image(b"\x30\x00\xF0")

    def test_runs_past_end_of_memory(self):
        with pytest.raises(ImageError, match="past the end"):
            read_image(obj_bytes(0xFFFF, [1, 2]))

    def test_fills_to_last_cell(self):
        image = read_image(obj_bytes(0xFFFE, [1, 2]))
        assert image.end == 0xFFFF

    def test_image_error_is_value_error(self):
        with pytest.raises(ValueError):
            read_image(b"")

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            read_image(tmp_path / "nope.obj")


class TestLoadImage:

    def test_copies_at_origin(self):
        mem = Memory()
        load_image(mem, obj_bytes(0x4000, [7, 8, 9]))
        assert [mem.read(0x4000 + i) for i in range(3)] == [7, 8, 9]
        assert mem.read(0x3FFF) == 0
        assert mem.read(0x4003) == 0

    def test_later_images_overlay(self):
        mem = Memory()
        load_image(mem, obj_bytes(0x3000, [1, 1, 1]))
        load_image(mem, obj_bytes(0x3001, [2]))
        assert [mem.read(0x3000 + i) for i in range(3)] == [1, 2, 1]

    def test_machine_runs_loaded_image(self, tmp_path):
        path = tmp_path / "hello.obj"
        path.write_bytes(obj_bytes(0x3000, [LEA(0, 2), PUTS, HALT]
                                   + string_words("Hello")))
        con = ScriptedConsole()
        vm = LC3Machine(console=con)
        image = vm.load_image(path)
        assert image.origin == 0x3000
        assert vm.run() == StopReason.HALT
        assert con.output == "HelloHALT\n"
