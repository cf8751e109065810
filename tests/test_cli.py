"""
CLI tests: run .obj images end to end through main().
"""

import argparse

import pytest

from lc3vm.cli import main, parse_int_arg
from lc3vm.loader import ObjectImage

from lc3_asm import (
    BR, GETC, HALT, LEA, NZP, OUT, PUTS, RES, ADDi, string_words,
)


@pytest.fixture
def write_obj(tmp_path):
    def _write(words, origin=0x3000, name="prog.obj"):
        path = tmp_path / name
        path.write_bytes(ObjectImage(origin, list(words)).to_bytes())
        return str(path)
    return _write


@pytest.fixture
def empty_input(tmp_path):
    path = tmp_path / "empty.txt"
    path.write_bytes(b"")
    return str(path)


class TestParseIntArg:

    @pytest.mark.parametrize("text, value", [
        ("x3000", 0x3000), ("X3000", 0x3000), ("0x3000", 0x3000),
        ("12288", 12288), (" x1F ", 0x1F),
    ])
    def test_formats(self, text, value):
        assert parse_int_arg(text) == value

    @pytest.mark.parametrize("text", ["", "xZZ", "three"])
    def test_rejects(self, text):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_int_arg(text)


class TestMain:

    def test_hello(self, write_obj, empty_input, capsys):
        image = write_obj([LEA(0, 2), PUTS, HALT] + string_words("Hello"))
        assert main([image, "--input", empty_input]) == 0
        assert capsys.readouterr().out == "HelloHALT\n"

    def test_input_file_feeds_keyboard(self, write_obj, tmp_path, capsys):
        keys = tmp_path / "keys.txt"
        keys.write_bytes(b"ok")
        image = write_obj([GETC, OUT, GETC, OUT, HALT])
        assert main([image, "-i", str(keys)]) == 0
        assert capsys.readouterr().out == "okHALT\n"

    def test_fault_exit_code(self, write_obj, empty_input, capsys):
        image = write_obj([RES])
        assert main([image, "--input", empty_input]) == 1
        assert "lc3vm: x3000: illegal opcode RES" in capsys.readouterr().err

    def test_timeout_exit_code(self, write_obj, empty_input, capsys):
        image = write_obj([BR(NZP, -1)])
        code = main([image, "--input", empty_input, "--max-instructions", "10"])
        assert code == 3
        assert "stopped (TIMEOUT)" in capsys.readouterr().err

    def test_breakpoint_exit_code(self, write_obj, empty_input, capsys):
        image = write_obj([ADDi(0, 0, 1), ADDi(0, 0, 1), HALT])
        code = main([image, "--input", empty_input, "--break", "x3001"])
        assert code == 4
        assert "R0=0001" in capsys.readouterr().err

    def test_start_address(self, write_obj, empty_input, capsys):
        image = write_obj([LEA(0, 2), PUTS, HALT] + string_words("hi"),
                          origin=0x4000)
        assert main([image, "--input", empty_input, "--pc", "x4000"]) == 0
        assert capsys.readouterr().out == "hiHALT\n"

    def test_later_image_overlays(self, write_obj, empty_input, capsys):
        first = write_obj([LEA(0, 2), PUTS, HALT] + string_words("aa"),
                          name="a.obj")
        second = write_obj([ord('b')], origin=0x3004, name="b.obj")
        assert main([first, second, "--input", empty_input]) == 0
        assert capsys.readouterr().out == "abHALT\n"

    def test_trace_file(self, write_obj, empty_input, tmp_path, capsys):
        trace = tmp_path / "trace.txt"
        image = write_obj([ADDi(1, 1, 2), HALT])
        assert main([image, "--input", empty_input, "--trace", str(trace)]) == 0
        lines = trace.read_text().splitlines()
        assert lines[0].startswith("x3000: ADD R1, R1, #2")
        assert "TRAP x25 (HALT)" in lines[1]

    def test_log_file(self, write_obj, empty_input, tmp_path, capsys):
        log_file = tmp_path / "run.log"
        image = write_obj([HALT])
        assert main([image, "--input", empty_input,
                     "--log-file", str(log_file)]) == 0
        text = log_file.read_text()
        assert "lc3vm.loader | Loaded 1 words at x3000-x3000" in text
        assert "Machine halted at x3000" in text


class TestMainErrors:

    def test_no_images(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main([])
        assert excinfo.value.code == 2

    def test_input_and_serial_conflict(self, write_obj, empty_input):
        image = write_obj([HALT])
        with pytest.raises(SystemExit) as excinfo:
            main([image, "--input", empty_input, "--serial", "/dev/null"])
        assert excinfo.value.code == 2

    def test_bad_address(self, write_obj):
        with pytest.raises(SystemExit) as excinfo:
            main([write_obj([HALT]), "--pc", "nowhere"])
        assert excinfo.value.code == 2

    def test_malformed_image(self, tmp_path, empty_input, capsys):
        bad = tmp_path / "bad.obj"
        bad.write_bytes(b"\x30\x00\xF0")
        assert main([str(bad), "--input", empty_input]) == 2
        assert "odd length" in capsys.readouterr().err

    def test_missing_image(self, tmp_path, empty_input, capsys):
        assert main([str(tmp_path / "none.obj"), "--input", empty_input]) == 2
        assert capsys.readouterr().err.startswith("lc3vm: ")

    def test_missing_input_file(self, write_obj, tmp_path, capsys):
        image = write_obj([HALT])
        assert main([image, "--input", str(tmp_path / "none.txt")]) == 2

    def test_serial_port_unavailable(self, write_obj, capsys):
        image = write_obj([HALT])
        assert main([image, "--serial", "/dev/lc3vm-no-such-port"]) == 2
        assert "cannot open serial port" in capsys.readouterr().err

    def test_list_ports(self, capsys):
        assert main(["--list-ports"]) == 0
