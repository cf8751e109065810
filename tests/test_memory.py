"""
Memory and device register tests.
"""

import pytest

from lc3vm import LC3Machine, ScriptedConsole, StopReason
from lc3vm.config import DDR, DSR, KBDR, KBSR, MCR, STATUS_READY
from lc3vm.mem.memory import Memory

from lc3_asm import BR, HALT, LDI, STI, N, NZP, Z, make_vm


class TestMemory:

    def test_size_and_initial_contents(self):
        mem = Memory()
        assert len(mem) == 65536
        assert mem.read(0x0000) == 0
        assert mem.read(0xFFFF) == 0

    def test_read_write(self):
        mem = Memory()
        mem.write(0x3000, 0xBEEF)
        assert mem.read(0x3000) == 0xBEEF

    def test_values_masked_to_16_bits(self):
        mem = Memory()
        mem.write(0x4000, 0x12345)
        assert mem.read(0x4000) == 0x2345

    def test_address_wraps(self):
        mem = Memory()
        mem.write(0x10000, 7)
        assert mem.read(0x0000) == 7

    def test_load_words(self):
        mem = Memory()
        mem.load_words([1, 2, 3], 0xFFFE)
        assert mem.peek(0xFFFE) == 1
        assert mem.peek(0xFFFF) == 2
        assert mem.peek(0x0000) == 3

    def test_clear(self):
        mem = Memory()
        mem.write(0x3000, 5)
        mem.clear()
        assert mem.read(0x3000) == 0


class TestIOHandlers:

    def test_handler_outside_device_page_rejected(self):
        mem = Memory()
        with pytest.raises(ValueError):
            mem.register_io_handler(0x3000, lambda addr: 0)

    def test_read_handler(self):
        mem = Memory()
        mem.register_io_handler(0xFE10, lambda addr: 0x1_0042)
        assert mem.read(0xFE10) == 0x0042
        assert mem.peek(0xFE10) == 0

    def test_write_handler_sees_value_and_cell_updates(self):
        seen = []
        mem = Memory()
        mem.register_io_handler(0xFE12, None, lambda addr, v: seen.append((addr, v)))
        mem.write(0xFE12, 0xAB)
        assert seen == [(0xFE12, 0xAB)]
        assert mem.read(0xFE12) == 0xAB

    def test_unregistered_device_address_is_ram(self):
        mem = Memory()
        mem.write(0xFE20, 99)
        assert mem.read(0xFE20) == 99


class TestWatchpoints:

    def test_watchpoint_fires(self):
        hits = []
        mem = Memory()
        mem.write(0x4000, 1)
        mem.add_watchpoint(0x4000, lambda a, old, new: hits.append((a, old, new)))
        mem.write(0x4000, 2)
        mem.write(0x4001, 3)
        assert hits == [(0x4000, 1, 2)]

    def test_remove_watchpoint(self):
        hits = []
        cb = lambda a, old, new: hits.append(new)
        mem = Memory()
        mem.add_watchpoint(0x4000, cb)
        mem.remove_watchpoint(0x4000, cb)
        mem.write(0x4000, 1)
        assert hits == []

    def test_load_words_bypasses_watchpoints(self):
        hits = []
        mem = Memory()
        mem.add_watchpoint(0x3000, lambda a, old, new: hits.append(new))
        mem.load_words([5], 0x3000)
        assert hits == []

    def test_store_instruction_triggers_watchpoint(self):
        hits = []
        vm, _ = make_vm([STI(1, 1), HALT, 0x5000])
        vm.mem.add_watchpoint(0x5000, lambda a, old, new: hits.append(new))
        vm.regs[1] = 0x0BAD
        vm.run()
        assert hits == [0x0BAD]


class TestSnapshots:

    def test_diff(self):
        mem = Memory()
        before = mem.snapshot(0x3000, 0x3003)
        mem.write(0x3001, 0xAAAA)
        mem.write(0x3003, 0xBBBB)
        after = mem.snapshot(0x3000, 0x3003)
        assert len(before) == 4
        assert Memory.diff_snapshots(before, after, 0x3000) == {
            0x3001: (0, 0xAAAA),
            0x3003: (0, 0xBBBB),
        }

    def test_hexdump(self):
        mem = Memory()
        mem.load_words([ord('H'), ord('i'), 0x1234], 0x3000)
        dump = mem.hexdump(0x3000, 16)
        lines = dump.splitlines()
        assert len(lines) == 2
        assert lines[0] == ("x3000  0048 0069 1234 0000 0000 0000 0000 0000  "
                            "Hi......")
        assert lines[1].startswith("x3008  ")


class TestDeviceRegisters:

    def test_display_always_ready(self):
        vm, _ = make_vm()
        assert vm.mem.read(DSR) == STATUS_READY

    def test_ddr_write_prints(self):
        vm, con = make_vm()
        vm.mem.write(DDR, ord('Z'))
        assert con.output == "Z"
        assert con.flushes == 1
        assert vm.mem.read(DDR) == ord('Z')

    def test_kbsr_idle_without_input(self):
        vm, _ = make_vm()
        assert vm.mem.read(KBSR) == 0

    def test_keyboard_poll_then_read(self):
        vm, con = make_vm(keys=b"k")
        assert vm.mem.read(KBSR) == STATUS_READY
        assert con.pending_input == 0          # latched into KBDR
        assert vm.mem.read(KBSR) == STATUS_READY
        assert vm.mem.read(KBDR) == ord('k')
        assert vm.mem.read(KBSR) == 0

    def test_keys_are_latched_one_at_a_time(self):
        vm, con = make_vm(keys=b"ab")
        vm.mem.read(KBSR)
        assert con.pending_input == 1
        assert vm.mem.read(KBDR) == ord('a')
        vm.mem.read(KBSR)
        assert vm.mem.read(KBDR) == ord('b')

    def test_mcr_clear_halts(self):
        vm, _ = make_vm([STI(0, 1), BR(NZP, -2), MCR])
        vm.regs[0] = 0x0000
        assert vm.mem.read(MCR) == STATUS_READY
        assert vm.run(max_instructions=10) == StopReason.HALT
        assert vm.instructions == 1

    def test_polling_program(self):
        """Busy-wait on KBSR, then copy KBDR to DDR, like the OS GETC/OUT"""
        vm, con = make_vm([
            LDI(0, 5),          # x3000 R0 = M[KBSR]
            BR(Z, -2),          # x3001 not ready → x3000
            LDI(0, 4),          # x3002 R0 = M[KBDR]
            STI(0, 4),          # x3003 M[DDR] = R0
            HALT,               # x3004
            0,                  # x3005
            KBSR,               # x3006
            KBDR,               # x3007
            DDR,                # x3008
        ], keys=b"!")
        assert vm.run(max_instructions=50) == StopReason.HALT
        assert con.output == "!HALT\n"

    def test_kbsr_not_ready_loops(self):
        vm, _ = make_vm([LDI(0, 1), BR(N | Z, -2), KBSR])
        assert vm.run(max_instructions=20) == StopReason.TIMEOUT

    def test_reset_restores_devices(self):
        vm, _ = make_vm(keys=b"a")
        vm.mem.read(KBSR)
        vm.mem.write(MCR, 0)
        vm.reset()
        assert vm.running
        assert vm.mem.read(MCR) == STATUS_READY

    def test_devices_disabled(self):
        con = ScriptedConsole(b"a")
        vm = LC3Machine(console=con, devices=False)
        vm.mem.write(DDR, ord('Z'))
        assert con.output == ""
        assert vm.mem.read(KBSR) == 0
        assert con.pending_input == 1
