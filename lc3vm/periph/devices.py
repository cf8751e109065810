"""
LC-3 Virtual Machine — Memory-Mapped Keyboard / Display / Machine Control

Register map:
  xFE00  KBSR  — Keyboard status. Bit 15 = a key is waiting.
  xFE02  KBDR  — Keyboard data. Bits 7:0 = the waiting key.
  xFE04  DSR   — Display status. Bit 15 = display ready (always, here).
  xFE06  DDR   — Display data. Writing bits 7:0 prints a character.
  xFFFE  MCR   — Machine control. Bit 15 = clock enable; clearing it
                 stops the machine (the OS HALT routine does exactly this).

Polling model (matches the usual LC-3 VM): reading KBSR asks the console
whether a key is ready and, if so, reads it into KBDR immediately. A
program polls KBSR until bit 15 is set, then reads KBDR.
"""

import logging

from ..config import DDR, DSR, KBDR, KBSR, MCR, STATUS_READY

log = logging.getLogger('lc3vm.devices')


class DeviceRegisters:
    """Keyboard, display and MCR device models wired into Memory."""

    def __init__(self, console, on_halt=None):
        self.console = console
        self._on_halt = on_halt   # called when MCR bit 15 clears
        self._kbsr = 0x0000
        self._kbdr = 0x0000
        self._ddr = 0x0000
        self._mcr = STATUS_READY

    def register(self, memory):
        """Hook every device register into the memory I/O system."""
        memory.register_io_handler(KBSR, self._read_kbsr, self._write_kbsr)
        memory.register_io_handler(KBDR, self._read_kbdr, None)
        memory.register_io_handler(DSR, self._read_dsr, None)
        memory.register_io_handler(DDR, self._read_ddr, self._write_ddr)
        memory.register_io_handler(MCR, self._read_mcr, self._write_mcr)

    # --- KBSR / KBDR ---

    def _read_kbsr(self, addr: int) -> int:
        if not self._kbsr & STATUS_READY and self.console.key_ready():
            self._kbdr = self.console.read_char() & 0xFF
            self._kbsr = STATUS_READY
        return self._kbsr

    def _write_kbsr(self, addr: int, value: int):
        # Only the interrupt-enable bit (14) is software writable
        self._kbsr = (self._kbsr & STATUS_READY) | (value & 0x4000)

    def _read_kbdr(self, addr: int) -> int:
        self._kbsr &= ~STATUS_READY & 0xFFFF
        return self._kbdr

    # --- DSR / DDR ---

    def _read_dsr(self, addr: int) -> int:
        return STATUS_READY

    def _read_ddr(self, addr: int) -> int:
        return self._ddr

    def _write_ddr(self, addr: int, value: int):
        self._ddr = value & 0xFFFF
        self.console.write_char(value)
        self.console.flush()

    # --- MCR ---

    def _read_mcr(self, addr: int) -> int:
        return self._mcr

    def _write_mcr(self, addr: int, value: int):
        self._mcr = value & 0xFFFF
        if not value & STATUS_READY:
            log.info("MCR clock bit cleared")
            if self._on_halt is not None:
                self._on_halt()

    def reset(self):
        self._kbsr = 0x0000
        self._kbdr = 0x0000
        self._ddr = 0x0000
        self._mcr = STATUS_READY
