"""
LC-3 Virtual Machine — TRAP Service Routines

TRAP x20–x25 are the LC-3 "system calls". On real hardware they vector
through the table at x0000–x00FF into OS code; here the routines run on
the host and talk to the machine's Console:

  x20  GETC   read one character into R0 (no echo)
  x21  OUT    write R0[7:0]
  x22  PUTS   write the zero-terminated string of one-char-per-word at R0
  x23  IN     prompt, read one character, echo it, leave it in R0
  x24  PUTSP  write the zero-terminated string of two-chars-per-word at R0
  x25  HALT   print a notice and stop the machine

R7 already holds the return address when a routine runs, and PC is left
pointing at the instruction after the TRAP, so execution simply continues
there. Every routine that produces output flushes before returning.
String routines read memory with peek(), so a string running into the
device page does not latch keystrokes or trigger other device reads.
"""

import logging

from .config import EOF_CHAR, HALT_MESSAGE, IN_PROMPT, WORD_MASK
from .cpu.decoder import TRAP_NAMES
from .errors import UnknownTrap

log = logging.getLogger('lc3vm.traps')

TRAP_GETC = 0x20
TRAP_OUT = 0x21
TRAP_PUTS = 0x22
TRAP_IN = 0x23
TRAP_PUTSP = 0x24
TRAP_HALT = 0x25


class TrapRoutines:
    """Trap dispatcher bound to one machine."""

    def __init__(self, machine):
        self.machine = machine
        self._dispatch = {
            TRAP_GETC: self._trap_getc,
            TRAP_OUT: self._trap_out,
            TRAP_PUTS: self._trap_puts,
            TRAP_IN: self._trap_in,
            TRAP_PUTSP: self._trap_putsp,
            TRAP_HALT: self._trap_halt,
        }

    @property
    def vectors(self):
        return sorted(self._dispatch)

    def dispatch(self, vector: int):
        """Run the routine for `vector`; unknown vectors are fatal."""
        vector &= 0xFF
        routine = self._dispatch.get(vector)
        if routine is None:
            m = self.machine
            raise UnknownTrap(vector, pc=m.last_pc, word=m.last_word)
        log.debug(f"TRAP x{vector:02X} {TRAP_NAMES[vector]}")
        routine()

    # ── Input ──

    def _trap_getc(self):
        regs = self.machine.regs
        regs[0] = self.machine.console.read_char()
        regs.update_flags(0)

    def _trap_in(self):
        console = self.machine.console
        regs = self.machine.regs
        console.write(IN_PROMPT)
        console.flush()
        char = console.read_char()
        if char != EOF_CHAR:
            console.write_char(char)
            console.flush()
        regs[0] = char
        regs.update_flags(0)

    # ── Output ──

    def _trap_out(self):
        console = self.machine.console
        console.write_char(self.machine.regs[0])
        console.flush()

    def _trap_puts(self):
        mem = self.machine.mem
        addr = self.machine.regs[0]
        chars = []
        word = mem.peek(addr)
        while word:
            chars.append(chr(word & 0xFF))
            addr = (addr + 1) & WORD_MASK
            word = mem.peek(addr)
        self._emit(''.join(chars))

    def _trap_putsp(self):
        mem = self.machine.mem
        addr = self.machine.regs[0]
        chars = []
        while True:
            word = mem.peek(addr)
            low, high = word & 0xFF, word >> 8
            if not low:
                break
            chars.append(chr(low))
            if not high:
                break
            chars.append(chr(high))
            addr = (addr + 1) & WORD_MASK
        self._emit(''.join(chars))

    def _trap_halt(self):
        self._emit(HALT_MESSAGE)
        self.machine.halt()

    def _emit(self, text: str):
        console = self.machine.console
        console.write(text)
        console.flush()
