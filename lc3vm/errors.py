"""
LC-3 Virtual Machine — Exceptions

There is exactly one kind of machine fault: an instruction the machine
cannot execute (RTI, the reserved opcode, or a TRAP to an unassigned
vector). Faults are fatal. The machine stops where it is and nothing
after the faulting instruction runs.
"""

from typing import Optional


class MachineFault(Exception):
    """Fatal fault raised by the executor.

    pc   — address the faulting instruction was fetched from
    word — the raw instruction word
    """

    def __init__(self, message: str, pc: Optional[int] = None,
                 word: Optional[int] = None):
        super().__init__(message)
        self.pc = pc
        self.word = word

    def __str__(self) -> str:
        text = super().__str__()
        if self.pc is not None:
            text = f"x{self.pc:04X}: {text}"
        return text


class IllegalInstruction(MachineFault):
    """RTI or RES executed."""


class UnknownTrap(MachineFault):
    """TRAP with a vector that has no routine behind it."""

    def __init__(self, vector: int, pc: Optional[int] = None,
                 word: Optional[int] = None):
        super().__init__(f"unknown trap vector x{vector:02X}", pc, word)
        self.vector = vector


class MachineStopped(RuntimeError):
    """step()/run() called on a machine that has halted or faulted."""
