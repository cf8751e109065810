"""
LC-3 Virtual Machine — Register File + Condition Flags

Register model:
  R0–R7 — 16-bit general purpose registers
          R0 is the trap I/O register (GETC/IN/OUT/PUTS/PUTSP)
          R6 is the stack pointer by software convention only
          R7 receives the return address on JSR/JSRR/TRAP
  PC    — 16-bit program counter (address of the NEXT instruction)
  COND  — condition code, exactly one of N / Z / P:
          bit 2: N (Negative — bit 15 of the last defined register)
          bit 1: Z (Zero — last defined register == 0)
          bit 0: P (Positive — anything else)

The BR instruction's nzp mask uses the same bit layout, so a branch is
taken when (mask & COND) != 0.
"""

from ..config import PC_START, REGISTER_COUNT, WORD_MASK

# COND bit masks
FL_POS = 0b001
FL_ZRO = 0b010
FL_NEG = 0b100

FLAG_NAMES = {FL_NEG: 'N', FL_ZRO: 'Z', FL_POS: 'P'}

R7 = 7


class Registers:
    """LC-3 register file: eight GPRs, PC, COND."""

    __slots__ = ('R', 'PC', 'COND')

    def __init__(self):
        self.R: list = [0] * REGISTER_COUNT
        self.PC: int = PC_START
        self.COND: int = FL_ZRO

    def __getitem__(self, index: int) -> int:
        return self.R[index]

    def __setitem__(self, index: int, value: int):
        # Callers hand in words already truncated by the ALU
        self.R[index] = value

    # --- Condition flags ---

    def update_flags(self, index: int):
        """Recompute COND from R[index]. Overwrites whatever was there."""
        value = self.R[index]
        if value >> 15:
            self.COND = FL_NEG
        elif value == 0:
            self.COND = FL_ZRO
        else:
            self.COND = FL_POS

    @property
    def negative(self) -> bool:
        return self.COND == FL_NEG

    @property
    def zero(self) -> bool:
        return self.COND == FL_ZRO

    @property
    def positive(self) -> bool:
        return self.COND == FL_POS

    @property
    def cond_name(self) -> str:
        return FLAG_NAMES.get(self.COND, '?')

    # --- PC helpers ---

    def advance(self):
        """Step PC past the instruction just fetched (wraps at xFFFF)."""
        self.PC = (self.PC + 1) & WORD_MASK

    # --- Display ---

    def display(self) -> str:
        """One-line register dump used by the instruction trace."""
        gprs = ' '.join(f"R{i}={v:04X}" for i, v in enumerate(self.R))
        return f"{gprs} PC={self.PC:04X} COND={self.cond_name}"

    def reset(self):
        """Power-on state: GPRs cleared, PC at the user origin, Z set."""
        self.R = [0] * REGISTER_COUNT
        self.PC = PC_START
        self.COND = FL_ZRO
