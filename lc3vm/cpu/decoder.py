"""
LC-3 Virtual Machine — Instruction Decoder / Disassembler

Every LC-3 instruction is one 16-bit word. Bits 15:12 are the opcode; the
remaining twelve bits are laid out per opcode:

  BR    0000 n z p PCoffset9
  ADD   0001 DR SR1 0 00 SR2      |  0001 DR SR1 1 imm5
  LD    0010 DR PCoffset9
  ST    0011 SR PCoffset9
  JSR   0100 1 PCoffset11         |  JSRR 0100 0 00 BaseR 000000
  AND   0101 DR SR1 0 00 SR2      |  0101 DR SR1 1 imm5
  LDR   0110 DR BaseR offset6
  STR   0111 SR BaseR offset6
  RTI   1000 000000000000         (no supervisor mode here — illegal)
  NOT   1001 DR SR 111111
  LDI   1010 DR PCoffset9
  STI   1011 SR PCoffset9
  JMP   1100 000 BaseR 000000     (RET is JMP R7)
  RES   1101 ------------         (reserved — illegal)
  LEA   1110 DR PCoffset9
  TRAP  1111 0000 trapvect8

decode() pulls the fields out once and sign-extends immediates and
offsets, so the executor never touches a bit mask.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from .alu import sign_extend, to_signed


class Opcode(IntEnum):
    BR = 0x0
    ADD = 0x1
    LD = 0x2
    ST = 0x3
    JSR = 0x4
    AND = 0x5
    LDR = 0x6
    STR = 0x7
    RTI = 0x8
    NOT = 0x9
    LDI = 0xA
    STI = 0xB
    JMP = 0xC
    RES = 0xD
    LEA = 0xE
    TRAP = 0xF


# Trap vector names, shared with the trap dispatcher and the disassembler
TRAP_NAMES = {
    0x20: 'GETC',
    0x21: 'OUT',
    0x22: 'PUTS',
    0x23: 'IN',
    0x24: 'PUTSP',
    0x25: 'HALT',
}


@dataclass(frozen=True)
class Instruction:
    """One decoded instruction word.

    Only the fields meaningful for `opcode` are set; the rest stay None.
    `imm` and `offset` are already sign-extended to 16-bit words.
    Stores (ST/STI/STR) carry the register being written out in `sr`.
    """
    opcode: Opcode
    word: int
    dr: Optional[int] = None        # destination register
    sr: Optional[int] = None        # store source register
    sr1: Optional[int] = None
    sr2: Optional[int] = None
    base: Optional[int] = None      # base register (LDR/STR/JMP/JSRR)
    imm_flag: Optional[bool] = None
    imm: Optional[int] = None       # sext(imm5)
    offset: Optional[int] = None    # sext(PCoffset9 / PCoffset11 / offset6)
    cond: Optional[int] = None      # BR nzp mask
    link: Optional[bool] = None     # JSR (True) vs JSRR (False)
    vector: Optional[int] = None    # TRAP vector

    @property
    def mnemonic(self) -> str:
        if self.opcode == Opcode.JSR and self.link is False:
            return 'JSRR'
        if self.opcode == Opcode.JMP and self.base == 7:
            return 'RET'
        return self.opcode.name


def _dr(word: int) -> int:
    return (word >> 9) & 0x7


def _sr1(word: int) -> int:
    return (word >> 6) & 0x7


def decode(word: int) -> Instruction:
    """Split a 16-bit instruction word into its opcode and operand fields."""
    word &= 0xFFFF
    op = Opcode(word >> 12)

    if op in (Opcode.ADD, Opcode.AND):
        imm_flag = bool((word >> 5) & 1)
        if imm_flag:
            return Instruction(op, word, dr=_dr(word), sr1=_sr1(word),
                               imm_flag=True, imm=sign_extend(word & 0x1F, 5))
        return Instruction(op, word, dr=_dr(word), sr1=_sr1(word),
                           imm_flag=False, sr2=word & 0x7)

    if op == Opcode.BR:
        return Instruction(op, word, cond=(word >> 9) & 0x7,
                           offset=sign_extend(word & 0x1FF, 9))

    if op in (Opcode.LD, Opcode.LDI, Opcode.LEA):
        return Instruction(op, word, dr=_dr(word),
                           offset=sign_extend(word & 0x1FF, 9))

    if op in (Opcode.ST, Opcode.STI):
        return Instruction(op, word, sr=_dr(word),
                           offset=sign_extend(word & 0x1FF, 9))

    if op == Opcode.LDR:
        return Instruction(op, word, dr=_dr(word), base=_sr1(word),
                           offset=sign_extend(word & 0x3F, 6))

    if op == Opcode.STR:
        return Instruction(op, word, sr=_dr(word), base=_sr1(word),
                           offset=sign_extend(word & 0x3F, 6))

    if op == Opcode.JSR:
        if (word >> 11) & 1:
            return Instruction(op, word, link=True,
                               offset=sign_extend(word & 0x7FF, 11))
        return Instruction(op, word, link=False, base=_sr1(word))

    if op == Opcode.NOT:
        return Instruction(op, word, dr=_dr(word), sr1=_sr1(word))

    if op == Opcode.JMP:
        return Instruction(op, word, base=_sr1(word))

    if op == Opcode.TRAP:
        return Instruction(op, word, vector=word & 0xFF)

    # RTI / RES carry no operands
    return Instruction(op, word)


# ──────────────────────────────────────────────
# Disassembly
# ──────────────────────────────────────────────

def _target(address: Optional[int], offset: int) -> str:
    """Branch/load target: absolute if we know where the word lives."""
    if address is None:
        return f"#{to_signed(offset)}"
    return f"x{(address + 1 + offset) & 0xFFFF:04X}"


def format_instruction(inst: Instruction, address: Optional[int] = None) -> str:
    """Render a decoded instruction as LC-3 assembly text.

    `address` is where the word sits in memory; PC-relative operands are
    shown as absolute addresses when it is given.
    """
    op = inst.opcode

    if op in (Opcode.ADD, Opcode.AND):
        src2 = f"#{to_signed(inst.imm)}" if inst.imm_flag else f"R{inst.sr2}"
        return f"{op.name} R{inst.dr}, R{inst.sr1}, {src2}"

    if op == Opcode.BR:
        if inst.cond == 0:
            return f"NOP x{inst.word:04X}"
        flags = ''.join(c for c, bit in (('n', 4), ('z', 2), ('p', 1))
                        if inst.cond & bit)
        return f"BR{flags} {_target(address, inst.offset)}"

    if op in (Opcode.LD, Opcode.LDI, Opcode.LEA):
        return f"{op.name} R{inst.dr}, {_target(address, inst.offset)}"

    if op in (Opcode.ST, Opcode.STI):
        return f"{op.name} R{inst.sr}, {_target(address, inst.offset)}"

    if op == Opcode.LDR:
        return f"LDR R{inst.dr}, R{inst.base}, #{to_signed(inst.offset)}"

    if op == Opcode.STR:
        return f"STR R{inst.sr}, R{inst.base}, #{to_signed(inst.offset)}"

    if op == Opcode.JSR:
        if inst.link:
            return f"JSR {_target(address, inst.offset)}"
        return f"JSRR R{inst.base}"

    if op == Opcode.NOT:
        return f"NOT R{inst.dr}, R{inst.sr1}"

    if op == Opcode.JMP:
        return "RET" if inst.base == 7 else f"JMP R{inst.base}"

    if op == Opcode.TRAP:
        name = TRAP_NAMES.get(inst.vector)
        text = f"TRAP x{inst.vector:02X}"
        return f"{text} ({name})" if name else text

    return op.name


def disassemble(word: int, address: Optional[int] = None) -> str:
    """Decode and format a single instruction word."""
    return format_instruction(decode(word), address)
