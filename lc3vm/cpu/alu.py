"""
LC-3 Virtual Machine — 16-bit ALU Helpers

Everything here is pure: values in, values out. Callers own the register
file and decide where results go and when flags are recomputed.

All results are masked to 16 bits exactly once, at the end of the
operation. Python ints never overflow, so the mask is what gives us the
same two's-complement wraparound a real 16-bit datapath has:

  add16(0x7FFF, 1)   -> 0x8000   (positive + positive wraps negative)
  add16(2, 0xFFFD)   -> 0xFFFF   (2 + -3 = -1)
"""

from ..config import WORD_MASK


def sign_extend(bits: int, bit_count: int) -> int:
    """Widen the low `bit_count` bits of `bits` to a 16-bit two's-complement word.

    If bit (bit_count - 1) is set the value is negative, so every bit
    above it is filled with ones. Otherwise the value is returned
    unchanged (already zero-filled).

        sign_extend(0b11101, 5) -> 0xFFFD   (-3)
        sign_extend(0b01101, 5) -> 0x000D   (+13)
    """
    if not 1 <= bit_count <= 16:
        raise ValueError(f"bit_count must be 1..16, got {bit_count}")
    bits &= (1 << bit_count) - 1
    if (bits >> (bit_count - 1)) & 1:
        bits |= (WORD_MASK << bit_count) & WORD_MASK
    return bits


def to_signed(word: int) -> int:
    """Interpret a 16-bit word as a signed integer (-32768..32767)."""
    word &= WORD_MASK
    return word - 0x10000 if word & 0x8000 else word


def add16(a: int, b: int) -> int:
    """Wrapping 16-bit add."""
    return (a + b) & WORD_MASK


def and16(a: int, b: int) -> int:
    return (a & b) & WORD_MASK


def not16(a: int) -> int:
    return ~a & WORD_MASK
