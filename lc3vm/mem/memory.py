"""
LC-3 Virtual Machine — 64K-word Memory with Device Register Routing

The LC-3 address space is 65536 cells of 16 bits each (word-addressed,
not byte-addressed). Everything is plain RAM except the device register
page at xFE00–xFFFF, where reads/writes can be intercepted by handlers
that peripheral models register at start-up:

  xFE00  KBSR   keyboard status
  xFE02  KBDR   keyboard data
  xFE04  DSR    display status
  xFE06  DDR    display data
  xFFFE  MCR    machine control

An address with no handler registered behaves as ordinary storage, even
inside the device page.
"""

from array import array
from typing import Callable, Dict, Iterable, List, Optional

from ..config import MEMORY_SIZE, WORD_MASK

DEVICE_PAGE_START = 0xFE00


class Memory:
    """Flat 64K x 16-bit memory.

    Reads and writes to registered device addresses are routed to
    callbacks; write watchpoints fire on every write to a watched cell,
    device or not.
    """

    def __init__(self):
        self._mem = array('H', bytes(2 * MEMORY_SIZE))

        # Device handlers: addr → read_fn(addr) -> int / write_fn(addr, value)
        self._io_read_handlers: Dict[int, Callable] = {}
        self._io_write_handlers: Dict[int, Callable] = {}

        # Watchpoints: addr → [callback(addr, old_val, new_val)]
        self._watchpoints: Dict[int, List[Callable]] = {}

    def __len__(self) -> int:
        return MEMORY_SIZE

    # --- Core read/write ---

    def read(self, addr: int) -> int:
        """Read one word. Device addresses with a handler go to the handler."""
        addr &= WORD_MASK
        if addr >= DEVICE_PAGE_START and addr in self._io_read_handlers:
            return self._io_read_handlers[addr](addr) & WORD_MASK
        return self._mem[addr]

    def write(self, addr: int, value: int):
        """Write one word, notifying watchpoints and device handlers."""
        addr &= WORD_MASK
        value &= WORD_MASK
        old = self._mem[addr]

        if addr in self._watchpoints:
            for cb in self._watchpoints[addr]:
                cb(addr, old, value)

        # Raw cell is always updated so a dump shows the last value written
        self._mem[addr] = value
        if addr >= DEVICE_PAGE_START and addr in self._io_write_handlers:
            self._io_write_handlers[addr](addr, value)

    def peek(self, addr: int) -> int:
        """Read the raw cell, bypassing device handlers (debugger view)."""
        return self._mem[addr & WORD_MASK]

    # --- Bulk load ---

    def load_words(self, words: Iterable[int], origin: int):
        """Copy a block of words into memory starting at `origin`.

        Bypasses device handlers and watchpoints. Used by the image loader.
        """
        for i, word in enumerate(words):
            self._mem[(origin + i) & WORD_MASK] = word & WORD_MASK

    def clear(self):
        for addr in range(MEMORY_SIZE):
            self._mem[addr] = 0

    # --- Device handler registration ---

    def register_io_handler(self, addr: int,
                            read_fn: Optional[Callable] = None,
                            write_fn: Optional[Callable] = None):
        """Register read/write handlers for a device register address.

        Args:
            addr: device register address (xFE00–xFFFF)
            read_fn: Callable(addr) -> int (16-bit value)
            write_fn: Callable(addr, value) -> None
        """
        if addr < DEVICE_PAGE_START or addr > WORD_MASK:
            raise ValueError(f"x{addr:04X} is outside the device page")
        if read_fn:
            self._io_read_handlers[addr] = read_fn
        if write_fn:
            self._io_write_handlers[addr] = write_fn

    # --- Watchpoints ---

    def add_watchpoint(self, addr: int, callback: Callable):
        """Call callback(addr, old_val, new_val) on every write to addr."""
        self._watchpoints.setdefault(addr & WORD_MASK, []).append(callback)

    def remove_watchpoint(self, addr: int, callback: Optional[Callable] = None):
        """Remove a watchpoint. If callback is None, removes all on that addr."""
        addr &= WORD_MASK
        if addr in self._watchpoints:
            if callback is None:
                del self._watchpoints[addr]
            else:
                self._watchpoints[addr] = [
                    cb for cb in self._watchpoints[addr] if cb != callback
                ]

    # --- Snapshots ---

    def snapshot(self, start: int, end: int) -> List[int]:
        """Copy of cells start..end (inclusive) for later diffing."""
        return list(self._mem[start:end + 1])

    @staticmethod
    def diff_snapshots(snap_a: List[int], snap_b: List[int],
                       base_addr: int = 0) -> Dict[int, tuple]:
        """Compare two snapshots, return {addr: (old, new)} for changes."""
        changes = {}
        for i in range(min(len(snap_a), len(snap_b))):
            if snap_a[i] != snap_b[i]:
                changes[base_addr + i] = (snap_a[i], snap_b[i])
        return changes

    # --- Hex dump ---

    def hexdump(self, start: int, length: int = 64) -> str:
        """Eight words per line, with the low byte of each shown as ASCII."""
        lines = []
        for offset in range(0, length, 8):
            addr = (start + offset) & WORD_MASK
            cells = [self._mem[(addr + i) & WORD_MASK] for i in range(8)]
            hex_words = ' '.join(f'{w:04X}' for w in cells)
            ascii_chars = ''.join(
                chr(w) if 0x20 <= w < 0x7F else '.' for w in cells
            )
            lines.append(f'x{addr:04X}  {hex_words}  {ascii_chars}')
        return '\n'.join(lines)
