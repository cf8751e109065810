# LC-3 Virtual Machine: software model of the LC-3 16-bit educational ISA
#
# Layout mirrors the hardware:
#   cpu/regs.py      R0–R7, PC, COND (N/Z/P)
#   cpu/decoder.py   16-bit word → Instruction, disassembler
#   cpu/alu.py       sign extension + wrapping 16-bit arithmetic
#   mem/memory.py    64K words, device register routing, watchpoints
#   periph/          host console (stdio / scripted / serial) + KBSR/DDR/MCR
#   traps.py         TRAP x20–x25 service routines
#   emu.py           fetch-decode-execute loop
#   loader.py        .obj image reader
#   cli.py           `lc3vm` command

__version__ = "0.1.0"

from .emu import LC3Machine, StopReason
from .errors import IllegalInstruction, MachineFault, MachineStopped, UnknownTrap
from .loader import ImageError, ObjectImage, load_image, read_image
from .periph.console import Console, ScriptedConsole, StdioConsole

__all__ = [
    "LC3Machine", "StopReason",
    "MachineFault", "IllegalInstruction", "UnknownTrap", "MachineStopped",
    "ImageError", "ObjectImage", "load_image", "read_image",
    "Console", "ScriptedConsole", "StdioConsole",
]
