"""
LC-3 Virtual Machine — Machine / Host Configuration
====================================================

Fixed machine parameters plus the host-side defaults the CLI can override.
Device register addresses follow the LC-3 ISA memory map:

  x0000–x00FF  Trap vector table
  x0100–x01FF  Interrupt vector table (unused here)
  x0200–x2FFF  Operating system / supervisor space
  x3000–xFDFF  User program space
  xFE00–xFFFF  Device registers
"""

# =============================================================================
#  MACHINE
# =============================================================================
WORD_MASK = 0xFFFF
MEMORY_SIZE = 1 << 16     # 65536 sixteen-bit cells
REGISTER_COUNT = 8        # R0–R7
PC_START = 0x3000         # Conventional user program origin

# =============================================================================
#  DEVICE REGISTERS (memory-mapped)
# =============================================================================
KBSR = 0xFE00             # Keyboard status, bit 15 = key ready
KBDR = 0xFE02             # Keyboard data, bits 7:0 = last key
DSR  = 0xFE04             # Display status, bit 15 = display ready
DDR  = 0xFE06             # Display data, write bits 7:0 to console
MCR  = 0xFFFE             # Machine control, clearing bit 15 stops the clock

STATUS_READY = 0x8000     # Bit 15 in KBSR / DSR / MCR

# =============================================================================
#  TRAP ROUTINE TEXT
# =============================================================================
IN_PROMPT = "Enter a character: "
HALT_MESSAGE = "HALT\n"

# Value handed to GETC/IN when the host input stream is exhausted. This is
# getchar()'s EOF (-1) seen through a 16-bit register.
EOF_CHAR = 0xFFFF

# =============================================================================
#  HOST DEFAULTS
# =============================================================================
DEFAULT_BAUD = 9600
SERIAL_TIMEOUT = None     # Blocking reads, like a terminal
