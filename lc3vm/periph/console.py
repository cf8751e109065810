"""
LC-3 Virtual Machine — Host Console Capability

The machine never touches sys.stdin/sys.stdout directly. Trap routines and
the keyboard/display device registers talk to a Console object handed in
at construction, so the same program can run against:

  StdioConsole     — the process's own terminal (CLI default)
  ScriptedConsole  — a queue of canned input + captured output (tests,
                     batch runs)
  SerialConsole    — a serial line (see serial_console.py)

Characters travel as 8-bit codes. Output text is encoded as Latin-1 so
every low byte of a register maps to exactly one output byte.
"""

import io
import os
import select
import sys
from abc import ABC, abstractmethod
from collections import deque
from typing import BinaryIO, Optional

from ..config import EOF_CHAR

ENCODING = 'latin-1'


class Console(ABC):
    """Character I/O capability used by the trap routines and devices."""

    @abstractmethod
    def read_char(self) -> int:
        """Block until one character is available and return its code.

        Returns EOF_CHAR when the input stream is exhausted.
        """

    @abstractmethod
    def write(self, text: str):
        """Queue text for output (call flush() to push it out)."""

    def flush(self):
        """Push any buffered output to the host."""

    def key_ready(self) -> bool:
        """Non-blocking: is a read_char() guaranteed not to stall?"""
        return True

    def write_char(self, code: int):
        self.write(chr(code & 0xFF))


class StdioConsole(Console):
    """Console on the process's stdin/stdout (binary streams).

    Input with a file descriptor is read with os.read(), one byte at a
    time, so nothing sits in a Python-side buffer where select() cannot
    see it. In-memory streams fall back to their own read(1).
    """

    def __init__(self, stdin: Optional[BinaryIO] = None,
                 stdout: Optional[BinaryIO] = None):
        self._in = stdin if stdin is not None else sys.stdin.buffer
        self._out = stdout if stdout is not None else sys.stdout.buffer
        self._fd = self._input_fd(self._in)

    @staticmethod
    def _input_fd(stream) -> Optional[int]:
        try:
            return stream.fileno()
        except (AttributeError, io.UnsupportedOperation):
            return None

    def read_char(self) -> int:
        if self._fd is None:
            data = self._in.read(1)
        else:
            data = os.read(self._fd, 1)
        if not data:
            return EOF_CHAR
        return data[0]

    def write(self, text: str):
        self._out.write(text.encode(ENCODING, errors='replace'))

    def flush(self):
        self._out.flush()

    def key_ready(self) -> bool:
        if self._fd is None:
            # In-memory stream: a read never blocks
            return True
        readable, _, _ = select.select([self._fd], [], [], 0)
        return bool(readable)


class ScriptedConsole(Console):
    """Queue-backed console: inject input up front, inspect output after.

    Usage:
        con = ScriptedConsole(b"y")
        machine = LC3Machine(console=con)
        ...
        assert con.output == "Enter a character: y"
    """

    def __init__(self, input: bytes = b""):
        self._rx_queue: deque = deque()
        self.tx_buffer: bytearray = bytearray()
        self.flushes = 0
        self.inject(input)

    def inject(self, data):
        """Append characters (bytes or str) to the pending input."""
        if isinstance(data, str):
            data = data.encode(ENCODING)
        for byte in data:
            self._rx_queue.append(byte & 0xFF)

    def read_char(self) -> int:
        if not self._rx_queue:
            return EOF_CHAR
        return self._rx_queue.popleft()

    def write(self, text: str):
        self.tx_buffer.extend(text.encode(ENCODING, errors='replace'))

    def flush(self):
        self.flushes += 1

    def key_ready(self) -> bool:
        return bool(self._rx_queue)

    @property
    def pending_input(self) -> int:
        return len(self._rx_queue)

    @property
    def output(self) -> str:
        """Everything written so far, decoded back to text."""
        return self.tx_buffer.decode(ENCODING)

    def reset(self):
        self._rx_queue.clear()
        self.tx_buffer.clear()
        self.flushes = 0
