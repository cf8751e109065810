"""
LC-3 Virtual Machine — Serial Line Console

Attaches the machine's keyboard/display to a serial port instead of the
local terminal, so a program can be driven from a terminal emulator on
another host (or a USB-serial adapter looped back for testing).

Line settings: 8N1, blocking reads (GETC/IN wait as long as it takes),
writes flushed per trap call like the stdio console.
"""

import logging
from typing import List, Optional

import serial
import serial.tools.list_ports

from ..config import DEFAULT_BAUD, EOF_CHAR, SERIAL_TIMEOUT
from .console import ENCODING, Console

log = logging.getLogger('lc3vm.serial')


class SerialConsole(Console):
    """Console over a pyserial port.

    Usage:
        con = SerialConsole('/dev/ttyUSB0', 115200)
        if con.open():
            machine = LC3Machine(console=con)
            ...
            con.close()

    An already-open serial object (e.g. serial.serial_for_url('loop://'))
    can be passed as `ser` instead of a port name.
    """

    def __init__(self, port: Optional[str] = None, baud: int = DEFAULT_BAUD,
                 ser: Optional[serial.SerialBase] = None):
        self.port = port
        self.baud = baud
        self.ser: Optional[serial.SerialBase] = ser

    # -------------------------------------------------------------------------
    # Port Management
    # -------------------------------------------------------------------------

    @staticmethod
    def scan_ports() -> List[str]:
        """Device names of every serial port the OS reports."""
        return [p.device for p in serial.tools.list_ports.comports()]

    def open(self) -> bool:
        """Open the port (8N1). Returns False if it cannot be opened."""
        if self.is_connected:
            return True
        if self.port is None:
            log.error("No serial port given")
            return False

        try:
            self.ser = serial.Serial(
                port=self.port,
                baudrate=self.baud,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=SERIAL_TIMEOUT,
            )
            log.info(f"Opened {self.port} @ {self.baud} baud (8N1)")
            return True
        except serial.SerialException as e:
            log.error(f"Failed to open {self.port}: {e}")
            return False

    def close(self):
        if self.ser and self.ser.is_open:
            self.ser.close()
            log.info(f"Closed {self.port or self.ser.name}")
        self.ser = None

    @property
    def is_connected(self) -> bool:
        return self.ser is not None and self.ser.is_open

    def __enter__(self):
        if not self.open():
            raise serial.SerialException(f"could not open {self.port}")
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # -------------------------------------------------------------------------
    # Console interface
    # -------------------------------------------------------------------------

    def read_char(self) -> int:
        data = self.ser.read(1)
        if not data:
            # Only reachable with a finite timeout or a closed line
            return EOF_CHAR
        return data[0]

    def write(self, text: str):
        self.ser.write(text.encode(ENCODING, errors='replace'))

    def flush(self):
        self.ser.flush()

    def key_ready(self) -> bool:
        return self.ser.in_waiting > 0
