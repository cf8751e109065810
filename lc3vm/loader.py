"""
LC-3 Virtual Machine — Object Image Loader

An LC-3 .obj file (as written by lc3as / laser / most course toolchains)
is a flat sequence of big-endian 16-bit words:

  word 0      origin — address the first content word is loaded at
  word 1..n   contents, loaded at origin, origin+1, ...

The machine itself never reads files; this module turns a file (or raw
bytes) into words and drops them into Memory.
"""

import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

from .config import MEMORY_SIZE

log = logging.getLogger('lc3vm.loader')


class ImageError(ValueError):
    """Object image is malformed."""


@dataclass
class ObjectImage:
    origin: int
    words: List[int] = field(default_factory=list)

    @property
    def end(self) -> int:
        """Address of the last content word (origin - 1 if empty)."""
        return self.origin + len(self.words) - 1

    def to_bytes(self) -> bytes:
        """Serialize back to .obj format."""
        return struct.pack(f'>{len(self.words) + 1}H', self.origin, *self.words)


def read_image(source: Union[str, Path, bytes, bytearray]) -> ObjectImage:
    """Parse an object image from a path or from raw bytes."""
    if isinstance(source, (str, Path)):
        data = Path(source).read_bytes()
        name = str(source)
    else:
        data = bytes(source)
        name = '<bytes>'

    if len(data) < 2:
        raise ImageError(f"{name}: image too short to hold an origin word")
    if len(data) % 2:
        raise ImageError(f"{name}: odd length ({len(data)} bytes); "
                         f"images are made of 16-bit words")

    count = len(data) // 2
    origin, *words = struct.unpack(f'>{count}H', data)

    if origin + len(words) > MEMORY_SIZE:
        raise ImageError(f"{name}: {len(words)} words at x{origin:04X} "
                         f"run past the end of memory")

    log.debug(f"{name}: origin x{origin:04X}, {len(words)} words")
    return ObjectImage(origin, words)


def load_image(memory, source) -> ObjectImage:
    """Read an image and copy it into `memory` at its origin."""
    image = read_image(source)
    memory.load_words(image.words, image.origin)
    log.info(f"Loaded {len(image.words)} words at "
             f"x{image.origin:04X}-x{image.end & 0xFFFF:04X}")
    return image
