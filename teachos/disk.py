"""A disk held entirely in memory."""

from __future__ import annotations

from .errors import KernelPanic
from .layout import BSIZE


class MemDisk:
    """Block device backed by an in-memory image."""

    def __init__(self, image, dev=1):
        self._data = bytearray(image)
        self.dev = dev
        self.nblocks = len(self._data) // BSIZE

    def _offset(self, blockno: int) -> int:
        if not 0 <= blockno < self.nblocks:
            raise KernelPanic("iderw: block out of range")
        return blockno * BSIZE

    def read_block(self, blockno) -> bytes:
        off = self._offset(blockno)
        return bytes(self._data[off:off + BSIZE])

    def write_block(self, blockno, data) -> None:
        off = self._offset(blockno)
        if len(data) != BSIZE:
            raise ValueError(f"block must be {BSIZE} bytes, got {len(data)}")
        self._data[off:off + BSIZE] = data

    def image(self) -> bytes:
        """Return a copy of the whole disk image."""
        return bytes(self._data)