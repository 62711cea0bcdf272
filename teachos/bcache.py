"""Buffer cache: cached, locked copies of disk blocks kept in LRU order."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from .errors import KernelPanic
from .layout import BSIZE

NBUF = 30


@dataclass(eq=False)
class Buf:
    """A cached disk block."""

    dev: int = 0
    blockno: int = 0
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))
    valid: bool = False
    dirty: bool = False
    refcnt: int = 0
    locked: bool = False


class BufferCache:
    """Fixed pool of buffers, most recently used first."""

    def __init__(self, disk, nbuf=NBUF):
        self.disk = disk
        self._lru: list[Buf] = [Buf() for _ in range(nbuf)]

    @staticmethod
    def _lock(buf: Buf) -> None:
        if buf.locked:
            raise KernelPanic(f"acquiresleep: block {buf.blockno} already locked")
        buf.locked = True

    def _get(self, dev: int, blockno: int) -> Buf:
        for buf in self._lru:
            if buf.dev == dev and buf.blockno == blockno:
                buf.refcnt += 1
                self._lock(buf)
                return buf
        # A dirty buffer is pinned by the log even with no references.
        for buf in reversed(self._lru):
            if buf.refcnt == 0 and not buf.dirty:
                buf.dev = dev
                buf.blockno = blockno
                buf.valid = False
                buf.dirty = False
                buf.refcnt = 1
                self._lock(buf)
                return buf
        raise KernelPanic("bget: no buffers")

    def _sync(self, buf: Buf) -> None:
        if not buf.locked:
            raise KernelPanic("iderw: buf not locked")
        if buf.valid and not buf.dirty:
            raise KernelPanic("iderw: nothing to do")
        if buf.dev != self.disk.dev:
            raise KernelPanic(f"iderw: request not for disk {self.disk.dev}")
        if buf.dirty:
            self.disk.write_block(buf.blockno, bytes(buf.data))
            buf.dirty = False
        else:
            buf.data[:] = self.disk.read_block(buf.blockno)
        buf.valid = True

    def read(self, dev, blockno) -> Buf:
        """Return a locked buffer holding the block's contents."""
        buf = self._get(dev, blockno)
        if not buf.valid:
            self._sync(buf)
        return buf

    def write(self, buf) -> None:
        """Write a locked buffer's contents to disk."""
        if not buf.locked:
            raise KernelPanic("bwrite")
        buf.dirty = True
        self._sync(buf)

    def release(self, buf) -> None:
        """Unlock a buffer and, when unreferenced, make it most recently used."""
        if not buf.locked:
            raise KernelPanic("brelse")
        buf.locked = False
        buf.refcnt -= 1
        if buf.refcnt == 0:
            self._lru.remove(buf)
            self._lru.insert(0, buf)

    @contextmanager
    def block(self, dev, blockno) -> Iterator[Buf]:
        """Read a block and release it when the block exits."""
        buf = self.read(dev, blockno)
        try:
            yield buf
        finally:
            self.release(buf)