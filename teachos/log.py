"""Write-ahead redo log that makes multi-block file system updates atomic."""

from __future__ import annotations

import struct
from contextlib import contextmanager
from typing import Iterator

from .errors import KernelPanic
from .layout import BSIZE

_INT = struct.Struct("<i")


class Log:
    """Groups block writes of file system operations into atomic commits.

    On disk the log is a header block holding the count and home block
    numbers of the logged blocks, followed by copies of those blocks.
    A commit happens when the last outstanding operation ends.
    """

    def __init__(self, bcache, dev, superblock, logsize, maxopblocks):
        if _INT.size * (1 + logsize) >= BSIZE:
            raise KernelPanic("initlog: too big logheader")
        self.bcache = bcache
        self.dev = dev
        self.start = superblock.logstart
        self.size = superblock.nlog
        self.logsize = logsize
        self.maxopblocks = maxopblocks
        self.outstanding = 0
        self.committing = False
        self.blocks: list[int] = []
        self.recover()

    def recover(self) -> None:
        """Install any committed transaction and clear the log."""
        self._read_head()
        self._install_trans()
        self.blocks = []
        self._write_head()

    def _read_head(self) -> None:
        with self.bcache.block(self.dev, self.start) as buf:
            (n,) = _INT.unpack_from(buf.data)
            if not 0 <= n <= self.logsize:
                raise KernelPanic(f"read_head: bad log header count {n}")
            self.blocks = list(struct.unpack_from(f"<{n}i", buf.data, _INT.size))

    def _write_head(self) -> None:
        """Write the in-memory header; this is the true commit point."""
        with self.bcache.block(self.dev, self.start) as buf:
            n = len(self.blocks)
            struct.pack_into(f"<i{n}i", buf.data, 0, n, *self.blocks)
            self.bcache.write(buf)

    def _install_trans(self) -> None:
        """Copy committed blocks from the log to their home locations."""
        for tail, blockno in enumerate(self.blocks):
            lbuf = self.bcache.read(self.dev, self.start + tail + 1)
            dbuf = self.bcache.read(self.dev, blockno)
            dbuf.data[:] = lbuf.data
            self.bcache.write(dbuf)
            self.bcache.release(lbuf)
            self.bcache.release(dbuf)

    def _write_log(self) -> None:
        """Copy modified blocks from the cache into the log area."""
        for tail, blockno in enumerate(self.blocks):
            to = self.bcache.read(self.dev, self.start + tail + 1)
            src = self.bcache.read(self.dev, blockno)
            to.data[:] = src.data
            self.bcache.write(to)
            self.bcache.release(src)
            self.bcache.release(to)

    def _commit(self) -> None:
        if self.blocks:
            self._write_log()
            self._write_head()
            self._install_trans()
            self.blocks = []
            self._write_head()

    def begin_op(self) -> None:
        """Mark the start of a file system operation."""
        if self.committing:
            raise KernelPanic("begin_op: log is committing")
        needed = len(self.blocks) + (self.outstanding + 1) * self.maxopblocks
        if needed > self.logsize:
            raise KernelPanic("begin_op: log space exhausted")
        self.outstanding += 1

    def end_op(self) -> None:
        """Mark the end of an operation; commit if it was the last one."""
        if self.outstanding < 1:
            raise KernelPanic("end_op outside of trans")
        self.outstanding -= 1
        if self.committing:
            raise KernelPanic("log.committing")
        if self.outstanding == 0:
            self.committing = True
            try:
                self._commit()
            finally:
                self.committing = False

    def write(self, buf) -> None:
        """Record a modified buffer in the current transaction and pin it."""
        n = len(self.blocks)
        if n >= self.logsize or n >= self.size - 1:
            raise KernelPanic("too big a transaction")
        if self.outstanding < 1:
            raise KernelPanic("log_write outside of trans")
        if buf.blockno not in self.blocks:
            self.blocks.append(buf.blockno)
        buf.dirty = True

    @contextmanager
    def transaction(self) -> Iterator[Log]:
        """Run the enclosed block as one file system operation."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()