"""Open file table: reference-counted files over pipes and inodes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import KernelPanic
from .fs import Inode, Stat
from .layout import BSIZE
from .pipe import Pipe

NFILE = 100
MAXOPBLOCKS = 10


class FileKind(Enum):
    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class File:
    """An open file: one end of a pipe or an inode with an offset."""

    kind: FileKind = FileKind.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0


class FileTable:
    """Fixed pool of open files shared by all processes."""

    def __init__(self, fs, nfile=NFILE, maxopblocks=MAXOPBLOCKS):
        self.fs = fs
        self._files = [File() for _ in range(nfile)]
        # Inode, indirect block, allocation blocks and two blocks of slop
        # for unaligned writes must fit in one log transaction.
        self.max_write = ((maxopblocks - 1 - 1 - 2) // 2) * BSIZE
        if self.max_write <= 0:
            raise ValueError(f"maxopblocks too small: {maxopblocks}")

    def alloc(self) -> File:
        """Take a free file structure; raise OSError when the table is full."""
        for f in self._files:
            if f.ref == 0:
                f.ref = 1
                return f
        raise OSError("file table full")

    def dup(self, f) -> File:
        if f.ref < 1:
            raise KernelPanic("filedup")
        f.ref += 1
        return f

    def close(self, f) -> None:
        """Drop a reference; release the pipe end or inode on the last one."""
        if f.ref < 1:
            raise KernelPanic("fileclose")
        f.ref -= 1
        if f.ref > 0:
            return
        kind, pipe, ip, writable = f.kind, f.pipe, f.ip, f.writable
        f.kind = FileKind.NONE
        f.pipe = None
        f.ip = None
        f.off = 0
        if kind is FileKind.PIPE:
            pipe.close(writable)
        elif kind is FileKind.INODE:
            with self.fs.log.transaction():
                self.fs.iput(ip)

    def stat(self, f) -> Stat:
        if f.kind is not FileKind.INODE:
            raise OSError("stat: not an inode file")
        self.fs.ilock(f.ip)
        try:
            return self.fs.stat(f.ip)
        finally:
            self.fs.iunlock(f.ip)

    def read(self, f, n) -> bytes:
        if not f.readable:
            raise PermissionError("file not open for reading")
        if f.kind is FileKind.PIPE:
            return f.pipe.read(n)
        if f.kind is FileKind.INODE:
            self.fs.ilock(f.ip)
            try:
                data = self.fs.readi(f.ip, f.off, n)
                f.off += len(data)
            finally:
                self.fs.iunlock(f.ip)
            return data
        raise KernelPanic("fileread")

    def write(self, f, data) -> int:
        """Write all of ``data``, a few blocks per log transaction for inodes."""
        if not f.writable:
            raise PermissionError("file not open for writing")
        if f.kind is FileKind.PIPE:
            return f.pipe.write(data)
        if f.kind is FileKind.INODE:
            data = bytes(data)
            written = 0
            while written < len(data):
                chunk = data[written:written + self.max_write]
                with self.fs.log.transaction():
                    self.fs.ilock(f.ip)
                    try:
                        r = self.fs.writei(f.ip, f.off, chunk)
                        f.off += r
                    finally:
                        self.fs.iunlock(f.ip)
                if r != len(chunk):
                    raise KernelPanic("short filewrite")
                written += r
            return len(data)
        raise KernelPanic("filewrite")

    def open_inode(self, ip, readable, writable) -> File:
        """Open a referenced inode; the file takes over the reference."""
        f = self.alloc()
        f.kind = FileKind.INODE
        f.ip = ip
        f.off = 0
        f.readable = bool(readable)
        f.writable = bool(writable)
        return f

    def pipe(self) -> tuple[File, File]:
        """Create a pipe; return its read file and its write file."""
        rf = self.alloc()
        try:
            wf = self.alloc()
        except OSError:
            self.close(rf)
            raise
        p = Pipe()
        rf.kind = wf.kind = FileKind.PIPE
        rf.pipe = wf.pipe = p
        rf.readable, rf.writable = True, False
        wf.readable, wf.writable = False, True
        return rf, wf