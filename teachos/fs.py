"""File system: block allocation, inodes, directories and path names."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Callable

from .errors import KernelPanic
from .layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    Dinode,
    Dirent,
    FileType,
    Superblock,
    bblock,
    iblock,
)

NINODE = 50
NDEV = 10

_UINT = struct.Struct("<I")


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode plus cache bookkeeping."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    locked: bool = False
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))


@dataclass
class Stat:
    """Metadata about an inode."""

    dev: int
    ino: int
    type: int
    nlink: int
    size: int


@dataclass
class _Device:
    read: Callable | None
    write: Callable | None


def skipelem(path):
    """Split off the first element of ``path``.

    Return ``(name, rest)`` where ``rest`` has no leading slashes and
    ``name`` is cut to DIRSIZ characters, or None if no element is left.
    """
    path = path.lstrip("/")
    if not path:
        return None
    elem, _, rest = path.partition("/")
    return elem[:DIRSIZ], rest.lstrip("/")


def namecmp(s, t) -> int:
    """Compare two directory entry names over at most DIRSIZ bytes."""
    a = s.encode("utf-8")[:DIRSIZ]
    b = t.encode("utf-8")[:DIRSIZ]
    return (a > b) - (a < b)


class FileSystem:
    """Inodes, their contents, directories and path lookup on one device."""

    def __init__(self, bcache, dev, log, ninode=NINODE):
        self.bcache = bcache
        self.dev = dev
        self.log = log
        self._icache = [Inode() for _ in range(ninode)]
        self._devsw: dict[int, _Device] = {}
        with bcache.block(dev, 1) as buf:
            self.sb = Superblock.unpack(buf.data)

    def register_device(self, major, read, write) -> None:
        """Install read and write handlers for a device major number."""
        if not 0 <= major < NDEV:
            raise ValueError(f"device major out of range: {major}")
        self._devsw[major] = _Device(read, write)

    # Blocks.

    def _bzero(self, bno: int) -> None:
        with self.bcache.block(self.dev, bno) as buf:
            buf.data[:] = bytes(BSIZE)
            self.log.write(buf)

    def _take_free_bit(self, buf, base: int) -> int | None:
        for bi in range(min(BPB, self.sb.size - base)):
            m = 1 << (bi % 8)
            if not buf.data[bi // 8] & m:
                buf.data[bi // 8] |= m
                self.log.write(buf)
                return base + bi
        return None

    def _balloc(self) -> int:
        for base in range(0, self.sb.size, BPB):
            with self.bcache.block(self.dev, bblock(base, self.sb)) as buf:
                found = self._take_free_bit(buf, base)
            if found is not None:
                self._bzero(found)
                return found
        raise KernelPanic("balloc: out of blocks")

    def _bfree(self, b: int) -> None:
        with self.bcache.block(self.dev, bblock(b, self.sb)) as buf:
            bi = b % BPB
            m = 1 << (bi % 8)
            if not buf.data[bi // 8] & m:
                raise KernelPanic("freeing free block")
            buf.data[bi // 8] &= ~m & 0xFF
            self.log.write(buf)

    # Inodes.

    def _dinode_offset(self, inum: int) -> int:
        return (inum % IPB) * Dinode.SIZE

    def ialloc(self, type) -> Inode:
        """Allocate an on-disk inode of ``type``; return it referenced but unlocked."""
        for inum in range(1, self.sb.ninodes):
            with self.bcache.block(self.dev, iblock(inum, self.sb)) as buf:
                off = self._dinode_offset(inum)
                din = Dinode.unpack(buf.data[off:off + Dinode.SIZE])
                if din.type != 0:
                    continue
                buf.data[off:off + Dinode.SIZE] = Dinode(type=int(type)).pack()
                self.log.write(buf)
            return self.iget(inum)
        raise KernelPanic("ialloc: no inodes")

    def iupdate(self, ip) -> None:
        """Copy a modified in-memory inode to disk."""
        with self.bcache.block(ip.dev, iblock(ip.inum, self.sb)) as buf:
            off = self._dinode_offset(ip.inum)
            din = Dinode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs))
            buf.data[off:off + Dinode.SIZE] = din.pack()
            self.log.write(buf)

    def iget(self, inum) -> Inode:
        """Find or create the cache entry for ``inum``; neither locks nor reads it."""
        empty = None
        for ip in self._icache:
            if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                ip.ref += 1
                return ip
            if empty is None and ip.ref == 0:
                empty = ip
        if empty is None:
            raise KernelPanic("iget: no inodes")
        empty.dev = self.dev
        empty.inum = inum
        empty.ref = 1
        empty.valid = False
        return empty

    def idup(self, ip) -> Inode:
        ip.ref += 1
        return ip

    def ilock(self, ip) -> None:
        """Lock the inode, reading it from disk if necessary."""
        if ip is None or ip.ref < 1:
            raise KernelPanic("ilock")
        if ip.locked:
            raise KernelPanic(f"ilock: inode {ip.inum} already locked")
        ip.locked = True
        if not ip.valid:
            with self.bcache.block(ip.dev, iblock(ip.inum, self.sb)) as buf:
                off = self._dinode_offset(ip.inum)
                din = Dinode.unpack(buf.data[off:off + Dinode.SIZE])
            ip.type = din.type
            ip.major = din.major
            ip.minor = din.minor
            ip.nlink = din.nlink
            ip.size = din.size
            ip.addrs = list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                raise KernelPanic("ilock: no type")

    def iunlock(self, ip) -> None:
        if ip is None or not ip.locked or ip.ref < 1:
            raise KernelPanic("iunlock")
        ip.locked = False

    def iput(self, ip) -> None:
        """Drop a reference; free the inode on disk if it was the last and unlinked.

        Must run inside a transaction in case it frees the inode.
        """
        if ip.locked:
            raise KernelPanic(f"iput: inode {ip.inum} is locked")
        ip.locked = True
        try:
            if ip.valid and ip.nlink == 0 and ip.ref == 1:
                self._itrunc(ip)
                ip.type = 0
                self.iupdate(ip)
                ip.valid = False
        finally:
            ip.locked = False
        ip.ref -= 1

    def iunlockput(self, ip) -> None:
        self.iunlock(ip)
        self.iput(ip)

    def _bmap(self, ip: Inode, bn: int) -> int:
        """Disk block of the ``bn``th block of ``ip``, allocated on demand."""
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc()
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc()
            with self.bcache.block(ip.dev, ip.addrs[NDIRECT]) as buf:
                (addr,) = _UINT.unpack_from(buf.data, bn * _UINT.size)
                if addr == 0:
                    addr = self._balloc()
                    _UINT.pack_into(buf.data, bn * _UINT.size, addr)
                    self.log.write(buf)
            return addr
        raise KernelPanic("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i in range(NDIRECT):
            if ip.addrs[i]:
                self._bfree(ip.addrs[i])
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self.bcache.block(ip.dev, ip.addrs[NDIRECT]) as buf:
                entries = struct.unpack_from(f"<{NINDIRECT}I", buf.data)
            for addr in entries:
                if addr:
                    self._bfree(addr)
            self._bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stat(self, ip) -> Stat:
        return Stat(ip.dev, ip.inum, ip.type, ip.nlink, ip.size)

    def _device(self, ip: Inode, op: str) -> Callable:
        dev = self._devsw.get(ip.major)
        handler = getattr(dev, op) if dev is not None else None
        if handler is None:
            raise OSError(f"no {op} handler for device major {ip.major}")
        return handler

    def readi(self, ip, off, n) -> bytes:
        """Read up to ``n`` bytes at ``off``; fewer if the file ends first."""
        if ip.type == FileType.DEV:
            return self._device(ip, "read")(ip, n)
        if off < 0 or n < 0 or off > ip.size:
            raise ValueError(f"read at offset {off} past end of inode {ip.inum}")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            with self.bcache.block(ip.dev, self._bmap(ip, off // BSIZE)) as buf:
                start = off % BSIZE
                m = min(n - len(out), BSIZE - start)
                out += buf.data[start:start + m]
            off += m
        return bytes(out)

    def writei(self, ip, off, data) -> int:
        """Write ``data`` at ``off``, growing the file; return the byte count."""
        if ip.type == FileType.DEV:
            return self._device(ip, "write")(ip, data)
        data = bytes(data)
        n = len(data)
        if off < 0 or off > ip.size:
            raise ValueError(f"write at offset {off} past end of inode {ip.inum}")
        if off + n > MAXFILE * BSIZE:
            raise ValueError("write exceeds maximum file size")
        pos = 0
        while pos < n:
            with self.bcache.block(ip.dev, self._bmap(ip, off // BSIZE)) as buf:
                start = off % BSIZE
                m = min(n - pos, BSIZE - start)
                buf.data[start:start + m] = data[pos:pos + m]
                self.log.write(buf)
            pos += m
            off += m
        if n > 0 and off > ip.size:
            ip.size = off
            self.iupdate(ip)
        return n

    # Directories.

    def _entries(self, dp: Inode, what: str):
        for off in range(0, dp.size, Dirent.SIZE):
            raw = self.readi(dp, off, Dirent.SIZE)
            if len(raw) != Dirent.SIZE:
                raise KernelPanic(f"{what} read")
            yield off, Dirent.unpack(raw)

    def dirlookup(self, dp, name):
        """Find ``name`` in directory ``dp``; return ``(inode, offset)`` or None."""
        if dp.type != FileType.DIR:
            raise KernelPanic("dirlookup not DIR")
        for off, de in self._entries(dp, "dirlookup"):
            if de.inum != 0 and namecmp(name, de.name) == 0:
                return self.iget(de.inum), off
        return None

    def dirlink(self, dp, name, inum) -> None:
        """Add the entry ``(name, inum)`` to directory ``dp``."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(f"{name!r} already exists")
        off = next(
            (o for o, de in self._entries(dp, "dirlink") if de.inum == 0), dp.size
        )
        if self.writei(dp, off, Dirent(inum, name).pack()) != Dirent.SIZE:
            raise KernelPanic("dirlink")

    # Paths.

    def _namex(self, path: str, cwd, parent: bool):
        if path.startswith("/"):
            ip = self.iget(ROOTINO)
        else:
            if cwd is None:
                raise ValueError("relative path needs a current directory")
            ip = self.idup(cwd)
        name = ""
        rest = path
        while (elem := skipelem(rest)) is not None:
            name, rest = elem
            self.ilock(ip)
            if ip.type != FileType.DIR:
                self.iunlockput(ip)
                raise NotADirectoryError(path)
            if parent and rest == "":
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            self.iunlockput(ip)
            if found is None:
                raise FileNotFoundError(path)
            ip = found[0]
        if parent:
            self.iput(ip)
            raise FileNotFoundError(path)
        return ip, name

    def namei(self, path, cwd=None) -> Inode:
        """Return the referenced, unlocked inode named by ``path``."""
        return self._namex(path, cwd, False)[0]

    def nameiparent(self, path, cwd=None) -> tuple[Inode, str]:
        """Return the parent directory of ``path`` and its final element."""
        return self._namex(path, cwd, True)