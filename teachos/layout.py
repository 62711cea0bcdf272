"""On-disk file system format: constants and packed structures."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar

ROOTINO = 1
BSIZE = 512

NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT

DIRSIZ = 14

# Bitmap bits per block.
BPB = BSIZE * 8


class FileType(IntEnum):
    """Inode types; zero marks a free inode."""

    DIR = 1
    FILE = 2
    DEV = 3


@dataclass
class Superblock:
    """Describes the disk layout."""

    size: int = 0
    nblocks: int = 0
    ninodes: int = 0
    nlog: int = 0
    logstart: int = 0
    inodestart: int = 0
    bmapstart: int = 0

    FORMAT: ClassVar[struct.Struct] = struct.Struct("<7I")
    SIZE: ClassVar[int] = FORMAT.size

    def pack(self) -> bytes:
        return self.FORMAT.pack(
            self.size,
            self.nblocks,
            self.ninodes,
            self.nlog,
            self.logstart,
            self.inodestart,
            self.bmapstart,
        )

    @classmethod
    def unpack(cls, data) -> Superblock:
        if len(data) < cls.SIZE:
            raise ValueError(f"superblock needs {cls.SIZE} bytes, got {len(data)}")
        return cls(*cls.FORMAT.unpack_from(data))


def _zero_addrs() -> list[int]:
    return [0] * (NDIRECT + 1)


@dataclass
class Dinode:
    """On-disk inode."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=_zero_addrs)

    FORMAT: ClassVar[struct.Struct] = struct.Struct(f"<4hI{NDIRECT + 1}I")
    SIZE: ClassVar[int] = FORMAT.size

    def pack(self) -> bytes:
        if len(self.addrs) != NDIRECT + 1:
            raise ValueError(f"inode needs {NDIRECT + 1} addresses, got {len(self.addrs)}")
        return self.FORMAT.pack(
            self.type, self.major, self.minor, self.nlink, self.size, *self.addrs
        )

    @classmethod
    def unpack(cls, data) -> Dinode:
        if len(data) < cls.SIZE:
            raise ValueError(f"inode needs {cls.SIZE} bytes, got {len(data)}")
        type_, major, minor, nlink, size, *addrs = cls.FORMAT.unpack_from(data)
        return cls(type_, major, minor, nlink, size, list(addrs))


# Inodes per block.
IPB = BSIZE // Dinode.SIZE


@dataclass
class Dirent:
    """Directory entry; an inum of zero marks a free slot."""

    inum: int = 0
    name: str = ""

    FORMAT: ClassVar[struct.Struct] = struct.Struct(f"<H{DIRSIZ}s")
    SIZE: ClassVar[int] = FORMAT.size

    def pack(self) -> bytes:
        # struct pads with NULs and truncates, like strncpy into a fixed field.
        return self.FORMAT.pack(self.inum, self.name.encode("utf-8")[:DIRSIZ])

    @classmethod
    def unpack(cls, data) -> Dirent:
        if len(data) < cls.SIZE:
            raise ValueError(f"directory entry needs {cls.SIZE} bytes, got {len(data)}")
        inum, raw = cls.FORMAT.unpack_from(data)
        name = raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")
        return cls(inum, name)


def iblock(inum, sb):
    """Block holding inode ``inum``."""
    return inum // IPB + sb.inodestart


def bblock(b, sb):
    """Bitmap block holding the bit for block ``b``."""
    return b // BPB + sb.bmapstart