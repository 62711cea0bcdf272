"""Build a file system image holding a root directory and some files."""

from __future__ import annotations

import argparse
import os
import struct
import sys

from .layout import (
    BPB,
    BSIZE,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    Dinode,
    Dirent,
    FileType,
    Superblock,
    iblock,
)

FSSIZE = 1000
LOGSIZE = 30
NINODES = 200

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """Lays out an empty file system and appends files to its root directory.

    Layout: boot block, superblock, log, inode blocks, free bitmap, data.
    """

    def __init__(self, fssize=FSSIZE, ninodes=NINODES, nlog=LOGSIZE):
        self.nbitmap = fssize // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nlog = nlog
        self.nmeta = 2 + nlog + self.ninodeblocks + self.nbitmap
        self.nblocks = fssize - self.nmeta
        if self.nblocks <= 0:
            raise ValueError(f"file system of {fssize} blocks has no room for data")
        self.sb = Superblock(
            size=fssize,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=nlog,
            logstart=2,
            inodestart=2 + nlog,
            bmapstart=2 + nlog + self.ninodeblocks,
        )
        self._image = bytearray(fssize * BSIZE)
        self.freeinode = 1
        self.freeblock = self.nmeta
        self._finished = False
        self._wsect(1, self.sb.pack())

        self.rootino = self.ialloc(FileType.DIR)
        if self.rootino != ROOTINO:
            raise AssertionError("root inode is not ROOTINO")
        self.iappend(self.rootino, Dirent(self.rootino, ".").pack())
        self.iappend(self.rootino, Dirent(self.rootino, "..").pack())

    def _wsect(self, sec: int, data) -> None:
        block = bytes(data).ljust(BSIZE, b"\0")
        self._image[sec * BSIZE:(sec + 1) * BSIZE] = block

    def _rsect(self, sec: int) -> bytearray:
        return bytearray(self._image[sec * BSIZE:(sec + 1) * BSIZE])

    def _take_block(self) -> int:
        if self.freeblock >= self.sb.size:
            raise ValueError("out of data blocks")
        blockno = self.freeblock
        self.freeblock += 1
        return blockno

    def ialloc(self, type) -> int:
        """Allocate the next inode with the given type and one link."""
        if self.freeinode >= self.sb.ninodes:
            raise ValueError("out of inodes")
        inum = self.freeinode
        self.freeinode += 1
        self.winode(inum, Dinode(type=int(type), nlink=1, size=0))
        return inum

    def rinode(self, inum) -> Dinode:
        bn = iblock(inum, self.sb)
        off = (inum % IPB) * Dinode.SIZE
        return Dinode.unpack(self._rsect(bn)[off:off + Dinode.SIZE])

    def winode(self, inum, dinode) -> None:
        bn = iblock(inum, self.sb)
        buf = self._rsect(bn)
        off = (inum % IPB) * Dinode.SIZE
        buf[off:off + Dinode.SIZE] = dinode.pack()
        self._wsect(bn, buf)

    def iappend(self, inum, data) -> None:
        """Append ``data`` to the end of inode ``inum``."""
        data = bytes(data)
        din = self.rinode(inum)
        off = din.size
        pos = 0
        while pos < len(data):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file too large")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._take_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._take_block()
                indirect = list(_INDIRECT.unpack(self._rsect(din.addrs[NDIRECT])))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._take_block()
                    self._wsect(din.addrs[NDIRECT], _INDIRECT.pack(*indirect))
                x = indirect[fbn - NDIRECT]
            n1 = min(len(data) - pos, (fbn + 1) * BSIZE - off)
            buf = self._rsect(x)
            start = off - fbn * BSIZE
            buf[start:start + n1] = data[pos:pos + n1]
            self._wsect(x, buf)
            pos += n1
            off += n1
        din.size = off
        self.winode(inum, din)

    def add_file(self, name, data) -> int:
        """Add a file to the root directory; a leading underscore is dropped."""
        if "/" in name:
            raise ValueError(f"file name may not contain '/': {name!r}")
        if name.startswith("_"):
            name = name[1:]
        inum = self.ialloc(FileType.FILE)
        self.iappend(self.rootino, Dirent(inum, name).pack())
        self.iappend(inum, data)
        return inum

    def finish(self) -> bytes:
        """Round the root directory up to whole blocks, write the bitmap, return the image."""
        if self._finished:
            raise RuntimeError("image already finished")
        self._finished = True
        din = self.rinode(self.rootino)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self.winode(self.rootino, din)

        used = self.freeblock
        if used >= BPB:
            raise ValueError("too many blocks in use for one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self._wsect(self.sb.bmapstart, bitmap)
        return bytes(self._image)


def build_image(files, fssize=FSSIZE, ninodes=NINODES, nlog=LOGSIZE) -> bytes:
    """Build an image from ``(name, data)`` pairs."""
    builder = ImageBuilder(fssize, ninodes, nlog)
    for name, data in files:
        builder.add_file(name, data)
    return builder.finish()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="mkfs", description="Build a file system image.")
    parser.add_argument("--size", type=int, default=FSSIZE, help="image size in blocks")
    parser.add_argument("--ninodes", type=int, default=NINODES, help="number of inodes")
    parser.add_argument("--nlog", type=int, default=LOGSIZE, help="number of log blocks")
    parser.add_argument("image", help="image file to write")
    parser.add_argument("files", nargs="*", help="files to place in the root directory")
    args = parser.parse_args(argv)

    try:
        builder = ImageBuilder(args.size, args.ninodes, args.nlog)
    except ValueError as err:
        print(f"mkfs: {err}", file=sys.stderr)
        return 1
    print(
        f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} "
        f"inode blocks {builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) "
        f"blocks {builder.nblocks} total {builder.sb.size}"
    )

    for path in args.files:
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as err:
            print(f"{path}: {err.strerror}", file=sys.stderr)
            return 1
        try:
            builder.add_file(os.path.basename(path), data)
        except ValueError as err:
            print(f"mkfs: {path}: {err}", file=sys.stderr)
            return 1

    used = builder.freeblock
    try:
        image = builder.finish()
    except ValueError as err:
        print(f"mkfs: {err}", file=sys.stderr)
        return 1
    print(f"balloc: first {used} blocks have been allocated")
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")

    try:
        with open(args.image, "wb") as f:
            f.write(image)
    except OSError as err:
        print(f"{args.image}: {err.strerror}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())