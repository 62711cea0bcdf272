"""User commands over a file system image: echo, cat, ls and grep."""

from __future__ import annotations

import argparse
import io
import sys
from contextlib import contextmanager
from typing import Iterator

from .bcache import BufferCache
from .disk import MemDisk
from .file import MAXOPBLOCKS
from .fs import FileSystem
from .grep import grep
from .layout import DIRSIZ, ROOTINO, Dirent, FileType, Superblock
from .log import Log
from .mkfs import LOGSIZE

ROOTDEV = 1
CHUNK = 512
PATHBUF = 512


def _mount(image) -> FileSystem:
    disk = MemDisk(image, dev=ROOTDEV)
    bcache = BufferCache(disk)
    with bcache.block(ROOTDEV, 1) as buf:
        sb = Superblock.unpack(buf.data)
    log = Log(bcache, ROOTDEV, sb, LOGSIZE, MAXOPBLOCKS)
    return FileSystem(bcache, ROOTDEV, log)


@contextmanager
def _opened(fs, path):
    """Yield the locked inode named by ``path``; relative paths start at the root."""
    with fs.log.transaction():
        root = fs.iget(ROOTINO)
        try:
            ip = fs.namei(path, root)
        finally:
            fs.iput(root)
    fs.ilock(ip)
    try:
        yield ip
    finally:
        fs.iunlock(ip)
        with fs.log.transaction():
            fs.iput(ip)


def _read_all(fs, path) -> bytes:
    with _opened(fs, path) as ip:
        return fs.readi(ip, 0, ip.size)


def _stat(fs, path):
    with _opened(fs, path) as ip:
        return fs.stat(ip)


def fmtname(path) -> str:
    """Last element of ``path``, blank-padded to DIRSIZ characters."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def echo(args) -> str:
    """Arguments separated by spaces and ended by a newline."""
    return " ".join(args) + "\n" if args else ""


def cat(fs, paths) -> Iterator[bytes]:
    """Yield the contents of each file in turn.

    Raises OSError naming the first file that cannot be opened.
    """
    for path in paths:
        try:
            data = _read_all(fs, path)
        except OSError as err:
            raise OSError(f"cannot open {path}") from err
        for start in range(0, len(data), CHUNK):
            yield data[start:start + CHUNK]


def _ls_line(name: str, st) -> str:
    return f"{fmtname(name)} {int(st.type)} {st.ino} {st.size}"


def ls(fs, path) -> Iterator[str]:
    """Yield one listing line for a file, or one per entry of a directory.

    Raises OSError if ``path`` itself cannot be opened.
    """
    try:
        st = _stat(fs, path)
    except OSError as err:
        raise OSError(f"cannot open {path}") from err

    if st.type == FileType.FILE:
        yield _ls_line(path, st)
    elif st.type == FileType.DIR:
        if len(path) + 1 + DIRSIZ + 1 > PATHBUF:
            yield "ls: path too long"
            return
        data = _read_all(fs, path)
        usable = len(data) - len(data) % Dirent.SIZE
        for start in range(0, usable, Dirent.SIZE):
            de = Dirent.unpack(data[start:start + Dirent.SIZE])
            if de.inum == 0:
                continue
            entry = f"{path}/{de.name}"
            try:
                entry_st = _stat(fs, entry)
            except OSError:
                yield f"ls: cannot stat {entry}"
                continue
            yield _ls_line(entry, entry_st)


def grep_paths(fs, pattern, paths) -> Iterator[str]:
    """Yield the matching lines of each file in turn.

    Raises OSError naming the first file that cannot be opened.
    """
    for path in paths:
        try:
            data = _read_all(fs, path)
        except OSError as err:
            raise OSError(f"cannot open {path}") from err
        yield from grep(pattern, io.StringIO(data.decode("latin-1")))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="teachos", description="Run a user command against a file system image."
    )
    parser.add_argument("--image", help="file system image to read")
    parser.add_argument("command", choices=["echo", "cat", "ls", "grep"])
    parser.add_argument("args", nargs=argparse.REMAINDER)
    opts = parser.parse_args(argv)
    out = sys.stdout

    if opts.command == "echo":
        out.write(echo(opts.args))
        return 0

    if opts.command == "grep" and not opts.args:
        print("usage: grep pattern [file ...]", file=sys.stderr)
        return 1

    if opts.command == "cat" and not opts.args:
        out.write(sys.stdin.read())
        return 0

    if opts.command == "grep" and len(opts.args) == 1:
        for line in grep(opts.args[0], sys.stdin):
            out.write(line)
        return 0

    if opts.image is None:
        parser.error(f"{opts.command} needs --image")
    try:
        with open(opts.image, "rb") as f:
            fs = _mount(f.read())
    except OSError as err:
        print(f"{opts.image}: {err.strerror}", file=sys.stderr)
        return 1

    if opts.command == "cat":
        try:
            for chunk in cat(fs, opts.args):
                out.write(chunk.decode("latin-1"))
        except OSError as err:
            out.write(f"cat: {err}\n")
            return 1
        return 0

    if opts.command == "ls":
        status = 0
        for path in opts.args or ["."]:
            try:
                for line in ls(fs, path):
                    out.write(line + "\n")
            except OSError as err:
                print(f"ls: {err}", file=sys.stderr)
                status = 1
        return status

    pattern, paths = opts.args[0], opts.args[1:]
    try:
        for line in grep_paths(fs, pattern, paths):
            out.write(line)
    except OSError as err:
        out.write(f"grep: {err}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())