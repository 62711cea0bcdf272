# teachos

`teachos` models the pieces of a small Unix-like teaching kernel as plain
Python objects. You can build, inspect and exercise each layer on its own.

- **On-disk layout** (`teachos.layout`)
  - `Superblock`, `Dinode` and `Dirent` records with `pack()` and `unpack()`.
  - `iblock()` and `bblock()` locate inode and bitmap blocks.
- **Disk and buffer cache** (`teachos.disk`, `teachos.bcache`)
  - `MemDisk` is a disk held in memory.
  - `BufferCache` keeps a fixed pool of locked buffers in least-recently-used
    order. It provides `read()`, `write()`, `release()` and a `block()`
    context manager.
- **Write-ahead log** (`teachos.log`)
  - `Log` provides `begin_op()`, `end_op()`, `write()` and a `transaction()`
    context manager.
  - `recover()` installs a committed transaction found in the log area.
- **File system** (`teachos.fs`)
  - `FileSystem` handles block allocation, inodes (`ialloc`, `iget`, `ilock`,
    `iput`, ...), reads and writes (`readi`, `writei`), directories
    (`dirlookup`, `dirlink`) and path lookup (`namei`, `nameiparent`).
  - `register_device()` installs read and write handlers for device inodes.
- **Files and pipes** (`teachos.file`, `teachos.pipe`)
  - `FileTable` is a reference-counted table of open files over inodes and
    pipes.
  - `Pipe` is a bounded byte channel guarded by a `threading.Condition`.
- **Image builder** (`teachos.mkfs`)
  - `ImageBuilder` and `build_image()` create a fresh file system image that
    holds a root directory and a set of files.
- **Console and keyboard** (`teachos.console`, `teachos.keyboard`)
  - `Console` does line editing: backspace, kill line (^U), ^D, and reports
    ^P.
  - `CgaScreen` is an 80x25 text screen.
  - `format_kernel()` is the kernel formatter.
  - `Keyboard` translates PC scancodes, handling shift, control and caps lock.
- **Processes and scheduling** (`teachos.process`, `teachos.scheduler`)
  - `ProcessTable` provides fork, exit, wait, wait2, sleep, wakeup, kill,
    yield and procdump. It keeps one ready queue per priority.
  - `Scheduler` serves queue 3 first come first served, queue 2 shortest job
    first, queue 1 round robin and queue 0 by lottery. It moves waiting
    processes up a queue through `upgrade_priority_aging()`.
- **User tools** (`teachos.commands`, `teachos.grep`, `teachos.fmt`)
  - `echo`, `cat`, `ls` and `grep_paths`.
  - A small matcher supporting `^ . * $`.
  - The user-level `printf` formatter, `format_user()`.

Conditions that would halt the kernel are raised as
`teachos.errors.KernelPanic`.

The package has no runtime dependencies.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Building a file system image

```
teachos-mkfs fs.img README.md notes.txt
```

- The first argument is the image to create.
- Every further argument is a file copied into the root directory under its
  base name.
- A leading `_` in a name is dropped, so `_cat` is stored as `cat`.
- `--size`, `--ninodes` and `--nlog` set the image size in blocks, the number
  of inodes and the number of log blocks. The defaults are 1000, 200 and 30.

## Running commands against an image

```
teachos-cmd --image fs.img ls
teachos-cmd --image fs.img cat README.md
teachos-cmd --image fs.img grep '^#' README.md
teachos-cmd echo hello world
```

- `ls` with no path lists the root directory. Each line holds the blank-padded
  name, type, inode number and size.
- `cat` with no file copies standard input.
- `grep` with only a pattern reads standard input.

## Using the library

Pattern matching:

```python
from teachos.grep import match

match("^ab*c", "abbbc")   # True
match("x$", "box")        # True
match("^b", "abc")        # False
```

Formatting the way the user-level `printf` does. It understands only `%d`,
`%x`, `%p`, `%s`, `%c` and `%%`, and prints hexadecimal in upper case:

```python
from teachos.fmt import format_user

format_user("%d %x %s", -5, 255, "hi")   # "-5 FF hi"
```

Building an image in memory and reading a file back:

```python
from teachos.mkfs import build_image
from teachos.disk import MemDisk
from teachos.bcache import BufferCache
from teachos.layout import Superblock
from teachos.log import Log
from teachos.fs import FileSystem

image = build_image([("hello.txt", b"hello\n")], 1000, 200, 30)
disk = MemDisk(image, 1)
bcache = BufferCache(disk)
with bcache.block(1, 1) as buf:
    sb = Superblock.unpack(buf.data)
log = Log(bcache, 1, sb, 30, 10)
fs = FileSystem(bcache, 1, log)

with log.transaction():
    ip = fs.namei("/hello.txt")
fs.ilock(ip)
data = fs.readi(ip, 0, ip.size)   # b"hello\n"
fs.iunlock(ip)
with log.transaction():
    fs.iput(ip)
```

## What it does not do

- Nothing here boots or runs programs. There is no system call layer, no
  `exec`, no virtual memory and no context switching.
- `ProcessTable` and `Scheduler` keep the bookkeeping: states, queues and
  timing counters. The caller drives them tick by tick.
- `teachos-cmd` only reads images. Changes made through `FileSystem` stay on
  the in-memory `MemDisk` until you save `MemDisk.image()` yourself.
- The package has no commands to create directories, link files or remove
  files.