import pytest

from teachos.bcache import BufferCache
from teachos.disk import MemDisk
from teachos.errors import KernelPanic
from teachos.fs import FileSystem, namecmp, skipelem
from teachos.layout import BSIZE, NDIRECT, ROOTINO, Dirent, FileType, Superblock
from teachos.log import Log
from teachos.mkfs import build_image

README = b"hello, file system\n"


def mount(disk, ninode=50):
    bcache = BufferCache(disk)
    sb = Superblock.unpack(disk.read_block(1))
    log = Log(bcache, 1, sb, 30, 10)
    return FileSystem(bcache, 1, log, ninode)


def make_fs(files=(("readme", README), ("_cat", b"meow")), ninode=50, **kw):
    disk = MemDisk(build_image(list(files), **kw), dev=1)
    return mount(disk, ninode), disk


def read_all(fs, ip):
    fs.ilock(ip)
    try:
        return fs.readi(ip, 0, ip.size)
    finally:
        fs.iunlock(ip)


def create(fs, name, type=FileType.FILE):
    root = fs.namei("/")
    fs.ilock(root)
    ip = fs.ialloc(type)
    fs.ilock(ip)
    ip.nlink = 1
    fs.iupdate(ip)
    fs.dirlink(root, name, ip.inum)
    fs.iunlockput(root)
    return ip


def test_skipelem_documented_examples():
    assert skipelem("a/bb/c") == ("a", "bb/c")
    assert skipelem("///a//bb") == ("a", "bb")
    assert skipelem("a") == ("a", "")
    assert skipelem("") is None
    assert skipelem("////") is None


def test_skipelem_truncates_long_names():
    name, rest = skipelem("abcdefghijklmnopq/x")
    assert name == "abcdefghijklmn"
    assert rest == "x"


def test_namecmp():
    assert namecmp("abcdefghijklmnXYZ", "abcdefghijklmn") == 0
    assert namecmp("a", "b") < 0
    assert namecmp("b", "a") > 0
    assert namecmp("same", "same") == 0


def test_root_lookup():
    fs, _ = make_fs()
    root = fs.namei("/")
    fs.ilock(root)
    assert root.inum == ROOTINO
    assert root.type == FileType.DIR
    fs.iunlock(root)


def test_read_file_from_image():
    fs, _ = make_fs()
    assert read_all(fs, fs.namei("/readme")) == README
    assert read_all(fs, fs.namei("/cat")) == b"meow"


def test_dot_entries_offsets():
    fs, _ = make_fs()
    root = fs.namei("/")
    fs.ilock(root)
    ip, off = fs.dirlookup(root, ".")
    assert ip is root and off == 0
    dotdot, off2 = fs.dirlookup(root, "..")
    assert dotdot.inum == ROOTINO and off2 == Dirent.SIZE
    assert fs.dirlookup(root, "missing") is None
    fs.iunlock(root)


def test_missing_and_not_directory():
    fs, _ = make_fs()
    with pytest.raises(FileNotFoundError):
        fs.namei("/nothing")
    with pytest.raises(NotADirectoryError):
        fs.namei("/readme/x")


def test_nameiparent():
    fs, _ = make_fs()
    parent, name = fs.nameiparent("/readme")
    assert parent.inum == ROOTINO
    assert name == "readme"
    with pytest.raises(FileNotFoundError):
        fs.nameiparent("/")


def test_relative_lookup_uses_cwd():
    fs, _ = make_fs()
    root = fs.namei("/")
    ip = fs.namei("readme", root)
    assert read_all(fs, ip) == README
    with pytest.raises(ValueError):
        fs.namei("readme")


def test_iget_shares_entry():
    fs, _ = make_fs()
    a = fs.iget(2)
    b = fs.iget(2)
    assert a is b
    assert a.ref == 2
    assert fs.idup(a).ref == 3


def test_iget_exhausted():
    fs, _ = make_fs(ninode=2)
    fs.iget(1)
    fs.iget(2)
    with pytest.raises(KernelPanic):
        fs.iget(3)


def test_write_read_and_persist():
    fs, disk = make_fs()
    with fs.log.transaction():
        ip = create(fs, "new")
        assert fs.writei(ip, 0, b"payload") == 7
        fs.iunlock(ip)
    assert read_all(fs, ip) == b"payload"
    st = fs.stat(ip)
    assert (st.type, st.size, st.nlink, st.ino) == (FileType.FILE, 7, 1, ip.inum)

    fs2 = mount(MemDisk(disk.image(), dev=1))
    assert read_all(fs2, fs2.namei("/new")) == b"payload"


def test_large_file_uses_indirect_block():
    fs, disk = make_fs()
    data = bytes(range(256)) * ((NDIRECT + 3) * BSIZE // 256)
    with fs.log.transaction():
        ip = create(fs, "big")
        fs.iunlock(ip)
    step = 3 * BSIZE
    for start in range(0, len(data), step):
        with fs.log.transaction():
            fs.ilock(ip)
            fs.writei(ip, start, data[start:start + step])
            fs.iunlock(ip)
    assert ip.addrs[NDIRECT] != 0
    assert read_all(fs, ip) == data
    fs2 = mount(MemDisk(disk.image(), dev=1))
    assert read_all(fs2, fs2.namei("/big")) == data


def test_offset_errors():
    fs, _ = make_fs()
    ip = fs.namei("/readme")
    fs.ilock(ip)
    with pytest.raises(ValueError):
        fs.readi(ip, ip.size + 1, 1)
    with pytest.raises(ValueError):
        fs.writei(ip, ip.size + 1, b"x")
    assert fs.readi(ip, 0, 1000) == README
    fs.iunlock(ip)


def test_dirlink_duplicate():
    fs, _ = make_fs()
    root = fs.namei("/")
    fs.ilock(root)
    with fs.log.transaction():
        with pytest.raises(FileExistsError):
            fs.dirlink(root, "readme", 5)
    fs.iunlock(root)


def test_iput_frees_unlinked_inode():
    fs, _ = make_fs()
    with fs.log.transaction():
        ip = fs.ialloc(FileType.FILE)
        fs.ilock(ip)
        fs.writei(ip, 0, b"temporary")
        first_block = ip.addrs[0]
        inum = ip.inum
        fs.iunlockput(ip)
    assert ip.ref == 0
    with fs.log.transaction():
        again = fs.ialloc(FileType.FILE)
        fs.ilock(again)
        fs.writei(again, 0, b"x")
        assert again.inum == inum
        assert again.addrs[0] == first_block
        fs.iunlock(again)


def test_ialloc_exhausted():
    fs, _ = make_fs(files=(), ninodes=4)
    with fs.log.transaction():
        assert {fs.ialloc(FileType.FILE).inum for _ in range(2)} == {2, 3}
        with pytest.raises(KernelPanic):
            fs.ialloc(FileType.FILE)


def test_device_inode():
    fs, _ = make_fs()
    written = []
    fs.register_device(1, lambda ip, n: b"k" * n, lambda ip, data: written.append(data) or len(data))
    with fs.log.transaction():
        ip = create(fs, "console", FileType.DEV)
        ip.major = 1
        fs.iupdate(ip)
    assert fs.readi(ip, 0, 3) == b"kkk"
    assert fs.writei(ip, 0, b"out") == 3
    assert written == [b"out"]
    ip.major = 2
    with pytest.raises(OSError):
        fs.readi(ip, 0, 1)
    with pytest.raises(ValueError):
        fs.register_device(99, None, None)


def test_lock_errors():
    fs, _ = make_fs()
    ip = fs.iget(2)
    with pytest.raises(KernelPanic):
        fs.iunlock(ip)
    fs.ilock(ip)
    with pytest.raises(KernelPanic):
        fs.ilock(ip)
    fs.iunlock(ip)
    ip.ref = 0
    with pytest.raises(KernelPanic):
        fs.ilock(ip)