import pytest

from teachos.disk import MemDisk
from teachos.errors import KernelPanic
from teachos.layout import BSIZE


def test_write_then_read_block():
    disk = MemDisk(bytes(BSIZE * 4))
    disk.write_block(2, b"x" * BSIZE)
    assert disk.read_block(2) == b"x" * BSIZE
    assert disk.read_block(1) == bytes(BSIZE)


def test_image_reflects_writes():
    disk = MemDisk(bytes(BSIZE * 2))
    disk.write_block(1, b"\x07" * BSIZE)
    image = disk.image()
    assert len(image) == BSIZE * 2
    assert image[BSIZE:] == b"\x07" * BSIZE


def test_partial_trailing_block_is_not_addressable():
    disk = MemDisk(bytes(BSIZE * 3 + 10))
    assert disk.nblocks == 3
    with pytest.raises(KernelPanic):
        disk.read_block(3)


@pytest.mark.parametrize("blockno", [-1, 4, 100])
def test_out_of_range_panics(blockno):
    disk = MemDisk(bytes(BSIZE * 4))
    with pytest.raises(KernelPanic) as info:
        disk.read_block(blockno)
    assert info.value.message == "iderw: block out of range"


def test_wrong_block_length_rejected():
    disk = MemDisk(bytes(BSIZE))
    with pytest.raises(ValueError):
        disk.write_block(0, b"short")


def test_image_is_a_copy():
    original = bytearray(BSIZE)
    disk = MemDisk(original)
    original[0] = 9
    assert disk.read_block(0)[0] == 0