import struct

import pytest

from teachos.bcache import BufferCache
from teachos.disk import MemDisk
from teachos.errors import KernelPanic
from teachos.layout import BSIZE, Superblock
from teachos.log import Log

NBLOCKS = 64
LOGSTART = 2
NLOG = 10
HOME = 40


def make(image=None, logsize=NLOG, maxop=3):
    disk = MemDisk(image if image is not None else bytes(NBLOCKS * BSIZE), dev=1)
    bc = BufferCache(disk)
    sb = Superblock(size=NBLOCKS, nlog=NLOG, logstart=LOGSTART)
    return disk, bc, Log(bc, 1, sb, logsize, maxop)


def modify(bc, log, blockno, fill):
    with bc.block(1, blockno) as buf:
        buf.data[:] = bytes([fill]) * BSIZE
        log.write(buf)


def test_commit_writes_home_block():
    disk, bc, log = make()
    log.begin_op()
    modify(bc, log, HOME, 0xAB)
    log.end_op()
    assert disk.read_block(HOME) == bytes([0xAB]) * BSIZE
    assert log.blocks == []


def test_commit_clears_header_and_leaves_log_copy():
    disk, bc, log = make()
    log.begin_op()
    modify(bc, log, HOME, 0x5A)
    log.end_op()
    assert struct.unpack_from("<i", disk.read_block(LOGSTART))[0] == 0
    assert disk.read_block(LOGSTART + 1) == bytes([0x5A]) * BSIZE


def test_nested_operations_commit_at_last_end():
    disk, bc, log = make()
    log.begin_op()
    log.begin_op()
    modify(bc, log, HOME, 0x11)
    log.end_op()
    assert disk.read_block(HOME) == bytes(BSIZE)
    log.end_op()
    assert disk.read_block(HOME) == bytes([0x11]) * BSIZE


def test_absorption_logs_block_once():
    _, bc, log = make()
    log.begin_op()
    modify(bc, log, HOME, 1)
    modify(bc, log, HOME, 2)
    assert log.blocks == [HOME]


def test_write_outside_transaction_panics():
    _, bc, log = make()
    buf = bc.read(1, HOME)
    with pytest.raises(KernelPanic):
        log.write(buf)


def test_recovery_installs_committed_transaction():
    image = bytearray(NBLOCKS * BSIZE)
    struct.pack_into("<ii", image, LOGSTART * BSIZE, 1, HOME)
    start = (LOGSTART + 1) * BSIZE
    image[start:start + BSIZE] = bytes([0xCD]) * BSIZE
    disk, _, log = make(bytes(image))
    assert disk.read_block(HOME) == bytes([0xCD]) * BSIZE
    assert struct.unpack_from("<i", disk.read_block(LOGSTART))[0] == 0
    assert log.blocks == []


def test_begin_op_out_of_space_panics():
    _, _, log = make(maxop=4)
    log.begin_op()
    log.begin_op()
    with pytest.raises(KernelPanic):
        log.begin_op()
    assert log.outstanding == 2


def test_header_too_big_panics():
    with pytest.raises(KernelPanic):
        make(logsize=200)


def test_too_big_transaction_panics():
    _, bc, log = make(maxop=NLOG)
    log.begin_op()
    for blockno in range(HOME, HOME + NLOG - 1):
        modify(bc, log, blockno, 7)
    assert len(log.blocks) == NLOG - 1
    with pytest.raises(KernelPanic):
        modify(bc, log, HOME + NLOG - 1, 7)


def test_transaction_context_manager_commits():
    disk, bc, log = make()
    with log.transaction():
        modify(bc, log, HOME, 0x42)
    assert log.outstanding == 0
    assert disk.read_block(HOME) == bytes([0x42]) * BSIZE


def test_end_op_without_begin_panics():
    _, _, log = make()
    with pytest.raises(KernelPanic):
        log.end_op()