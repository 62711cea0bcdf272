"""Physical page allocator: a LIFO free list of page addresses."""

from __future__ import annotations

from .errors import KernelPanic

PGSIZE = 4096


class PageAllocator:
    """Hands out page-aligned addresses in [start, end)."""

    def __init__(self, start, end, pgsize=PGSIZE):
        self.start = start
        self.end = end
        self.pgsize = pgsize
        self._freelist: list[int] = []
        self.free_range(start, end)

    def __len__(self) -> int:
        return len(self._freelist)

    def free_range(self, start, end) -> None:
        """Free every whole page between ``start`` (rounded up) and ``end``."""
        first = -(-start // self.pgsize) * self.pgsize
        for addr in range(first, end - self.pgsize + 1, self.pgsize):
            self.free(addr)

    def free(self, addr) -> None:
        if addr % self.pgsize or addr < self.start or addr >= self.end:
            raise KernelPanic("kfree")
        self._freelist.append(addr)

    def alloc(self) -> int:
        """Return a free page address; raise MemoryError when none is left."""
        if not self._freelist:
            raise MemoryError("kalloc: out of memory")
        return self._freelist.pop()