"""In-kernel pipe: a bounded byte buffer with a read end and a write end."""

from __future__ import annotations

import threading

PIPESIZE = 512


class Pipe:
    """A bounded byte channel.

    Writers block while the buffer is full and readers block while it is
    empty, as long as the other end is still open.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._data = bytearray()
        self.nread = 0
        self.nwrite = 0
        self.readopen = True
        self.writeopen = True

    def write(self, data) -> int:
        """Write all of ``data``, blocking while the pipe is full.

        Raises BrokenPipeError if the pipe is full and the read end is closed.
        """
        data = bytes(data)
        pos = 0
        with self._cond:
            while pos < len(data):
                while len(self._data) == PIPESIZE:
                    if not self.readopen:
                        raise BrokenPipeError("pipe: read end closed")
                    self._cond.notify_all()
                    self._cond.wait()
                chunk = data[pos:pos + PIPESIZE - len(self._data)]
                self._data += chunk
                self.nwrite += len(chunk)
                pos += len(chunk)
            self._cond.notify_all()
        return len(data)

    def read(self, n) -> bytes:
        """Read up to ``n`` bytes, blocking until data arrives or the writer closes.

        Returns b"" at end of file.
        """
        with self._cond:
            while not self._data and self.writeopen:
                self._cond.wait()
            count = max(0, min(n, len(self._data)))
            out = bytes(self._data[:count])
            del self._data[:count]
            self.nread += count
            self._cond.notify_all()
        return out

    def close(self, writable) -> None:
        """Close the write end if ``writable`` is true, else the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()