"""Console: kernel formatted output, CGA text screen and line-edited input."""

from __future__ import annotations

from .errors import KernelPanic

BACKSPACE = 0x100
INPUT_BUF = 128
COLS = 80
ROWS = 25

_NL = ord("\n")
_CR = ord("\r")
_ATTR = 0x0700  # black on white


def _ctrl(ch: str) -> int:
    return ord(ch) - ord("@")


def _next_arg(args):
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _signed(value) -> str:
    x = int(value) & 0xFFFFFFFF
    if x >= 0x80000000:
        return "-" + str(0x100000000 - x)
    return str(x)


def format_kernel(fmt, *args) -> str:
    """Format as the kernel's cprintf does: %d, %x, %p, %s and %%."""
    if fmt is None:
        raise KernelPanic("null fmt")
    out: list[str] = []
    pending = iter(args)
    chars = iter(fmt)
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        c = next(chars, None)
        if c is None:
            break
        if c == "d":
            out.append(_signed(_next_arg(pending)))
        elif c in "xp":
            out.append(format(int(_next_arg(pending)) & 0xFFFFFFFF, "x"))
        elif c == "s":
            s = _next_arg(pending)
            out.append("(null)" if s is None else str(s))
        elif c == "%":
            out.append("%")
        else:
            # Unknown sequence: print it to draw attention.
            out.append("%" + c)
    return "".join(out)


class CgaScreen:
    """An 80x25 text-mode screen with a cursor; scrolls at row 24."""

    def __init__(self):
        self.cells = [0] * (COLS * ROWS)
        self.pos = 0

    def putc(self, c) -> None:
        pos = self.pos
        if c == _NL:
            pos += COLS - pos % COLS
        elif c == BACKSPACE:
            if pos > 0:
                pos -= 1
        else:
            self.cells[pos] = (c & 0xFF) | _ATTR
            pos += 1

        if pos < 0 or pos > ROWS * COLS:
            raise KernelPanic("pos under/overflow")

        if pos // COLS >= 24:
            self.cells[:23 * COLS] = self.cells[COLS:24 * COLS]
            pos -= COLS
            self.cells[pos:24 * COLS] = [0] * (24 * COLS - pos)

        self.pos = pos
        self.cells[pos] = ord(" ") | _ATTR

    def lines(self) -> list[str]:
        """Return the screen text row by row, without trailing blanks."""
        rows = []
        for start in range(0, COLS * ROWS, COLS):
            row = "".join(chr(cell & 0xFF or 0x20) for cell in self.cells[start:start + COLS])
            rows.append(row.rstrip())
        return rows


class Console:
    """Echoes to a serial stream and a screen, and buffers edited input lines."""

    def __init__(self, output=None, screen=None):
        self.output = output
        self.screen = screen if screen is not None else CgaScreen()
        self._buf = [0] * INPUT_BUF
        self.r = 0  # read index
        self.w = 0  # write index
        self.e = 0  # edit index

    def putc(self, c) -> None:
        if self.output is not None:
            self.output.write("\b \b" if c == BACKSPACE else chr(c))
        self.screen.putc(c)

    def interrupt(self, chars) -> bool:
        """Handle typed characters; return True if a process listing was asked for."""
        codes = map(ord, chars) if isinstance(chars, str) else chars
        procdump = False
        for c in codes:
            if c == _ctrl("P"):
                procdump = True
            elif c == _ctrl("U"):
                while self.e != self.w and self._buf[(self.e - 1) % INPUT_BUF] != _NL:
                    self.e -= 1
                    self.putc(BACKSPACE)
            elif c in (_ctrl("H"), 0x7F):
                if self.e != self.w:
                    self.e -= 1
                    self.putc(BACKSPACE)
            elif c != 0 and self.e - self.r < INPUT_BUF:
                if c == _CR:
                    c = _NL
                self._buf[self.e % INPUT_BUF] = c
                self.e += 1
                self.putc(c)
                if c == _NL or c == _ctrl("D") or self.e == self.r + INPUT_BUF:
                    self.w = self.e
        return procdump

    def read(self, n) -> bytes:
        """Read up to ``n`` bytes of committed input, stopping after a newline.

        Raises BlockingIOError when no committed input is available.
        """
        target = n
        out = bytearray()
        while n > 0:
            if self.r == self.w:
                if out:
                    break
                raise BlockingIOError("console: no input available")
            c = self._buf[self.r % INPUT_BUF]
            self.r += 1
            if c == _ctrl("D"):
                if n < target:
                    # Keep ^D so the next read returns zero bytes.
                    self.r -= 1
                break
            out.append(c & 0xFF)
            n -= 1
            if c == _NL:
                break
        return bytes(out)

    def write(self, data) -> int:
        if isinstance(data, str):
            data = data.encode("latin-1")
        for b in data:
            self.putc(b & 0xFF)
        return len(data)

    def cprintf(self, fmt, *args) -> None:
        for ch in format_kernel(fmt, *args):
            self.putc(ord(ch))