"""User-level printf: understands %d, %x, %p, %s, %c and %%."""

from __future__ import annotations

from typing import Iterator


def _next_arg(args: Iterator):
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _signed(value) -> str:
    x = int(value) & 0xFFFFFFFF
    if x >= 0x80000000:
        return "-" + str(0x100000000 - x)
    return str(x)


def _hex(value) -> str:
    return format(int(value) & 0xFFFFFFFF, "X")


def _char(value) -> str:
    if isinstance(value, str):
        return value[:1]
    return chr(int(value) & 0xFF)


def format_user(fmt, *args) -> str:
    """Format ``args`` into ``fmt`` as the user printf does."""
    out: list[str] = []
    pending = iter(args)
    in_escape = False
    for c in fmt:
        if not in_escape:
            if c == "%":
                in_escape = True
            else:
                out.append(c)
            continue
        in_escape = False
        if c == "d":
            out.append(_signed(_next_arg(pending)))
        elif c in "xp":
            out.append(_hex(_next_arg(pending)))
        elif c == "s":
            s = _next_arg(pending)
            out.append("(null)" if s is None else str(s))
        elif c == "c":
            out.append(_char(_next_arg(pending)))
        elif c == "%":
            out.append("%")
        else:
            # Unknown sequence: print it to draw attention.
            out.append("%" + c)
    return "".join(out)


def printf(stream, fmt, *args) -> None:
    """Write the formatted text to ``stream``."""
    stream.write(format_user(fmt, *args))