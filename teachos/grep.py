"""Simple grep supporting only the ^ . * $ operators."""

from __future__ import annotations

from typing import Iterator

BUFSIZE = 1024


def match(regex, text) -> bool:
    """Search for ``regex`` anywhere in ``text``."""
    if regex.startswith("^"):
        return match_here(regex[1:], text)
    return any(match_here(regex, text[i:]) for i in range(len(text) + 1))


def match_here(regex, text) -> bool:
    """Search for ``regex`` at the beginning of ``text``."""
    if not regex:
        return True
    if len(regex) > 1 and regex[1] == "*":
        return match_star(regex[0], regex[2:], text)
    if regex == "$":
        return text == ""
    if text and (regex[0] == "." or regex[0] == text[0]):
        return match_here(regex[1:], text[1:])
    return False


def match_star(c, regex, text) -> bool:
    """Search for ``c*regex`` at the beginning of ``text``."""
    while True:
        if match_here(regex, text):
            return True
        if not text or not (text[0] == c or c == "."):
            return False
        text = text[1:]


def grep(pattern, stream) -> Iterator[str]:
    """Yield each newline-terminated line of ``stream`` that matches."""
    pending = ""
    while chunk := stream.read(BUFSIZE - 1 - len(pending)):
        pending += chunk
        *lines, rest = pending.split("\n")
        for line in lines:
            if match(pattern, line):
                yield line + "\n"
        # A buffer with no newline at all is thrown away.
        pending = rest if lines else ""