"""PC keyboard scancode translation."""

from __future__ import annotations

SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2
CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5
E0ESC = 1 << 6

KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9


def _ctrl(ch: str) -> int:
    return (ord(ch) - ord("@")) & 0xFF


def _table(prefix, extras: dict[int, int]) -> list[int]:
    codes = [ord(ch) if isinstance(ch, str) else ch for ch in prefix]
    codes += [0] * (256 - len(codes))
    for index, code in extras.items():
        codes[index] = code
    return codes


_KEYPAD = (
    "\x00 \x00\x00\x00\x00\x00\x00"
    "\x00\x00\x00\x00\x00\x00\x007"
    "89-456+1"
    "230.\x00\x00\x00\x00"
)

_SPECIAL = {
    0xC8: KEY_UP, 0xD0: KEY_DN,
    0xC9: KEY_PGUP, 0xD1: KEY_PGDN,
    0xCB: KEY_LF, 0xCD: KEY_RT,
    0x97: KEY_HOME, 0xCF: KEY_END,
    0xD2: KEY_INS, 0xD3: KEY_DEL,
}

SHIFTCODE = _table([], {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT})
TOGGLECODE = _table([], {0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK})

NORMALMAP = _table(
    "\x00\x1b123456"
    "7890-=\b\t"
    "qwertyui"
    "op[]\n\x00as"
    "dfghjkl;"
    "'`\x00\\zxcv"
    "bnm,./\x00*" + _KEYPAD,
    {0x9C: ord("\n"), 0xB5: ord("/"), **_SPECIAL},
)

SHIFTMAP = _table(
    "\x00\x1b!@#$%^"
    "&*()_+\b\t"
    "QWERTYUI"
    "OP{}\n\x00AS"
    "DFGHJKL:"
    "\"~\x00|ZXCV"
    "BNM<>?\x00*" + _KEYPAD,
    {0x9C: ord("\n"), 0xB5: ord("/"), **_SPECIAL},
)

CTLMAP = _table(
    [0] * 16
    + [_ctrl(ch) for ch in "QWERTYUI"]
    + [_ctrl("O"), _ctrl("P"), 0, 0, ord("\r"), 0, _ctrl("A"), _ctrl("S")]
    + [_ctrl(ch) for ch in "DFGHJKL"] + [0]
    + [0, 0, 0, _ctrl("\\"), _ctrl("Z"), _ctrl("X"), _ctrl("C"), _ctrl("V")]
    + [_ctrl("B"), _ctrl("N"), _ctrl("M"), 0, 0, _ctrl("/"), 0, 0],
    {0x9C: ord("\r"), 0xB5: _ctrl("/"), **_SPECIAL},
)

_CHARCODE = (NORMALMAP, SHIFTMAP, CTLMAP, CTLMAP)


class Keyboard:
    """Tracks modifier state and turns scancodes into character codes."""

    def __init__(self):
        self.shift = 0

    def feed(self, scancode) -> int | None:
        """Process one scancode; return the character code it produces, if any."""
        if not 0 <= scancode <= 0xFF:
            raise ValueError(f"scancode out of range: {scancode}")
        data = scancode
        if data == 0xE0:
            self.shift |= E0ESC
            return None
        if data & 0x80:
            # Key released.
            if not self.shift & E0ESC:
                data &= 0x7F
            self.shift &= ~(SHIFTCODE[data] | E0ESC)
            return None
        if self.shift & E0ESC:
            data |= 0x80
            self.shift &= ~E0ESC

        self.shift |= SHIFTCODE[data]
        self.shift ^= TOGGLECODE[data]
        c = _CHARCODE[self.shift & (CTL | SHIFT)][data]
        if self.shift & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c += ord("A") - ord("a")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c or None

    def translate(self, scancodes) -> list[int]:
        """Feed every scancode and collect the character codes produced."""
        return [c for c in map(self.feed, scancodes) if c is not None]