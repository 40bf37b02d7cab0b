"""Key model for vim-style key routing.

A ``Key`` is one keypress: either a printable rune or a named special key,
optionally combined with Ctrl/Alt/Shift. Keys are frozen dataclasses so they
compare structurally and can be used as dict keys in the match trie.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Modifiers and special keys
# ---------------------------------------------------------------------------


class Modifier(enum.IntFlag):
    NONE = 0
    CTRL = 1
    ALT = 2
    SHIFT = 4


class Special(enum.IntEnum):
    NONE = 0
    ESCAPE = enum.auto()
    ENTER = enum.auto()
    TAB = enum.auto()
    SPACE = enum.auto()
    BACKSPACE = enum.auto()
    UP = enum.auto()
    DOWN = enum.auto()
    LEFT = enum.auto()
    RIGHT = enum.auto()
    HOME = enum.auto()
    END = enum.auto()
    PAGE_UP = enum.auto()
    PAGE_DOWN = enum.auto()
    INSERT = enum.auto()
    DELETE = enum.auto()
    F1 = enum.auto()
    F2 = enum.auto()
    F3 = enum.auto()
    F4 = enum.auto()
    F5 = enum.auto()
    F6 = enum.auto()
    F7 = enum.auto()
    F8 = enum.auto()
    F9 = enum.auto()
    F10 = enum.auto()
    F11 = enum.auto()
    F12 = enum.auto()


# ---------------------------------------------------------------------------
# Vim names
# ---------------------------------------------------------------------------

SPECIAL_TO_VIM: dict[Special, str] = {
    Special.ESCAPE: "Esc",
    Special.ENTER: "CR",
    Special.TAB: "Tab",
    Special.SPACE: "Space",
    Special.BACKSPACE: "BS",
    Special.UP: "Up",
    Special.DOWN: "Down",
    Special.LEFT: "Left",
    Special.RIGHT: "Right",
    Special.HOME: "Home",
    Special.END: "End",
    Special.PAGE_UP: "PageUp",
    Special.PAGE_DOWN: "PageDown",
    Special.INSERT: "Insert",
    Special.DELETE: "Del",
    Special.F1: "F1",
    Special.F2: "F2",
    Special.F3: "F3",
    Special.F4: "F4",
    Special.F5: "F5",
    Special.F6: "F6",
    Special.F7: "F7",
    Special.F8: "F8",
    Special.F9: "F9",
    Special.F10: "F10",
    Special.F11: "F11",
    Special.F12: "F12",
}

# Lowercase names accepted inside ``<...>``
VIM_TO_SPECIAL: dict[str, Special] = {
    "esc": Special.ESCAPE,
    "escape": Special.ESCAPE,
    "cr": Special.ENTER,
    "enter": Special.ENTER,
    "return": Special.ENTER,
    "tab": Special.TAB,
    "space": Special.SPACE,
    "bs": Special.BACKSPACE,
    "backspace": Special.BACKSPACE,
    "up": Special.UP,
    "down": Special.DOWN,
    "left": Special.LEFT,
    "right": Special.RIGHT,
    "home": Special.HOME,
    "end": Special.END,
    "pageup": Special.PAGE_UP,
    "pagedown": Special.PAGE_DOWN,
    "insert": Special.INSERT,
    "del": Special.DELETE,
    "delete": Special.DELETE,
    **{f"f{n}": Special[f"F{n}"] for n in range(1, 13)},
}

MODIFIER_LETTERS: dict[str, Modifier] = {
    "c": Modifier.CTRL,
    "a": Modifier.ALT,
    "m": Modifier.ALT,
    "s": Modifier.SHIFT,
}

# Render order for chord prefixes
_MODIFIER_ORDER: tuple[tuple[Modifier, str], ...] = (
    (Modifier.CTRL, "C"),
    (Modifier.ALT, "A"),
    (Modifier.SHIFT, "S"),
)

# Keys a terminal sends as multi-byte sequences starting with ESC
ESCAPE_SEQUENCE_SPECIALS: frozenset[Special] = frozenset(
    {
        Special.UP,
        Special.DOWN,
        Special.LEFT,
        Special.RIGHT,
        Special.HOME,
        Special.END,
        Special.PAGE_UP,
        Special.PAGE_DOWN,
        Special.INSERT,
        Special.DELETE,
        *(Special[f"F{n}"] for n in range(1, 13)),
    }
)


# ---------------------------------------------------------------------------
# Key
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Key:
    """A single keypress with optional modifiers."""

    rune: str = ""
    mod: Modifier = Modifier.NONE
    special: Special = Special.NONE

    def __str__(self) -> str:
        if self.special is Special.NONE and not self.mod and self.rune:
            return self.rune

        parts = [letter for flag, letter in _MODIFIER_ORDER if self.mod & flag]
        if self.special is not Special.NONE:
            key_part = SPECIAL_TO_VIM[self.special]
        else:
            key_part = self.rune

        if parts or self.special is not Special.NONE:
            return "<" + "-".join([*parts, key_part]) + ">"
        return key_part

    @property
    def is_special(self) -> bool:
        return self.special is not Special.NONE


def generates_escape_sequence(key: Key) -> bool:
    """Return whether a terminal sends *key* as a multi-byte ESC sequence.

    Navigation, editing and function keys always do; so does any Alt chord,
    which terminals encode as ESC followed by the key.
    """
    if key.special in ESCAPE_SEQUENCE_SPECIALS:
        return True
    return bool(key.mod & Modifier.ALT)


def format_keys(keys: tuple[Key, ...] | list[Key]) -> str:
    """Render a key sequence in pattern syntax, e.g. ``"g<C-d>"``."""
    return "".join(str(k) for k in keys)
