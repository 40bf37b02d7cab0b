"""Vim-style pattern compiler.

Pattern syntax:

- ``"j"``          single key j
- ``"gg"``         sequence: g then g
- ``"<C-w>"``      Ctrl+W
- ``"<A-x>"``      Alt+X (``<M-x>`` is the same)
- ``"<S-Tab>"``    Shift+Tab
- ``"<C-A-d>"``    Ctrl+Alt+D
- ``"<C-w>j"``     Ctrl+W then j
- ``"<Esc>"``, ``"<CR>"``, ``"<Space>"``, ``"<F1>"``, ``"<PageUp>"``

Compilation never fails: unknown bracket content degrades to its first
character as a literal key.
"""

from __future__ import annotations

from pi.keymap.keys import MODIFIER_LETTERS, VIM_TO_SPECIAL, Key, Modifier


def parse_pattern(pattern: str) -> tuple[Key, ...]:
    """Compile *pattern* into a sequence of keys.

    An empty pattern compiles to an empty tuple.
    """
    keys: list[Key] = []
    i = 0
    n = len(pattern)

    while i < n:
        ch = pattern[i]
        if ch == "<":
            end = pattern.find(">", i + 1)
            if end > i + 1:
                # "<A->>" is Alt+">": the chord key itself is the bracket
                if pattern[end - 1] == "-" and end + 1 < n and pattern[end + 1] == ">":
                    end += 1
                keys.append(_parse_chord(pattern[i + 1 : end]))
                i = end + 1
                continue
        keys.append(Key(rune=ch))
        i += 1

    return tuple(keys)


def _parse_chord(inner: str) -> Key:
    """Parse the content of one ``<...>`` token."""
    if inner == "-":
        return Key(rune="-")
    if inner.endswith("--"):
        # "<C-->" is Ctrl+"-"
        parts = inner[:-2].split("-") + ["-"]
    else:
        parts = inner.split("-")

    mod = Modifier.NONE
    last = len(parts) - 1
    for index, part in enumerate(parts):
        lower = part.lower()
        if index < last and lower in MODIFIER_LETTERS:
            mod |= MODIFIER_LETTERS[lower]
            continue
        if index < last:
            # Not a modifier letter: keep scanning, the final part decides
            continue

        special = VIM_TO_SPECIAL.get(lower)
        if special is not None:
            return Key(mod=mod, special=special)
        if part:
            return Key(rune=part[0], mod=mod)

    return Key(rune=inner[0], mod=mod)


def expand_aliases(pattern: str, aliases: dict[str, str] | None) -> str:
    """Replace ``<Name>`` references with their alias expansion.

    Alias names are matched case-insensitively. Expansion is a single pass:
    text produced by an expansion is never itself re-expanded.
    """
    if not aliases:
        return pattern

    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        if pattern[i] != "<":
            out.append(pattern[i])
            i += 1
            continue
        end = pattern.find(">", i)
        if end == -1:
            out.append(pattern[i])
            i += 1
            continue
        name = pattern[i + 1 : end]
        expansion = aliases.get(name.lower())
        out.append(expansion if expansion is not None else pattern[i : end + 1])
        i = end + 1
    return "".join(out)
