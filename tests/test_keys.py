"""Tests for pi.keymap.keys: key model and vim-style rendering."""

from __future__ import annotations

import pytest

from pi.keymap.keys import (
    SPECIAL_TO_VIM,
    VIM_TO_SPECIAL,
    Key,
    Modifier,
    Special,
    format_keys,
    generates_escape_sequence,
)


# ---------------------------------------------------------------------------
# Key value semantics
# ---------------------------------------------------------------------------


class TestKeyValue:
    def test_defaults(self):
        key = Key()
        assert key.rune == ""
        assert key.mod == Modifier.NONE
        assert key.special == Special.NONE

    def test_structural_equality(self):
        assert Key(rune="j") == Key(rune="j")
        assert Key(rune="w", mod=Modifier.CTRL) == Key(rune="w", mod=Modifier.CTRL)
        assert Key(rune="w") != Key(rune="w", mod=Modifier.CTRL)

    def test_hashable(self):
        table = {Key(special=Special.UP): "up"}
        assert table[Key(special=Special.UP)] == "up"

    def test_frozen(self):
        key = Key(rune="j")
        with pytest.raises(AttributeError):
            key.rune = "k"  # type: ignore[misc]

    def test_is_special(self):
        assert Key(special=Special.ENTER).is_special
        assert not Key(rune="x").is_special


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestKeyStr:
    @pytest.mark.parametrize(
        "key,expected",
        [
            (Key(rune="j"), "j"),
            (Key(rune="G"), "G"),
            (Key(rune="w", mod=Modifier.CTRL), "<C-w>"),
            (Key(rune="x", mod=Modifier.ALT), "<A-x>"),
            (Key(rune="d", mod=Modifier.CTRL | Modifier.ALT), "<C-A-d>"),
            (Key(special=Special.UP), "<Up>"),
            (Key(special=Special.ESCAPE), "<Esc>"),
            (Key(special=Special.ENTER), "<CR>"),
            (Key(special=Special.TAB, mod=Modifier.SHIFT), "<S-Tab>"),
            (Key(special=Special.PAGE_DOWN, mod=Modifier.CTRL), "<C-PageDown>"),
            (Key(special=Special.F12), "<F12>"),
        ],
    )
    def test_vim_form(self, key, expected):
        assert str(key) == expected

    def test_modifier_order_is_ctrl_alt_shift(self):
        key = Key(rune="z", mod=Modifier.SHIFT | Modifier.CTRL | Modifier.ALT)
        assert str(key) == "<C-A-S-z>"

    def test_format_keys(self):
        keys = (Key(rune="g"), Key(rune="d", mod=Modifier.CTRL))
        assert format_keys(keys) == "g<C-d>"

    def test_format_empty(self):
        assert format_keys(()) == ""


# ---------------------------------------------------------------------------
# Name tables
# ---------------------------------------------------------------------------


class TestNameTables:
    def test_every_special_has_a_vim_name(self):
        for special in Special:
            if special is Special.NONE:
                continue
            assert special in SPECIAL_TO_VIM

    def test_vim_names_parse_back(self):
        for special, name in SPECIAL_TO_VIM.items():
            assert VIM_TO_SPECIAL[name.lower()] is special

    def test_aliases(self):
        assert VIM_TO_SPECIAL["escape"] is Special.ESCAPE
        assert VIM_TO_SPECIAL["return"] is Special.ENTER
        assert VIM_TO_SPECIAL["delete"] is Special.DELETE


# ---------------------------------------------------------------------------
# Escape-sequence classification
# ---------------------------------------------------------------------------


class TestGeneratesEscapeSequence:
    @pytest.mark.parametrize(
        "key",
        [
            Key(special=Special.UP),
            Key(special=Special.HOME),
            Key(special=Special.DELETE),
            Key(special=Special.F5),
            Key(rune="x", mod=Modifier.ALT),
            Key(special=Special.ENTER, mod=Modifier.ALT),
        ],
    )
    def test_true(self, key):
        assert generates_escape_sequence(key)

    @pytest.mark.parametrize(
        "key",
        [
            Key(rune="j"),
            Key(rune="w", mod=Modifier.CTRL),
            Key(special=Special.ESCAPE),
            Key(special=Special.ENTER),
            Key(special=Special.TAB),
            Key(special=Special.BACKSPACE),
        ],
    )
    def test_false(self, key):
        assert not generates_escape_sequence(key)
