"""Tests for pi.keymap.pattern: pattern compiler and alias expansion."""

from __future__ import annotations

import pytest

from pi.keymap.keys import Key, Modifier, Special, format_keys
from pi.keymap.pattern import expand_aliases, parse_pattern


# ---------------------------------------------------------------------------
# Plain keys and sequences
# ---------------------------------------------------------------------------


class TestPlainKeys:
    def test_empty(self):
        assert parse_pattern("") == ()

    def test_single(self):
        assert parse_pattern("j") == (Key(rune="j"),)

    def test_sequence(self):
        assert parse_pattern("gg") == (Key(rune="g"), Key(rune="g"))

    def test_case_is_kept(self):
        assert parse_pattern("G") == (Key(rune="G"),)

    def test_unicode_rune(self):
        assert parse_pattern("é") == (Key(rune="é"),)


# ---------------------------------------------------------------------------
# Chords
# ---------------------------------------------------------------------------


class TestChords:
    def test_ctrl(self):
        assert parse_pattern("<C-w>") == (Key(rune="w", mod=Modifier.CTRL),)

    def test_ctrl_then_key(self):
        assert parse_pattern("<C-w>j") == (Key(rune="w", mod=Modifier.CTRL), Key(rune="j"))

    def test_alt_and_meta_are_equivalent(self):
        assert parse_pattern("<A-x>") == parse_pattern("<M-x>") == (Key(rune="x", mod=Modifier.ALT),)

    def test_multiple_modifiers(self):
        assert parse_pattern("<C-A-d>") == (Key(rune="d", mod=Modifier.CTRL | Modifier.ALT),)

    def test_modifier_letters_case_insensitive(self):
        assert parse_pattern("<c-w>") == parse_pattern("<C-w>")

    def test_shift_special(self):
        assert parse_pattern("<S-Tab>") == (Key(special=Special.TAB, mod=Modifier.SHIFT),)

    @pytest.mark.parametrize(
        "pattern,special",
        [
            ("<Esc>", Special.ESCAPE),
            ("<esc>", Special.ESCAPE),
            ("<CR>", Special.ENTER),
            ("<Enter>", Special.ENTER),
            ("<Space>", Special.SPACE),
            ("<BS>", Special.BACKSPACE),
            ("<PageUp>", Special.PAGE_UP),
            ("<Del>", Special.DELETE),
            ("<F1>", Special.F1),
            ("<f10>", Special.F10),
        ],
    )
    def test_special_names(self, pattern, special):
        assert parse_pattern(pattern) == (Key(special=special),)

    def test_ctrl_minus(self):
        assert parse_pattern("<C-->") == (Key(rune="-", mod=Modifier.CTRL),)

    def test_alt_greater_than(self):
        assert parse_pattern("<A->>") == (Key(rune=">", mod=Modifier.ALT),)

    def test_lone_minus(self):
        assert parse_pattern("<->") == (Key(rune="-"),)


# ---------------------------------------------------------------------------
# Degenerate input
# ---------------------------------------------------------------------------


class TestDegenerate:
    def test_unknown_name_uses_first_character(self):
        assert parse_pattern("<Foo>") == (Key(rune="F"),)

    def test_unknown_name_keeps_modifiers(self):
        assert parse_pattern("<C-foo>") == (Key(rune="f", mod=Modifier.CTRL),)

    def test_unclosed_bracket_is_literal(self):
        assert parse_pattern("<abc") == tuple(Key(rune=c) for c in "<abc")

    def test_empty_brackets_are_literal(self):
        assert parse_pattern("<>") == (Key(rune="<"), Key(rune=">"))

    def test_bracket_after_keys(self):
        assert parse_pattern("d<") == (Key(rune="d"), Key(rune="<"))


# ---------------------------------------------------------------------------
# Round trip through rendering
# ---------------------------------------------------------------------------


class TestRoundTrip:
    @pytest.mark.parametrize(
        "pattern",
        ["j", "gg", "<C-w>j", "<A-x>", "<S-Tab>", "<C-A-d>", "<Up>", "<F5>", "<C-->", "<A->>", "g<PageDown>"],
    )
    def test_format_parses_back(self, pattern):
        assert format_keys(parse_pattern(pattern)) == pattern

    def test_meta_renders_as_alt(self):
        assert format_keys(parse_pattern("<M-x>")) == "<A-x>"


# ---------------------------------------------------------------------------
# Alias expansion
# ---------------------------------------------------------------------------


class TestExpandAliases:
    def test_no_aliases(self):
        assert expand_aliases("<Leader>f", None) == "<Leader>f"
        assert expand_aliases("<Leader>f", {}) == "<Leader>f"

    def test_expands(self):
        assert expand_aliases("<Leader>f", {"leader": ","}) == ",f"

    def test_case_insensitive(self):
        assert expand_aliases("<LEADER>f", {"leader": ","}) == ",f"

    def test_unknown_names_kept(self):
        assert expand_aliases("<C-w><Leader>", {"leader": " "}) == "<C-w> "

    def test_single_pass(self):
        aliases = {"a": "<b>", "b": "x"}
        assert expand_aliases("<a>", aliases) == "<b>"

    def test_unclosed_bracket(self):
        assert expand_aliases("<Leader", {"leader": ","}) == "<Leader"

    def test_expansion_can_contain_chords(self):
        keys = parse_pattern(expand_aliases("<Win>j", {"win": "<C-w>"}))
        assert keys == (Key(rune="w", mod=Modifier.CTRL), Key(rune="j"))
