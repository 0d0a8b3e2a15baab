"""Tests for the in-memory TextBuffer editor."""

from __future__ import annotations

import pytest

from picrelay.document import TextBuffer


class TestTextBuffer:
    def test_cursor_starts_at_end(self):
        buffer = TextBuffer("abc")
        buffer.replace_selection("d")
        assert buffer.get_value() == "abcd"

    def test_select_and_replace(self):
        buffer = TextBuffer("hello world")
        buffer.select(0, 5)
        assert buffer.get_selection() == "hello"
        buffer.replace_selection("goodbye")
        assert buffer.get_value() == "goodbye world"
        assert buffer.get_selection() == ""

    def test_cursor_moves_after_insert(self):
        buffer = TextBuffer("ac")
        buffer.select(1)
        buffer.replace_selection("b")
        buffer.replace_selection("!")
        assert buffer.get_value() == "ab!c"

    @pytest.mark.parametrize("start, end", [(-1, 2), (2, 1), (0, 10)])
    def test_select_out_of_range(self, start, end):
        with pytest.raises(ValueError):
            TextBuffer("abc").select(start, end)

    def test_set_value_clamps_selection(self):
        buffer = TextBuffer("abcdef")
        buffer.select(2, 6)
        buffer.set_value("ab")
        assert buffer.get_selection() == ""
        buffer.replace_selection("X")
        assert buffer.get_value() == "abX"

    def test_repr(self):
        assert repr(TextBuffer("abc", path="notes/a.md")) == "TextBuffer(len=3, path='notes/a.md')"

    def test_set_value_keeps_cursor_after_earlier_edit(self):
        buffer = TextBuffer("![a](a.png) tail")
        buffer.select(12)
        buffer.set_value("![a](https://x.example/a.png) tail")
        buffer.replace_selection("|")
        assert buffer.get_value() == "![a](https://x.example/a.png) |tail"

    def test_cursor_at_end_stays_at_end(self):
        buffer = TextBuffer("![a](a.png)")
        buffer.set_value("![a](https://x.example/a.png)")
        buffer.replace_selection("!")
        assert buffer.get_value().endswith(")!")
