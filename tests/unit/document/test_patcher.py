"""Tests for DocumentPatcher placeholder insertion and commit."""

from __future__ import annotations

from picrelay.document import DocumentPatcher, EditorHandle, TextBuffer, format_reference

URL = "https://cdn.example.com/abc.png"


def _buffer_with_cursor(text: str, cursor: int) -> TextBuffer:
    buffer = TextBuffer(text)
    buffer.select(cursor)
    return buffer


class TestFormatReference:
    def test_format(self):
        assert format_reference("photo.png", "photo.png") == "![photo.png](photo.png)"


class TestInsertPlaceholder:
    def test_inserts_at_cursor(self):
        buffer = _buffer_with_cursor("Hello world", 6)
        placeholder = DocumentPatcher().insert_placeholder(buffer, "photo.png", "photo.png")
        assert placeholder == "![photo.png](photo.png)"
        assert buffer.get_value() == "Hello ![photo.png](photo.png)world"

    def test_replaces_selection(self):
        buffer = TextBuffer("Hello world")
        buffer.select(6, 11)
        DocumentPatcher().insert_placeholder(buffer, "a.png", "a.png")
        assert buffer.get_value() == "Hello ![a.png](a.png)"


class TestCommit:
    def test_rewrites_placeholder(self, metrics):
        buffer = TextBuffer("Intro\n![photo.png](photo.png)\n")
        patcher = DocumentPatcher(metrics=metrics)
        assert patcher.commit_remote(buffer, "photo.png", "photo.png", URL)
        assert buffer.get_value() == f"Intro\n![photo.png]({URL})\n"
        assert metrics.count("picrelay.patch_strategy_total", strategy="exact") == 1

    def test_reads_current_text(self):
        buffer = TextBuffer()
        patcher = DocumentPatcher()
        patcher.insert_placeholder(buffer, "photo.png", "photo.png")
        # The user keeps typing while the upload runs.
        buffer.set_value("Typed before. " + buffer.get_value() + " Typed after.")
        assert patcher.commit(buffer, "photo.png", "photo.png", URL) == "exact"
        assert buffer.get_value() == f"Typed before. ![photo.png]({URL}) Typed after."

    def test_miss_leaves_document_untouched(self, metrics):
        text = "The user deleted the placeholder."
        buffer = TextBuffer(text)
        patcher = DocumentPatcher(metrics=metrics)
        assert not patcher.commit_remote(buffer, "photo.png", "photo.png", URL)
        assert buffer.get_value() == text
        assert metrics.count("picrelay.patch_strategy_total", strategy="none") == 1

    def test_replace_all(self):
        buffer = TextBuffer("![a](a.png) and ![a](a.png)")
        DocumentPatcher().commit_remote(buffer, "a.png", "a", URL, replace_all=True)
        assert buffer.get_value() == f"![a]({URL}) and ![a]({URL})"

    def test_host_path_enables_embed_match(self):
        buffer = TextBuffer("![[photo.png]]")
        patched = DocumentPatcher().commit_remote(
            buffer, "assets/photo.png", "photo.png", URL, host_path="assets/photo.png"
        )
        assert patched
        assert buffer.get_value() == f"![photo.png]({URL})"

    def test_rewrite_is_pure(self):
        text = "![a](a.png)"
        patched, strategy = DocumentPatcher().rewrite(text, "a.png", "a", URL)
        assert strategy == "exact"
        assert patched == f"![a]({URL})"

    def test_commit_remote_all(self):
        editors = [TextBuffer("![a](a.png)"), TextBuffer("nothing"), TextBuffer("x ![b](dir/a.png)")]
        changed = DocumentPatcher().commit_remote_all(editors, "a.png", "a", URL)
        assert changed == 2
        assert editors[1].get_value() == "nothing"
        assert editors[2].get_value() == f"x ![a]({URL})"


class TestEditorProtocol:
    def test_text_buffer_is_an_editor_handle(self):
        assert isinstance(TextBuffer(), EditorHandle)
