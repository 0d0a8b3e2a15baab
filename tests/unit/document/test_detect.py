"""Tests for image reference target classification."""

from __future__ import annotations

import pytest

from picrelay.document import classify_target, is_local_target, local_path_of
from picrelay.models import ReferenceTarget


class TestClassifyTarget:
    @pytest.mark.parametrize(
        "target, expected",
        [
            ("https://cdn.example.com/a.png", ReferenceTarget.REMOTE_URL),
            ("HTTP://cdn.example.com/a.png", ReferenceTarget.REMOTE_URL),
            ("data:image/png;base64,AAAA", ReferenceTarget.DATA_URI),
            ("file:///Users/me/a.png", ReferenceTarget.LOCAL_FILE),
            ("C:\\Users\\me\\a.png", ReferenceTarget.LOCAL_FILE),
            ("/tmp/a.png", ReferenceTarget.LOCAL_FILE),
            ("./a.png", ReferenceTarget.LOCAL_FILE),
            ("../assets/a", ReferenceTarget.LOCAL_FILE),
            ("~/Pictures/a.png", ReferenceTarget.LOCAL_FILE),
            ("assets/my%20photo.JPG", ReferenceTarget.LOCAL_FILE),
            ("photo.webp", ReferenceTarget.LOCAL_FILE),
            ("ftp://host/a.png", ReferenceTarget.UNKNOWN),
            ("notes.md", ReferenceTarget.UNKNOWN),
            ("", ReferenceTarget.UNKNOWN),
            ("   ", ReferenceTarget.UNKNOWN),
        ],
    )
    def test_classify(self, target, expected):
        assert classify_target(target) == expected

    def test_is_local_target(self):
        assert is_local_target("a.png")
        assert not is_local_target("https://x.example/a.png")


class TestLocalPathOf:
    def test_file_url(self):
        assert local_path_of("file:///Users/me/my%20photo.png") == "/Users/me/my photo.png"

    def test_percent_encoded_relative(self):
        assert local_path_of(" assets/my%20photo.png ") == "assets/my photo.png"

    def test_plain(self):
        assert local_path_of("a.png") == "a.png"
