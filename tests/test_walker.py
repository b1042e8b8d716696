"""
Unit tests for filesystem enumeration.
"""

import pytest

from core.models.config import ImportConfig
from core.storage.walker import FileSystemWalker, normalize_relative_path, guess_mime_type


class TestNormalizeRelativePath:
    """Test path canonicalization"""

    @pytest.mark.parametrize("raw,expected", [
        ("a/b.txt", "a/b.txt"),
        ("./a/b.txt", "a/b.txt"),
        ("/a//b.txt", "a/b.txt"),
        ("a\\b\\c.txt", "a/b/c.txt"),
        ("a/./b/", "a/b"),
        ("", ""),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_relative_path(raw) == expected


class TestFileSystemWalker:
    """Test recursive enumeration"""

    @pytest.mark.asyncio
    async def test_walk_nested_tree(self, source_root, make_file):
        make_file("b.txt", "bb")
        make_file("a/one.md", "1")
        make_file("a/deep/two.json", "{}")

        result = await FileSystemWalker(source_root).walk()

        paths = [f.path for f in result.files]
        assert paths == ["a/deep/two.json", "a/one.md", "b.txt"]
        assert result.total_size == 2 + 1 + 2
        assert all(f.stat is not None and f.stat.mtime is not None for f in result.files)

    @pytest.mark.asyncio
    async def test_default_excludes(self, source_root, make_file):
        make_file("keep.txt")
        make_file(".git/HEAD")
        make_file(".vfs-sync/config.json")
        make_file("pkg/__pycache__/mod.pyc")

        result = await FileSystemWalker(source_root).walk()

        assert [f.path for f in result.files] == ["keep.txt"]

    @pytest.mark.asyncio
    async def test_custom_exclude_by_relative_path(self, source_root, make_file):
        make_file("build/out.bin")
        make_file("src/build.py")
        config = ImportConfig(exclude_patterns=["build/*", "build"])

        result = await FileSystemWalker(source_root, config).walk()

        assert [f.path for f in result.files] == ["src/build.py"]

    @pytest.mark.asyncio
    async def test_mime_type_detected(self, source_root, make_file):
        make_file("notes.txt")
        make_file("blob")

        result = await FileSystemWalker(source_root).walk()

        by_path = {f.path: f for f in result.files}
        assert by_path["notes.txt"].stat.mime == "text/plain"
        assert by_path["blob"].stat.mime is None

    @pytest.mark.asyncio
    async def test_missing_root_raises(self, tmp_path):
        walker = FileSystemWalker(tmp_path / "missing")

        with pytest.raises(NotADirectoryError):
            await walker.walk()

    def test_guess_mime_type(self):
        assert guess_mime_type("a.html") == "text/html"
        assert guess_mime_type("Makefile") is None
