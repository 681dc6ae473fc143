"""
autoremedy — repository tree access tests

File: tests/unit/knowledge_plane/test_repository.py

Purpose
- Listing honours excluded directories and the depth limit.
- Reads never escape the root and refuse binary content.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from autoremedy.knowledge_plane.repository import LocalRepository

if TYPE_CHECKING:
    from pathlib import Path


def write(root: Path, rel_path: str, content: str | bytes) -> None:
    target = root / rel_path
    target.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        target.write_bytes(content)
    else:
        target.write_text(content, encoding="utf-8")


def test_listing_skips_excluded_directories(tmp_path: Path) -> None:
    write(tmp_path, "src/app.ts", "export {}\n")
    write(tmp_path, "node_modules/vue/index.js", "module.exports = {}\n")
    write(tmp_path, ".git/HEAD", "ref: refs/heads/main\n")

    paths = [entry.path for entry in LocalRepository(tmp_path).entries()]

    assert paths == ["src", "src/app.ts"]


def test_listing_respects_depth_limit(tmp_path: Path) -> None:
    write(tmp_path, "a/b/c/deep.txt", "x")
    write(tmp_path, "a/top.txt", "x")

    paths = [entry.path for entry in LocalRepository(tmp_path, max_depth=2).entries()]

    assert "a" in paths
    assert "a/b" in paths
    assert "a/top.txt" in paths
    assert "a/b/c" not in paths


def test_listing_is_cached_until_invalidated(tmp_path: Path) -> None:
    write(tmp_path, "one.md", "1")
    repo = LocalRepository(tmp_path)
    assert len(repo.files()) == 1

    write(tmp_path, "two.md", "2")
    assert len(repo.files()) == 1

    repo.invalidate()
    assert [entry.name for entry in repo.files()] == ["one.md", "two.md"]


def test_reads_are_contained_and_text_only(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    write(root, "README.md", "# Title\n")
    write(root, "logo.png", b"\x89PNG\x00\x00")
    write(tmp_path, "outside.txt", "nope")
    repo = LocalRepository(root)

    assert repo.read_text("README.md") == "# Title\n"
    assert repo.file_size("README.md") == 8
    assert repo.read_text("logo.png") is None
    assert repo.read_text("../outside.txt") is None
    assert repo.read_text("missing.md") is None
    assert not repo.is_file("../outside.txt")
    assert repo.file_size("../outside.txt") is None


def test_oversized_files_are_not_read(tmp_path: Path) -> None:
    write(tmp_path, "big.txt", "x" * 64)

    assert LocalRepository(tmp_path, max_read_bytes=32).read_text("big.txt") is None


def test_root_must_be_directory(tmp_path: Path) -> None:
    with pytest.raises(NotADirectoryError):
        LocalRepository(tmp_path / "missing")
