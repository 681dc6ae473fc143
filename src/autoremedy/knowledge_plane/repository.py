"""
autoremedy — repository tree access

File: src/autoremedy/knowledge_plane/repository.py

Purpose
- Read-only view of a working copy: depth-limited tree listing, containment-safe
  reads, and existence checks against the real file system.

Functional requirements
- Excluded directories are never descended into.
- Reads refuse paths that escape the repository root and binary content.

Non-functional requirements
- Deterministic listing order for the same tree.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

from autoremedy.utils.fs import resolve_within

if TYPE_CHECKING:
    from collections.abc import Iterable

DEFAULT_EXCLUDED_DIRECTORIES: Final[frozenset[str]] = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".venv",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        "__pycache__",
        "node_modules",
        "build",
        "dist",
        "coverage",
        ".autoremedy",
    }
)
DEFAULT_MAX_READ_BYTES: Final[int] = 2_000_000


@dataclass(frozen=True, slots=True)
class RepoEntry:
    """One file or directory in the repository tree."""

    path: str
    is_dir: bool
    size: int = 0

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name


@runtime_checkable
class RepositoryReader(Protocol):
    """Read side of a working copy used by analysis and discovery."""

    def entries(self) -> tuple[RepoEntry, ...]: ...

    def is_file(self, path: str) -> bool: ...

    def file_size(self, path: str) -> int | None: ...

    def read_text(self, path: str) -> str | None: ...


class LocalRepository:
    """``RepositoryReader`` over a directory on disk."""

    def __init__(
        self,
        root: str | os.PathLike[str],
        *,
        exclude_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRECTORIES,
        max_depth: int = 4,
        max_read_bytes: int = DEFAULT_MAX_READ_BYTES,
    ) -> None:
        resolved = Path(root).resolve()
        if not resolved.is_dir():
            raise NotADirectoryError(f"repository root is not a directory: {resolved}")
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        self._root = resolved
        self._exclude_dirs = frozenset(exclude_dirs)
        self._max_depth = max_depth
        self._max_read_bytes = max_read_bytes
        self._entries: tuple[RepoEntry, ...] | None = None

    @property
    def root(self) -> Path:
        return self._root

    def entries(self) -> tuple[RepoEntry, ...]:
        """Depth-limited listing; cached until ``invalidate`` is called."""

        if self._entries is None:
            self._entries = tuple(self._walk())
        return self._entries

    def files(self) -> tuple[RepoEntry, ...]:
        return tuple(entry for entry in self.entries() if not entry.is_dir)

    def invalidate(self) -> None:
        self._entries = None

    def absolute(self, path: str) -> Path:
        return resolve_within(self._root, path)

    def is_file(self, path: str) -> bool:
        try:
            return self.absolute(path).is_file()
        except ValueError:
            return False

    def file_size(self, path: str) -> int | None:
        try:
            target = self.absolute(path)
        except ValueError:
            return None
        if not target.is_file():
            return None
        return target.stat().st_size

    def read_text(self, path: str) -> str | None:
        """UTF-8 text of ``path``; ``None`` for missing, oversized, or binary files."""

        try:
            target = self.absolute(path)
        except ValueError:
            return None
        if not target.is_file() or target.stat().st_size > self._max_read_bytes:
            return None
        raw = target.read_bytes()
        if b"\x00" in raw:
            return None
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return None

    def _walk(self) -> list[RepoEntry]:
        collected: list[RepoEntry] = []
        for current_dir, dir_names, file_names in os.walk(
            self._root, topdown=True, followlinks=False
        ):
            current_path = Path(current_dir)
            relative_dir = current_path.relative_to(self._root)
            depth = 0 if relative_dir == Path(".") else len(relative_dir.parts)

            kept_dirs: list[str] = []
            for directory in sorted(dir_names):
                if directory in self._exclude_dirs:
                    continue
                relative = (relative_dir / directory).as_posix()
                collected.append(RepoEntry(path=relative, is_dir=True))
                if depth + 1 < self._max_depth:
                    kept_dirs.append(directory)
            dir_names[:] = kept_dirs

            for file_name in sorted(file_names):
                file_path = current_path / file_name
                if file_path.is_symlink():
                    continue
                relative = (relative_dir / file_name).as_posix()
                collected.append(
                    RepoEntry(path=relative, is_dir=False, size=file_path.stat().st_size)
                )

        collected.sort(key=lambda entry: entry.path)
        return collected


__all__ = [
    "DEFAULT_EXCLUDED_DIRECTORIES",
    "LocalRepository",
    "RepoEntry",
    "RepositoryReader",
]
