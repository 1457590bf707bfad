"""Directory listing port and its local-disk adapter."""
from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import Protocol

from ccjsonl.ingestion.errors import FileSystemError


@dataclass(frozen=True)
class DirectoryEntry:
    name: str
    directory: bool
    file: bool

    def is_dir(self) -> bool:
        return self.directory

    def is_file(self) -> bool:
        return self.file


class FileSystemManager(Protocol):
    async def read_directory(self, path: str) -> list[DirectoryEntry]: ...


def _scan(path: str) -> list[DirectoryEntry]:
    with os.scandir(path) as it:
        # Symlinks are reported as neither, so the walk never follows them.
        return [
            DirectoryEntry(
                name=entry.name,
                directory=entry.is_dir(follow_symlinks=False),
                file=entry.is_file(follow_symlinks=False),
            )
            for entry in it
        ]


class LocalFileSystemManager:
    """Reads directories with os.scandir in a worker thread."""

    async def read_directory(self, path: str) -> list[DirectoryEntry]:
        try:
            return await asyncio.to_thread(_scan, path)
        except OSError as exc:
            raise FileSystemError(f"Failed to read directory: {path}", exc) from exc
