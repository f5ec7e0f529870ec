# interfaces.py
# SPDX-License-Identifier: MIT
"""Protocols shared between the detector and the file-tree sources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

__all__ = ["TreeEntry", "FileTree", "join_path"]


@dataclass(frozen=True, slots=True)
class TreeEntry:
    """
    One entry of a directory listing.

    Attributes:
        name (str): Base name of the entry (no separators).
        is_dir (bool): True for directories; everything else is treated as a
            regular file.
    """

    name: str
    is_dir: bool = False


@runtime_checkable
class FileTree(Protocol):
    """
    Read-only view of a module's content directory.

    Paths are relative, ``/``-separated, and ``""`` names the root. The
    fetch layer decides whether the tree is backed by an archive, a local
    checkout, or memory; the detector only relies on these three calls.
    """

    def list_dir(self, path: str) -> list[TreeEntry]:
        """Return the entries directly under ``path``. Raises OSError on failure."""
        ...

    def stat_size(self, path: str) -> int:
        """Return the size of the file at ``path`` in bytes. Raises OSError on failure."""
        ...

    def read_bytes(self, path: str, limit: int) -> bytes:
        """Return at most ``limit`` bytes of the file at ``path``. Raises OSError on failure."""
        ...


def join_path(parent: str, name: str) -> str:
    """Join a tree-relative directory and an entry name with ``/``."""
    return f"{parent}/{name}" if parent else name
