# trees.py
# SPDX-License-Identifier: MIT
"""File-tree sources the detector can read a module's content from.

All trees use relative ``/``-separated paths with ``""`` as the root and
report failures as :class:`OSError`, which the detector turns into
``UNKNOWN`` licenses or an empty path list.
"""

from __future__ import annotations

import errno
import os
import zipfile
import zlib
from collections.abc import Mapping
from pathlib import Path

from ..core.interfaces import TreeEntry, join_path
from ..core.log import get_logger

log = get_logger(__name__)

__all__ = ["DirectoryTree", "ZipTree", "MemoryTree", "check_tree_prefix"]


def _not_found(path: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)


def _split(path: str) -> list[str]:
    """Split a tree path, rejecting absolute paths and dot elements."""
    if not path:
        return []
    parts = path.split("/")
    if path.startswith("/") or any(p in ("", ".", "..") for p in parts):
        raise _not_found(path)
    return parts


def check_tree_prefix(prefix: str) -> None:
    """
    Validate a content directory prefix.

    Raises:
        ValueError: If the prefix is empty, absolute, has a trailing slash or
            contains empty, ``.`` or ``..`` elements. ``"."`` alone is allowed
            and names the archive root.
    """
    if prefix == ".":
        return
    if not prefix or prefix.startswith("/") or prefix.endswith("/"):
        raise ValueError(f"invalid content directory {prefix!r}")
    if any(part in ("", ".", "..") for part in prefix.split("/")):
        raise ValueError(f"invalid content directory {prefix!r}")


class DirectoryTree:
    """
    A local directory.

    Only directories and regular files are listed. Symlinks are listed as
    plain files when they resolve to a regular file inside the root and are
    hidden otherwise; symlinked directories are never descended into.
    Any access that resolves outside the root raises :class:`PermissionError`.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root_resolved = self.root.resolve()

    def __repr__(self) -> str:
        return f"DirectoryTree({str(self.root)!r})"

    def _contained(self, path: Path) -> bool:
        return path == self.root_resolved or path.is_relative_to(self.root_resolved)

    def _resolve(self, path: str) -> Path:
        resolved = self.root_resolved.joinpath(*_split(path)).resolve()
        if not self._contained(resolved):
            raise PermissionError(errno.EACCES, "path escapes tree root", path)
        return resolved

    def list_dir(self, path: str) -> list[TreeEntry]:
        entries = []
        with os.scandir(self._resolve(path)) as it:
            for entry in it:
                if entry.is_symlink():
                    target = Path(entry.path).resolve()
                    if not self._contained(target):
                        log.debug("Skipping symlink %s pointing outside %s", join_path(path, entry.name), self.root)
                        continue
                    if target.is_file():
                        entries.append(TreeEntry(entry.name))
                    continue
                if entry.is_dir(follow_symlinks=False):
                    entries.append(TreeEntry(entry.name, True))
                elif entry.is_file(follow_symlinks=False):
                    entries.append(TreeEntry(entry.name))
                else:
                    log.debug("Skipping special file %s", join_path(path, entry.name))
        return entries

    def stat_size(self, path: str) -> int:
        return self._resolve(path).stat().st_size

    def read_bytes(self, path: str, limit: int) -> bytes:
        resolved = self._resolve(path)
        if resolved.exists() and not resolved.is_file():
            raise OSError(errno.EINVAL, "not a regular file", path)
        with resolved.open("rb") as fh:
            return fh.read(limit)


class ZipTree:
    """
    A content directory inside a zip archive.

    Args:
        zip_file (zipfile.ZipFile): Open archive; the caller owns and closes it.
        prefix (str | None): Directory inside the archive that holds the
            content, e.g. ``example.com/mod@v1.0.0``. When None, a single
            top-level directory (as in GitHub zipballs) is used if present,
            ignoring ``__MACOSX/`` entries.

    Raises:
        ValueError: If ``prefix`` is not a valid directory name.
    """

    def __init__(self, zip_file: zipfile.ZipFile, prefix: str | None = None) -> None:
        self.zip_file = zip_file
        if prefix is None:
            prefix = self._infer_top_prefix()
        else:
            check_tree_prefix(prefix)
            if prefix == ".":
                prefix = ""
        self.prefix = prefix
        self._files: dict[str, zipfile.ZipInfo] = {}
        self._dirs: dict[str, dict[str, bool]] = {}
        self._index()
        if not self._dirs and not prefix:
            self._dirs[""] = {}

    def __repr__(self) -> str:
        return f"ZipTree({self.zip_file.filename!r}, prefix={self.prefix!r})"

    def _infer_top_prefix(self) -> str:
        components: set[str] = set()
        for name in self.zip_file.namelist():
            if not name or name.startswith("__MACOSX/"):
                continue
            if "/" not in name:
                # A file at the archive root means there is no wrapper directory.
                return ""
            components.add(name.split("/", 1)[0])
        if len(components) == 1:
            return next(iter(components))
        return ""

    def _index(self) -> None:
        base = f"{self.prefix}/" if self.prefix else ""
        for info in self.zip_file.infolist():
            name = info.filename
            if not name.startswith(base) or name.startswith("__MACOSX/"):
                continue
            rel = name[len(base):]
            is_dir = rel.endswith("/")
            rel = rel.rstrip("/")
            if not rel:
                self._dirs.setdefault("", {})
                continue
            parts = rel.split("/")
            if any(p in ("", ".", "..") for p in parts):
                log.debug("Skipping archive entry %r", name)
                continue
            for i, part in enumerate(parts):
                parent = "/".join(parts[:i])
                child_is_dir = is_dir or i < len(parts) - 1
                children = self._dirs.setdefault(parent, {})
                children[part] = children.get(part, False) or child_is_dir
                if child_is_dir:
                    self._dirs.setdefault("/".join(parts[: i + 1]), {})
            if not is_dir:
                self._files[rel] = info

    def _info(self, path: str) -> zipfile.ZipInfo:
        info = self._files.get("/".join(_split(path)))
        if info is None:
            raise _not_found(path)
        return info

    def list_dir(self, path: str) -> list[TreeEntry]:
        children = self._dirs.get("/".join(_split(path)))
        if children is None:
            raise _not_found(path or self.prefix)
        return [TreeEntry(name, is_dir) for name, is_dir in children.items()]

    def stat_size(self, path: str) -> int:
        return self._info(path).file_size

    def read_bytes(self, path: str, limit: int) -> bytes:
        info = self._info(path)
        try:
            with self.zip_file.open(info) as fh:
                return fh.read(limit)
        except (zipfile.BadZipFile, zlib.error, RuntimeError, EOFError) as exc:
            raise OSError(f"reading {path} from archive: {exc}") from exc


class MemoryTree:
    """
    A tree held in memory, mapping file paths to their contents.

    Directories are implied by the file paths. ``str`` contents are stored
    as UTF-8.
    """

    def __init__(self, files: Mapping[str, bytes | str]) -> None:
        self._files: dict[str, bytes] = {}
        self._dirs: dict[str, dict[str, bool]] = {"": {}}
        for path, data in files.items():
            parts = _split(path)
            if not parts:
                raise ValueError("empty file path")
            for i, part in enumerate(parts):
                parent = "/".join(parts[:i])
                is_dir = i < len(parts) - 1
                self._dirs.setdefault(parent, {})[part] = is_dir
                if is_dir:
                    self._dirs.setdefault("/".join(parts[: i + 1]), {})
            self._files[path] = data.encode("utf-8") if isinstance(data, str) else bytes(data)

    def _data(self, path: str) -> bytes:
        data = self._files.get(path)
        if data is None:
            raise _not_found(path)
        return data

    def list_dir(self, path: str) -> list[TreeEntry]:
        children = self._dirs.get(path)
        if children is None:
            raise _not_found(path)
        return [TreeEntry(name, is_dir) for name, is_dir in children.items()]

    def stat_size(self, path: str) -> int:
        return len(self._data(path))

    def read_bytes(self, path: str, limit: int) -> bytes:
        return self._data(path)[:limit]
