# paths.py
# SPDX-License-Identifier: MIT
"""Discovery of candidate license files inside a module's file tree."""

from __future__ import annotations

import enum
import posixpath
from collections.abc import Collection, Iterator

from .interfaces import FileTree, join_path
from .log import get_logger

log = get_logger(__name__)

__all__ = [
    "LICENSE_FILE_NAMES",
    "WhichFiles",
    "InvalidPathError",
    "is_license_file_name",
    "is_vendored_file",
    "check_file_path",
    "iter_tree_files",
    "collect_license_paths",
]

LICENSE_FILE_NAMES: tuple[str, ...] = (
    "COPYING",
    "COPYING.md",
    "COPYING.markdown",
    "COPYING.txt",
    "LICENCE",
    "LICENCE.md",
    "LICENCE.markdown",
    "LICENCE.txt",
    "LICENSE",
    "LICENSE.md",
    "LICENSE.markdown",
    "LICENSE.txt",
    "LICENSE-2.0.txt",
    "LICENCE-2.0.txt",
    "LICENSE-APACHE",
    "LICENCE-APACHE",
    "LICENSE-APACHE-2.0.txt",
    "LICENCE-APACHE-2.0.txt",
    "LICENSE-MIT",
    "LICENCE-MIT",
    "LICENSE.MIT",
    "LICENCE.MIT",
    "LICENSE.code",
    "LICENCE.code",
    "LICENSE.docs",
    "LICENCE.docs",
    "LICENSE.rst",
    "LICENCE.rst",
    "MIT-LICENSE",
    "MIT-LICENCE",
    "MIT-LICENSE.md",
    "MIT-LICENCE.md",
    "MIT-LICENSE.markdown",
    "MIT-LICENCE.markdown",
    "MIT-LICENSE.txt",
    "MIT-LICENCE.txt",
    "MIT_LICENSE",
    "MIT_LICENCE",
    "UNLICENSE",
    "UNLICENCE",
)

_LICENSE_FILE_NAMES_LOWER = frozenset(name.lower() for name in LICENSE_FILE_NAMES)

_SAFE_FILE_NAME_PUNCT = frozenset("!#$%&()+,-.=@[]^_{}~ ")

_BAD_WINDOWS_NAMES = frozenset(
    ["con", "prn", "aux", "nul"]
    + [f"com{i}" for i in range(1, 10)]
    + [f"lpt{i}" for i in range(1, 10)]
)


class WhichFiles(enum.Enum):
    """Which part of the tree a path collection considers."""

    ROOT = "root"
    NON_ROOT = "non_root"
    ALL = "all"


class InvalidPathError(ValueError):
    """A file path that is unsafe to use as a module file path."""


def is_license_file_name(name: str) -> bool:
    """Return True when ``name`` is a recognized license file name, ignoring case."""
    return name.lower() in _LICENSE_FILE_NAMES_LOWER


def is_vendored_file(name: str) -> bool:
    """
    Report whether ``name`` sits in a proper subdirectory of a ``vendor`` directory.

    A package may itself be named ``vendor``, so ``vendor/LICENSE`` is not
    vendored while ``vendor/foo/LICENSE`` is.
    """
    if name.startswith("vendor/"):
        offset = len("vendor/")
    else:
        idx = name.find("/vendor/")
        if idx < 0:
            return False
        offset = idx + len("/vendor/")
    return "/" in name[offset:]


def _file_name_char_ok(ch: str) -> bool:
    if ch < "\x80":
        return ch.isascii() and (ch.isalnum() or ch in _SAFE_FILE_NAME_PUNCT)
    return ch.isalpha()


def _check_element(elem: str) -> None:
    if not elem:
        raise InvalidPathError("empty path element")
    if elem.count(".") == len(elem):
        raise InvalidPathError(f"invalid path element {elem!r}")
    if elem.endswith("."):
        raise InvalidPathError("trailing dot in path element")
    for ch in elem:
        if not _file_name_char_ok(ch):
            raise InvalidPathError(f"invalid char {ch!r}")
    short = elem.split(".", 1)[0]
    if short.lower() in _BAD_WINDOWS_NAMES:
        raise InvalidPathError(f"{short!r} disallowed as path element component on Windows")
    tilde = short.rfind("~")
    if 0 <= tilde < len(short) - 1 and short[tilde + 1:].isdigit():
        raise InvalidPathError("trailing tilde and digits in path element")


def check_file_path(path: str) -> None:
    """
    Validate a module file path.

    Raises:
        InvalidPathError: If the path is empty, not valid UTF-8, has empty,
            dot-only or trailing-dot elements, contains characters outside
            the safe file-name set, or uses a name that collides with
            Windows device names or short names.
    """
    try:
        path.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidPathError("invalid UTF-8") from exc
    if not path:
        raise InvalidPathError("empty string")
    if "//" in path:
        raise InvalidPathError("double slash")
    if path.endswith("/"):
        raise InvalidPathError("trailing slash")
    for elem in path.split("/"):
        _check_element(elem)


def iter_tree_files(tree: FileTree, directory: str = "") -> Iterator[str]:
    """Yield every regular file under ``directory`` in lexical order."""
    entries = sorted(tree.list_dir(directory), key=lambda entry: entry.name)
    for entry in entries:
        path = join_path(directory, entry.name)
        if entry.is_dir:
            yield from iter_tree_files(tree, path)
        else:
            yield path


def collect_license_paths(
    tree: FileTree | None,
    module_path: str,
    which: WhichFiles,
    ignore_files: Collection[tuple[str, str]] = (),
) -> list[str]:
    """
    Return candidate license file paths from ``tree``.

    Files must carry a recognized license file name and survive, in order,
    the ignore list, the ``which`` location filter, the vendor filter and the
    path sanity check. A failure while walking the tree is logged and
    produces an empty list.
    """
    if tree is None:
        return []
    paths: list[str] = []
    try:
        for pathname in iter_tree_files(tree):
            if not is_license_file_name(posixpath.basename(pathname)):
                continue
            if (module_path, pathname) in ignore_files:
                continue
            at_root = posixpath.dirname(pathname) == ""
            if which is WhichFiles.ROOT and not at_root:
                continue
            if which is WhichFiles.NON_ROOT and at_root:
                continue
            if is_vendored_file(pathname):
                continue
            try:
                check_file_path(pathname)
            except InvalidPathError as exc:
                log.warning("Skipping license candidate %r in %s: %s", pathname, module_path, exc)
                continue
            paths.append(pathname)
    except OSError as exc:
        log.warning("Walking file tree of %s failed: %s", module_path, exc)
        return []
    return paths
