# exceptions.py
# SPDX-License-Identifier: MIT
"""Hand-curated exceptions to ordinary license classification.

The table is a static data asset (``licensegate/data/exceptions``) with four
parts:

* ``corpus``: vetted license texts the built-in catalog does not recognize.
  They are added to the scanner as extra templates, each mapped to the
  license types it stands for.
* ``canonical_types``: catalog identifiers that collapse onto canonical
  license types (header-only or notice forms of a license, for example).
* ``ignore_files``: ``(module path, file path)`` pairs known to be false
  positives; the path collector skips them.
* ``modules``: whole-module overrides. A module listed here is treated as
  redistributable only when each declared file is present with exactly the
  declared contents (after :func:`normalize_contents`) and no other license
  file exists outside ``testdata`` directories.

Every type named anywhere in the table must be on the redistributable
allow-list; :meth:`ExceptionTable.validate` enforces that at start-up.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .catalog import LicenseTemplate
from .log import get_logger

log = get_logger(__name__)

__all__ = [
    "ExceptionTableError",
    "CorpusAddition",
    "ExceptionFile",
    "ExceptionTable",
    "normalize_contents",
    "parse_exception_table",
    "load_exception_table",
]

_WHITESPACE_RE = re.compile(r"\s+")


class ExceptionTableError(ValueError):
    """The exception table asset is malformed or names a non-redistributable type."""


def normalize_contents(text: str | bytes) -> str:
    """Lower-case ``text``, collapse whitespace runs to one space and strip the ends."""
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    return _WHITESPACE_RE.sub(" ", text.lower()).strip()


@dataclass(frozen=True, slots=True)
class CorpusAddition:
    """A vetted license text added to the scanner's catalog."""

    id: str
    text: str
    types: tuple[str, ...]

    def template(self) -> LicenseTemplate:
        return LicenseTemplate(id=self.id, text=self.text)


@dataclass(frozen=True, slots=True)
class ExceptionFile:
    """
    One file a module override expects to find.

    Attributes:
        path (str): ``/``-separated path relative to the module root.
        contents (str): Expected contents, already normalized.
        types (tuple[str, ...]): License types recorded for the file when the
            override applies.
    """

    path: str
    contents: str
    types: tuple[str, ...]

    def matches(self, data: bytes) -> bool:
        return normalize_contents(data) == self.contents


@dataclass(frozen=True)
class ExceptionTable:
    """Immutable view of the exception asset."""

    corpus: tuple[CorpusAddition, ...] = ()
    canonical_types: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    ignore_files: frozenset[tuple[str, str]] = frozenset()
    module_overrides: Mapping[str, tuple[ExceptionFile, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "canonical_types", MappingProxyType(dict(self.canonical_types)))
        object.__setattr__(self, "module_overrides", MappingProxyType(dict(self.module_overrides)))

    @classmethod
    def empty(cls) -> "ExceptionTable":
        return cls()

    def types_for(self, match_id: str) -> tuple[str, ...]:
        """Resolve a catalog identifier to its canonical types."""
        types = self.canonical_types.get(match_id)
        if types is None:
            for addition in self.corpus:
                if addition.id == match_id:
                    return addition.types
            return (match_id,)
        return types

    def templates(self) -> list[LicenseTemplate]:
        return [addition.template() for addition in self.corpus]

    def override_for(self, module_path: str) -> tuple[ExceptionFile, ...] | None:
        return self.module_overrides.get(module_path)

    def validate(self, redistributable: frozenset[str] | set[str]) -> None:
        """
        Check that every type the table can produce is redistributable.

        Raises:
            ExceptionTableError: On the first offending type.
        """
        declared: list[tuple[str, str]] = []
        for match_id, types in self.canonical_types.items():
            declared.extend((f"canonical type {match_id!r}", t) for t in types)
        for addition in self.corpus:
            declared.extend((f"corpus entry {addition.id!r}", t) for t in addition.types)
        for module_path, files in self.module_overrides.items():
            for ef in files:
                declared.extend((f"override {module_path} {ef.path}", t) for t in ef.types)
        for origin, license_type in declared:
            if license_type not in redistributable:
                raise ExceptionTableError(
                    f"{license_type} is an exception type that is not redistributable ({origin})"
                )


def _string_list(value: Any, context: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not value or not all(isinstance(v, str) and v for v in value):
        raise ExceptionTableError(f"{context}: expected a non-empty list of strings, got {value!r}")
    return tuple(value)


def _read_text(base, entry: Mapping[str, Any], context: str) -> str:
    if "contents" in entry:
        contents = entry["contents"]
        if not isinstance(contents, str):
            raise ExceptionTableError(f"{context}: 'contents' must be a string")
        return contents
    name = entry.get("file")
    if not isinstance(name, str) or not name:
        raise ExceptionTableError(f"{context}: needs 'file' or 'contents'")
    if base is None:
        raise ExceptionTableError(f"{context}: file references need a base directory")
    try:
        return (base / name).read_text(encoding="utf-8")
    except OSError as exc:
        raise ExceptionTableError(f"{context}: cannot read {name!r}: {exc}") from exc


def parse_exception_table(data: Mapping[str, Any], base=None) -> ExceptionTable:
    """
    Build an :class:`ExceptionTable` from its JSON form.

    Args:
        data (Mapping[str, Any]): Decoded JSON document.
        base: Directory (``Path`` or importlib resource) that ``file``
            references are resolved against.
    """
    if not isinstance(data, Mapping):
        raise ExceptionTableError("exception table must be a JSON object")
    unknown = set(data) - {"corpus", "canonical_types", "ignore_files", "modules"}
    if unknown:
        raise ExceptionTableError(f"unknown exception table keys: {sorted(unknown)}")

    corpus = []
    for i, entry in enumerate(data.get("corpus") or []):
        context = f"corpus[{i}]"
        if not isinstance(entry, Mapping) or not isinstance(entry.get("id"), str):
            raise ExceptionTableError(f"{context}: expected an object with an 'id'")
        corpus.append(
            CorpusAddition(
                id=entry["id"],
                text=_read_text(base, entry, context),
                types=_string_list(entry.get("types"), context),
            )
        )

    canonical = {}
    for match_id, types in (data.get("canonical_types") or {}).items():
        canonical[match_id] = _string_list(types, f"canonical_types[{match_id!r}]")

    ignore = set()
    for i, pair in enumerate(data.get("ignore_files") or []):
        if not (isinstance(pair, list) and len(pair) == 2 and all(isinstance(p, str) for p in pair)):
            raise ExceptionTableError(f"ignore_files[{i}]: expected [module_path, file_path]")
        ignore.add((pair[0], pair[1]))

    overrides = {}
    for module_path, entries in (data.get("modules") or {}).items():
        if not isinstance(entries, list) or not entries:
            raise ExceptionTableError(f"modules[{module_path!r}]: expected a non-empty list")
        files = []
        for i, entry in enumerate(entries):
            context = f"modules[{module_path!r}][{i}]"
            if not isinstance(entry, Mapping) or not isinstance(entry.get("path"), str):
                raise ExceptionTableError(f"{context}: expected an object with a 'path'")
            files.append(
                ExceptionFile(
                    path=entry["path"],
                    contents=normalize_contents(_read_text(base, entry, context)),
                    types=_string_list(entry.get("types"), context),
                )
            )
        overrides[module_path] = tuple(files)

    return ExceptionTable(
        corpus=tuple(corpus),
        canonical_types=canonical,
        ignore_files=frozenset(ignore),
        module_overrides=overrides,
    )


def load_exception_table(path: str | Path | None = None) -> ExceptionTable:
    """
    Load the exception table.

    Args:
        path (str | Path | None): JSON file to load. Defaults to the asset
            packaged with licensegate.

    Raises:
        ExceptionTableError: If the document is malformed.
    """
    if path is None:
        base = resources.files("licensegate") / "data" / "exceptions"
        raw = (base / "exceptions.json").read_text(encoding="utf-8")
        origin = "packaged exceptions.json"
    else:
        p = Path(path)
        base = p.parent
        raw = p.read_text(encoding="utf-8")
        origin = str(p)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ExceptionTableError(f"{origin}: invalid JSON: {exc}") from exc
    table = parse_exception_table(data, base)
    log.debug(
        "Loaded exception table from %s: %d corpus texts, %d module overrides",
        origin,
        len(table.corpus),
        len(table.module_overrides),
    )
    return table
