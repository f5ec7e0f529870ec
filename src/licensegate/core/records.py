# records.py
# SPDX-License-Identifier: MIT
"""Immutable records describing detected license files."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .policy import LicensePolicy

__all__ = [
    "UNKNOWN_LICENSE_TYPE",
    "LicenseTypes",
    "Match",
    "Coverage",
    "LicenseMetadata",
    "License",
    "license_types",
]

# Type recorded for text that is not recognized, or for files that could not be read.
UNKNOWN_LICENSE_TYPE = "UNKNOWN"

LicenseTypes = frozenset[str]


@dataclass(frozen=True, slots=True)
class Match:
    """
    One catalog entry found inside a document.

    Attributes:
        id (str): Catalog identifier of the matched text (before canonicalization).
        percent (float): Share of the catalog entry's words found in the document.
        start (int): Word offset in the document where the match begins.
        end (int): Word offset in the document just past the match.
    """

    id: str
    percent: float
    start: int = 0
    end: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {"id": self.id, "percent": self.percent, "start": self.start, "end": self.end}


@dataclass(frozen=True, slots=True)
class Coverage:
    """
    Outcome of scanning one document against the catalog.

    Attributes:
        percent (float): Share of the document's words that belong to some
            matched license text, independent of which one.
        matches (tuple[Match, ...]): Matches in document order.
    """

    percent: float = 0.0
    matches: tuple[Match, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {"percent": self.percent, "matches": [m.as_dict() for m in self.matches]}


@dataclass(frozen=True, slots=True)
class LicenseMetadata:
    """
    Identity of one detected license file.

    Attributes:
        types (frozenset[str]): License type identifiers the file expresses;
            may be empty or contain ``UNKNOWN``.
        file_path (str): ``/``-separated path relative to the module's content
            directory.
        coverage (Coverage): Scan result kept for diagnostics.
    """

    types: LicenseTypes
    file_path: str
    coverage: Coverage = field(default_factory=Coverage)

    def __post_init__(self) -> None:
        if not isinstance(self.types, frozenset):
            object.__setattr__(self, "types", frozenset(self.types))

    @property
    def sorted_types(self) -> list[str]:
        return sorted(self.types)

    def as_dict(self) -> dict[str, Any]:
        return {
            "types": self.sorted_types,
            "file_path": self.file_path,
            "coverage": self.coverage.as_dict(),
        }


@dataclass(frozen=True, slots=True)
class License:
    """A classified license file and, when it may be shown, its contents."""

    metadata: LicenseMetadata
    contents: bytes | None = None

    @property
    def types(self) -> LicenseTypes:
        return self.metadata.types

    @property
    def file_path(self) -> str:
        return self.metadata.file_path

    @property
    def coverage(self) -> Coverage:
        return self.metadata.coverage

    def without_nonredistributable_data(self, policy: "LicensePolicy | None" = None) -> "License":
        """Return a copy whose contents are dropped unless the types are redistributable."""
        from .policy import default_policy

        policy = policy or default_policy()
        if self.contents is None or policy.is_redistributable(self.types):
            return self
        return replace(self, contents=None)


def license_types(licenses: Iterable[License]) -> LicenseTypes:
    """Return the union of the types of ``licenses``."""
    types: set[str] = set()
    for lic in licenses:
        types.update(lic.types)
    return frozenset(types)
