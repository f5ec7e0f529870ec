# policy.py
# SPDX-License-Identifier: MIT
"""Redistributability policy over sets of license types.

A set of license types establishes redistributability only when every type
that matters is on the allow-list and at least one such type was seen.
Ignorable types (patent grants, notices) neither block nor establish it.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache

__all__ = [
    "STANDARD_REDISTRIBUTABLE_TYPES",
    "EXTRA_REDISTRIBUTABLE_TYPES",
    "IGNORABLE_LICENSE_TYPES",
    "NON_OSI_LICENSES",
    "AcceptedLicenseInfo",
    "LicensePolicy",
    "default_policy",
    "is_redistributable",
    "accepted_licenses",
]

# License types that allow redistribution and are named by an OSI or SPDX identifier.
STANDARD_REDISTRIBUTABLE_TYPES: tuple[str, ...] = (
    "AFL-3.0",
    "AGPL-3.0",
    "AGPL-3.0-only",
    "AGPL-3.0-or-later",
    "Apache-1.1",
    "Apache-2.0",
    "Artistic-2.0",
    "BlueOak-1.0.0",
    "0BSD",
    "BSD-1-Clause",
    "BSD-2-Clause",
    "BSD-2-Clause-Patent",
    "BSD-2-Clause-Views",
    "BSD-3-Clause",
    "BSD-3-Clause-Clear",
    "BSD-3-Clause-Open-MPI",
    "BSD-4-Clause",
    "BSD-4-Clause-UC",
    "BSL-1.0",
    "CC-BY-3.0",
    "CC-BY-4.0",
    "CC-BY-SA-3.0",
    "CC-BY-SA-4.0",
    "CECILL-2.1",
    "CC0-1.0",
    "EPL-1.0",
    "EPL-2.0",
    "EUPL-1.2",
    "GPL-2.0",
    "GPL-2.0-only",
    "GPL-2.0-or-later",
    "GPL-3.0",
    "GPL-3.0-only",
    "GPL-3.0-or-later",
    "HPND",
    "ISC",
    "JSON",
    "LGPL-2.1",
    "LGPL-2.1-or-later",
    "LGPL-3.0",
    "LGPL-3.0-or-later",
    "MIT",
    "MIT-0",
    "MPL-2.0",
    "MPL-2.0-no-copyleft-exception",
    "MulanPSL-2.0",
    "NIST-PD",
    "NIST-PD-fallback",
    "NCSA",
    "OpenSSL",
    "OSL-3.0",
    "PostgreSQL",
    "Python-2.0",
    "Unlicense",
    "UPL-1.0",
    "Zlib",
)

# Types that only appear through the hand-vetted exception corpus.
EXTRA_REDISTRIBUTABLE_TYPES: tuple[str, ...] = ("Freetype",)

# Recognized by the catalog but not licenses in their own right.
IGNORABLE_LICENSE_TYPES: frozenset[str] = frozenset(
    {
        "CC-Notice",
        "GooglePatentClause",
        "GooglePatentsFile",
        "blessing",
        "OFL-1.1",  # concerns fonts only
    }
)

NON_OSI_LICENSES: frozenset[str] = frozenset(
    {
        "BlueOak-1.0.0",
        "BSD-2-Clause-Views",
        "CC-BY-3.0",
        "CC-BY-4.0",
        "CC-BY-SA-3.0",
        "CC-BY-SA-4.0",
        "CC0-1.0",
        "JSON",
        "NIST",
        "OpenSSL",
    }
)


@dataclass(frozen=True, slots=True)
class AcceptedLicenseInfo:
    """A license type accepted as redistributable, with a link for readers."""

    name: str
    url: str


@dataclass(frozen=True, slots=True)
class LicensePolicy:
    """
    Allow-list and ignore-list used to judge sets of license types.

    Attributes:
        redistributable (frozenset[str]): Types known to permit redistribution.
        ignorable (frozenset[str]): Types that never affect the decision.
    """

    redistributable: frozenset[str]
    ignorable: frozenset[str] = IGNORABLE_LICENSE_TYPES

    def is_redistributable(self, types: Iterable[str]) -> bool:
        """Report whether ``types`` establishes redistributability.

        A single type that is neither ignorable nor allowed fails the whole
        set, and a set with nothing but ignorable types (or nothing at all)
        is not evidence of permission.
        """
        saw_redistributable = False
        for license_type in types:
            if license_type in self.ignorable:
                continue
            if license_type not in self.redistributable:
                return False
            saw_redistributable = True
        return saw_redistributable

    def allows(self, license_type: str) -> bool:
        return license_type in self.redistributable


@lru_cache(maxsize=1)
def default_policy() -> LicensePolicy:
    """Return the process-wide policy built from the fixed reference lists."""
    return LicensePolicy(
        redistributable=frozenset(STANDARD_REDISTRIBUTABLE_TYPES) | frozenset(EXTRA_REDISTRIBUTABLE_TYPES),
    )


def is_redistributable(types: Iterable[str]) -> bool:
    """Apply :func:`default_policy` to ``types``."""
    return default_policy().is_redistributable(types)


def accepted_licenses() -> list[AcceptedLicenseInfo]:
    """Return the standard redistributable types, sorted by name, for display."""
    infos = []
    for identifier in STANDARD_REDISTRIBUTABLE_TYPES:
        if identifier in NON_OSI_LICENSES:
            url = f"https://spdx.org/licenses/{identifier}.html"
        else:
            url = f"https://opensource.org/licenses/{identifier}"
        infos.append(AcceptedLicenseInfo(identifier, url))
    return sorted(infos, key=lambda info: info.name)
