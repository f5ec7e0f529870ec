# catalog.py
# SPDX-License-Identifier: MIT
"""Built-in catalog of license texts and the word normalization shared with the scanner.

Catalog entries live as plain text under ``licensegate/data/licenses``; the
file stem is the catalog identifier reported in matches.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from importlib import resources

__all__ = [
    "LicenseTemplate",
    "tokenize",
    "load_builtin_templates",
    "builtin_template_ids",
]

_WORD_RE = re.compile(r"[a-z0-9]+")

# Lines that only carry a copyright notice vary per project and are not license text.
_NOTICE_LINE_RE = re.compile(
    r"^\W*(?:copyright\b|\(c\)|©)\s*(?:\(c\)|©|\d)|^\W*all rights reserved\W*$",
    re.IGNORECASE,
)

_SPELLING = {
    "licence": "license",
    "licences": "licenses",
    "licenced": "licensed",
    "licencing": "licensing",
}


def tokenize(text: str) -> list[str]:
    """
    Split text into normalized words.

    Words are lower-cased runs of ASCII letters and digits; British spellings
    of "license" are folded and copyright-notice lines are dropped.
    """
    words: list[str] = []
    for line in text.splitlines():
        if _NOTICE_LINE_RE.match(line):
            continue
        for word in _WORD_RE.findall(line.lower()):
            words.append(_SPELLING.get(word, word))
    return words


@dataclass(frozen=True, slots=True)
class LicenseTemplate:
    """
    One catalog entry.

    Attributes:
        id (str): Identifier reported for matches of this text.
        text (str): Canonical license text.
        words (tuple[str, ...]): Normalized words of ``text``.
    """

    id: str
    text: str
    words: tuple[str, ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        if not self.words:
            object.__setattr__(self, "words", tuple(tokenize(self.text)))
        if not self.words:
            raise ValueError(f"license template {self.id!r} has no words")


def _licenses_dir():
    return resources.files("licensegate") / "data" / "licenses"


@lru_cache(maxsize=1)
def load_builtin_templates() -> tuple[LicenseTemplate, ...]:
    """Load every text in the packaged catalog, ordered by identifier."""
    templates = []
    for entry in _licenses_dir().iterdir():
        name = entry.name
        if not name.endswith(".txt"):
            continue
        templates.append(LicenseTemplate(id=name[: -len(".txt")], text=entry.read_text(encoding="utf-8")))
    return tuple(sorted(templates, key=lambda t: t.id))


def builtin_template_ids() -> list[str]:
    return [t.id for t in load_builtin_templates()]
