# scanner.py
# SPDX-License-Identifier: MIT
"""Coverage-based license text matching.

Every catalog template is indexed by overlapping word shingles. Scanning a
document walks its words, extends each shingle hit into the longest run that
agrees with the template, and chains runs into match instances as long as
they move forward through the template and are separated by short gaps
(copyright holders, project names, reflowed bullets). Instances that cover
too little of their template are dropped; instances competing for the same
region of the document are resolved in favour of the one that matched more
template words. Coverage is the share of document words spanned by the
surviving instances.
"""

from __future__ import annotations

import bisect
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .catalog import LicenseTemplate, tokenize
from .records import Coverage, Match

__all__ = [
    "SHINGLE_SIZE",
    "MAX_GAP_WORDS",
    "DEFAULT_MATCH_THRESHOLD",
    "Scanner",
]

SHINGLE_SIZE = 5
MAX_GAP_WORDS = 40
DEFAULT_MATCH_THRESHOLD = 80.0


class _IndexedTemplate:
    __slots__ = ("id", "words", "size", "index")

    def __init__(self, template: LicenseTemplate) -> None:
        self.id = template.id
        self.words = template.words
        self.size = min(SHINGLE_SIZE, len(self.words))
        index: dict[tuple[str, ...], list[int]] = {}
        for pos in range(len(self.words) - self.size + 1):
            index.setdefault(self.words[pos:pos + self.size], []).append(pos)
        self.index = index


@dataclass(frozen=True, slots=True)
class _Candidate:
    id: str
    matched: int
    percent: float
    start: int
    end: int

    def overlap(self, other: "_Candidate") -> int:
        return max(0, min(self.end, other.end) - max(self.start, other.start))


class Scanner:
    """
    Match documents against a fixed set of license templates.

    Args:
        templates (Iterable[LicenseTemplate]): Catalog entries; identifiers
            must be unique.
        match_threshold (float): Minimum percentage of a template's words a
            match instance must contain to be reported.
    """

    def __init__(self, templates: Iterable[LicenseTemplate], *, match_threshold: float = DEFAULT_MATCH_THRESHOLD) -> None:
        indexed: list[_IndexedTemplate] = []
        seen: set[str] = set()
        for template in templates:
            if template.id in seen:
                raise ValueError(f"duplicate license template id {template.id!r}")
            seen.add(template.id)
            indexed.append(_IndexedTemplate(template))
        self._templates = tuple(indexed)
        self.match_threshold = float(match_threshold)
        # shingle -> positions in self._templates that contain it
        owners: dict[tuple[str, ...], set[int]] = {}
        for idx, tmpl in enumerate(self._templates):
            for shingle in tmpl.index:
                owners.setdefault(shingle, set()).add(idx)
        self._owners = owners

    @property
    def template_ids(self) -> list[str]:
        return [t.id for t in self._templates]

    def scan(self, data: bytes | str) -> Coverage:
        """Return the coverage of ``data`` by the catalog."""
        if isinstance(data, bytes):
            text = data.decode("utf-8-sig", errors="replace")
        else:
            text = data
        words = tokenize(text)
        if not words:
            return Coverage()

        candidates: list[_Candidate] = []
        for idx in self._relevant_templates(words):
            for cand in self._match_template(self._templates[idx], words):
                if cand.percent >= self.match_threshold:
                    candidates.append(cand)

        accepted = _resolve_overlaps(candidates)
        covered = _covered_words(accepted)
        matches = tuple(
            Match(id=c.id, percent=c.percent, start=c.start, end=c.end)
            for c in sorted(accepted, key=lambda c: (c.start, c.id))
        )
        return Coverage(percent=100.0 * covered / len(words), matches=matches)

    def _relevant_templates(self, words: Sequence[str]) -> list[int]:
        relevant: set[int] = set()
        for i in range(len(words) - SHINGLE_SIZE + 1):
            owners = self._owners.get(tuple(words[i:i + SHINGLE_SIZE]))
            if owners:
                relevant.update(owners)
        # Templates shorter than a full shingle are always tried.
        relevant.update(idx for idx, t in enumerate(self._templates) if t.size < SHINGLE_SIZE)
        return sorted(relevant)

    def _match_template(self, tmpl: _IndexedTemplate, words: Sequence[str]) -> list[_Candidate]:
        twords = tmpl.words
        size = tmpl.size
        n, m = len(words), len(twords)

        groups: list[list[tuple[int, int, int]]] = []
        current: list[tuple[int, int, int]] | None = None
        doc_end = tmpl_end = 0
        i = 0
        while i <= n - size:
            positions = tmpl.index.get(tuple(words[i:i + size]))
            if not positions:
                i += 1
                continue
            continuing = current is not None and i - doc_end <= MAX_GAP_WORDS
            allowed = positions
            if continuing:
                # A greedy run may have swallowed the first words of the next
                # clause, so allow a shingle's worth of template overlap.
                forward = [p for p in positions if p >= tmpl_end - size]
                if forward:
                    allowed = forward
                else:
                    continuing = False
            best_len, best_pos = 0, -1
            for pos in allowed:
                length = size
                while i + length < n and pos + length < m and words[i + length] == twords[pos + length]:
                    length += 1
                if length > best_len:
                    best_len, best_pos = length, pos
            if not continuing:
                current = []
                groups.append(current)
            current.append((i, best_pos, best_len))
            doc_end = i + best_len
            tmpl_end = max(tmpl_end, best_pos + best_len) if continuing else best_pos + best_len
            i += best_len

        candidates = []
        for runs in groups:
            matched = 0
            seen_end = 0
            for _, tmpl_start, length in runs:
                run_end = tmpl_start + length
                if run_end > seen_end:
                    matched += run_end - max(tmpl_start, seen_end)
                    seen_end = run_end
            start = runs[0][0]
            last_start, _, last_len = runs[-1]
            candidates.append(
                _Candidate(
                    id=tmpl.id,
                    matched=matched,
                    percent=100.0 * matched / m,
                    start=start,
                    end=last_start + last_len,
                )
            )
        return candidates


def _resolve_overlaps(candidates: list[_Candidate]) -> list[_Candidate]:
    """Keep the strongest candidate for each region of the document."""
    ranked = sorted(candidates, key=lambda c: (-c.matched, -c.percent, c.id, c.start))
    # accepted is kept ordered by start; only those starting within the
    # widest accepted span before cand can reach it.
    accepted: list[_Candidate] = []
    starts: list[int] = []
    widest = 0
    for cand in ranked:
        span = cand.end - cand.start
        lo = bisect.bisect_left(starts, cand.start - widest)
        hi = bisect.bisect_left(starts, cand.end)
        overlap = sum(cand.overlap(accepted[k]) for k in range(lo, hi))
        if overlap * 2 > span:
            continue
        pos = bisect.bisect_right(starts, cand.start)
        starts.insert(pos, cand.start)
        accepted.insert(pos, cand)
        widest = max(widest, span)
    return accepted


def _covered_words(accepted: list[_Candidate]) -> int:
    covered = 0
    cur_start = cur_end = -1
    for cand in sorted(accepted, key=lambda c: c.start):
        if cand.start > cur_end:
            covered += max(0, cur_end - cur_start)
            cur_start, cur_end = cand.start, cand.end
        else:
            cur_end = max(cur_end, cand.end)
    covered += max(0, cur_end - cur_start)
    return covered
