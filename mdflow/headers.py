from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

from .schema import CANONICAL_FIELDS, DEFAULT_ALIAS_TABLE, UI_SPEC_FIELDS, AliasTable, normalize_header

LOGGER = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 60
UI_SPEC_CONTEXT = "ui_spec"

METHOD_CONTEXT = "context"
METHOD_EXACT = "exact"
METHOD_SUBSTRING = "substring"
METHOD_FUZZY = "fuzzy"
METHOD_POSITIONAL = "positional"

# Lower rank wins when two candidates have the same confidence.
_METHOD_RANK = {METHOD_CONTEXT: 0, METHOD_EXACT: 1, METHOD_SUBSTRING: 2, METHOD_FUZZY: 3, METHOD_POSITIONAL: 4}
_FIELD_RANK = {name: idx for idx, name in enumerate(CANONICAL_FIELDS)}


@dataclass(frozen=True)
class ColumnMapping:
    source_index: int
    canonical_field: str
    confidence: int
    source_header: str = ""
    method: str = METHOD_EXACT


@dataclass(frozen=True)
class _Candidate:
    field: str
    confidence: int
    method: str

    def sort_key(self) -> Tuple[int, int, int]:
        return (-self.confidence, _METHOD_RANK[self.method], _FIELD_RANK.get(self.field, len(_FIELD_RANK)))


def _is_cjk(text: str) -> bool:
    return any(ord(ch) >= 0x3000 for ch in text)


def _contains_phrase(haystack: str, needle: str) -> bool:
    """Whole-word containment for spaced scripts, plain containment for CJK."""

    if _is_cjk(needle):
        return needle in haystack
    return re.search(rf"(?<!\w){re.escape(needle)}(?!\w)", haystack) is not None


class HeaderMapper:
    """
    Map a header row to canonical fields.

    Each column gets a ranked list of candidates (context, exact, substring,
    fuzzy); columns then claim fields greedily, highest confidence first, so a
    field is never claimed twice and a losing column falls back to its next
    candidate.
    """

    def __init__(self, aliases: Optional[AliasTable] = None, min_confidence: int = DEFAULT_MIN_CONFIDENCE):
        self.aliases = aliases or DEFAULT_ALIAS_TABLE
        self.min_confidence = min_confidence
        self._choices: List[str] = []
        self._choice_fields: List[str] = []
        for field_name in CANONICAL_FIELDS:
            for alias in self.aliases.aliases.get(field_name, ()):
                self._choices.append(alias)
                self._choice_fields.append(field_name)

    def has_ui_context(self, normalized_headers: Sequence[str]) -> bool:
        return any(self.aliases.field_for(h) in UI_SPEC_FIELDS for h in normalized_headers if h)

    def _substring_candidates(self, header: str) -> Dict[str, int]:
        best: Dict[str, int] = {}
        for alias, field_name in zip(self._choices, self._choice_fields):
            if len(alias) < 2 or alias == header:
                continue
            score = 0
            if len(alias) < len(header) and _contains_phrase(header, alias):
                score = 70 + round(20 * len(alias) / len(header))
            elif len(header) < len(alias) and len(header) * 2 >= len(alias) and _contains_phrase(alias, header):
                score = 70 + round(20 * len(header) / len(alias))
            if score:
                best[field_name] = max(best.get(field_name, 0), min(score, 90))
        return best

    def _fuzzy_candidates(self, header: str) -> Dict[str, int]:
        best: Dict[str, int] = {}
        if len(header) < 3:
            return best
        for alias, similarity, idx in process.extract(
            header,
            self._choices,
            scorer=Levenshtein.normalized_similarity,
            limit=None,
            score_cutoff=0.5,
        ):
            if len(alias) < 4:
                continue
            if Levenshtein.distance(header, alias) > max(1, len(alias) // 4):
                continue
            field_name = self._choice_fields[idx]
            score = 40 + round(29 * similarity)
            best[field_name] = max(best.get(field_name, 0), score)
        return best

    def exact_fields(self, normalized_headers: Sequence[str]) -> Set[str]:
        return {f for f in (self.aliases.field_for(h) for h in normalized_headers if h) if f}

    def candidates(
        self,
        header: str,
        ui_context: bool = False,
        named_fields: Optional[Set[str]] = None,
    ) -> List[_Candidate]:
        """
        Ranked candidates for a single header, already filtered by min confidence.

        ``named_fields`` are fields some header in the row names exactly; a
        generic header is never read as one of those through UI context.
        """

        normalized = normalize_header(header)
        if not normalized:
            return []

        found: Dict[str, _Candidate] = {}

        def offer(field_name: str, confidence: int, method: str) -> None:
            current = found.get(field_name)
            candidate = _Candidate(field_name, confidence, method)
            if current is None or candidate.sort_key() < current.sort_key():
                found[field_name] = candidate

        if ui_context:
            context_field = self.aliases.context_aliases.get(UI_SPEC_CONTEXT, {}).get(normalized)
            if context_field and context_field not in (named_fields or ()):
                offer(context_field, 100, METHOD_CONTEXT)

        for field_name, aliases in self.aliases.aliases.items():
            if normalized in aliases:
                offer(field_name, 100, METHOD_EXACT)

        for field_name, score in self._substring_candidates(normalized).items():
            offer(field_name, score, METHOD_SUBSTRING)
        for field_name, score in self._fuzzy_candidates(normalized).items():
            offer(field_name, score, METHOD_FUZZY)

        ranked = sorted(found.values(), key=_Candidate.sort_key)
        return [c for c in ranked if c.confidence >= self.min_confidence]

    def map_headers(self, header_row: Sequence[str]) -> List[ColumnMapping]:
        """Return mapped columns only, ordered by source index. Never raises."""

        headers = ["" if h is None else str(h) for h in (header_row or [])]
        normalized = [normalize_header(h) for h in headers]
        ui_context = self.has_ui_context(normalized)
        named = self.exact_fields(normalized) if ui_context else set()
        proposals = {idx: self.candidates(h, ui_context, named) for idx, h in enumerate(headers)}

        assigned: Dict[int, _Candidate] = {}
        taken: Set[str] = set()
        while True:
            winner: Optional[Tuple[Tuple[int, int, int, int], int, _Candidate]] = None
            for idx, ranked in proposals.items():
                if idx in assigned:
                    continue
                open_candidates = [c for c in ranked if c.field not in taken]
                if not open_candidates:
                    continue
                top = open_candidates[0]
                key = (-top.confidence, _METHOD_RANK[top.method], idx, _FIELD_RANK.get(top.field, 0))
                if winner is None or key < winner[0]:
                    winner = (key, idx, top)
            if winner is None:
                break
            _, idx, top = winner
            assigned[idx] = top
            taken.add(top.field)

        mappings = [
            ColumnMapping(
                source_index=idx,
                canonical_field=c.field,
                confidence=c.confidence,
                source_header=headers[idx],
                method=c.method,
            )
            for idx, c in sorted(assigned.items())
        ]
        LOGGER.debug(
            "Mapped %d of %d header(s)%s",
            len(mappings),
            len(headers),
            " in UI spec context" if ui_context else "",
        )
        return mappings


def map_headers(
    header_row: Sequence[str],
    aliases: Optional[AliasTable] = None,
    min_confidence: int = DEFAULT_MIN_CONFIDENCE,
) -> List[ColumnMapping]:
    return HeaderMapper(aliases, min_confidence).map_headers(header_row)


def unmapped_columns(width: int, mappings: Sequence[ColumnMapping]) -> List[int]:
    mapped = {m.source_index for m in mappings}
    return [idx for idx in range(width) if idx not in mapped]


HEADER_SCAN_ROWS = 5
_MARKDOWN_CELL_PREFIXES = ("#", ">", "```", "- ", "* ")


def _looks_like_header_cell(cell: str) -> bool:
    return (
        bool(cell)
        and len(cell) <= 50
        and not cell[0].isdigit()
        and ". " not in cell
        and len(cell.split()) <= 3
    )


def score_header_row(cells: Sequence[str], aliases: Optional[AliasTable] = None) -> int:
    """
    0-100 likelihood that ``cells`` is a header row.

    Rows that carry markdown markers or fewer than two values score 0. Each
    cell that names a known field adds 25, each short label-like cell adds 5,
    and two or three recognised fields add a further 20 or 30.
    """

    aliases = aliases or DEFAULT_ALIAS_TABLE
    values = [str(c or "").strip() for c in cells]
    if any(v.startswith(_MARKDOWN_CELL_PREFIXES) for v in values):
        return 0
    filled = [v for v in values if v]
    if len(filled) < 2:
        return 0

    score = 0
    matched = 0
    for value in filled:
        if aliases.field_for(normalize_header(value)):
            matched += 1
            score += 25
        if _looks_like_header_cell(value):
            score += 5
    if matched >= 3:
        score += 30
    elif matched >= 2:
        score += 20
    return min(score, 100)


def detect_header_row(
    matrix: Sequence[Sequence[str]],
    aliases: Optional[AliasTable] = None,
    max_scan: int = HEADER_SCAN_ROWS,
) -> int:
    """Index of the best scoring row among the first ``max_scan``; row 0 unless another scores higher."""

    best_row, best_score = 0, -1
    for idx, cells in enumerate(matrix[:max_scan]):
        score = score_header_row(cells, aliases)
        if score > best_score:
            best_row, best_score = idx, score
    LOGGER.debug("Header row %d (score %d)", best_row, max(best_score, 0))
    return best_row
