from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .detect import InputAnalysis
from .headers import ColumnMapping
from .schema import CANONICAL_FIELDS

UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True)
class SpecRow:
    """One data row expressed in canonical fields; every value is free text."""

    id: str = ""
    feature: str = ""
    scenario: str = ""
    priority: str = ""
    type: str = ""
    status: str = ""
    precondition: str = ""
    instructions: str = ""
    inputs: str = ""
    expected: str = ""
    endpoint: str = ""
    notes: str = ""
    no: str = ""
    item_name: str = ""
    item_type: str = ""
    required_optional: str = ""
    display_conditions: str = ""
    input_restrictions: str = ""
    action: str = ""
    navigation_destination: str = ""
    source_row: int = 0

    def get(self, name: str) -> str:
        if name not in CANONICAL_FIELDS:
            return ""
        return getattr(self, name)

    def as_dict(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in CANONICAL_FIELDS}

    def is_empty(self) -> bool:
        return not any(getattr(self, name).strip() for name in CANONICAL_FIELDS)

    def display_title(self) -> str:
        for name in ("scenario", "item_name", "id", "no", "endpoint", "instructions"):
            value = getattr(self, name).strip()
            if value:
                return value.splitlines()[0]
        return f"Row {self.source_row}"


@dataclass(frozen=True)
class ProseSection:
    heading: str
    content: str
    level: int = 2


@dataclass(frozen=True)
class ProseDocument:
    sections: Tuple[ProseSection, ...] = ()
    raw_message: str = ""


@dataclass(frozen=True)
class SpecDoc:
    """
    Canonical conversion result: either typed rows (tabular input) or a
    prose document (markdown input), never both.

    ``headers`` and ``matrix`` keep the source table so columns that did not
    map to a canonical field stay available for reporting and rendering.
    ``header_row`` is the matrix index the headers were read from; rows
    above it are preamble and rows below it are data.
    """

    title: str = ""
    analysis: Optional[InputAnalysis] = None
    rows: Tuple[SpecRow, ...] = ()
    prose: Optional[ProseDocument] = None
    headers: Tuple[str, ...] = ()
    header_row: int = 0
    matrix: Tuple[Tuple[str, ...], ...] = ()
    mappings: Tuple[ColumnMapping, ...] = ()
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_prose(self) -> bool:
        return self.prose is not None

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    @property
    def column_map(self) -> Dict[str, str]:
        """Source header -> canonical field for mapped columns."""

        return {m.source_header or self.header_at(m.source_index): m.canonical_field for m in self.mappings}

    @property
    def unmapped_columns(self) -> List[str]:
        mapped = {m.source_index for m in self.mappings}
        return [h for idx, h in enumerate(self.headers) if idx not in mapped]

    @property
    def rows_by_feature(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for row in self.rows:
            key = row.feature.strip() or UNCATEGORIZED
            counts[key] = counts.get(key, 0) + 1
        return counts

    @property
    def preamble(self) -> Tuple[Tuple[str, ...], ...]:
        return self.matrix[: self.header_row]

    @property
    def data_lines(self) -> Tuple[Tuple[str, ...], ...]:
        return self.matrix[self.header_row + 1 :]

    def header_at(self, index: int) -> str:
        if 0 <= index < len(self.headers):
            return self.headers[index]
        return f"Column {index + 1}"

    def group_by_feature(self) -> List[Tuple[str, List[SpecRow]]]:
        """Rows grouped by feature in first-seen order."""

        groups: Dict[str, List[SpecRow]] = {}
        for row in self.rows:
            groups.setdefault(row.feature.strip() or UNCATEGORIZED, []).append(row)
        return list(groups.items())

    def extra_values(self, row: SpecRow) -> List[Tuple[str, str]]:
        """(header, value) pairs for unmapped columns of the row's source line."""

        if not (self.header_row < row.source_row < len(self.matrix)):
            return []
        mapped = {m.source_index for m in self.mappings}
        source = self.matrix[row.source_row]
        extras: List[Tuple[str, str]] = []
        for idx, header in enumerate(self.headers):
            if idx in mapped:
                continue
            value = source[idx] if idx < len(source) else ""
            if value.strip():
                extras.append((header, value))
        return extras
