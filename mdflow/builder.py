from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import polars as pl

from .config import Settings, load_alias_overrides
from .detect import InputAnalysis, detect_input_type
from .errors import BuildError
from .headers import METHOD_POSITIONAL, ColumnMapping, HeaderMapper, detect_header_row
from .matrix import RawMatrix, matrix_to_frame, matrix_width, parse, table_headers
from .model import SpecDoc, SpecRow
from .prose import DEFAULT_TITLE, extract_prose
from .schema import CANONICAL_FIELDS, GENERIC_ROW_FIELDS, build_alias_table

LOGGER = logging.getLogger(__name__)

ROW_INDEX_COL = "__row_number__"


def build_header_mapper(settings: Optional[Settings] = None) -> HeaderMapper:
    """Header mapper honouring the alias override file and threshold in ``settings``."""

    settings = settings or Settings()
    aliases = None
    if settings.alias_config_path is not None:
        aliases = build_alias_table(overrides=load_alias_overrides(settings.alias_config_path))
    return HeaderMapper(aliases, min_confidence=settings.min_header_confidence)


def positional_mappings(headers: Sequence[str]) -> List[ColumnMapping]:
    """Fallback shape used when no header is recognised."""

    return [
        ColumnMapping(
            source_index=idx,
            canonical_field=field_name,
            confidence=0,
            source_header=headers[idx],
            method=METHOD_POSITIONAL,
        )
        for idx, field_name in zip(range(len(headers)), GENERIC_ROW_FIELDS)
    ]


def _column_key(idx: int) -> str:
    # Headers such as "*" or "^ID$" would be read as column patterns by polars.
    return f"column_{idx}"


def _rows_from_frame(frame: pl.DataFrame, mappings: Sequence[ColumnMapping], first_row: int) -> List[SpecRow]:
    mapped = {m.canonical_field for m in mappings}
    exprs = [pl.col(ROW_INDEX_COL)]
    exprs.extend(pl.col(_column_key(m.source_index)).alias(m.canonical_field) for m in mappings)
    exprs.extend(pl.lit("").alias(f) for f in CANONICAL_FIELDS if f not in mapped)

    selected = frame.with_row_index(ROW_INDEX_COL, offset=first_row).select(exprs)
    if selected.height:
        selected = selected.filter(
            pl.any_horizontal([pl.col(f).str.strip_chars() != "" for f in CANONICAL_FIELDS])
        )

    rows: List[SpecRow] = []
    for record in selected.to_dicts():
        source_row = int(record.pop(ROW_INDEX_COL))
        rows.append(SpecRow(source_row=source_row, **{f: record[f] or "" for f in CANONICAL_FIELDS}))
    return rows


def build_spec_doc_from_matrix(
    matrix: RawMatrix,
    mapper: Optional[HeaderMapper] = None,
    analysis: Optional[InputAnalysis] = None,
    title: str = DEFAULT_TITLE,
) -> SpecDoc:
    """
    Build a row-shaped SpecDoc from a parsed matrix.

    The header row is the best scoring of the first few rows (row 0 unless
    another row reads more like headers); rows above it are kept as
    preamble. Unmapped columns stay in ``matrix``/``headers``; rows empty
    across every canonical field are dropped.
    """

    if not matrix:
        raise BuildError("No rows found in input")

    mapper = mapper or HeaderMapper()
    width = matrix_width(matrix)
    header_row = detect_header_row(matrix, mapper.aliases)
    headers, warnings = table_headers(matrix[header_row], width)
    mappings = mapper.map_headers(headers)

    if not mappings and header_row:
        LOGGER.debug("Row %d named no known field; reading headers from row 0", header_row)
        header_row = 0
        headers, warnings = table_headers(matrix[0], width)
        mappings = mapper.map_headers(headers)

    if header_row:
        LOGGER.info("Using row %d as the header row", header_row + 1)
        warnings.append(f"Header row found on line {header_row + 1}; {header_row} line(s) above it kept as preamble")

    if not mappings:
        mappings = positional_mappings(headers)
        LOGGER.warning("No headers recognised in %s; using positional mapping", headers)
        warnings.append(
            "No headers recognised; columns assigned positionally to " + ", ".join(GENERIC_ROW_FIELDS[: len(mappings)])
        )
    else:
        mapped = {m.source_index for m in mappings}
        for idx, header in enumerate(headers):
            if idx not in mapped:
                warnings.append(f"Column '{header}' was not mapped to a known field")

    data = matrix[header_row + 1 :]
    frame = matrix_to_frame(data, [_column_key(idx) for idx in range(width)])
    rows = _rows_from_frame(frame, mappings, header_row + 1)
    LOGGER.debug("Built %d row(s) from %d data line(s)", len(rows), len(data))

    return SpecDoc(
        title=title,
        analysis=analysis,
        rows=tuple(rows),
        headers=tuple(headers),
        header_row=header_row,
        matrix=tuple(tuple(r) for r in matrix),
        mappings=tuple(mappings),
        warnings=tuple(warnings),
    )


def build_spec_doc_from_paste(
    content: str,
    mapper: Optional[HeaderMapper] = None,
    settings: Optional[Settings] = None,
) -> SpecDoc:
    """
    Classify pasted content and build the matching SpecDoc.

    Raises BuildError on blank input and propagates ParseError from the
    matrix parser.
    """

    if content is None or not str(content).strip():
        raise BuildError("Input is empty")

    settings = settings or Settings()
    analysis = detect_input_type(content, settings.table_line_ratio)
    LOGGER.debug("Input classified as %s (%d): %s", analysis.type.value, analysis.confidence, analysis.reason)

    if not analysis.is_table:
        title, prose = extract_prose(content)
        return SpecDoc(title=title, analysis=analysis, prose=prose)

    matrix = parse(content)
    return build_spec_doc_from_matrix(
        matrix,
        mapper=mapper or build_header_mapper(settings),
        analysis=analysis,
    )
