"""
Tolerant delimited-text parsing into a row/column matrix of strings.

Handles tab, comma and markdown pipe tables. Quoted cells follow CSV rules
(``""`` escapes a quote, raw newlines are allowed inside quotes) and the
literal two-character sequence ``\\n`` inside quotes decodes to a newline,
which is how spreadsheet copies often encode in-cell line breaks.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Sequence, Tuple

import polars as pl

from .errors import ParseError

LOGGER = logging.getLogger(__name__)

RawMatrix = List[List[str]]

TAB = "\t"
COMMA = ","
PIPE = "|"

_PIPE_SEPARATOR_CELL = re.compile(r"^:?-+:?$")
_UNESCAPED_PIPE = re.compile(r"(?<!\\)\|")


def _normalize_newlines(content: str) -> str:
    return content.replace("\r\n", "\n").replace("\r", "\n")


def _non_blank_lines(content: str) -> List[str]:
    return [line for line in _normalize_newlines(content).split("\n") if line.strip()]


def is_pipe_table(content: str) -> bool:
    lines = _non_blank_lines(content)
    if not lines:
        return False
    for line in lines:
        stripped = line.strip()
        if len(stripped) < 2 or not (stripped.startswith(PIPE) and stripped.endswith(PIPE)):
            return False
    return True


def detect_delimiter(content: str) -> str:
    """Return the delimiter the parser would use: tab, pipe, comma or "" for single-column."""

    if TAB in content:
        return TAB
    if is_pipe_table(content):
        return PIPE
    if COMMA in content:
        return COMMA
    return ""


def _split_pipe_line(line: str) -> List[str]:
    stripped = line.strip()
    if stripped.startswith(PIPE):
        stripped = stripped[1:]
    if stripped.endswith(PIPE) and not stripped.endswith("\\|"):
        stripped = stripped[:-1]
    return [cell.replace("\\|", PIPE) for cell in _UNESCAPED_PIPE.split(stripped)]


def _parse_pipe_table(text: str) -> RawMatrix:
    rows: RawMatrix = []
    for line in text.split("\n"):
        if not line.strip():
            continue
        cells = _split_pipe_line(line)
        if all(_PIPE_SEPARATOR_CELL.match(c.strip()) for c in cells if c.strip()) and any(
            c.strip() for c in cells
        ):
            continue
        rows.append(cells)
    return rows


def _parse_delimited(text: str, delimiter: str) -> RawMatrix:
    rows: RawMatrix = []
    row: List[str] = []
    cell: List[str] = []
    in_quotes = False
    quote_line = 0
    line_no = 1
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < n and text[i + 1] == '"':
                    cell.append('"')
                    i += 2
                    continue
                in_quotes = False
                i += 1
                continue
            if ch == "\\" and i + 1 < n and text[i + 1] == "n":
                cell.append("\n")
                i += 2
                continue
            if ch == "\n":
                line_no += 1
            cell.append(ch)
            i += 1
            continue

        if ch == '"' and not "".join(cell).strip():
            # A quote only opens a quoted cell at the start of the cell.
            cell = []
            in_quotes = True
            quote_line = line_no
        elif delimiter and ch == delimiter:
            row.append("".join(cell))
            cell = []
        elif ch == "\n":
            row.append("".join(cell))
            rows.append(row)
            row = []
            cell = []
            line_no += 1
        else:
            cell.append(ch)
        i += 1

    if in_quotes:
        raise ParseError("Unterminated quoted cell", line=quote_line)

    row.append("".join(cell))
    rows.append(row)
    return rows


def parse(content: str) -> RawMatrix:
    """
    Parse delimited text into a matrix of trimmed strings.

    Rows may be ragged; fully blank rows are dropped. Raises ParseError when
    a quoted cell is never closed.
    """

    if content is None:
        return []
    text = _normalize_newlines(str(content)).strip("\n")
    if not text.strip():
        return []

    delimiter = detect_delimiter(text)
    if delimiter == PIPE:
        rows = _parse_pipe_table(text)
    else:
        rows = _parse_delimited(text, delimiter)

    matrix: RawMatrix = []
    for raw_row in rows:
        cells = [c.strip() for c in raw_row]
        if any(cells):
            matrix.append(cells)

    LOGGER.debug(
        "Parsed %d row(s) using delimiter %r",
        len(matrix),
        delimiter or "<none>",
    )
    return matrix


def get_cell(row: Sequence[str], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    return row[index]


def matrix_width(rows: Sequence[Sequence[str]]) -> int:
    return max((len(r) for r in rows), default=0)


def table_headers(header_row: Sequence[str], width: int) -> Tuple[List[str], List[str]]:
    """
    Build unique display headers for ``width`` columns.

    Blank headers become ``Column N`` and duplicates get a `` (2)`` style
    suffix. Returns (headers, warnings) with one warning per rename.
    """

    headers: List[str] = []
    warnings: List[str] = []
    seen: Dict[str, int] = {}

    for idx in range(max(width, len(header_row))):
        raw = get_cell(header_row, idx).strip()
        name = raw or f"Column {idx + 1}"
        if not raw:
            warnings.append(f"Empty header in column {idx + 1} renamed to '{name}'")
        if name in seen:
            suffix = seen[name] + 1
            while f"{name} ({suffix})" in seen:
                suffix += 1
            seen[name] = suffix
            renamed = f"{name} ({suffix})"
            warnings.append(f"Duplicate header '{name}' renamed to '{renamed}'")
            name = renamed
        seen.setdefault(name, 1)
        headers.append(name)
    return headers, warnings


def matrix_to_frame(rows: Sequence[Sequence[str]], headers: Sequence[str]) -> pl.DataFrame:
    """Data rows as a Utf8 frame; short rows are padded with empty strings."""

    schema = {h: pl.Utf8 for h in headers}
    if not rows:
        return pl.DataFrame(schema=schema)
    width = len(headers)
    padded = [[get_cell(r, i) for i in range(width)] for r in rows]
    return pl.DataFrame(padded, schema=schema, orient="row")
