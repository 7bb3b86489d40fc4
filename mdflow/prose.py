"""
Prose extraction for markdown pastes.

Headings (optionally block-quoted, ``> ## Heading``) and bold-only lines
(``**Summary**``) open sections; text that belongs to no section, or follows
a ``Raw message:`` marker, is kept as the raw message.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from .model import ProseDocument, ProseSection

DEFAULT_TITLE = "Converted Spec"

_QUOTE_PREFIX = re.compile(r"^\s*>\s?")
_HEADING = re.compile(r"^(#{1,6}) +(.+?)\s*#*\s*$")
_BOLD_HEADING = re.compile(r"^\*\*([^*]+?)\*\*:?\s*$")
_FENCE = re.compile(r"^\s*(```|~~~)")
_RAW_MARKER = re.compile(r"^raw message\s*:\s*(.*)$", re.IGNORECASE)


def _trim_blank_lines(lines: List[str]) -> str:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return "\n".join(lines[start:end])


def _unquote(line: str) -> Tuple[str, bool]:
    match = _QUOTE_PREFIX.match(line)
    if match:
        return line[match.end() :], True
    return line, False


class _OpenSection:
    def __init__(self, heading: str, level: int, quoted: bool):
        self.heading = heading
        self.level = level
        self.quoted = quoted
        self.lines: List[str] = []

    def close(self) -> ProseSection:
        return ProseSection(heading=self.heading, content=_trim_blank_lines(self.lines), level=self.level)


def extract_prose(content: str) -> Tuple[str, ProseDocument]:
    """Split markdown into sections and a raw-message remainder; returns (title, document)."""

    text = (content or "").replace("\r\n", "\n").replace("\r", "\n")
    sections: List[ProseSection] = []
    raw_lines: List[str] = []
    current: Optional[_OpenSection] = None
    title = ""
    in_fence = False
    in_raw = False

    for line in text.split("\n"):
        if in_raw:
            raw_lines.append(_unquote(line)[0])
            continue

        body, quoted = _unquote(line)
        stripped = body.strip()

        if _FENCE.match(body):
            in_fence = not in_fence
        elif not in_fence:
            raw_match = _RAW_MARKER.match(stripped)
            if raw_match:
                if current is not None:
                    sections.append(current.close())
                    current = None
                in_raw = True
                if raw_match.group(1):
                    raw_lines.append(raw_match.group(1))
                continue

            heading_match = _HEADING.match(stripped)
            bold_match = None if heading_match else _BOLD_HEADING.match(stripped)
            if heading_match or bold_match:
                if current is not None:
                    sections.append(current.close())
                if heading_match:
                    level = len(heading_match.group(1))
                    heading = heading_match.group(2).strip()
                else:
                    level = 2
                    heading = bold_match.group(1).strip()
                if level == 1 and not title:
                    title = heading
                current = _OpenSection(heading, level, quoted)
                continue

        if current is not None and current.quoted and not quoted and stripped and not in_fence:
            # Leaving the quoted block ends a quoted section.
            sections.append(current.close())
            current = None

        if current is not None:
            current.lines.append(body)
        else:
            raw_lines.append(body)

    if current is not None:
        sections.append(current.close())

    document = ProseDocument(
        sections=tuple(sections),
        raw_message=_trim_blank_lines(raw_lines),
    )
    return title or DEFAULT_TITLE, document
