from __future__ import annotations

import logging
import re
import statistics
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from .matrix import COMMA, PIPE, TAB, detect_delimiter

LOGGER = logging.getLogger(__name__)

DEFAULT_TABLE_LINE_RATIO = 0.5
# Above this share of delimited lines, stray markdown markers no longer cut table confidence.
STRONG_TABLE_RATIO = 0.8

_HEADING = re.compile(r"^\s*(?:>\s*)*#{1,6} +\S")
_QUOTED_HEADING = re.compile(r"^\s*>\s*(?:>\s*)*#{1,6} +\S")
_BLOCKQUOTE = re.compile(r"^\s*>")
_FENCE = re.compile(r"^\s*(?:>\s*)*(```|~~~)")
_BULLET = re.compile(r"^\s*(?:>\s*)*[-*+]\s+\S")
_NUMBERED = re.compile(r"^\s*(?:>\s*)*\d+[.)]\s+\S")

_DELIMITER_WEIGHT = {TAB: 30, PIPE: 30, COMMA: 10}
_DELIMITER_NAME = {TAB: "tab", PIPE: "pipe", COMMA: "comma"}


class InputType(str, Enum):
    MARKDOWN = "markdown"
    TABLE = "table"


@dataclass(frozen=True)
class InputAnalysis:
    type: InputType
    confidence: int
    reason: str

    @property
    def is_table(self) -> bool:
        return self.type is InputType.TABLE


def _clamp(value: int) -> int:
    return max(0, min(100, value))


def _strongest(signals: List[Tuple[int, str]]) -> str:
    if not signals:
        return ""
    best = signals[0]
    for signal in signals[1:]:
        if signal[0] > best[0]:
            best = signal
    return best[1]


def _markdown_signals(lines: List[str]) -> List[Tuple[int, str]]:
    signals: List[Tuple[int, str]] = []
    quoted = sum(1 for line in lines if _BLOCKQUOTE.match(line))

    if any(_QUOTED_HEADING.match(line) for line in lines):
        signals.append((30, "block-quote heading detected"))
    if any(_HEADING.match(line) for line in lines):
        signals.append((30, "markdown heading detected"))
    if quoted and quoted * 2 >= len(lines):
        signals.append((20, f"block-quote markers on {quoted} of {len(lines)} lines"))
    if sum(1 for line in lines if _FENCE.match(line)) >= 2:
        signals.append((40, "fenced code block detected"))
    if any(_BULLET.match(line) for line in lines):
        signals.append((15, "bullet list detected"))
    if any(_NUMBERED.match(line) for line in lines):
        signals.append((10, "numbered list detected"))
    return signals


def _table_signals(lines: List[str], delimiter: str, line_ratio: float) -> Tuple[List[Tuple[int, str]], float]:
    signals: List[Tuple[int, str]] = []
    if not delimiter:
        return signals, 0.0

    signals.append((_DELIMITER_WEIGHT[delimiter], f"{_DELIMITER_NAME[delimiter]} delimiter detected"))

    with_delim = sum(1 for line in lines if delimiter in line)
    ratio = with_delim / len(lines)
    if ratio > line_ratio:
        signals.append((30, f"delimiter present in {round(ratio * 100)}% of lines"))

    counts = [line.count(delimiter) + 1 for line in lines]
    if delimiter == PIPE:
        counts = [c - 2 for c in counts]
    mode = Counter(counts).most_common(1)[0][0]
    if len(counts) >= 2 and mode >= 2 and statistics.pvariance(counts) <= 0.5:
        signals.append((30, f"uniform column count ({mode}) across lines"))
    if mode >= 3:
        signals.append((10, f"{mode} columns per line"))

    quoted = sum(1 for line in lines if _BLOCKQUOTE.match(line))
    if quoted * 2 > len(lines):
        signals.append((-20, "block-quote markers on most lines"))
    return signals, ratio


def detect_input_type(content: str, table_line_ratio: float = DEFAULT_TABLE_LINE_RATIO) -> InputAnalysis:
    """
    Classify pasted content as markdown prose or tabular data.

    Never raises. Empty or signal-free input is reported as a table with
    confidence 0.
    """

    text = (content or "").replace("\r\n", "\n").replace("\r", "\n")
    lines = [line for line in text.split("\n") if line.strip()]
    if not lines:
        return InputAnalysis(InputType.TABLE, 0, "empty input")

    delimiter = detect_delimiter(text)
    md_signals = _markdown_signals(lines)
    table_signals, ratio = _table_signals(lines, delimiter, table_line_ratio)

    md_score = _clamp(sum(w for w, _ in md_signals))
    table_score = _clamp(sum(w for w, _ in table_signals))
    LOGGER.debug("Classifier scores: markdown=%d table=%d", md_score, table_score)

    if md_score == 0 and table_score == 0:
        return InputAnalysis(InputType.TABLE, 0, "no structural signals; defaulting to table")

    if md_score > table_score:
        winner = InputType.MARKDOWN
    elif table_score > md_score:
        winner = InputType.TABLE
    else:
        has_prose_markers = any(_BLOCKQUOTE.match(line) or _HEADING.match(line) for line in lines)
        if has_prose_markers:
            winner = InputType.MARKDOWN
        else:
            winner = InputType.TABLE
        LOGGER.debug("Classifier tie broken to %s (delimiter ratio %.2f)", winner.value, ratio)

    if winner is InputType.MARKDOWN:
        confidence = _clamp(md_score - table_score // 2)
        reason = _strongest(md_signals)
    else:
        penalty = 0 if ratio > STRONG_TABLE_RATIO else md_score // 2
        confidence = _clamp(table_score - penalty)
        reason = _strongest(table_signals)
    return InputAnalysis(winner, confidence, reason)
