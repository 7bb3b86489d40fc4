from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence, Tuple

# Order matters: it is the deterministic tie-break when two fields score the same.
CANONICAL_FIELDS: Tuple[str, ...] = (
    "id",
    "feature",
    "scenario",
    "priority",
    "type",
    "status",
    "precondition",
    "instructions",
    "inputs",
    "expected",
    "endpoint",
    "notes",
    "no",
    "item_name",
    "item_type",
    "required_optional",
    "display_conditions",
    "input_restrictions",
    "action",
    "navigation_destination",
)

FIELD_LABELS: Mapping[str, str] = {
    "id": "ID",
    "feature": "Feature",
    "scenario": "Scenario",
    "priority": "Priority",
    "type": "Type",
    "status": "Status",
    "precondition": "Precondition",
    "instructions": "Instructions",
    "inputs": "Inputs",
    "expected": "Expected",
    "endpoint": "Endpoint",
    "notes": "Notes",
    "no": "No",
    "item_name": "Item Name",
    "item_type": "Item Type",
    "required_optional": "Required/Optional",
    "display_conditions": "Display Conditions",
    "input_restrictions": "Input Restrictions",
    "action": "Action",
    "navigation_destination": "Navigation Destination",
}

# Fields that only appear in UI spec tables; their presence switches on UI context.
UI_SPEC_FIELDS: Tuple[str, ...] = (
    "item_name",
    "item_type",
    "required_optional",
    "display_conditions",
    "input_restrictions",
    "navigation_destination",
)

# Positional shape used when no header can be recognised.
GENERIC_ROW_FIELDS: Tuple[str, ...] = ("feature", "scenario", "instructions", "expected", "notes")

DEFAULT_FIELD_ALIASES: Mapping[str, Tuple[str, ...]] = {
    "id": (
        "id", "tc id", "test id", "case id", "test case id", "ref", "reference", "key",
        "ticket id", "story id", "issue id", "requirement id", "req id",
        "テストid", "ストーリーid", "課題id", "mã", "mã kiểm thử", "mã câu chuyện",
    ),
    "feature": (
        "feature", "requirement", "req", "story", "user story", "task", "title", "name",
        "module", "summary", "function",
        "機能", "タイトル", "テスト名", "tính năng", "chức năng", "tiêu đề",
    ),
    "scenario": (
        "scenario", "test case", "tc", "case", "case name", "test name", "test case name",
        "シナリオ", "テストケース", "kịch bản", "trường hợp kiểm thử",
    ),
    "priority": (
        "priority", "prio", "p", "severity", "sev",
        "優先度", "重要度", "ưu tiên", "mức độ ưu tiên",
    ),
    "type": (
        "type", "category", "test type", "kind",
        "種別", "分類", "loại", "loại kiểm thử",
    ),
    "status": (
        "status", "state", "execution result", "test result",
        "結果", "ステータス", "状態", "実行結果", "trạng thái",
    ),
    "precondition": (
        "precondition", "preconditions", "pre condition", "pre", "given", "prerequisites", "setup",
        "前提条件", "điều kiện tiên quyết", "tiền điều kiện",
    ),
    "instructions": (
        "instructions", "description", "steps", "test steps", "procedure", "when",
        "手順", "テスト手順", "操作手順", "説明", "các bước", "bước thực hiện", "mô tả",
    ),
    "inputs": (
        "inputs", "input", "test data", "testdata", "data", "parameters", "params",
        "request", "request body",
        "入力", "入力値", "テストデータ", "パラメータ", "dữ liệu", "dữ liệu kiểm thử", "đầu vào", "thông số",
    ),
    "expected": (
        "expected", "expected output", "expected result", "expected results", "acceptance",
        "acceptance criteria", "criteria", "result", "outcome", "then",
        "期待結果", "期待値", "受け入れ基準", "kết quả mong đợi", "tiêu chí chấp nhận",
    ),
    "endpoint": (
        "endpoint", "api", "api endpoint", "url", "uri", "route", "path",
        "エンドポイント", "điểm cuối",
    ),
    "notes": (
        "notes", "note", "comments", "comment", "remarks", "remark", "memo",
        "備考", "メモ", "コメント", "ghi chú",
    ),
    "no": (
        "no", "number", "seq", "index", "row no",
        "番号", "số", "stt",
    ),
    "item_name": (
        "item name", "field name", "label",
        "項目名", "tên mục", "tên trường",
    ),
    "item_type": (
        "item type", "field type", "control type", "widget",
        "項目型", "項目タイプ", "loại mục",
    ),
    "required_optional": (
        "required optional", "mandatory", "required", "optional",
        "必須 任意", "必須", "bắt buộc tùy chọn", "bắt buộc",
    ),
    "display_conditions": (
        "display conditions", "display condition", "visibility", "show condition",
        "表示条件", "điều kiện hiển thị",
    ),
    "input_restrictions": (
        "input restrictions", "input restriction", "constraint", "constraints", "validation", "rule",
        "入力制限", "hạn chế nhập",
    ),
    "action": (
        "action", "actions", "trigger", "event", "on click",
        "アクション", "動作", "hành động",
    ),
    "navigation_destination": (
        "navigation destination", "navigation", "destination", "target", "redirect",
        "next screen", "link",
        "遷移先", "điểm đến điều hướng", "điều hướng",
    ),
}

# Generic headers re-read when the row is recognised as a UI spec table.
DEFAULT_CONTEXT_ALIASES: Mapping[str, Mapping[str, str]] = {
    "ui_spec": {
        "type": "item_type",
        "name": "item_name",
        "display": "display_conditions",
        "conditions": "display_conditions",
        "restrictions": "input_restrictions",
        "型": "item_type",
        "名前": "item_name",
        "loại": "item_type",
        "tên": "item_name",
    },
}

_PUNCT_RE = re.compile(r"[^\w\s]|_")


def collapse_repeats(words: Sequence[str]) -> List[str]:
    """
    Drop the duplication merged spreadsheet cells leave in a header.

    A header made of one phrase said N times ("item name item name") keeps a
    single copy; otherwise runs of the same word shrink to one word.
    """

    words = list(words)
    total = len(words)
    for size in range(1, total // 2 + 1):
        if total % size == 0 and words[:size] * (total // size) == words:
            return words[:size]
    return [word for pos, word in enumerate(words) if pos == 0 or word != words[pos - 1]]


def normalize_header(name: str) -> str:
    """NFKC, lowercase, punctuation to spaces, collapsed whitespace, de-duplicated phrases."""

    if not name:
        return ""
    text = unicodedata.normalize("NFKC", str(name)).lower()
    return " ".join(collapse_repeats(_PUNCT_RE.sub(" ", text).split()))


@dataclass(frozen=True)
class AliasTable:
    """Normalised alias lookup shared by the header mapper; never mutated after build."""

    aliases: Mapping[str, Tuple[str, ...]]  # canonical -> normalised aliases
    index: Mapping[str, str]  # normalised alias -> canonical
    context_aliases: Mapping[str, Mapping[str, str]]

    def field_for(self, normalized: str) -> str | None:
        return self.index.get(normalized)


def merge_field_aliases(
    overrides: Mapping[str, Sequence[str]] | None,
    base: Mapping[str, Sequence[str]] | None = None,
) -> Dict[str, List[str]]:
    """
    Merge alias overrides into the default alias table.

    Overrides are canonical -> extra aliases. They are tried before the
    defaults for the same field so callers only need to specify the deltas.
    """

    merged: Dict[str, List[str]] = {k: list(v) for k, v in (base or DEFAULT_FIELD_ALIASES).items()}
    if overrides:
        for field_name, extra in overrides.items():
            target = merged.setdefault(str(field_name), [])
            additions = [str(a) for a in extra if str(a) not in target]
            merged[str(field_name)] = [*additions, *target]
    return merged


def build_alias_table(
    aliases: Mapping[str, Sequence[str]] | None = None,
    context_aliases: Mapping[str, Mapping[str, str]] | None = None,
    overrides: Mapping[str, Sequence[str]] | None = None,
) -> AliasTable:
    """
    Build the immutable alias table.

    An alias listed in ``overrides`` belongs to the overriding field only,
    even when a default list names it too. Any other alias shared by two
    fields stays with the first one in canonical order.
    """

    source = merge_field_aliases(overrides, aliases) if overrides else (aliases or DEFAULT_FIELD_ALIASES)
    claimed: Dict[str, str] = {}
    for field_name, extra in (overrides or {}).items():
        if field_name in CANONICAL_FIELDS:
            for alias in extra:
                claimed.setdefault(normalize_header(str(alias)), field_name)

    normalized: Dict[str, Tuple[str, ...]] = {}
    index: Dict[str, str] = {}
    for field_name in CANONICAL_FIELDS:
        seen: List[str] = []
        # The canonical name itself is always an alias of its field.
        for alias in (field_name, *source.get(field_name, ())):
            norm = normalize_header(alias)
            if not norm or norm in seen or claimed.get(norm, field_name) != field_name:
                continue
            seen.append(norm)
            index.setdefault(norm, field_name)
        normalized[field_name] = tuple(seen)

    context: Dict[str, Dict[str, str]] = {}
    for name, table in (context_aliases or DEFAULT_CONTEXT_ALIASES).items():
        context[name] = {normalize_header(k): v for k, v in table.items() if v in CANONICAL_FIELDS}

    return AliasTable(aliases=normalized, index=index, context_aliases=context)


DEFAULT_ALIAS_TABLE: AliasTable = build_alias_table()
