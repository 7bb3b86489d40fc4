from __future__ import annotations

from typing import Callable, Dict, List

import yaml

from .errors import UnknownTemplateError
from .model import SpecDoc, SpecRow
from .schema import CANONICAL_FIELDS, FIELD_LABELS

DEFAULT_TEMPLATE = "spec"
TEMPLATE_ALIASES: Dict[str, str] = {"default": "spec"}


def _front_matter(doc: SpecDoc, template: str) -> str:
    meta = {
        "title": doc.title,
        "input_type": doc.analysis.type.value if doc.analysis else ("markdown" if doc.is_prose else "table"),
        "template": template,
    }
    if not doc.is_prose:
        meta["total_rows"] = doc.total_rows
    dumped = yaml.safe_dump(meta, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return f"---\n{dumped}---\n"


def _bullet(label: str, value: str) -> str:
    lines = value.strip().split("\n")
    out = [f"- **{label}**: {lines[0].rstrip()}"]
    out.extend(f"  {line.rstrip()}" for line in lines[1:])
    return "\n".join(out)


def _escape_cell(value: str) -> str:
    """Single-line table cell; line breaks become spaces and pipes are escaped."""

    flat = value.strip().replace("\r\n", " ").replace("\n", " ").replace("\r", " ")
    return flat.replace("|", "\\|")


def _render_preamble(doc: SpecDoc) -> str:
    lines = ["## Preamble", ""]
    for source in doc.preamble:
        lines.append("- " + " / ".join(c.strip() for c in source if c.strip()))
    return "\n".join(lines) + "\n"


def _render_prose(doc: SpecDoc, template: str) -> str:
    prose = doc.prose
    parts: List[str] = [_front_matter(doc, template)]
    if not any(s.level == 1 for s in prose.sections):
        parts.append(f"# {doc.title}\n")
    for section in prose.sections:
        block = f"{'#' * section.level} {section.heading}\n"
        if section.content:
            block += f"\n{section.content}\n"
        parts.append(block)
    if prose.raw_message:
        parts.append(f"## Raw Message\n\n{prose.raw_message}\n")
    return "\n".join(parts)


def _render_row(doc: SpecDoc, row: SpecRow) -> str:
    lines = [f"#### {row.display_title()}", ""]
    for name in CANONICAL_FIELDS:
        if name == "feature":
            continue
        value = row.get(name)
        if value.strip():
            lines.append(_bullet(FIELD_LABELS[name], value))
    extras = doc.extra_values(row)
    if extras:
        lines.append("- **Additional fields**:")
        for header, value in extras:
            lines.append("  " + _bullet(header, value).replace("\n", "\n  "))
    return "\n".join(lines) + "\n"


def render_spec(doc: SpecDoc) -> str:
    """Front matter, summary, column mapping and rows grouped by feature."""

    parts: List[str] = [_front_matter(doc, "spec"), f"# {doc.title}\n"]

    groups = doc.group_by_feature()
    summary = [
        "## Summary",
        "",
        f"- **Total rows**: {doc.total_rows}",
        f"- **Features**: {len(groups)}",
    ]
    if doc.unmapped_columns:
        summary.append(f"- **Unmapped columns**: {', '.join(doc.unmapped_columns)}")
    parts.append("\n".join(summary) + "\n")
    if doc.preamble:
        parts.append(_render_preamble(doc))

    mapped = {m.source_index: m for m in doc.mappings}
    mapping_lines = ["## Column Mapping", ""]
    for idx, header in enumerate(doc.headers):
        mapping = mapped.get(idx)
        if mapping is None:
            mapping_lines.append(f"- {header} -> _unmapped_")
        else:
            mapping_lines.append(
                f"- {header} -> `{mapping.canonical_field}` ({mapping.confidence}%, {mapping.method})"
            )
    parts.append("\n".join(mapping_lines) + "\n")

    for feature, rows in groups:
        parts.append(f"## {feature}\n")
        for row in rows:
            parts.append(_render_row(doc, row))
    return "\n".join(parts)


def render_table(doc: SpecDoc) -> str:
    """Front matter plus every source column as a markdown table."""

    parts: List[str] = [_front_matter(doc, "table"), f"# {doc.title}\n"]
    if doc.preamble:
        parts.append(_render_preamble(doc))
    if not doc.headers:
        return "\n".join(parts)

    lines = [
        "| " + " | ".join(_escape_cell(h) for h in doc.headers) + " |",
        "| " + " | ".join("---" for _ in doc.headers) + " |",
    ]
    width = len(doc.headers)
    for source in doc.data_lines:
        cells = [source[i] if i < len(source) else "" for i in range(width)]
        if not any(c.strip() for c in cells):
            continue
        lines.append("| " + " | ".join(_escape_cell(c) for c in cells) + " |")
    parts.append("\n".join(lines) + "\n")
    return "\n".join(parts)


RENDERERS: Dict[str, Callable[[SpecDoc], str]] = {
    "spec": render_spec,
    "table": render_table,
}


def get_template_names() -> List[str]:
    return sorted(RENDERERS)


def resolve_template(name: str | None) -> str:
    key = (name or DEFAULT_TEMPLATE).strip().lower() or DEFAULT_TEMPLATE
    key = TEMPLATE_ALIASES.get(key, key)
    if key not in RENDERERS:
        raise UnknownTemplateError(name or "", get_template_names())
    return key


def render(doc: SpecDoc, template_name: str | None = None) -> str:
    """Render ``doc``; prose documents always render as sections."""

    template = resolve_template(template_name)
    if doc.is_prose:
        return _render_prose(doc, template)
    return RENDERERS[template](doc)
