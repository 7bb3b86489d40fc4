from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .builder import build_spec_doc_from_paste
from .config import Settings
from .headers import HeaderMapper
from .model import SpecDoc
from .render import render, resolve_template
from .validation import ValidationResult, ValidationRules, validate

LOGGER = logging.getLogger(__name__)


@dataclass
class RenderResult:
    mdflow: str
    warnings: List[str] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)


def _build_meta(doc: SpecDoc, template: str, verdict: Optional[ValidationResult]) -> Dict[str, Any]:
    meta: Dict[str, Any] = {
        "input_type": doc.analysis.type.value if doc.analysis else "",
        "confidence": doc.analysis.confidence if doc.analysis else 0,
        "reason": doc.analysis.reason if doc.analysis else "",
        "template": template,
        "title": doc.title,
    }
    if doc.is_prose:
        meta["sections"] = len(doc.prose.sections)
    else:
        meta.update(
            {
                "column_map": doc.column_map,
                "unmapped_columns": doc.unmapped_columns,
                "total_rows": doc.total_rows,
                "rows_by_feature": doc.rows_by_feature,
            }
        )
    if verdict is not None:
        meta["valid"] = verdict.valid
        meta["validation_warnings"] = len(verdict.warnings)
    return meta


def convert_paste(
    content: str,
    template_name: str = "",
    rules: Optional[ValidationRules] = None,
    settings: Optional[Settings] = None,
    mapper: Optional[HeaderMapper] = None,
) -> RenderResult:
    """
    Build, optionally validate, and render pasted content.

    Raises ParseError/BuildError for unusable input and UnknownTemplateError
    for a bad template name; validation warnings never block rendering.
    """

    settings = settings or Settings()
    template = resolve_template(template_name or settings.default_template)
    doc = build_spec_doc_from_paste(content, mapper=mapper, settings=settings)

    verdict = validate(doc, rules) if rules is not None else None
    warnings = list(doc.warnings)
    if verdict is not None:
        warnings.extend(str(w) for w in verdict.warnings)
        if not verdict.valid:
            LOGGER.info("Validation reported %d issue(s)", len(verdict.warnings))

    return RenderResult(
        mdflow=render(doc, template),
        warnings=warnings,
        meta=_build_meta(doc, template, verdict),
    )
