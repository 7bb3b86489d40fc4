from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Tuple

from .schema import CANONICAL_FIELDS, FIELD_LABELS

if TYPE_CHECKING:
    from .model import SpecDoc, SpecRow

LOGGER = logging.getLogger(__name__)

PLACEHOLDER = "-"

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_URL = re.compile(r"^(?:(?:GET|POST|PUT|PATCH|DELETE|HEAD|OPTIONS)\s+)?(?:https?://\S+|/\S*)$", re.IGNORECASE)


class WarningCode(str, Enum):
    REQUIRED = "VALIDATION_REQUIRED"
    FORMAT = "VALIDATION_FORMAT"
    CROSS_FIELD = "VALIDATION_CROSS_FIELD"


SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

# Format mismatches are advisory; only these codes make a document invalid.
BLOCKING_CODES = frozenset({WarningCode.REQUIRED, WarningCode.CROSS_FIELD})


@dataclass(frozen=True)
class FormatRules:
    id_pattern: str = ""
    email_fields: Tuple[str, ...] = ()
    url_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CrossFieldRule:
    if_field: str
    then_field: str
    message: str = ""

    def describe(self) -> str:
        if self.message:
            return self.message
        return (
            f"When {FIELD_LABELS.get(self.if_field, self.if_field)} is set, "
            f"{FIELD_LABELS.get(self.then_field, self.then_field)} is required"
        )


@dataclass(frozen=True)
class ValidationRules:
    required_fields: Tuple[str, ...] = ()
    format_rules: Optional[FormatRules] = None
    cross_field: Tuple[CrossFieldRule, ...] = ()


@dataclass(frozen=True)
class ValidationWarning:
    code: WarningCode
    row_index: int
    field: str
    message: str
    severity: str = SEVERITY_ERROR
    suggestion: str = ""

    def __str__(self) -> str:
        return f"[{self.code.value}] row {self.row_index + 1}: {self.message}"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool = True
    warnings: Tuple[ValidationWarning, ...] = field(default_factory=tuple)


def _is_blank(value: str) -> bool:
    stripped = (value or "").strip()
    return not stripped or stripped == PLACEHOLDER


def _known_fields(names, context: str) -> List[str]:
    known: List[str] = []
    for name in names:
        if name not in CANONICAL_FIELDS:
            LOGGER.warning("Ignoring unknown field %r in %s rule", name, context)
            continue
        if name not in known:
            known.append(name)
    return known


def _compile_id_pattern(pattern: str) -> Optional[re.Pattern]:
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        LOGGER.warning("Ignoring invalid id_pattern %r: %s", pattern, exc)
        return None


def _label(name: str) -> str:
    return FIELD_LABELS.get(name, name)


def _check_row(
    idx: int,
    row: "SpecRow",
    required: List[str],
    id_pattern: Optional[re.Pattern],
    email_fields: List[str],
    url_fields: List[str],
    cross: List[CrossFieldRule],
) -> List[ValidationWarning]:
    found: List[ValidationWarning] = []

    for name in required:
        if _is_blank(row.get(name)):
            found.append(
                ValidationWarning(
                    code=WarningCode.REQUIRED,
                    row_index=idx,
                    field=name,
                    message=f"{_label(name)} is required",
                    severity=SEVERITY_ERROR,
                    suggestion=f"Fill in {_label(name)} for this row",
                )
            )

    if id_pattern is not None and row.id.strip() and not id_pattern.search(row.id.strip()):
        found.append(
            ValidationWarning(
                code=WarningCode.FORMAT,
                row_index=idx,
                field="id",
                message=f"ID '{row.id.strip()}' does not match pattern {id_pattern.pattern}",
                severity=SEVERITY_WARNING,
                suggestion=f"Use an ID matching {id_pattern.pattern}",
            )
        )

    for name in email_fields:
        value = row.get(name).strip()
        if value and not _EMAIL.match(value):
            found.append(
                ValidationWarning(
                    code=WarningCode.FORMAT,
                    row_index=idx,
                    field=name,
                    message=f"{_label(name)} '{value}' is not a valid email address",
                    severity=SEVERITY_WARNING,
                    suggestion="Use the form name@example.com",
                )
            )
    for name in url_fields:
        value = row.get(name).strip()
        if value and not _URL.match(value):
            found.append(
                ValidationWarning(
                    code=WarningCode.FORMAT,
                    row_index=idx,
                    field=name,
                    message=f"{_label(name)} '{value}' is not a valid URL or path",
                    severity=SEVERITY_WARNING,
                    suggestion="Use an absolute URL (https://...) or a path starting with /",
                )
            )

    for rule in cross:
        if not _is_blank(row.get(rule.if_field)) and _is_blank(row.get(rule.then_field)):
            found.append(
                ValidationWarning(
                    code=WarningCode.CROSS_FIELD,
                    row_index=idx,
                    field=rule.then_field,
                    message=rule.describe(),
                    severity=SEVERITY_ERROR,
                    suggestion=f"Fill in {_label(rule.then_field)} or clear {_label(rule.if_field)}",
                )
            )
    return found


def validate(doc: Optional["SpecDoc"], rules: Optional[ValidationRules]) -> ValidationResult:
    """
    Check the rows of ``doc`` against ``rules``.

    Missing operands and prose documents validate trivially. Warnings are
    ordered by row, then required, format and cross-field checks. Only
    required and cross-field warnings make the result invalid.
    """

    if doc is None or rules is None or doc.is_prose:
        return ValidationResult(valid=True, warnings=())

    required = _known_fields(rules.required_fields, "required")
    formats = rules.format_rules
    id_pattern = _compile_id_pattern(formats.id_pattern) if formats else None
    email_fields = _known_fields(formats.email_fields, "email format") if formats else []
    url_fields = _known_fields(formats.url_fields, "url format") if formats else []
    cross: List[CrossFieldRule] = []
    for rule in rules.cross_field:
        if rule.if_field in CANONICAL_FIELDS and rule.then_field in CANONICAL_FIELDS:
            cross.append(rule)
        else:
            LOGGER.warning("Ignoring cross-field rule with unknown field: %s -> %s", rule.if_field, rule.then_field)

    warnings: List[ValidationWarning] = []
    for idx, row in enumerate(doc.rows):
        warnings.extend(_check_row(idx, row, required, id_pattern, email_fields, url_fields, cross))

    valid = not any(w.code in BLOCKING_CODES for w in warnings)
    return ValidationResult(valid=valid, warnings=tuple(warnings))


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def rules_from_mapping(payload: Optional[Mapping[str, Any]]) -> ValidationRules:
    """Build rules from a JSON/YAML style mapping (required_fields, format_rules, cross_field)."""

    payload = payload or {}
    raw_format = payload.get("format_rules") or None
    format_rules = None
    if raw_format:
        format_rules = FormatRules(
            id_pattern=str(raw_format.get("id_pattern") or ""),
            email_fields=_as_tuple(raw_format.get("email_fields")),
            url_fields=_as_tuple(raw_format.get("url_fields")),
        )

    cross = tuple(
        CrossFieldRule(
            if_field=str(item.get("if_field", "")),
            then_field=str(item.get("then_field", "")),
            message=str(item.get("message") or ""),
        )
        for item in (payload.get("cross_field") or [])
    )
    return ValidationRules(
        required_fields=_as_tuple(payload.get("required_fields")),
        format_rules=format_rules,
        cross_field=cross,
    )
