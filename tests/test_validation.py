from mdflow.model import ProseDocument, ProseSection, SpecDoc, SpecRow
from mdflow.validation import (
    CrossFieldRule,
    FormatRules,
    ValidationRules,
    WarningCode,
    rules_from_mapping,
    validate,
)


def _doc(*rows):
    return SpecDoc(rows=tuple(rows))


def test_required_field_reports_the_empty_row():
    doc = _doc(SpecRow(id="TC-01", expected="OK"), SpecRow(id="TC-02", expected=""))
    result = validate(doc, ValidationRules(required_fields=("expected",)))

    assert result.valid is False
    assert len(result.warnings) == 1
    warning = result.warnings[0]
    assert warning.code is WarningCode.REQUIRED
    assert (warning.row_index, warning.field) == (1, "expected")
    assert warning.severity == "error"


def test_placeholder_dash_counts_as_empty():
    result = validate(_doc(SpecRow(expected=" - ")), ValidationRules(required_fields=("expected",)))
    assert [w.code for w in result.warnings] == [WarningCode.REQUIRED]


def test_cross_field_rule():
    rule = CrossFieldRule(if_field="action", then_field="navigation_destination")
    doc = _doc(SpecRow(action="Navigate", navigation_destination=""), SpecRow(action="Navigate", navigation_destination="/home"))
    result = validate(doc, ValidationRules(cross_field=(rule,)))

    assert result.valid is False
    assert len(result.warnings) == 1
    warning = result.warnings[0]
    assert warning.code is WarningCode.CROSS_FIELD
    assert warning.row_index == 0
    assert warning.message == "When Action is set, Navigation Destination is required"


def test_cross_field_uses_custom_message():
    rule = CrossFieldRule("id", "feature", "Feature needed")
    result = validate(_doc(SpecRow(id="TC-1")), ValidationRules(cross_field=(rule,)))
    assert result.warnings[0].message == "Feature needed"


def test_missing_operands_are_valid():
    rules = ValidationRules(required_fields=("expected",))
    doc = _doc(SpecRow())
    for result in (validate(None, rules), validate(doc, None)):
        assert result.valid is True
        assert list(result.warnings) == []


def test_prose_documents_skip_validation():
    doc = SpecDoc(prose=ProseDocument(sections=(ProseSection("Summary", "text"),)))
    result = validate(doc, ValidationRules(required_fields=("expected",)))
    assert result.valid is True
    assert list(result.warnings) == []


def test_format_warnings_are_advisory():
    rules = ValidationRules(format_rules=FormatRules(id_pattern=r"^[A-Z]{2,}-\d+$"))
    result = validate(_doc(SpecRow(id="tc-1"), SpecRow(id="TC-2"), SpecRow(id="")), rules)

    assert result.valid is True
    assert [(w.code, w.row_index, w.severity) for w in result.warnings] == [(WarningCode.FORMAT, 0, "warning")]


def test_invalid_pattern_and_unknown_fields_are_ignored(caplog):
    rules = ValidationRules(
        required_fields=("bogus",),
        format_rules=FormatRules(id_pattern="["),
        cross_field=(CrossFieldRule("nope", "feature"),),
    )
    with caplog.at_level("WARNING", logger="mdflow.validation"):
        result = validate(_doc(SpecRow(id="x")), rules)

    assert result.valid is True
    assert list(result.warnings) == []
    assert "invalid id_pattern" in caplog.text


def test_url_and_email_formats():
    rules = ValidationRules(format_rules=FormatRules(url_fields=("endpoint",), email_fields=("notes",)))
    doc = _doc(
        SpecRow(endpoint="GET /users", notes="qa@example.com"),
        SpecRow(endpoint="users", notes="not-an-email"),
    )
    result = validate(doc, rules)

    assert [(w.row_index, w.field) for w in result.warnings] == [(1, "notes"), (1, "endpoint")]
    assert result.valid is True


def test_warnings_ordered_by_row_then_check_kind():
    rules = ValidationRules(
        required_fields=("expected",),
        format_rules=FormatRules(id_pattern=r"^TC-\d+$"),
        cross_field=(CrossFieldRule("instructions", "expected"),),
    )
    doc = _doc(SpecRow(id="TC-1", expected="ok"), SpecRow(id="bad", instructions="click"))
    result = validate(doc, rules)

    assert [(w.row_index, w.code) for w in result.warnings] == [
        (1, WarningCode.REQUIRED),
        (1, WarningCode.FORMAT),
        (1, WarningCode.CROSS_FIELD),
    ]


def test_validate_is_idempotent():
    rules = ValidationRules(required_fields=("feature", "expected"))
    doc = _doc(SpecRow(feature="Login"), SpecRow(expected="OK"))
    assert validate(doc, rules) == validate(doc, rules)


def test_rules_from_mapping():
    rules = rules_from_mapping(
        {
            "required_fields": ["item_name", "item_type"],
            "format_rules": {"id_pattern": "^ID-\\d+$", "url_fields": "endpoint"},
            "cross_field": [{"if_field": "action", "then_field": "navigation_destination", "message": "m"}],
        }
    )
    assert rules.required_fields == ("item_name", "item_type")
    assert rules.format_rules == FormatRules(id_pattern="^ID-\\d+$", url_fields=("endpoint",))
    assert rules.cross_field == (CrossFieldRule("action", "navigation_destination", "m"),)
    assert rules_from_mapping(None) == ValidationRules()
