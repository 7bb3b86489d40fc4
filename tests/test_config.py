from pathlib import Path

import pytest
import yaml

from mdflow.builder import build_header_mapper, build_spec_doc_from_paste
from mdflow.config import (
    DEFAULT_PRESET_NAME,
    Settings,
    load_alias_overrides,
    load_settings,
    load_validation_presets,
)
from mdflow.errors import ConfigError
from mdflow.schema import build_alias_table, merge_field_aliases


def _write_yaml(path: Path, payload) -> Path:
    path.write_text(yaml.safe_dump(payload, allow_unicode=True), encoding="utf-8")
    return path


def test_load_settings_reads_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("MDFLOW_MIN_HEADER_CONFIDENCE", "75")
    monkeypatch.setenv("MDFLOW_TABLE_LINE_RATIO", "0.8")
    monkeypatch.setenv("MDFLOW_DEFAULT_TEMPLATE", "table")
    monkeypatch.setenv("MDFLOW_ALIAS_CONFIG", str(tmp_path / "aliases.yaml"))
    monkeypatch.delenv("MDFLOW_PRESETS_PATH", raising=False)

    settings = load_settings()

    assert settings.min_header_confidence == 75
    assert settings.table_line_ratio == 0.8
    assert settings.default_template == "table"
    assert settings.alias_config_path == tmp_path / "aliases.yaml"
    assert settings.presets_path is None


def test_malformed_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("MDFLOW_MIN_HEADER_CONFIDENCE", "high")
    monkeypatch.setenv("MDFLOW_TABLE_LINE_RATIO", "most")

    settings = load_settings()

    assert settings.min_header_confidence == 60
    assert settings.table_line_ratio == 0.5


def test_alias_overrides_extend_header_mapping(tmp_path):
    path = _write_yaml(tmp_path / "aliases.yaml", {"aliases": {"expected": ["Soll"], "notes": "Bemerkung"}})

    assert load_alias_overrides(path) == {"expected": ["Soll"], "notes": ["Bemerkung"]}

    mapper = build_header_mapper(Settings(alias_config_path=path))
    doc = build_spec_doc_from_paste("Feature\tSoll\tBemerkung\nLogin\tOK\tn/a", mapper=mapper)
    assert doc.column_map == {"Feature": "feature", "Soll": "expected", "Bemerkung": "notes"}


def test_alias_override_takes_an_alias_from_its_default_field(tmp_path):
    path = _write_yaml(tmp_path / "aliases.yaml", {"aliases": {"notes": ["name"]}})

    table = build_alias_table(overrides=load_alias_overrides(path))
    assert table.field_for("name") == "notes"
    assert "name" not in table.aliases["feature"]

    mapper = build_header_mapper(Settings(alias_config_path=path))
    doc = build_spec_doc_from_paste("Name\tScenario\nLogin\tHappy path", mapper=mapper)
    assert doc.column_map == {"Name": "notes", "Scenario": "scenario"}
    assert doc.rows[0].notes == "Login"


def test_alias_overrides_reject_unknown_fields(tmp_path):
    path = _write_yaml(tmp_path / "aliases.yaml", {"aliases": {"colour": ["Farbe"]}})
    with pytest.raises(ConfigError):
        load_alias_overrides(path)


def test_missing_alias_file_yields_no_overrides(tmp_path):
    assert load_alias_overrides(tmp_path / "missing.yaml") == {}
    assert load_alias_overrides(None) == {}


def test_merge_field_aliases_puts_overrides_first():
    merged = merge_field_aliases({"notes": ["Bemerkung", "memo"]})
    assert merged["notes"][0] == "Bemerkung"
    assert merged["notes"].count("memo") == 1


def test_builtin_presets():
    catalog = load_validation_presets()

    assert catalog.default_preset == DEFAULT_PRESET_NAME
    assert catalog.names() == [
        "Default (Test Case)",
        "Feature Spec (User Story)",
        "Test Plan",
        "API Endpoint",
        "Spec Table (UI)",
    ]
    default = catalog.get()
    assert default.required_fields == ("feature", "scenario", "expected")
    assert default.format_rules.id_pattern == r"^[A-Z]{2,}-\d+$"
    ui = catalog.get("Spec Table (UI)")
    assert [(r.if_field, r.then_field) for r in ui.cross_field] == [("action", "navigation_destination")]


def test_presets_file_merges_and_sets_default(tmp_path):
    path = _write_yaml(
        tmp_path / "presets.yaml",
        {
            "presets": {"Strict IDs": {"required_fields": ["id"], "format_rules": {"id_pattern": "^REQ-\\d+$"}}},
            "default_preset": "Strict IDs",
        },
    )
    catalog = load_validation_presets(path)

    assert "Test Plan" in catalog.names()
    assert catalog.get().required_fields == ("id",)


def test_presets_file_with_unknown_default_is_rejected(tmp_path):
    path = _write_yaml(tmp_path / "presets.yaml", {"default_preset": "Nope"})
    with pytest.raises(ConfigError):
        load_validation_presets(path)


def test_unknown_preset_name_is_rejected():
    with pytest.raises(ConfigError):
        load_validation_presets().get("Nope")
