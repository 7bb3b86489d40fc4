from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigError
from .schema import CANONICAL_FIELDS
from .validation import ValidationRules, rules_from_mapping

load_dotenv()

LOGGER = logging.getLogger(__name__)

DEFAULT_MIN_HEADER_CONFIDENCE = 60
DEFAULT_TABLE_LINE_RATIO = 0.5
DEFAULT_TEMPLATE = "spec"
DEFAULT_PRESET_NAME = "Default (Test Case)"

DEFAULT_PRESETS: Dict[str, Dict[str, Any]] = {
    "Default (Test Case)": {
        "required_fields": ["feature", "scenario", "expected"],
        "format_rules": {"id_pattern": r"^[A-Z]{2,}-\d+$"},
        "cross_field": [
            {"if_field": "id", "then_field": "feature", "message": "When ID is set, Feature is required"},
            {
                "if_field": "instructions",
                "then_field": "expected",
                "message": "When Steps are set, Expected is required",
            },
        ],
    },
    "Feature Spec (User Story)": {
        "required_fields": ["feature", "scenario", "expected"],
        "format_rules": None,
        "cross_field": [
            {
                "if_field": "precondition",
                "then_field": "expected",
                "message": "When Given is set, Then (expected) is required",
            },
        ],
    },
    "Test Plan": {
        "required_fields": ["id", "feature", "scenario", "expected"],
        "format_rules": {"id_pattern": r"^[A-Z]{2,}-\d+$"},
        "cross_field": [
            {"if_field": "id", "then_field": "feature", "message": "When ID is set, Feature is required"},
        ],
    },
    "API Endpoint": {
        "required_fields": ["endpoint", "type"],
        "format_rules": {"url_fields": ["endpoint"]},
        "cross_field": [],
    },
    "Spec Table (UI)": {
        "required_fields": ["item_name", "item_type"],
        "format_rules": None,
        "cross_field": [
            {
                "if_field": "action",
                "then_field": "navigation_destination",
                "message": "When Action is set, Navigation destination is required for navigation actions",
            },
        ],
    },
}


def _parse_int(value: str | None, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _parse_float(value: str | None, default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


def _parse_path(value: str | None) -> Optional[Path]:
    if not value or not value.strip():
        return None
    return Path(value.strip()).expanduser()


@dataclass(frozen=True)
class Settings:
    min_header_confidence: int = DEFAULT_MIN_HEADER_CONFIDENCE
    table_line_ratio: float = DEFAULT_TABLE_LINE_RATIO
    default_template: str = DEFAULT_TEMPLATE
    alias_config_path: Optional[Path] = None
    presets_path: Optional[Path] = None


@dataclass(frozen=True)
class PresetCatalog:
    """Named validation rule sets plus the one used when no name is given."""

    presets: Mapping[str, ValidationRules]
    default_preset: str

    def names(self) -> List[str]:
        return list(self.presets)

    def get(self, name: str | None = None) -> ValidationRules:
        key = name or self.default_preset
        if key not in self.presets:
            raise ConfigError(f"Unknown validation preset: {key} (available: {', '.join(self.presets)})")
        return self.presets[key]


def load_settings() -> Settings:
    return Settings(
        min_header_confidence=_parse_int(os.getenv("MDFLOW_MIN_HEADER_CONFIDENCE"), DEFAULT_MIN_HEADER_CONFIDENCE),
        table_line_ratio=_parse_float(os.getenv("MDFLOW_TABLE_LINE_RATIO"), DEFAULT_TABLE_LINE_RATIO),
        default_template=os.getenv("MDFLOW_DEFAULT_TEMPLATE", DEFAULT_TEMPLATE).strip() or DEFAULT_TEMPLATE,
        alias_config_path=_parse_path(os.getenv("MDFLOW_ALIAS_CONFIG")),
        presets_path=_parse_path(os.getenv("MDFLOW_PRESETS_PATH")),
    )


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}")
    return data


def load_alias_overrides(path: Path | None) -> Dict[str, List[str]]:
    """
    Load extra header aliases from YAML.

    Format::

        aliases:
          expected: ["Soll", "Erwartet"]
          notes: ["Bemerkung"]

    A missing file (or ``None``) yields no overrides.
    """

    if path is None or not Path(path).exists():
        return {}

    raw = _read_yaml(Path(path)).get("aliases") or {}
    if not isinstance(raw, dict):
        raise ConfigError("'aliases' must map canonical field names to alias lists")

    overrides: Dict[str, List[str]] = {}
    for field_name, aliases in raw.items():
        if field_name not in CANONICAL_FIELDS:
            raise ConfigError(f"Unknown canonical field in alias config: {field_name}")
        if isinstance(aliases, str):
            aliases = [aliases]
        if not isinstance(aliases, list):
            raise ConfigError(f"Aliases for {field_name} must be a list of strings")
        overrides[field_name] = [str(a) for a in aliases if str(a).strip()]
    LOGGER.debug("Loaded alias overrides for %d field(s) from %s", len(overrides), path)
    return overrides


def load_validation_presets(path: Path | None = None) -> PresetCatalog:
    """
    Load validation presets from YAML merged over the built-in presets.

    Format::

        presets:
          Strict IDs:
            required_fields: [id, feature]
            format_rules: {id_pattern: "^REQ-\\d+$"}
        default_preset: Strict IDs
    """

    raw_presets: Dict[str, Any] = dict(DEFAULT_PRESETS)
    default_name = DEFAULT_PRESET_NAME

    if path is not None and Path(path).exists():
        data = _read_yaml(Path(path))
        extra = data.get("presets") or {}
        if not isinstance(extra, dict):
            raise ConfigError("'presets' must map preset names to rule sets")
        raw_presets.update(extra)
        default_name = data.get("default_preset") or default_name

    presets: Dict[str, ValidationRules] = {}
    for name, payload in raw_presets.items():
        if not isinstance(payload, dict):
            raise ConfigError(f"Preset '{name}' must be a mapping")
        presets[str(name)] = rules_from_mapping(payload)

    if default_name not in presets:
        raise ConfigError(f"default_preset '{default_name}' not found in presets")
    return PresetCatalog(presets=presets, default_preset=default_name)
