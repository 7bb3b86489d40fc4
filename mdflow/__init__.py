"""
Paste-to-spec conversion: classify pasted content, map table headers to
canonical fields, validate rows and render MDFlow markdown.
"""

from .errors import (  # noqa: F401
    BuildError,
    ConfigError,
    MdflowError,
    ParseError,
    UnknownTemplateError,
)

from .detect import InputAnalysis, InputType, detect_input_type  # noqa: F401
from .matrix import parse, table_headers  # noqa: F401
from .headers import ColumnMapping, HeaderMapper, detect_header_row, map_headers  # noqa: F401
from .model import ProseDocument, ProseSection, SpecDoc, SpecRow  # noqa: F401
from .builder import build_spec_doc_from_paste  # noqa: F401
from .validation import (  # noqa: F401
    CrossFieldRule,
    FormatRules,
    ValidationResult,
    ValidationRules,
    ValidationWarning,
    WarningCode,
    rules_from_mapping,
    validate,
)
from .render import get_template_names, render  # noqa: F401
from .converter import RenderResult, convert_paste  # noqa: F401

__all__ = [
    "BuildError",
    "ConfigError",
    "MdflowError",
    "ParseError",
    "UnknownTemplateError",
    "InputAnalysis",
    "InputType",
    "detect_input_type",
    "parse",
    "table_headers",
    "ColumnMapping",
    "HeaderMapper",
    "detect_header_row",
    "map_headers",
    "ProseDocument",
    "ProseSection",
    "SpecDoc",
    "SpecRow",
    "build_spec_doc_from_paste",
    "CrossFieldRule",
    "FormatRules",
    "ValidationResult",
    "ValidationRules",
    "ValidationWarning",
    "WarningCode",
    "rules_from_mapping",
    "validate",
    "get_template_names",
    "render",
    "RenderResult",
    "convert_paste",
]
