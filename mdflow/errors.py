from __future__ import annotations

from typing import Iterable, Optional


class MdflowError(Exception):
    """Base class for conversion failures surfaced to callers."""


class ParseError(MdflowError, ValueError):
    """Raised when delimited content cannot be turned into a matrix."""

    def __init__(self, message: str, line: Optional[int] = None):
        if line is not None:
            message = f"{message} (line {line})"
        super().__init__(message)
        self.line = line


class BuildError(MdflowError, ValueError):
    """Raised when no spec document can be built from the input."""


class ConfigError(MdflowError, ValueError):
    """Raised for malformed alias or validation preset configuration."""


class UnknownTemplateError(MdflowError, ValueError):
    def __init__(self, name: str, available: Iterable[str]):
        self.name = name
        self.available = list(available)
        super().__init__(f"Unknown template: {name} (available: {', '.join(self.available)})")
