"""Errors raised while loading the branchpilot configuration."""

from pathlib import Path
from typing import Any

from pydantic import ValidationError


def _field_path(error: dict[str, Any]) -> str:
    return ".".join(str(part) for part in error.get("loc", ())) or "<root>"


class ConfigurationError(Exception):
    """Base exception for configuration problems."""

    pass


class ConfigurationFileError(ConfigurationError):
    """The configuration file is missing, unreadable, or not a YAML mapping."""

    def __init__(self, message: str, file_path: str | Path | None = None):
        """Initialize configuration file error.

        Args:
            message: What went wrong with the file
            file_path: Path of the offending file, when one was involved
        """
        super().__init__(message)
        self.file_path = str(file_path) if file_path is not None else None


class ConfigurationValidationError(ConfigurationError):
    """Configuration values were rejected by the pydantic models."""

    def __init__(self, message: str, validation_errors: list[dict[str, Any]] | None = None):
        """Initialize configuration validation error.

        Args:
            message: Summary of the failure
            validation_errors: ``ValidationError.errors()`` of the rejected data
        """
        super().__init__(message)
        self.validation_errors = validation_errors or []

    @classmethod
    def from_pydantic(cls, error: ValidationError) -> "ConfigurationValidationError":
        """Build from a pydantic error, naming every rejected setting."""
        errors = [dict(item) for item in error.errors()]
        fields = ", ".join(_field_path(item) for item in errors)
        return cls(f"Invalid configuration ({len(errors)} errors in {fields}): {error}", errors)

    @property
    def invalid_fields(self) -> list[str]:
        """Dotted paths of the rejected settings, e.g. ``branches.required_checks``."""
        return [_field_path(error) for error in self.validation_errors]
