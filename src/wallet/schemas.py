"""Pydantic schemas for wallet pass API endpoints."""

import typing as t

from ninja import Schema
from pydantic import Field

from wallet.placeholders import PlaceholderValidationResult


class GeneratePassPayload(Schema):
    """Field values used to fill a template's placeholders."""

    fieldValues: dict[str, str] = Field(default_factory=dict, description="Values keyed by placeholder name")
    tenantId: str | None = Field(None, max_length=64, description="Tenant the pass is generated for")


class ValidateFieldValuesPayload(Schema):
    """Field values to check against a template."""

    fieldValues: dict[str, str] = Field(default_factory=dict)


class ValidationResultSchema(Schema):
    """Outcome of checking field values against a template."""

    isValid: bool
    missing: list[str] = Field(default_factory=list)
    unmatched: list[str] = Field(default_factory=list)
    mapped: dict[str, t.Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: PlaceholderValidationResult) -> "ValidationResultSchema":
        return cls(
            isValid=result.is_valid,
            missing=result.missing,
            unmatched=result.unmatched,
            mapped=result.mapped,
            errors=result.errors,
        )


class PlaceholdersResponse(Schema):
    """The placeholders a template declares."""

    placeholders: list[str] = Field(default_factory=list, description="Placeholder names in order of appearance")
    defaults: dict[str, t.Any] = Field(default_factory=dict, description="Default values embedded in the template")
