"""Turning a stored template into a complete pass.json.

Assembly follows a fixed order:

1. Merge the template's embedded ``placeholders`` defaults with the caller's
   field values (caller wins).
2. Drop the ``placeholders`` map and substitute ``${KEY}`` tokens.
3. Scrub any signing-material keys.
4. Assign a fresh serial number.
5. Backfill top-level metadata the template left out.
6. Check the pass type identifier against the signing certificate.
7. Validate the structure Wallet requires.

Business fields are never invented: a template that omits them fails.
"""

import copy
import typing as t
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass

import structlog
from django.conf import settings

from wallet.apple.security import scrub_forbidden_keys
from wallet.certificates.resolver import SigningCertificate
from wallet.exceptions import (
    EmptyFieldValueError,
    InvalidStyleObjectCountError,
    MissingRequiredFieldError,
    PassTypeIdMismatchError,
    TemplateInvalidError,
)
from wallet.placeholders import extract_placeholders, fill_placeholders
from wallet.protocols import TemplateSnapshot

logger = structlog.get_logger(__name__)

PLACEHOLDERS_KEY = "placeholders"

REQUIRED_FIELDS = (
    "formatVersion",
    "passTypeIdentifier",
    "serialNumber",
    "teamIdentifier",
    "organizationName",
    "description",
)

STYLE_KEYS = ("storeCard", "coupon", "eventTicket", "boardingPass", "generic")

FIELD_ARRAYS = ("headerFields", "primaryFields", "secondaryFields", "auxiliaryFields", "backFields")


@dataclass(frozen=True)
class AssembledPass:
    """A validated pass.json with the data that went into it."""

    pass_json: dict[str, t.Any]
    field_values: dict[str, t.Any]
    serial_number: str


def _is_empty(value: t.Any) -> bool:
    return value is None or str(value).strip() == ""


def _generate_serial_number() -> str:
    return str(uuid.uuid4())


def validate_pass_structure(pass_json: Mapping[str, t.Any]) -> str:
    """Validate the parts of pass.json Wallet refuses to import without.

    Args:
        pass_json: The assembled document.

    Returns:
        The style key the pass uses.

    Raises:
        MissingRequiredFieldError: If a required top-level field is empty.
        InvalidStyleObjectCountError: If there is not exactly one style key.
        TemplateInvalidError: If the style object or a field array is malformed.
        EmptyFieldValueError: If a field has an empty label or value.
    """
    for field_name in REQUIRED_FIELDS:
        if _is_empty(pass_json.get(field_name)):
            raise MissingRequiredFieldError(field_name)

    styles = [key for key in STYLE_KEYS if key in pass_json]
    if len(styles) != 1:
        raise InvalidStyleObjectCountError(f"Expected exactly one pass style, found {len(styles)}: {styles}")
    style = styles[0]

    style_object = pass_json[style]
    if not isinstance(style_object, dict):
        raise TemplateInvalidError(f"Pass style {style} must be an object")

    for array_name in FIELD_ARRAYS:
        fields = style_object.get(array_name)
        if fields is None:
            continue
        if not isinstance(fields, list):
            raise TemplateInvalidError(f"{style}.{array_name} must be a list")
        for index, entry in enumerate(fields):
            if not isinstance(entry, dict):
                raise TemplateInvalidError(f"{style}.{array_name}[{index}] must be an object")
            for attribute in ("label", "value"):
                if attribute in entry and _is_empty(entry[attribute]):
                    raise EmptyFieldValueError(
                        f"{style}.{array_name}[{index}] ({entry.get('key', '?')}) has an empty {attribute}"
                    )
    return style


class PassAssembler:
    """Builds pass.json documents from template snapshots."""

    def __init__(
        self,
        default_organization_name: str | None = None,
        default_description: str | None = None,
        serial_number_factory: Callable[[], str] = _generate_serial_number,
    ) -> None:
        """Initialize the assembler.

        Args:
            default_organization_name: Fallback organizationName when neither
                the template nor the certificate provides one.
            default_description: Fallback description.
            serial_number_factory: Produces a fresh serial number per pass.

        Unset defaults are read from Django settings.
        """
        self.default_organization_name = default_organization_name or settings.WALLET_DEFAULT_ORGANIZATION_NAME
        self.default_description = default_description or settings.WALLET_DEFAULT_DESCRIPTION
        self.serial_number_factory = serial_number_factory

    def assemble(
        self,
        template: TemplateSnapshot,
        certificate: SigningCertificate,
        field_values: Mapping[str, t.Any] | None = None,
    ) -> AssembledPass:
        """Assemble and validate the pass.json for one pass.

        Args:
            template: The template snapshot. It is not modified.
            certificate: The certificate the pass will be signed with.
            field_values: Caller values for the template's placeholders.

        Returns:
            The AssembledPass.

        Raises:
            TemplateInvalidError: If the template is malformed or a
                placeholder is left unresolved.
            PassTypeIdMismatchError: If pass.json names a different pass type
                than the certificate.
            MissingRequiredFieldError, InvalidStyleObjectCountError,
            EmptyFieldValueError: If the result fails structural validation.
        """
        if not isinstance(template.pass_json, dict):
            raise TemplateInvalidError("Template pass.json must be an object")

        document = copy.deepcopy(template.pass_json)

        defaults = document.pop(PLACEHOLDERS_KEY, None) or {}
        if not isinstance(defaults, dict):
            raise TemplateInvalidError("Template placeholders must be an object")
        data: dict[str, t.Any] = {**defaults, **(field_values or {})}

        document = fill_placeholders(document, data)
        unresolved = extract_placeholders(document)
        if unresolved:
            raise TemplateInvalidError(f"Unresolved placeholders: {', '.join(unresolved)}")

        scrub_forbidden_keys(document)

        serial_number = self.serial_number_factory()
        document["serialNumber"] = serial_number

        document.setdefault("formatVersion", 1)
        document.setdefault("passTypeIdentifier", certificate.pass_type_identifier)
        document.setdefault("teamIdentifier", certificate.team_identifier)
        document.setdefault(
            "organizationName",
            certificate.organization_name_default or self.default_organization_name,
        )
        document.setdefault("description", self.default_description)

        if document["passTypeIdentifier"] != certificate.pass_type_identifier:
            logger.error(
                "pass_type_identifier_mismatch",
                template_id=template.id,
                pass_json=document["passTypeIdentifier"],
                certificate=certificate.pass_type_identifier,
            )
            raise PassTypeIdMismatchError(
                f"pass.json declares {document['passTypeIdentifier']} "
                f"but the certificate is for {certificate.pass_type_identifier}"
            )

        style = validate_pass_structure(document)

        logger.debug("pass_assembled", template_id=template.id, serial_number=serial_number, style=style)
        return AssembledPass(pass_json=document, field_values=data, serial_number=serial_number)
