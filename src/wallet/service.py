"""Wallet service for pass generation and certificate management.

This module provides the main service layer for wallet pass operations:
loading templates, generating signed passes, recording what was issued,
and onboarding signing certificates.
"""

import os
import typing as t
import uuid
from collections.abc import Mapping
from pathlib import Path

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError

from wallet.apple.assembler import PLACEHOLDERS_KEY
from wallet.apple.generator import ApplePassGenerator, GeneratedPass
from wallet.certificates.extractor import extract_certificate
from wallet.certificates.inspection import CertificateInfo, inspect_certificate
from wallet.certificates.resolver import CertificateResolver
from wallet.certificates.sources import BlobFetcher, LocalFileSource
from wallet.exceptions import (
    CertificateConflictError,
    CertificateExpiredError,
    CertificateExtractionError,
    TemplateNotFoundError,
    UnmatchedFieldValuesError,
)
from wallet.models import IssuedPass
from wallet.placeholders import PlaceholderValidationResult, extract_placeholders, validate_placeholder_mapping
from wallet.protocols import CertificateRecord, CertificateRepository, TemplateRepository, TemplateSnapshot
from wallet.repositories import DjangoCertificateRepository, DjangoTemplateRepository

logger = structlog.get_logger(__name__)


def _split_template(snapshot: TemplateSnapshot) -> tuple[dict[str, t.Any], dict[str, t.Any]]:
    """Separate a template's pass.json from its embedded placeholder defaults."""
    document = dict(snapshot.pass_json)
    defaults = document.pop(PLACEHOLDERS_KEY, None)
    return document, defaults if isinstance(defaults, dict) else {}


class WalletService:
    """Service for managing wallet passes.

    This service provides a unified interface for:
    - Generating wallet passes from templates
    - Checking field values against a template
    - Registering and removing signing certificates
    """

    def __init__(
        self,
        template_repository: TemplateRepository | None = None,
        certificate_repository: CertificateRepository | None = None,
        fetcher: BlobFetcher | None = None,
    ) -> None:
        """Initialize the wallet service.

        Args:
            template_repository: Template store. Defaults to the database.
            certificate_repository: Certificate store. Defaults to the database.
            fetcher: Downloader for blob-stored certificates.
        """
        self.template_repository = template_repository or DjangoTemplateRepository()
        self.certificate_repository = certificate_repository or DjangoCertificateRepository()
        self._fetcher = fetcher
        self._apple_generator: ApplePassGenerator | None = None

    @property
    def apple_generator(self) -> ApplePassGenerator:
        """Get the Apple pass generator, creating if needed."""
        if self._apple_generator is None:
            resolver = CertificateResolver(self.certificate_repository, fetcher=self._fetcher)
            self._apple_generator = ApplePassGenerator(resolver)
        return self._apple_generator

    # -------------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------------

    def get_template(self, template_id: str) -> TemplateSnapshot:
        """Load a template snapshot.

        Raises:
            TemplateNotFoundError: If the template does not exist.
        """
        snapshot = self.template_repository.get(str(template_id))
        if snapshot is None:
            raise TemplateNotFoundError(f"Template not found: {template_id}")
        return snapshot

    def get_template_placeholders(self, template_id: str) -> tuple[list[str], dict[str, t.Any]]:
        """List a template's placeholders and their defaults.

        Returns:
            Tuple of (placeholder names in order of appearance, defaults).
        """
        document, defaults = _split_template(self.get_template(template_id))
        return extract_placeholders(document), defaults

    def validate_field_values(
        self,
        template_id: str,
        field_values: Mapping[str, t.Any],
    ) -> PlaceholderValidationResult:
        """Check field values against a template without generating anything.

        Placeholders with a non-empty default in the template are optional.
        """
        return self._validate(self.get_template(template_id), field_values)

    def _validate(self, snapshot: TemplateSnapshot, field_values: Mapping[str, t.Any]) -> PlaceholderValidationResult:
        document, defaults = _split_template(snapshot)
        required = [name for name in extract_placeholders(document) if defaults.get(name) in (None, "")]
        return validate_placeholder_mapping(document, field_values, required=required)

    # -------------------------------------------------------------------------
    # Pass Generation
    # -------------------------------------------------------------------------

    def generate_pass(
        self,
        template_id: str,
        field_values: Mapping[str, t.Any] | None = None,
        tenant_id: str | None = None,
    ) -> GeneratedPass:
        """Generate a signed pass from a stored template.

        Args:
            template_id: The template to generate from.
            field_values: Caller values for the template's placeholders.
            tenant_id: The tenant the pass is generated for.

        Returns:
            The GeneratedPass.

        Raises:
            TemplateNotFoundError: If the template does not exist.
            UnmatchedFieldValuesError: If field values name keys the template
                does not declare and unmatched keys are rejected.
            WalletPassError: If generation fails.
        """
        field_values = dict(field_values or {})
        snapshot = self.get_template(template_id)

        if settings.WALLET_REJECT_UNMATCHED_FIELDS:
            result = self._validate(snapshot, field_values)
            if result.unmatched:
                raise UnmatchedFieldValuesError(result.unmatched)

        generated = self.apple_generator.generate(snapshot, field_values, tenant_id=tenant_id)

        IssuedPass.objects.create(
            serial_number=generated.serial_number,
            pass_type_identifier=generated.pass_type_identifier,
            template_id=snapshot.id,
            tenant_id=tenant_id or snapshot.tenant_id,
            field_values=generated.field_values,
            size=len(generated.pkpass),
        )
        return generated

    # -------------------------------------------------------------------------
    # Certificates
    # -------------------------------------------------------------------------

    def _store_certificate_file(self, content: bytes, directory: Path, suffix: str) -> Path:
        directory.mkdir(parents=True, exist_ok=True, mode=0o700)
        path = directory / f"{uuid.uuid4().hex}{suffix}"
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
        return path

    def register_certificate(
        self,
        p12_bytes: bytes,
        password: str,
        tenant_id: str | None = None,
        wwdr_bytes: bytes | None = None,
        is_global: bool = False,
        make_default: bool = False,
    ) -> CertificateInfo:
        """Onboard a Pass Type ID certificate.

        The bundle is opened and inspected first; identifiers are taken from
        the certificate subject, never from the caller. The bundle (and the
        WWDR intermediate, if given) are stored under WALLET_CERTIFICATE_ROOT.

        Args:
            p12_bytes: The PKCS#12 bundle.
            password: The bundle password.
            tenant_id: Owner of the certificate. None for global certificates.
            wwdr_bytes: A certificate-specific WWDR intermediate.
            is_global: Whether the certificate is visible to all tenants.
            make_default: Whether the certificate serves the global pass type
                identifier. Implies ``is_global``.

        Returns:
            The inspected certificate details.

        Raises:
            CertificateExtractionError: If the bundle cannot be opened or its
                subject carries no pass type or team identifier.
            CertificateExpiredError: If the certificate is not currently valid.
            CertificateConflictError: If the owner already has a certificate for
                the identifier.
        """
        extracted = extract_certificate(p12_bytes, password)
        info = inspect_certificate(extracted.certificate)

        if not info.pass_type_identifier or not info.team_identifier:
            raise CertificateExtractionError(f"Certificate subject has no pass type or team identifier: {info.subject}")
        if not info.is_valid_at():
            raise CertificateExpiredError(f"Certificate for {info.pass_type_identifier} is not currently valid")
        if not info.is_apple_issued:
            logger.warning("certificate_not_apple_issued", pass_type_identifier=info.pass_type_identifier)

        is_global = is_global or make_default
        owner_tenant_id = None if is_global else tenant_id
        existing = self.certificate_repository.resolve(info.pass_type_identifier, owner_tenant_id)
        if existing is not None and existing.tenant_id == owner_tenant_id:
            raise CertificateConflictError(
                f"A certificate for {info.pass_type_identifier} is already registered "
                f"for {owner_tenant_id or 'all tenants'}; remove it first"
            )

        owner = "global" if is_global else (tenant_id or "unassigned")
        directory = Path(settings.WALLET_CERTIFICATE_ROOT) / owner / info.pass_type_identifier
        p12_path = self._store_certificate_file(p12_bytes, directory, ".p12")
        wwdr_path = self._store_certificate_file(wwdr_bytes, directory, ".cer") if wwdr_bytes else None
        record = CertificateRecord(
            pass_type_identifier=info.pass_type_identifier,
            team_identifier=info.team_identifier,
            p12_source=LocalFileSource(str(p12_path)),
            p12_password=password,
            wwdr_source=LocalFileSource(str(wwdr_path)) if wwdr_path else None,
            organization_name=info.organization_name,
            tenant_id=owner_tenant_id,
            is_global=is_global,
            valid_from=info.not_valid_before,
            valid_until=info.not_valid_after,
        )

        try:
            self.certificate_repository.add(record)
        except ValidationError as e:
            self._delete_stored_files(record)
            raise CertificateConflictError(f"Certificate for {info.pass_type_identifier} was not stored: {e}") from e
        except Exception:
            self._delete_stored_files(record)
            raise
        if make_default:
            self.certificate_repository.set_default(info.pass_type_identifier)

        logger.info(
            "certificate_registered",
            pass_type_identifier=info.pass_type_identifier,
            team_identifier=info.team_identifier,
            tenant_id=tenant_id,
            is_global=is_global,
            is_default=make_default,
        )
        return info

    def remove_certificate(self, pass_type_identifier: str, tenant_id: str | None = None) -> bool:
        """Remove a certificate and the files stored for it. Returns True if one was removed."""
        removed = self.certificate_repository.remove(pass_type_identifier, tenant_id)
        for record in removed:
            self._delete_stored_files(record)
        return bool(removed)

    def _delete_stored_files(self, record: CertificateRecord) -> None:
        """Delete a record's local files that live under WALLET_CERTIFICATE_ROOT.

        Files elsewhere were placed by an operator and are left alone.
        """
        root = Path(settings.WALLET_CERTIFICATE_ROOT).resolve()
        for source in (record.p12_source, record.wwdr_source):
            if not isinstance(source, LocalFileSource):
                continue
            path = Path(source.path)
            if path.resolve().is_relative_to(root):
                path.unlink(missing_ok=True)
                logger.info("certificate_file_deleted", pass_type_identifier=record.pass_type_identifier)


# Module-level singleton instance
_wallet_service: WalletService | None = None


def get_wallet_service() -> WalletService:
    """Get the wallet service singleton.

    Returns:
        The WalletService instance.
    """
    global _wallet_service
    if _wallet_service is None:
        _wallet_service = WalletService()
    return _wallet_service
