"""Models for pass templates, signing certificates and issued passes.

Templates and certificates are the persistent backing of the repositories
the pass engine reads from. Issued passes are an audit trail: they record
what was generated, with which identifier and which field values, but never
the pass bytes themselves.
"""

import typing as t

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from common.models import TimeStampedModel
from wallet.certificates.sources import BlobSource, CertificateSource, LocalFileSource
from wallet.protocols import CertificateRecord, TemplateSnapshot


class PassTemplate(TimeStampedModel):
    """A stored pass.json template with its encoded images.

    ``pass_json`` may contain ``${KEY}`` placeholders and an embedded
    ``placeholders`` map of default values. ``images`` maps asset names to
    either a base64 string or a ``{"1x": ..., "2x": ..., "3x": ...}`` map.
    """

    name = models.CharField(max_length=255)
    tenant_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    pass_type_identifier = models.CharField(max_length=255, db_index=True)
    pass_json = models.JSONField(default=dict)
    images = models.JSONField(default=dict, blank=True)

    class Meta:
        verbose_name = "Pass Template"
        verbose_name_plural = "Pass Templates"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.name} ({self.pass_type_identifier})"

    def to_snapshot(self) -> TemplateSnapshot:
        """Freeze this template for one generation."""
        return TemplateSnapshot(
            id=str(self.pk),
            pass_type_identifier=self.pass_type_identifier,
            pass_json=self.pass_json,
            images=self.images or {},
            tenant_id=self.tenant_id,
        )


class PassTypeCertificate(TimeStampedModel):
    """A Pass Type ID signing certificate.

    Certificates are either owned by a tenant or global. Exactly one global
    certificate may be the default, which serves the installation-wide pass
    type identifier.
    """

    pass_type_identifier = models.CharField(max_length=255, db_index=True)
    team_identifier = models.CharField(max_length=32)
    tenant_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    organization_name = models.CharField(max_length=255, blank=True)
    p12_blob_url = models.URLField(max_length=1024, blank=True)
    p12_path = models.CharField(max_length=1024, blank=True)
    p12_password = models.CharField(max_length=255, blank=True)
    wwdr_blob_url = models.URLField(max_length=1024, blank=True)
    wwdr_path = models.CharField(max_length=1024, blank=True)
    is_global = models.BooleanField(default=False, db_index=True)
    is_default = models.BooleanField(default=False)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Pass Type Certificate"
        verbose_name_plural = "Pass Type Certificates"
        constraints = [
            models.UniqueConstraint(
                fields=["pass_type_identifier", "tenant_id"],
                name="unique_certificate_per_tenant",
            ),
            models.UniqueConstraint(
                fields=["is_default"],
                condition=Q(is_default=True),
                name="single_default_certificate",
            ),
        ]

    def __str__(self) -> str:
        owner = "global" if self.is_global else self.tenant_id
        return f"{self.pass_type_identifier} ({owner})"

    def clean(self) -> None:
        """Validate certificate storage and ownership."""
        super().clean()
        if not self.p12_blob_url and not self.p12_path:
            raise ValidationError("Either a p12 blob URL or a p12 path is required.")
        if self.is_default and not self.is_global:
            raise ValidationError("Only global certificates can be the default.")

    @property
    def p12_source(self) -> CertificateSource:
        """Where the PKCS#12 bundle lives. Blob storage wins over local paths."""
        if self.p12_blob_url:
            return BlobSource(self.p12_blob_url)
        return LocalFileSource(self.p12_path)

    @property
    def wwdr_source(self) -> CertificateSource | None:
        """Where this certificate's WWDR intermediate lives, if it has its own."""
        if self.wwdr_blob_url:
            return BlobSource(self.wwdr_blob_url)
        if self.wwdr_path:
            return LocalFileSource(self.wwdr_path)
        return None

    def to_record(self) -> CertificateRecord:
        """Convert to the record handed to the certificate resolver."""
        return CertificateRecord(
            pass_type_identifier=self.pass_type_identifier,
            team_identifier=self.team_identifier,
            p12_source=self.p12_source,
            p12_password=self.p12_password,
            wwdr_source=self.wwdr_source,
            organization_name=self.organization_name or None,
            tenant_id=self.tenant_id,
            is_global=self.is_global,
            valid_from=self.valid_from,
            valid_until=self.valid_until,
        )

    @classmethod
    def from_record(cls, record: CertificateRecord, **extra: t.Any) -> "PassTypeCertificate":
        """Build an unsaved model instance from a certificate record."""
        instance = cls(
            pass_type_identifier=record.pass_type_identifier,
            team_identifier=record.team_identifier,
            tenant_id=record.tenant_id,
            organization_name=record.organization_name or "",
            p12_password=record.p12_password,
            is_global=record.is_global,
            valid_from=record.valid_from,
            valid_until=record.valid_until,
            **extra,
        )
        match record.p12_source:
            case BlobSource(url=url):
                instance.p12_blob_url = url
            case LocalFileSource(path=path):
                instance.p12_path = path
        match record.wwdr_source:
            case BlobSource(url=url):
                instance.wwdr_blob_url = url
            case LocalFileSource(path=path):
                instance.wwdr_path = path
        return instance


class IssuedPass(TimeStampedModel):
    """Audit record of a generated pass."""

    serial_number = models.CharField(max_length=64, unique=True)
    pass_type_identifier = models.CharField(max_length=255, db_index=True)
    template = models.ForeignKey(
        PassTemplate,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="issued_passes",
    )
    tenant_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    field_values = models.JSONField(
        default=dict,
        blank=True,
        help_text="Field values actually used to fill the template.",
    )
    size = models.PositiveIntegerField(default=0, help_text="Size of the .pkpass in bytes.")

    class Meta:
        verbose_name = "Issued Pass"
        verbose_name_plural = "Issued Passes"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["pass_type_identifier", "-created_at"], name="issued_pass_type_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.pass_type_identifier} #{self.serial_number}"
