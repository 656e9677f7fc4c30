"""Django-backed implementations of the engine's repository protocols."""

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from wallet.models import PassTemplate, PassTypeCertificate
from wallet.protocols import CertificateRecord, TemplateSnapshot

logger = structlog.get_logger(__name__)


class DjangoTemplateRepository:
    """Reads templates from PassTemplate."""

    def get(self, template_id: str) -> TemplateSnapshot | None:
        try:
            template = PassTemplate.objects.get(pk=template_id)
        except (PassTemplate.DoesNotExist, ValidationError, ValueError):
            return None
        return template.to_snapshot()


class DjangoCertificateRepository:
    """Reads and writes certificates in PassTypeCertificate.

    A tenant sees its own certificates and the global ones. When both exist
    for the same identifier, the tenant's certificate wins.
    """

    def resolve(self, pass_type_identifier: str, tenant_id: str | None = None) -> CertificateRecord | None:
        queryset = PassTypeCertificate.objects.filter(pass_type_identifier=pass_type_identifier)
        if tenant_id:
            owned = queryset.filter(tenant_id=tenant_id).first()
            if owned is not None:
                return owned.to_record()
        certificate = queryset.filter(is_global=True).order_by("-is_default", "-created_at").first()
        return certificate.to_record() if certificate else None

    def get_default(self) -> CertificateRecord | None:
        certificate = PassTypeCertificate.objects.filter(is_global=True, is_default=True).first()
        return certificate.to_record() if certificate else None

    def add(self, record: CertificateRecord) -> None:
        certificate = PassTypeCertificate.from_record(record)
        certificate.save()
        logger.info(
            "certificate_added",
            pass_type_identifier=record.pass_type_identifier,
            tenant_id=record.tenant_id,
            is_global=record.is_global,
        )

    @transaction.atomic
    def remove(self, pass_type_identifier: str, tenant_id: str | None = None) -> list[CertificateRecord]:
        queryset = PassTypeCertificate.objects.filter(pass_type_identifier=pass_type_identifier)
        queryset = queryset.filter(tenant_id=tenant_id) if tenant_id else queryset.filter(is_global=True)
        removed = [certificate.to_record() for certificate in queryset.select_for_update()]
        if removed:
            queryset.delete()
            logger.info("certificate_removed", pass_type_identifier=pass_type_identifier, tenant_id=tenant_id)
        return removed

    @transaction.atomic
    def set_default(self, pass_type_identifier: str) -> None:
        """Make the global certificate for an identifier the default.

        Raises:
            PassTypeCertificate.DoesNotExist: If there is no global certificate
                for the identifier.
        """
        certificate = (
            PassTypeCertificate.objects.select_for_update()
            .filter(pass_type_identifier=pass_type_identifier, is_global=True)
            .order_by("-created_at")
            .first()
        )
        if certificate is None:
            raise PassTypeCertificate.DoesNotExist(f"No global certificate for {pass_type_identifier}")
        PassTypeCertificate.objects.filter(is_default=True).exclude(pk=certificate.pk).update(is_default=False)
        certificate.is_default = True
        certificate.save(update_fields=["is_default", "updated_at"])
        logger.info("default_certificate_set", pass_type_identifier=pass_type_identifier)
