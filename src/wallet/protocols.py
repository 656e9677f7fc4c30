"""Protocol definitions for the stores the pass engine reads from.

The engine never talks to a database directly. Templates and signing
certificates are obtained through these repository protocols, so the
pipeline can be driven by the Django-backed stores in production and by
simple in-memory stores in tests.
"""

import typing as t
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from wallet.certificates.sources import CertificateSource


@dataclass(frozen=True)
class TemplateSnapshot:
    """A stored pass template, immutable for the duration of one generation."""

    id: str
    pass_type_identifier: str
    pass_json: dict[str, t.Any]
    images: dict[str, t.Any] = field(default_factory=dict)
    tenant_id: str | None = None


@dataclass(frozen=True)
class CertificateRecord:
    """A stored signing certificate, as returned by a CertificateRepository."""

    pass_type_identifier: str
    team_identifier: str
    p12_source: CertificateSource
    p12_password: str
    wwdr_source: CertificateSource | None = None
    organization_name: str | None = None
    tenant_id: str | None = None
    is_global: bool = False
    valid_from: datetime | None = None
    valid_until: datetime | None = None


class TemplateRepository(Protocol):
    """Read access to pass templates."""

    def get(self, template_id: str) -> TemplateSnapshot | None:
        """Return the template snapshot, or None if it does not exist."""
        ...


class CertificateRepository(Protocol):
    """Access to signing certificates.

    The engine only calls ``resolve`` and ``get_default``; the write
    operations are used by certificate onboarding.
    """

    def resolve(self, pass_type_identifier: str, tenant_id: str | None = None) -> CertificateRecord | None:
        """Find the certificate for an identifier visible to a tenant.

        Certificates owned by the tenant take precedence over global ones.
        """
        ...

    def get_default(self) -> CertificateRecord | None:
        """Return the tenant-independent default certificate."""
        ...

    def add(self, record: CertificateRecord) -> None:
        """Store a certificate record."""
        ...

    def remove(self, pass_type_identifier: str, tenant_id: str | None = None) -> list[CertificateRecord]:
        """Delete certificate records and return the ones that were removed."""
        ...

    def set_default(self, pass_type_identifier: str) -> None:
        """Mark a global certificate as the default."""
        ...
