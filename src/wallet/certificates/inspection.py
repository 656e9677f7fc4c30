"""Reading identifiers out of Pass Type ID certificates.

Apple issues Pass Type ID certificates with a subject such as::

    UID=pass.com.example.loyalty, CN=Pass Type ID: pass.com.example.loyalty,
    OU=ABCDE12345, O=Example Inc., C=US

The pass type identifier is the join key between a certificate and the
passes it may sign; the OU carries the team identifier.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone

from cryptography import x509
from cryptography.x509.oid import NameOID

APPLE_WWDR_ISSUER_NAME = "Apple Worldwide Developer Relations Certification Authority"

PASS_TYPE_ID_CN_PATTERN = re.compile(r"^Pass Type ID:\s*(pass\.\S+)$")


@dataclass(frozen=True)
class CertificateInfo:
    """Identifiers and validity of a Pass Type ID certificate."""

    pass_type_identifier: str | None
    team_identifier: str | None
    organization_name: str | None
    subject: str
    issuer: str
    not_valid_before: datetime
    not_valid_after: datetime

    def is_valid_at(self, moment: datetime | None = None) -> bool:
        """Whether the certificate is inside its validity window."""
        moment = moment or datetime.now(timezone.utc)
        return self.not_valid_before <= moment <= self.not_valid_after

    @property
    def is_apple_issued(self) -> bool:
        """Whether the issuer is Apple's WWDR intermediate."""
        return APPLE_WWDR_ISSUER_NAME in self.issuer


def _first_attribute(name: x509.Name, oid: x509.ObjectIdentifier) -> str | None:
    attributes = name.get_attributes_for_oid(oid)
    if not attributes:
        return None
    value = attributes[0].value
    return value if isinstance(value, str) else value.decode()


def inspect_certificate(certificate: x509.Certificate) -> CertificateInfo:
    """Derive pass type and team identifiers from a certificate subject.

    The pass type identifier comes from the UID attribute, falling back to a
    CN of the form ``Pass Type ID: pass.xxx``. The team identifier comes from
    OU, falling back to O.

    Args:
        certificate: The leaf certificate.

    Returns:
        The derived CertificateInfo. Identifiers that cannot be derived are None.
    """
    subject = certificate.subject

    pass_type_identifier = _first_attribute(subject, NameOID.USER_ID)
    if not pass_type_identifier:
        common_name = _first_attribute(subject, NameOID.COMMON_NAME) or ""
        match = PASS_TYPE_ID_CN_PATTERN.match(common_name.strip())
        pass_type_identifier = match.group(1) if match else None

    organization_name = _first_attribute(subject, NameOID.ORGANIZATION_NAME)
    team_identifier = _first_attribute(subject, NameOID.ORGANIZATIONAL_UNIT_NAME) or organization_name

    return CertificateInfo(
        pass_type_identifier=pass_type_identifier,
        team_identifier=team_identifier,
        organization_name=organization_name,
        subject=subject.rfc4514_string(),
        issuer=certificate.issuer.rfc4514_string(),
        not_valid_before=certificate.not_valid_before_utc,
        not_valid_after=certificate.not_valid_after_utc,
    )
