"""Resolution of signing material for a pass type identifier.

A pass must be signed with the certificate issued for exactly the pass type
identifier it declares. The resolver looks the certificate up, loads its
bytes from wherever they live and returns everything the signer needs. There
is no fallback certificate: if nothing matches, generation stops.
"""

import tempfile
from dataclasses import dataclass
from pathlib import Path

import structlog
from django.conf import settings

from wallet.certificates.sources import BlobFetcher, BlobSource, CertificateSource, LocalFileSource, load_source
from wallet.exceptions import MissingCertificateError
from wallet.protocols import CertificateRecord, CertificateRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SigningCertificate:
    """Signing material for one generation. Never persisted."""

    pass_type_identifier: str
    team_identifier: str
    p12_bytes: bytes
    p12_password: str
    wwdr_bytes: bytes
    organization_name_default: str | None = None

    def __repr__(self) -> str:
        return (
            f"SigningCertificate(pass_type_identifier={self.pass_type_identifier!r}, "
            f"team_identifier={self.team_identifier!r})"
        )


def get_global_wwdr_source() -> CertificateSource | None:
    """The WWDR intermediate configured for the whole installation."""
    if settings.WALLET_WWDR_CERT_PATH:
        return LocalFileSource(settings.WALLET_WWDR_CERT_PATH)
    if settings.WALLET_WWDR_CERT_URL:
        return BlobSource(settings.WALLET_WWDR_CERT_URL)
    return None


class CertificateResolver:
    """Resolves pass type identifiers to signing certificates."""

    def __init__(
        self,
        repository: CertificateRepository,
        fetcher: BlobFetcher | None = None,
        global_pass_type_identifier: str | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            repository: Where certificate records are stored.
            fetcher: Downloader for blob-stored certificates.
            global_pass_type_identifier: Identifier served by the default
                certificate. Read from settings if not provided.
        """
        self.repository = repository
        self.fetcher = fetcher or BlobFetcher()
        self.global_pass_type_identifier = (
            global_pass_type_identifier
            if global_pass_type_identifier is not None
            else settings.WALLET_GLOBAL_PASS_TYPE_ID
        )

    def find_record(self, pass_type_identifier: str, tenant_id: str | None = None) -> CertificateRecord:
        """Look up the certificate record for an identifier.

        Raises:
            MissingCertificateError: If no record matches exactly.
        """
        if not pass_type_identifier:
            raise MissingCertificateError("No pass type identifier given")

        if self.global_pass_type_identifier and pass_type_identifier == self.global_pass_type_identifier:
            record = self.repository.get_default()
        else:
            record = self.repository.resolve(pass_type_identifier, tenant_id)

        if record is None:
            logger.warning("certificate_not_found", pass_type_identifier=pass_type_identifier, tenant_id=tenant_id)
            raise MissingCertificateError(f"No certificate found for pass type identifier {pass_type_identifier}")

        if record.pass_type_identifier != pass_type_identifier:
            logger.error(
                "certificate_identifier_mismatch",
                requested=pass_type_identifier,
                resolved=record.pass_type_identifier,
            )
            raise MissingCertificateError(
                f"Certificate for {record.pass_type_identifier} cannot sign passes for {pass_type_identifier}"
            )
        return record

    def resolve(
        self,
        pass_type_identifier: str,
        tenant_id: str | None = None,
        workdir: Path | None = None,
    ) -> SigningCertificate:
        """Resolve signing material for a pass type identifier.

        Args:
            pass_type_identifier: The identifier declared by the pass.
            tenant_id: The tenant the pass is generated for.
            workdir: Private directory for downloaded certificate files. A
                temporary directory is used (and removed) if not given.

        Returns:
            The SigningCertificate.

        Raises:
            MissingCertificateError: If no certificate or WWDR intermediate
                can be found or loaded.
        """
        record = self.find_record(pass_type_identifier, tenant_id)

        wwdr_source = record.wwdr_source or get_global_wwdr_source()
        if wwdr_source is None:
            raise MissingCertificateError("No WWDR intermediate certificate configured")

        if workdir is None:
            with tempfile.TemporaryDirectory(prefix="pkpass-certs-") as tmp_dir:
                return self._load(record, wwdr_source, Path(tmp_dir))
        return self._load(record, wwdr_source, workdir)

    def _load(self, record: CertificateRecord, wwdr_source: CertificateSource, workdir: Path) -> SigningCertificate:
        p12_bytes = load_source(record.p12_source, workdir, self.fetcher, suffix=".p12")
        wwdr_bytes = load_source(wwdr_source, workdir, self.fetcher, suffix=".cer")

        logger.info(
            "certificate_resolved",
            pass_type_identifier=record.pass_type_identifier,
            source=type(record.p12_source).__name__,
            is_global=record.is_global,
        )

        return SigningCertificate(
            pass_type_identifier=record.pass_type_identifier,
            team_identifier=record.team_identifier,
            p12_bytes=p12_bytes,
            p12_password=record.p12_password,
            wwdr_bytes=wwdr_bytes,
            organization_name_default=record.organization_name,
        )
