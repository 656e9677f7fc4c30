"""PKCS#12 certificate extraction.

Pass Type ID certificates are distributed as password-protected PKCS#12
bundles (.p12/.pfx). The signer needs the leaf certificate and its private
key as PEM, so this module opens the bundle and re-encodes both.
"""

import os
from dataclasses import dataclass
from pathlib import Path

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from wallet.exceptions import CertificateExtractionError

logger = structlog.get_logger(__name__)

CERTIFICATE_FILENAME = "pass-cert.pem"
PRIVATE_KEY_FILENAME = "pass-key.pem"


@dataclass(frozen=True)
class ExtractedCertificate:
    """Leaf certificate and private key taken out of a PKCS#12 bundle."""

    certificate_pem: bytes
    private_key_pem: bytes

    @property
    def certificate(self) -> x509.Certificate:
        """The parsed leaf certificate."""
        return x509.load_pem_x509_certificate(self.certificate_pem)


def extract_certificate(p12_bytes: bytes, password: str | None) -> ExtractedCertificate:
    """Extract the leaf certificate and private key from a PKCS#12 bundle.

    The leaf is the certificate paired with the private key. Shrouded and
    plain key bags are both accepted. If the bundle has no paired
    certificate, the first certificate bag is used.

    Args:
        p12_bytes: The DER-encoded PKCS#12 bundle.
        password: The bundle password.

    Returns:
        The certificate and private key as PEM.

    Raises:
        CertificateExtractionError: If the password is wrong, the data is
            corrupt, or the certificate or key is missing.
    """
    password_bytes = password.encode() if password else None
    try:
        bundle = pkcs12.load_pkcs12(p12_bytes, password_bytes)
    except ValueError as e:
        logger.warning("p12_parse_failed", error=str(e))
        raise CertificateExtractionError("Could not open PKCS#12 bundle: invalid password or corrupt data") from e

    certificate = bundle.cert.certificate if bundle.cert else None
    if certificate is None and bundle.additional_certs:
        certificate = bundle.additional_certs[0].certificate

    if certificate is None:
        raise CertificateExtractionError("No certificate found in PKCS#12 bundle")
    if bundle.key is None:
        raise CertificateExtractionError("No private key found in PKCS#12 bundle")

    try:
        certificate_pem = certificate.public_bytes(serialization.Encoding.PEM)
        private_key_pem = bundle.key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    except (ValueError, TypeError) as e:
        raise CertificateExtractionError(f"Could not encode extracted certificate material: {e}") from e

    logger.debug("p12_extracted", subject=certificate.subject.rfc4514_string())
    return ExtractedCertificate(certificate_pem=certificate_pem, private_key_pem=private_key_pem)


def write_certificate_files(extracted: ExtractedCertificate, directory: Path) -> tuple[Path, Path]:
    """Write extracted PEMs into a private certificate directory.

    The directory must never be the pass payload directory.

    Args:
        extracted: The material to write.
        directory: The request's certificate directory.

    Returns:
        Tuple of (certificate path, private key path).
    """
    cert_path = directory / CERTIFICATE_FILENAME
    key_path = directory / PRIVATE_KEY_FILENAME
    for path, content in ((cert_path, extracted.certificate_pem), (key_path, extracted.private_key_pem)):
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
    return cert_path, key_path
