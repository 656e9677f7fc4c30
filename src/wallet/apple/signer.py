"""Apple Wallet pass signing using PKCS#7.

This module handles the cryptographic part of a .pkpass: the manifest.json
listing a SHA-1 digest of every file in the pass, and a detached PKCS#7
signature of that manifest, signed with the Pass Type ID certificate and
carrying the Apple WWDR (Worldwide Developer Relations) intermediate
certificate.

The signature itself uses SHA-256 with the content-type, message-digest and
signing-time attributes only, which Wallet accepts.
"""

import hashlib
import json
from pathlib import Path
from typing import Any

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs7

from wallet.exceptions import ManifestSigningError

logger = structlog.get_logger(__name__)

MANIFEST_FILENAME = "manifest.json"
SIGNATURE_FILENAME = "signature"


def create_manifest(files: dict[str, bytes]) -> bytes:
    """Create the manifest.json content for a pass.

    The manifest contains SHA-1 hashes of all files in the pass package.

    Args:
        files: Dictionary mapping filenames to their content bytes.

    Returns:
        The manifest.json content as bytes.
    """
    manifest: dict[str, str] = {}

    for filename, content in files.items():
        # Skip manifest and signature files themselves
        if filename in (MANIFEST_FILENAME, SIGNATURE_FILENAME):
            continue
        manifest[filename] = hashlib.sha1(content).hexdigest()

    return json.dumps(manifest, indent=2).encode("utf-8")


def build_manifest(directory: Path) -> bytes:
    """Create the manifest for every regular file in a payload directory.

    Dotfiles are skipped, as they are when the directory is packaged.
    """
    files = {
        path.name: path.read_bytes()
        for path in sorted(directory.iterdir())
        if path.is_file() and not path.name.startswith(".")
    }
    return create_manifest(files)


class ApplePassSigner:
    """Signs pass manifests with a Pass Type ID certificate.

    Certificates and the key are loaded lazily from the request's private
    certificate directory.
    """

    def __init__(self, cert_path: str | Path, key_path: str | Path, wwdr_cert_path: str | Path) -> None:
        """Initialize the signer with certificate paths.

        Args:
            cert_path: Path to the Pass Type ID certificate (PEM format).
            key_path: Path to the unencrypted private key (PEM format).
            wwdr_cert_path: Path to Apple WWDR intermediate certificate
                (PEM or DER format).
        """
        self.cert_path = Path(cert_path)
        self.key_path = Path(key_path)
        self.wwdr_cert_path = Path(wwdr_cert_path)

        self._certificate: x509.Certificate | None = None
        self._private_key: Any = None
        self._wwdr_certificate: x509.Certificate | None = None

    def _load_certificate(self, path: Path) -> x509.Certificate:
        """Load an X.509 certificate from a PEM or DER file.

        Raises:
            ManifestSigningError: If the certificate cannot be loaded.
        """
        try:
            cert_data = path.read_bytes()
            if b"-----BEGIN CERTIFICATE-----" in cert_data:
                return x509.load_pem_x509_certificate(cert_data)
            return x509.load_der_x509_certificate(cert_data)
        except FileNotFoundError:
            raise ManifestSigningError(f"Certificate not found: {path.name}")
        except ValueError as e:
            raise ManifestSigningError(f"Failed to load certificate {path.name}: {e}")

    def _load_private_key(self, path: Path) -> Any:
        """Load a private key from a PEM file.

        Raises:
            ManifestSigningError: If the key cannot be loaded.
        """
        try:
            return serialization.load_pem_private_key(path.read_bytes(), password=None)
        except FileNotFoundError:
            raise ManifestSigningError(f"Private key not found: {path.name}")
        except (ValueError, TypeError) as e:
            raise ManifestSigningError(f"Failed to load private key {path.name}: {e}")

    @property
    def certificate(self) -> x509.Certificate:
        """Get the Pass Type ID certificate, loading if necessary."""
        if self._certificate is None:
            self._certificate = self._load_certificate(self.cert_path)
        return self._certificate

    @property
    def private_key(self) -> Any:
        """Get the private key, loading if necessary."""
        if self._private_key is None:
            self._private_key = self._load_private_key(self.key_path)
        return self._private_key

    @property
    def wwdr_certificate(self) -> x509.Certificate:
        """Get the Apple WWDR intermediate certificate, loading if necessary."""
        if self._wwdr_certificate is None:
            self._wwdr_certificate = self._load_certificate(self.wwdr_cert_path)
        return self._wwdr_certificate

    def sign_manifest(self, manifest_data: bytes) -> bytes:
        """Create a PKCS#7 detached signature of the manifest.

        Args:
            manifest_data: The manifest.json content to sign.

        Returns:
            The PKCS#7 signature in DER format.

        Raises:
            ManifestSigningError: If signing fails.
        """
        try:
            signature = (
                pkcs7.PKCS7SignatureBuilder()
                .set_data(manifest_data)
                .add_signer(self.certificate, self.private_key, hashes.SHA256())
                .add_certificate(self.wwdr_certificate)
                .sign(
                    serialization.Encoding.DER,
                    [
                        pkcs7.PKCS7Options.DetachedSignature,
                        pkcs7.PKCS7Options.Binary,
                        pkcs7.PKCS7Options.NoCapabilities,
                    ],
                )
            )
        except ManifestSigningError:
            raise
        except (ValueError, TypeError) as e:
            logger.error("manifest_signing_failed", error=str(e))
            raise ManifestSigningError(f"Failed to sign manifest: {e}")

        logger.debug(
            "manifest_signed",
            manifest_size=len(manifest_data),
            signature_size=len(signature),
        )
        return signature
