"""Apple Wallet pass generator.

This module turns a template snapshot and field values into a signed
.pkpass file. A .pkpass file is a ZIP archive containing:
- pass.json: The pass definition
- manifest.json: SHA-1 hashes of all files
- signature: PKCS#7 signature of the manifest
- Images: icon (required), logo, strip, background, thumbnail

Every generation works in two private temporary directories: one for the
pass payload and one for certificate material. Both are removed when the
generation ends, whether it succeeded or not.
"""

import json
import shutil
import tempfile
import typing as t
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

import structlog

from wallet.apple.assembler import PassAssembler
from wallet.apple.images import decode_template_images
from wallet.apple.packager import package_directory
from wallet.apple.security import assert_directory_clean, assert_no_forbidden_files
from wallet.apple.signer import MANIFEST_FILENAME, SIGNATURE_FILENAME, ApplePassSigner, build_manifest
from wallet.certificates.extractor import ExtractedCertificate, extract_certificate, write_certificate_files
from wallet.certificates.inspection import inspect_certificate
from wallet.certificates.resolver import CertificateResolver, SigningCertificate
from wallet.exceptions import (
    ApplePassGeneratorError,
    CertificateExpiredError,
    PassTypeIdMismatchError,
    TemplateNotFoundError,
    WalletPassError,
)
from wallet.protocols import TemplateSnapshot

logger = structlog.get_logger(__name__)

PASS_JSON_FILENAME = "pass.json"
WWDR_FILENAME = "wwdr.cer"


@dataclass(frozen=True)
class GeneratedPass:
    """A signed pass and the metadata needed to track it."""

    pkpass: bytes
    serial_number: str
    pass_type_identifier: str
    field_values: dict[str, t.Any]

    @property
    def filename(self) -> str:
        return f"{self.serial_number}.{ApplePassGenerator.FILE_EXTENSION}"


def check_signing_certificate(extracted: ExtractedCertificate, certificate: SigningCertificate) -> None:
    """Check the leaf certificate against the record it was resolved from.

    Raises:
        CertificateExpiredError: If the leaf is expired or not yet valid.
        PassTypeIdMismatchError: If the leaf names a different pass type.
    """
    info = inspect_certificate(extracted.certificate)
    if not info.is_valid_at():
        raise CertificateExpiredError(
            f"Certificate for {certificate.pass_type_identifier} is only valid "
            f"from {info.not_valid_before.isoformat()} to {info.not_valid_after.isoformat()}"
        )
    if info.pass_type_identifier and info.pass_type_identifier != certificate.pass_type_identifier:
        raise PassTypeIdMismatchError(
            f"Certificate subject is for {info.pass_type_identifier}, "
            f"but it is registered for {certificate.pass_type_identifier}"
        )


class ApplePassGenerator:
    """Generates signed Apple Wallet .pkpass files from templates."""

    CONTENT_TYPE = "application/vnd.apple.pkpass"
    FILE_EXTENSION = "pkpass"

    def __init__(
        self,
        resolver: CertificateResolver,
        assembler: PassAssembler | None = None,
        signer_class: Callable[[Path, Path, Path], ApplePassSigner] = ApplePassSigner,
    ) -> None:
        """Initialize the generator.

        Args:
            resolver: Resolves pass type identifiers to signing material.
            assembler: Builds pass.json. A default assembler is created if
                not provided.
            signer_class: Builds a signer from (cert, key, wwdr) paths.
        """
        self.resolver = resolver
        self.assembler = assembler or PassAssembler()
        self.signer_class = signer_class

    def generate(
        self,
        template: TemplateSnapshot,
        field_values: Mapping[str, t.Any] | None = None,
        tenant_id: str | None = None,
    ) -> GeneratedPass:
        """Generate a signed .pkpass for a template.

        Args:
            template: The template snapshot.
            field_values: Caller values for the template's placeholders.
            tenant_id: The tenant the pass is generated for. Defaults to the
                template's owner. A tenant-owned template is only visible to
                its owner.

        Returns:
            The GeneratedPass.

        Raises:
            WalletPassError: A subclass describing the failed stage. Errors
                outside the taxonomy are wrapped in ApplePassGeneratorError.
        """
        pass_type_identifier = template.pass_type_identifier or template.pass_json.get("passTypeIdentifier", "")
        if template.tenant_id and tenant_id and tenant_id != template.tenant_id:
            logger.warning("template_tenant_mismatch", template_id=template.id, tenant_id=tenant_id)
            raise TemplateNotFoundError(f"Template not found: {template.id}")
        tenant_id = tenant_id or template.tenant_id

        payload_dir = Path(tempfile.mkdtemp(prefix="pkpass-payload-"))
        cert_dir = Path(tempfile.mkdtemp(prefix="pkpass-certs-"))
        try:
            certificate = self.resolver.resolve(pass_type_identifier, tenant_id, workdir=cert_dir)
            extracted = extract_certificate(certificate.p12_bytes, certificate.p12_password)
            check_signing_certificate(extracted, certificate)

            assembled = self.assembler.assemble(template, certificate, field_values)

            files = {PASS_JSON_FILENAME: json.dumps(assembled.pass_json, indent=2).encode("utf-8")}
            files.update(decode_template_images(template.images))
            assert_no_forbidden_files(files)

            for filename, content in files.items():
                (payload_dir / filename).write_bytes(content)

            manifest = build_manifest(payload_dir)
            (payload_dir / MANIFEST_FILENAME).write_bytes(manifest)

            cert_path, key_path = write_certificate_files(extracted, cert_dir)
            wwdr_path = cert_dir / WWDR_FILENAME
            wwdr_path.write_bytes(certificate.wwdr_bytes)

            signer = self.signer_class(cert_path, key_path, wwdr_path)
            (payload_dir / SIGNATURE_FILENAME).write_bytes(signer.sign_manifest(manifest))

            assert_directory_clean(payload_dir)
            pkpass_bytes = package_directory(payload_dir)

            logger.info(
                "pass_generated",
                template_id=template.id,
                pass_type_identifier=certificate.pass_type_identifier,
                serial_number=assembled.serial_number,
                size=len(pkpass_bytes),
            )

            return GeneratedPass(
                pkpass=pkpass_bytes,
                serial_number=assembled.serial_number,
                pass_type_identifier=certificate.pass_type_identifier,
                field_values=assembled.field_values,
            )

        except WalletPassError as e:
            logger.warning(
                "pass_generation_failed",
                template_id=template.id,
                pass_type_identifier=pass_type_identifier,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise
        except Exception as e:
            logger.exception("pass_generation_failed", template_id=template.id, error=str(e))
            raise ApplePassGeneratorError(f"Failed to generate pass: {e}") from e
        finally:
            shutil.rmtree(payload_dir, ignore_errors=True)
            shutil.rmtree(cert_dir, ignore_errors=True)
