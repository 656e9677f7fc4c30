"""Test fixtures for wallet app tests.

This module provides real signing material (an RSA key, a Pass Type ID
certificate issued by a test WWDR authority, and a password-protected
PKCS#12 bundle), PNG images and in-memory repositories, so the whole pass
pipeline can run without network or database access.
"""

import base64
import hashlib
import io
import typing as t
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID
from PIL import Image

from wallet.apple.assembler import PassAssembler
from wallet.apple.generator import ApplePassGenerator
from wallet.certificates.resolver import CertificateResolver, SigningCertificate
from wallet.certificates.sources import BlobFetcher, LocalFileSource
from wallet.models import PassTemplate
from wallet.protocols import CertificateRecord, TemplateSnapshot
from wallet.repositories import DjangoCertificateRepository
from wallet.service import WalletService

PASS_TYPE_ID = "pass.com.example.test"
TEAM_ID = "ABCDE12345"
ORGANIZATION_NAME = "Example Inc."
P12_PASSWORD = "test-password"

WWDR_NAME = x509.Name(
    [
        x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Apple Inc."),
        x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, "G4"),
        x509.NameAttribute(NameOID.COMMON_NAME, "Apple Worldwide Developer Relations Certification Authority"),
    ]
)


def make_pass_certificate(
    private_key: rsa.RSAPrivateKey,
    issuer_key: rsa.RSAPrivateKey,
    pass_type_identifier: str = PASS_TYPE_ID,
    team_identifier: str = TEAM_ID,
    with_uid: bool = True,
    not_valid_before: datetime | None = None,
    not_valid_after: datetime | None = None,
) -> x509.Certificate:
    """Build a certificate shaped like an Apple Pass Type ID certificate."""
    now = datetime.now(timezone.utc)
    attributes = [
        x509.NameAttribute(NameOID.COMMON_NAME, f"Pass Type ID: {pass_type_identifier}"),
        x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, team_identifier),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, ORGANIZATION_NAME),
        x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
    ]
    if with_uid:
        attributes.insert(0, x509.NameAttribute(NameOID.USER_ID, pass_type_identifier))

    return (
        x509.CertificateBuilder()
        .subject_name(x509.Name(attributes))
        .issuer_name(WWDR_NAME)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_valid_before or now - timedelta(days=1))
        .not_valid_after(not_valid_after or now + timedelta(days=365))
        .sign(issuer_key, hashes.SHA256())
    )


def make_p12(
    certificate: x509.Certificate,
    private_key: rsa.RSAPrivateKey | None,
    password: str | None = P12_PASSWORD,
) -> bytes:
    """Serialize a certificate and key into a PKCS#12 bundle."""
    encryption: serialization.KeySerializationEncryption = (
        serialization.BestAvailableEncryption(password.encode()) if password else serialization.NoEncryption()
    )
    return pkcs12.serialize_key_and_certificates(b"pass", private_key, certificate, None, encryption)


def make_png(size: tuple[int, int] = (29, 29), color: tuple[int, int, int] = (40, 80, 160)) -> bytes:
    """Generate a solid-color PNG."""
    img = Image.new("RGB", size, color)
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


# --- Detached signature inspection ---

OID_DATA = "1.2.840.113549.1.7.1"
OID_SIGNED_DATA = "1.2.840.113549.1.7.2"
OID_SHA256 = "2.16.840.1.101.3.4.2.1"
OID_CONTENT_TYPE = "1.2.840.113549.1.9.3"
OID_MESSAGE_DIGEST = "1.2.840.113549.1.9.4"
OID_SIGNING_TIME = "1.2.840.113549.1.9.5"


@dataclass
class DerNode:
    tag: int
    value: bytes
    encoded: bytes

    @property
    def children(self) -> list["DerNode"]:
        return parse_der(self.value)

    @property
    def oid(self) -> str:
        arcs: list[int] = []
        current = 0
        for byte in self.value:
            current = (current << 7) | (byte & 0x7F)
            if not byte & 0x80:
                arcs.append(current)
                current = 0
        first = min(arcs[0] // 40, 2)
        return ".".join(str(arc) for arc in [first, arcs[0] - 40 * first, *arcs[1:]])


def parse_der(data: bytes) -> list[DerNode]:
    """Split DER bytes into their top-level TLV nodes."""
    nodes: list[DerNode] = []
    offset = 0
    while offset < len(data):
        start = offset
        tag = data[offset]
        length = data[offset + 1]
        offset += 2
        if length & 0x80:
            size = length & 0x7F
            length = int.from_bytes(data[offset : offset + size], "big")
            offset += size
        nodes.append(DerNode(tag, data[offset : offset + length], data[start : offset + length]))
        offset += length
    return nodes


@dataclass
class SignedDataInfo:
    """The parts of a detached PKCS#7 signature the tests check."""

    content_type: str
    digest_algorithms: list[str]
    encapsulated_content: list[DerNode]
    signer_digest_algorithm: str
    signed_attributes: dict[str, DerNode]
    signed_attributes_der: bytes
    signature: bytes


def inspect_signature(signature: bytes) -> SignedDataInfo:
    """Pull the SignedData fields of a DER PKCS#7 signature apart."""
    content_info = parse_der(signature)[0].children
    signed_data = content_info[1].children[0].children
    digest_algorithms = [algorithm.children[0].oid for algorithm in signed_data[1].children]
    signer_info = signed_data[-1].children[0].children
    attributes_node = next(node for node in signer_info if node.tag == 0xA0)
    attributes = {attribute.children[0].oid: attribute.children[1] for attribute in attributes_node.children}
    return SignedDataInfo(
        content_type=content_info[0].oid,
        digest_algorithms=digest_algorithms,
        encapsulated_content=signed_data[2].children,
        signer_digest_algorithm=signer_info[2].children[0].oid,
        signed_attributes=attributes,
        # Signed attributes are signed as a SET, not as the [0] IMPLICIT field
        signed_attributes_der=b"\x31" + attributes_node.encoded[1:],
        signature=signer_info[-1].value,
    )


def verify_detached_signature(signature: bytes, content: bytes, certificate: x509.Certificate) -> SignedDataInfo:
    """Verify a detached signature over ``content`` with the signer's certificate.

    Raises:
        AssertionError: If the message digest does not match the content.
        cryptography.exceptions.InvalidSignature: If the signature is wrong.
    """
    info = inspect_signature(signature)
    message_digest = info.signed_attributes[OID_MESSAGE_DIGEST].children[0].value
    assert message_digest == hashlib.sha256(content).digest()
    public_key = certificate.public_key()
    assert isinstance(public_key, rsa.RSAPublicKey)
    public_key.verify(info.signature, info.signed_attributes_der, padding.PKCS1v15(), hashes.SHA256())
    return info


# --- In-memory repositories ---


class InMemoryTemplateRepository:
    """Template store backed by a dict."""

    def __init__(self, *templates: TemplateSnapshot) -> None:
        self.templates = {template.id: template for template in templates}

    def get(self, template_id: str) -> TemplateSnapshot | None:
        return self.templates.get(template_id)


class InMemoryCertificateRepository:
    """Certificate store backed by a list."""

    def __init__(self, *records: CertificateRecord) -> None:
        self.records = list(records)
        self.default_identifier: str | None = None

    def resolve(self, pass_type_identifier: str, tenant_id: str | None = None) -> CertificateRecord | None:
        matching = [r for r in self.records if r.pass_type_identifier == pass_type_identifier]
        owned = [r for r in matching if tenant_id and r.tenant_id == tenant_id]
        if owned:
            return owned[0]
        return next((r for r in matching if r.is_global), None)

    def get_default(self) -> CertificateRecord | None:
        if self.default_identifier is None:
            return None
        return next(
            (r for r in self.records if r.is_global and r.pass_type_identifier == self.default_identifier),
            None,
        )

    def add(self, record: CertificateRecord) -> None:
        self.records.append(record)

    def remove(self, pass_type_identifier: str, tenant_id: str | None = None) -> list[CertificateRecord]:
        removed = [
            r for r in self.records if r.pass_type_identifier == pass_type_identifier and r.tenant_id == tenant_id
        ]
        self.records = [r for r in self.records if r not in removed]
        return removed

    def set_default(self, pass_type_identifier: str) -> None:
        self.default_identifier = pass_type_identifier


# --- Signing material ---


@pytest.fixture(scope="session")
def wwdr_private_key() -> rsa.RSAPrivateKey:
    """Key of the test WWDR authority."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def wwdr_certificate(wwdr_private_key: rsa.RSAPrivateKey) -> x509.Certificate:
    """Self-signed stand-in for the Apple WWDR intermediate."""
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(WWDR_NAME)
        .issuer_name(WWDR_NAME)
        .public_key(wwdr_private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=30))
        .not_valid_after(now + timedelta(days=3650))
        .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
        .sign(wwdr_private_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def pass_private_key() -> rsa.RSAPrivateKey:
    """Private key of the Pass Type ID certificate."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def pass_certificate(pass_private_key: rsa.RSAPrivateKey, wwdr_private_key: rsa.RSAPrivateKey) -> x509.Certificate:
    """A valid Pass Type ID certificate for PASS_TYPE_ID."""
    return make_pass_certificate(pass_private_key, wwdr_private_key)


@pytest.fixture(scope="session")
def p12_bytes(pass_certificate: x509.Certificate, pass_private_key: rsa.RSAPrivateKey) -> bytes:
    """Password-protected PKCS#12 bundle for the pass certificate."""
    return make_p12(pass_certificate, pass_private_key)


@pytest.fixture(scope="session")
def wwdr_pem(wwdr_certificate: x509.Certificate) -> bytes:
    return wwdr_certificate.public_bytes(serialization.Encoding.PEM)


@pytest.fixture(scope="session")
def wwdr_der(wwdr_certificate: x509.Certificate) -> bytes:
    return wwdr_certificate.public_bytes(serialization.Encoding.DER)


@pytest.fixture
def certificate_files(tmp_path: Path, p12_bytes: bytes, wwdr_der: bytes) -> tuple[Path, Path]:
    """The bundle and WWDR intermediate written to a storage directory."""
    storage = tmp_path / "certificate-storage"
    storage.mkdir()
    p12_path = storage / "pass.p12"
    wwdr_path = storage / "AppleWWDRCAG4.cer"
    p12_path.write_bytes(p12_bytes)
    wwdr_path.write_bytes(wwdr_der)
    return p12_path, wwdr_path


@pytest.fixture
def certificate_record(certificate_files: tuple[Path, Path]) -> CertificateRecord:
    """A global certificate record stored on local disk."""
    p12_path, wwdr_path = certificate_files
    return CertificateRecord(
        pass_type_identifier=PASS_TYPE_ID,
        team_identifier=TEAM_ID,
        p12_source=LocalFileSource(str(p12_path)),
        p12_password=P12_PASSWORD,
        wwdr_source=LocalFileSource(str(wwdr_path)),
        organization_name=ORGANIZATION_NAME,
        is_global=True,
    )


@pytest.fixture
def signing_certificate(p12_bytes: bytes, wwdr_der: bytes) -> SigningCertificate:
    """Resolved signing material for PASS_TYPE_ID."""
    return SigningCertificate(
        pass_type_identifier=PASS_TYPE_ID,
        team_identifier=TEAM_ID,
        p12_bytes=p12_bytes,
        p12_password=P12_PASSWORD,
        wwdr_bytes=wwdr_der,
        organization_name_default=ORGANIZATION_NAME,
    )


# --- Templates ---


@pytest.fixture(scope="session")
def icon_png() -> bytes:
    return make_png((29, 29))


@pytest.fixture
def store_card_pass_json() -> dict[str, t.Any]:
    """A store card template with placeholders and embedded defaults."""
    return {
        "formatVersion": 1,
        "passTypeIdentifier": PASS_TYPE_ID,
        "teamIdentifier": TEAM_ID,
        "organizationName": "Coffee Club",
        "description": "Coffee Club loyalty card",
        "serialNumber": "template-serial",
        "backgroundColor": "rgb(40, 80, 160)",
        "placeholders": {"POINTS": "0"},
        "storeCard": {
            "primaryFields": [{"key": "points", "label": "Points", "value": "${POINTS}"}],
            "secondaryFields": [{"key": "member", "label": "Member", "value": "${MEMBER_NAME}"}],
        },
        "barcodes": [
            {"format": "PKBarcodeFormatQR", "message": "${MEMBER_ID}", "messageEncoding": "iso-8859-1"},
        ],
    }


@pytest.fixture
def template_images(icon_png: bytes) -> dict[str, t.Any]:
    return {
        "icon": {"1x": b64(icon_png), "2x": b64(make_png((58, 58))), "3x": b64(make_png((87, 87)))},
        "logo": {"1x": b64(make_png((160, 50)))},
    }


@pytest.fixture
def store_card_template(
    store_card_pass_json: dict[str, t.Any], template_images: dict[str, t.Any]
) -> TemplateSnapshot:
    return TemplateSnapshot(
        id="tmpl-store-card",
        pass_type_identifier=PASS_TYPE_ID,
        pass_json=store_card_pass_json,
        images=template_images,
    )


@pytest.fixture
def store_card_field_values() -> dict[str, str]:
    return {"MEMBER_NAME": "Ada Lovelace", "MEMBER_ID": "M-1815", "POINTS": "120"}


# --- Wiring ---


@pytest.fixture
def wallet_settings(settings: t.Any, tmp_path: Path) -> t.Any:
    """Deterministic wallet settings for tests."""
    settings.WALLET_GLOBAL_PASS_TYPE_ID = ""
    settings.WALLET_WWDR_CERT_PATH = ""
    settings.WALLET_WWDR_CERT_URL = ""
    settings.WALLET_BLOB_TOKEN = "blob-token"
    settings.WALLET_BLOB_TIMEOUT = 5.0
    settings.WALLET_BLOB_RETRIES = 0
    settings.WALLET_DEFAULT_ORGANIZATION_NAME = "Passforge"
    settings.WALLET_DEFAULT_DESCRIPTION = "Digital Pass"
    settings.WALLET_CERTIFICATE_ROOT = str(tmp_path / "certificate-root")
    settings.WALLET_REJECT_UNMATCHED_FIELDS = True
    settings.WALLET_API_KEY = "test-api-key"
    return settings


@pytest.fixture
def certificate_repository(certificate_record: CertificateRecord) -> InMemoryCertificateRepository:
    return InMemoryCertificateRepository(certificate_record)


@pytest.fixture
def resolver(wallet_settings: t.Any, certificate_repository: InMemoryCertificateRepository) -> CertificateResolver:
    return CertificateResolver(certificate_repository, fetcher=BlobFetcher())


@pytest.fixture
def generator(resolver: CertificateResolver) -> ApplePassGenerator:
    return ApplePassGenerator(resolver, assembler=PassAssembler())


# --- Database-backed wiring ---


@pytest.fixture
def pass_template(
    db: None, store_card_pass_json: dict[str, t.Any], template_images: dict[str, t.Any]
) -> PassTemplate:
    """The store card template saved to the database."""
    return PassTemplate.objects.create(
        name="Coffee Club",
        pass_type_identifier=PASS_TYPE_ID,
        pass_json=store_card_pass_json,
        images=template_images,
    )


@pytest.fixture
def stored_certificate(db: None, certificate_record: CertificateRecord) -> CertificateRecord:
    """The global test certificate saved to the database."""
    DjangoCertificateRepository().add(certificate_record)
    return certificate_record


@pytest.fixture
def wallet_service(wallet_settings: t.Any) -> WalletService:
    """A WalletService backed by the database repositories."""
    return WalletService()
