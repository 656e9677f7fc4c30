"""Tests for wallet/service.py."""

import stat
import typing as t
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from django.core.exceptions import ValidationError

import wallet.service
from wallet.certificates.sources import LocalFileSource
from wallet.exceptions import (
    CertificateConflictError,
    CertificateExpiredError,
    CertificateExtractionError,
    MissingCertificateError,
    TemplateNotFoundError,
    UnmatchedFieldValuesError,
)
from wallet.models import IssuedPass, PassTemplate, PassTypeCertificate
from wallet.protocols import CertificateRecord
from wallet.service import WalletService, get_wallet_service
from wallet.tests.conftest import (
    P12_PASSWORD,
    PASS_TYPE_ID,
    TEAM_ID,
    make_p12,
    make_pass_certificate,
)

pytestmark = pytest.mark.django_db


class TestTemplates:
    """Tests for template lookups."""

    def test_unknown_template(self, wallet_service: WalletService) -> None:
        with pytest.raises(TemplateNotFoundError):
            wallet_service.get_template("00000000-0000-0000-0000-000000000000")

    def test_malformed_template_id(self, wallet_service: WalletService) -> None:
        with pytest.raises(TemplateNotFoundError):
            wallet_service.get_template("not-a-uuid")

    def test_placeholders_and_defaults(self, wallet_service: WalletService, pass_template: PassTemplate) -> None:
        placeholders, defaults = wallet_service.get_template_placeholders(str(pass_template.pk))

        assert placeholders == ["POINTS", "MEMBER_NAME", "MEMBER_ID"]
        assert defaults == {"POINTS": "0"}

    def test_validate_field_values_defaults_are_optional(
        self, wallet_service: WalletService, pass_template: PassTemplate
    ) -> None:
        result = wallet_service.validate_field_values(str(pass_template.pk), {"MEMBER_NAME": "Ada", "MEMBER_ID": "1"})

        assert result.is_valid
        assert result.missing == []

    def test_validate_field_values_reports_problems(
        self, wallet_service: WalletService, pass_template: PassTemplate
    ) -> None:
        result = wallet_service.validate_field_values(str(pass_template.pk), {"MEMBER_NAME": "Ada", "NICKNAME": "A"})

        assert not result.is_valid
        assert result.missing == ["MEMBER_ID"]
        assert result.unmatched == ["NICKNAME"]


class TestGeneratePass:
    """Tests for WalletService.generate_pass."""

    def test_generates_and_records_issued_pass(
        self,
        wallet_service: WalletService,
        pass_template: PassTemplate,
        stored_certificate: CertificateRecord,
        store_card_field_values: dict[str, str],
    ) -> None:
        generated = wallet_service.generate_pass(str(pass_template.pk), store_card_field_values, tenant_id="acme")

        issued = IssuedPass.objects.get(serial_number=generated.serial_number)
        assert issued.template == pass_template
        assert issued.pass_type_identifier == PASS_TYPE_ID
        assert issued.tenant_id == "acme"
        assert issued.field_values == store_card_field_values
        assert issued.size == len(generated.pkpass)

    def test_unmatched_field_values_are_rejected(
        self,
        wallet_service: WalletService,
        pass_template: PassTemplate,
        stored_certificate: CertificateRecord,
        store_card_field_values: dict[str, str],
    ) -> None:
        with pytest.raises(UnmatchedFieldValuesError) as exc_info:
            wallet_service.generate_pass(str(pass_template.pk), {**store_card_field_values, "EXTRA": "x"})

        assert exc_info.value.keys == ["EXTRA"]
        assert not IssuedPass.objects.exists()

    def test_unmatched_field_values_allowed_when_configured(
        self,
        wallet_settings: t.Any,
        wallet_service: WalletService,
        pass_template: PassTemplate,
        stored_certificate: CertificateRecord,
        store_card_field_values: dict[str, str],
    ) -> None:
        wallet_settings.WALLET_REJECT_UNMATCHED_FIELDS = False

        generated = wallet_service.generate_pass(str(pass_template.pk), {**store_card_field_values, "EXTRA": "x"})

        assert IssuedPass.objects.filter(serial_number=generated.serial_number).exists()

    def test_failed_generation_records_nothing(
        self,
        wallet_service: WalletService,
        pass_template: PassTemplate,
        store_card_field_values: dict[str, str],
    ) -> None:
        with pytest.raises(MissingCertificateError):
            wallet_service.generate_pass(str(pass_template.pk), store_card_field_values)

        assert not IssuedPass.objects.exists()


class TestRegisterCertificate:
    """Tests for certificate onboarding."""

    def test_registers_tenant_certificate(
        self, wallet_settings: t.Any, wallet_service: WalletService, p12_bytes: bytes
    ) -> None:
        info = wallet_service.register_certificate(p12_bytes, P12_PASSWORD, tenant_id="acme")

        assert info.pass_type_identifier == PASS_TYPE_ID
        certificate = PassTypeCertificate.objects.get(pass_type_identifier=PASS_TYPE_ID, tenant_id="acme")
        assert certificate.team_identifier == TEAM_ID
        assert not certificate.is_global
        assert certificate.valid_until == info.not_valid_after

        p12_path = Path(certificate.p12_path)
        assert p12_path.is_relative_to(Path(wallet_settings.WALLET_CERTIFICATE_ROOT) / "acme" / PASS_TYPE_ID)
        assert p12_path.read_bytes() == p12_bytes
        assert stat.S_IMODE(p12_path.stat().st_mode) == 0o600

    def test_registers_default_global_certificate(
        self, wallet_settings: t.Any, wallet_service: WalletService, p12_bytes: bytes, wwdr_der: bytes
    ) -> None:
        wallet_service.register_certificate(p12_bytes, P12_PASSWORD, wwdr_bytes=wwdr_der, make_default=True)

        certificate = PassTypeCertificate.objects.get(pass_type_identifier=PASS_TYPE_ID)
        assert certificate.is_global
        assert certificate.is_default
        assert certificate.tenant_id is None
        assert isinstance(certificate.wwdr_source, LocalFileSource)
        assert Path(certificate.wwdr_path).read_bytes() == wwdr_der

    def test_registered_certificate_signs_passes(
        self,
        wallet_settings: t.Any,
        wallet_service: WalletService,
        p12_bytes: bytes,
        wwdr_der: bytes,
        pass_template: PassTemplate,
        store_card_field_values: dict[str, str],
    ) -> None:
        wallet_service.register_certificate(p12_bytes, P12_PASSWORD, tenant_id="acme", wwdr_bytes=wwdr_der)

        generated = wallet_service.generate_pass(str(pass_template.pk), store_card_field_values, tenant_id="acme")

        assert generated.pass_type_identifier == PASS_TYPE_ID

    def test_wrong_password(self, wallet_service: WalletService, p12_bytes: bytes) -> None:
        with pytest.raises(CertificateExtractionError):
            wallet_service.register_certificate(p12_bytes, "wrong", tenant_id="acme")

        assert not PassTypeCertificate.objects.exists()

    def test_subject_without_identifier(
        self,
        wallet_service: WalletService,
        pass_private_key: rsa.RSAPrivateKey,
        wwdr_private_key: rsa.RSAPrivateKey,
    ) -> None:
        certificate = make_pass_certificate(
            pass_private_key, wwdr_private_key, pass_type_identifier="not-a-pass-id", with_uid=False
        )

        with pytest.raises(CertificateExtractionError, match="no pass type"):
            wallet_service.register_certificate(
                make_p12(certificate, pass_private_key), P12_PASSWORD, tenant_id="acme"
            )

    def test_expired_certificate(
        self,
        wallet_service: WalletService,
        pass_private_key: rsa.RSAPrivateKey,
        wwdr_private_key: rsa.RSAPrivateKey,
    ) -> None:
        certificate = make_pass_certificate(
            pass_private_key,
            wwdr_private_key,
            not_valid_before=datetime(2020, 1, 1, tzinfo=timezone.utc),
            not_valid_after=datetime(2021, 1, 1, tzinfo=timezone.utc),
        )

        with pytest.raises(CertificateExpiredError):
            wallet_service.register_certificate(make_p12(certificate, pass_private_key), P12_PASSWORD, tenant_id="a")

    def test_remove_certificate(self, wallet_service: WalletService, p12_bytes: bytes) -> None:
        wallet_service.register_certificate(p12_bytes, P12_PASSWORD, tenant_id="acme")

        assert wallet_service.remove_certificate(PASS_TYPE_ID, tenant_id="acme")
        assert not wallet_service.remove_certificate(PASS_TYPE_ID, tenant_id="acme")

    def test_remove_certificate_deletes_stored_files(
        self, wallet_settings: t.Any, wallet_service: WalletService, p12_bytes: bytes, wwdr_der: bytes
    ) -> None:
        """The stored bundle and WWDR file do not outlive the record."""
        root = Path(wallet_settings.WALLET_CERTIFICATE_ROOT)
        wallet_service.register_certificate(p12_bytes, P12_PASSWORD, tenant_id="acme", wwdr_bytes=wwdr_der)
        assert len(list(root.rglob("*.p12"))) == 1
        assert len(list(root.rglob("*.cer"))) == 1

        assert wallet_service.remove_certificate(PASS_TYPE_ID, tenant_id="acme")

        assert list(root.rglob("*.p12")) == []
        assert list(root.rglob("*.cer")) == []

    def test_remove_certificate_keeps_files_outside_certificate_root(
        self, wallet_service: WalletService, stored_certificate: CertificateRecord
    ) -> None:
        """Files placed by an operator elsewhere are not deleted."""
        assert isinstance(stored_certificate.p12_source, LocalFileSource)

        assert wallet_service.remove_certificate(PASS_TYPE_ID)

        assert Path(stored_certificate.p12_source.path).exists()

    def test_reimport_is_rejected_without_leaving_files(
        self, wallet_settings: t.Any, wallet_service: WalletService, p12_bytes: bytes
    ) -> None:
        root = Path(wallet_settings.WALLET_CERTIFICATE_ROOT)
        wallet_service.register_certificate(p12_bytes, P12_PASSWORD, tenant_id="acme")

        with pytest.raises(CertificateConflictError, match="already registered"):
            wallet_service.register_certificate(p12_bytes, P12_PASSWORD, tenant_id="acme")

        assert PassTypeCertificate.objects.filter(tenant_id="acme").count() == 1
        assert len(list(root.rglob("*.p12"))) == 1

    def test_tenant_certificate_allowed_next_to_global_one(
        self, wallet_service: WalletService, p12_bytes: bytes
    ) -> None:
        wallet_service.register_certificate(p12_bytes, P12_PASSWORD, is_global=True)
        wallet_service.register_certificate(p12_bytes, P12_PASSWORD, tenant_id="acme")

        assert PassTypeCertificate.objects.filter(pass_type_identifier=PASS_TYPE_ID).count() == 2

    def test_failed_insert_removes_stored_files(
        self, wallet_settings: t.Any, wallet_service: WalletService, p12_bytes: bytes
    ) -> None:
        root = Path(wallet_settings.WALLET_CERTIFICATE_ROOT)

        with patch.object(
            wallet_service.certificate_repository, "add", side_effect=ValidationError("duplicate")
        ):
            with pytest.raises(CertificateConflictError, match="was not stored"):
                wallet_service.register_certificate(p12_bytes, P12_PASSWORD, tenant_id="acme")

        assert list(root.rglob("*.p12")) == []


class TestGetWalletService:
    """Tests for the service singleton."""

    def test_returns_cached_instance(self) -> None:
        with patch.object(wallet.service, "_wallet_service", None):
            first = get_wallet_service()
            second = get_wallet_service()

        assert first is second
        assert isinstance(first, WalletService)
