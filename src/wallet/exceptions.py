"""Exceptions raised by the wallet pass engine.

Every stage of pass generation validates its own inputs and raises one of
these immediately. Nothing is recovered locally: a raised error means no pass
was produced.
"""


class WalletPassError(Exception):
    """Base class for all wallet pass generation errors."""


class TemplateInvalidError(WalletPassError):
    """Raised when a template snapshot cannot be turned into a pass."""


class TemplateNotFoundError(TemplateInvalidError):
    """Raised when the requested template does not exist."""


class UnmatchedFieldValuesError(TemplateInvalidError):
    """Raised when field values reference keys the template does not declare."""

    def __init__(self, keys: list[str]) -> None:
        self.keys = keys
        super().__init__(f"Field values do not match any template placeholder: {', '.join(keys)}")


class MissingCertificateError(WalletPassError):
    """Raised when no signing certificate matches a pass type identifier."""


class CertificateExtractionError(WalletPassError):
    """Raised when a PKCS#12 bundle cannot be opened or is incomplete."""


class CertificateExpiredError(CertificateExtractionError):
    """Raised when the signing certificate is outside its validity window."""


class CertificateConflictError(WalletPassError):
    """Raised when a certificate is already registered for the same identifier and owner."""


class PassTypeIdMismatchError(WalletPassError):
    """Raised when pass.json and the signing certificate disagree on the pass type."""


class MissingRequiredFieldError(WalletPassError):
    """Raised when a mandatory top-level pass.json field is absent or empty."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Missing required field: {field_name}")


class EmptyFieldValueError(WalletPassError):
    """Raised when a visible pass field has an empty label or value."""


class InvalidStyleObjectCountError(WalletPassError):
    """Raised when pass.json does not carry exactly one style object."""


class MissingRequiredAssetError(WalletPassError):
    """Raised when a mandatory image asset (icon) is absent."""


class ManifestSigningError(WalletPassError):
    """Raised when the manifest cannot be signed."""


class ForbiddenFileSecurityError(WalletPassError):
    """Raised when certificate or key material would end up inside a pass."""


class ApplePassGeneratorError(WalletPassError):
    """Raised when pass generation fails for a reason outside the taxonomy above."""
