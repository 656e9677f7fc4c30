"""Exception handlers for the API."""

import traceback
import typing as t
from copy import deepcopy

import orjson
import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja.responses import Response

from wallet.exceptions import (
    MissingCertificateError,
    TemplateNotFoundError,
    UnmatchedFieldValuesError,
    WalletPassError,
)

logger = structlog.get_logger(__name__)


def handle_general_exception(request: HttpRequest, exc: Exception | t.Type[Exception]) -> Response:
    """Handle a general exception.

    Args:
        request: The incoming HTTP request.
        exc: The exception.

    Returns:
        The response.
    """
    data = {"detail": "Internal Server Error."}
    tb_str = traceback.format_exc()
    if request.method in ("POST", "PUT", "PATCH") and request.headers.get("Content-Type") == "application/json":
        try:
            json_payload = obfuscate(orjson.loads(request.body))
        except orjson.JSONDecodeError:  # pragma: no cover
            json_payload = None
    else:
        json_payload = None
    logger.exception(
        "INTERNAL_SERVER_ERROR",
        path=f"{request.method} {request.path}",
        headers=obfuscate(dict(request.headers)),
        json_payload=json_payload,
    )
    if settings.DEBUG:  # pragma: no cover
        data["traceback"] = tb_str
    return Response(status=500, data=data)


def handle_django_validation_error(request: HttpRequest, exc: ValidationError | t.Type[ValidationError]) -> Response:
    """Handle a validation error.

    Args:
        request: The incoming HTTP request.
        exc: The exception.
    """
    logger.error("VALIDATION_ERROR", exc_info=True, stack_info=True)
    error_dict = {k: [ee for e in v for ee in e] for k, v in exc.error_dict.items()}
    return Response(status=400, data={"errors": error_dict})


def handle_template_not_found_error(
    request: HttpRequest, exc: TemplateNotFoundError | t.Type[TemplateNotFoundError]
) -> Response:
    """Handle a template not found error."""
    return Response(status=404, data={"detail": str(exc)})


def handle_unmatched_field_values_error(
    request: HttpRequest, exc: UnmatchedFieldValuesError | t.Type[UnmatchedFieldValuesError]
) -> Response:
    """Handle field values that match no placeholder."""
    return Response(status=400, data={"detail": str(exc), "unmatched": getattr(exc, "keys", [])})


def handle_invalid_pass_error(request: HttpRequest, exc: WalletPassError | t.Type[WalletPassError]) -> Response:
    """Handle a template, field, asset or style error."""
    return Response(status=400, data={"detail": str(exc)})


def handle_missing_certificate_error(
    request: HttpRequest, exc: MissingCertificateError | t.Type[MissingCertificateError]
) -> Response:
    """Handle a missing signing certificate."""
    logger.warning("missing_certificate", path=request.path, error=str(exc))
    return Response(status=422, data={"detail": "No signing certificate is available for this pass type."})


def handle_wallet_pass_error(request: HttpRequest, exc: WalletPassError | t.Type[WalletPassError]) -> Response:
    """Handle certificate, signing and packaging failures.

    The detail is generic: these errors can mention certificate material.
    """
    logger.error("pass_generation_error", path=request.path, error_type=type(exc).__name__, error=str(exc))
    return Response(status=500, data={"detail": "Pass generation failed."})


SENSITIVE_KEYS = {
    "password",
    "p12_password",
    "p12",
    "p12base64",
    "privatekey",
    "private_key",
    "token",
    "x-api-key",
    "authorization",
    "authentication",
}


def obfuscate(data: t.Any) -> t.Any:
    """Obfuscate sensitive data in payloads and headers."""
    if isinstance(data, list):
        return [obfuscate(item) for item in data]
    if not isinstance(data, dict):
        return data
    new_data = deepcopy(data)
    for key, value in data.items():
        if key.lower() in SENSITIVE_KEYS:
            new_data[key] = "********"
        else:
            new_data[key] = obfuscate(value)
    return new_data
