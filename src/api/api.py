from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja_extra import NinjaExtraAPI

from common.schema import ResponseOk, VersionResponse
from wallet.controllers import PassController
from wallet.exceptions import (
    EmptyFieldValueError,
    InvalidStyleObjectCountError,
    MissingCertificateError,
    MissingRequiredAssetError,
    MissingRequiredFieldError,
    TemplateInvalidError,
    TemplateNotFoundError,
    UnmatchedFieldValuesError,
    WalletPassError,
)

from .exception_handlers import (
    handle_django_validation_error,
    handle_general_exception,
    handle_invalid_pass_error,
    handle_missing_certificate_error,
    handle_template_not_found_error,
    handle_unmatched_field_values_error,
    handle_wallet_pass_error,
)

api = NinjaExtraAPI(
    title="Passforge API",
    docs_url="/docs",
    version=settings.VERSION,
    description=f"Passforge API {settings.VERSION}",
    app_name=f"passforge-api-{settings.VERSION}",
    urls_namespace="api",
    servers=[
        {"url": settings.SERVICE_URL, "description": settings.SERVICE_DESCRIPTION},
    ],
)


@api.get("/version", tags=["Version"], response={200: VersionResponse})
def version(request: HttpRequest) -> tuple[int, VersionResponse]:
    """Get the API version.

    Args:
        request: The incoming HTTP request.

    Returns:
        The response status code and message.
    """
    return 200, VersionResponse(version=settings.VERSION)


@api.get("/healthcheck", tags=["Healthcheck"], response={200: ResponseOk})
def healthcheck(request: HttpRequest) -> tuple[int, ResponseOk]:
    """Check the health of the API.

    Args:
        request: The incoming HTTP request.

    Returns:
        The response status code and message.
    """
    return 200, ResponseOk()


api.register_controllers(
    # Wallet controllers
    PassController,
)

EXCEPTION_HANDLERS = {
    Exception: handle_general_exception,
    ValidationError: handle_django_validation_error,
    WalletPassError: handle_wallet_pass_error,
    MissingCertificateError: handle_missing_certificate_error,
    TemplateInvalidError: handle_invalid_pass_error,
    TemplateNotFoundError: handle_template_not_found_error,
    UnmatchedFieldValuesError: handle_unmatched_field_values_error,
    MissingRequiredFieldError: handle_invalid_pass_error,
    EmptyFieldValueError: handle_invalid_pass_error,
    InvalidStyleObjectCountError: handle_invalid_pass_error,
    MissingRequiredAssetError: handle_invalid_pass_error,
}

for exc, handler in EXCEPTION_HANDLERS.items():
    api.add_exception_handler(exc, handler)
