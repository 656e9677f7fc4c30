"""Django Ninja controllers for wallet pass API endpoints.

These endpoints are called by other services, authenticated with a shared
API key. Engine errors are not handled here; they propagate to the API's
exception handlers, which map them to status codes.
"""

from django.http import HttpResponse
from ninja_extra import api_controller, route
from ninja_extra.controllers.base import ControllerBase

from common.authentication import ServiceAPIKeyAuth
from wallet.apple.generator import ApplePassGenerator
from wallet.schemas import (
    GeneratePassPayload,
    PlaceholdersResponse,
    ValidateFieldValuesPayload,
    ValidationResultSchema,
)
from wallet.service import WalletService, get_wallet_service


@api_controller("/passes", tags=["Wallet Passes"], auth=ServiceAPIKeyAuth())
class PassController(ControllerBase):
    """Controller for generating passes from stored templates."""

    def __init__(self) -> None:
        """Initialize controller."""
        super().__init__()
        self._service: WalletService | None = None

    @property
    def service(self) -> WalletService:
        """Get wallet service instance."""
        if self._service is None:
            self._service = get_wallet_service()
        return self._service

    @route.post(
        "/templates/{template_id}",
        url_name="generate_pass",
        summary="Generate a pass",
        description="Fill a template with field values and return the signed .pkpass.",
        response={200: None, 400: None, 404: None, 422: None, 500: None},
    )
    def generate_pass(self, template_id: str, payload: GeneratePassPayload) -> HttpResponse:
        """Generate a signed Apple Wallet pass from a template.

        Returns:
            200: The .pkpass file, with X-Serial-Number and X-Pass-Type-Identifier headers
            400: The template or field values cannot produce a valid pass
            404: Template not found
            422: No signing certificate for the template's pass type
        """
        generated = self.service.generate_pass(template_id, payload.fieldValues, tenant_id=payload.tenantId)

        response = HttpResponse(generated.pkpass, content_type=ApplePassGenerator.CONTENT_TYPE)
        response["Content-Disposition"] = f'attachment; filename="{generated.filename}"'
        response["X-Serial-Number"] = generated.serial_number
        response["X-Pass-Type-Identifier"] = generated.pass_type_identifier
        return response

    @route.post(
        "/templates/{template_id}/validate",
        url_name="validate_pass_fields",
        summary="Validate field values",
        response={200: ValidationResultSchema},
    )
    def validate_fields(self, template_id: str, payload: ValidateFieldValuesPayload) -> ValidationResultSchema:
        """Check field values against a template without generating a pass."""
        result = self.service.validate_field_values(template_id, payload.fieldValues)
        return ValidationResultSchema.from_result(result)

    @route.get(
        "/templates/{template_id}/placeholders",
        url_name="template_placeholders",
        summary="List template placeholders",
        response={200: PlaceholdersResponse},
    )
    def list_placeholders(self, template_id: str) -> PlaceholdersResponse:
        """List the placeholders a template declares and their defaults."""
        placeholders, defaults = self.service.get_template_placeholders(template_id)
        return PlaceholdersResponse(placeholders=placeholders, defaults=defaults)
