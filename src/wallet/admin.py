"""Django admin configuration for wallet pass models."""

from django.contrib import admin
from unfold.admin import ModelAdmin

from wallet.models import IssuedPass, PassTemplate, PassTypeCertificate


@admin.register(PassTemplate)
class PassTemplateAdmin(ModelAdmin):  # type: ignore[misc]
    """Admin for pass templates."""

    list_display = ["name", "pass_type_identifier", "tenant_id", "created_at", "issued_count"]
    list_filter = ["pass_type_identifier", "created_at"]
    search_fields = ["name", "pass_type_identifier", "tenant_id"]
    readonly_fields = ["created_at", "updated_at"]
    ordering = ["-created_at"]

    @admin.display(description="Issued")
    def issued_count(self, obj: PassTemplate) -> int:
        """Count of passes issued from this template."""
        return obj.issued_passes.count()


@admin.register(PassTypeCertificate)
class PassTypeCertificateAdmin(ModelAdmin):  # type: ignore[misc]
    """Admin for signing certificates.

    The bundle password is never shown.
    """

    list_display = ["pass_type_identifier", "team_identifier", "owner", "is_default", "valid_until"]
    list_filter = ["is_global", "is_default"]
    search_fields = ["pass_type_identifier", "team_identifier", "tenant_id", "organization_name"]
    readonly_fields = ["valid_from", "valid_until", "created_at", "updated_at"]
    exclude = ["p12_password"]
    ordering = ["pass_type_identifier"]

    @admin.display(description="Owner")
    def owner(self, obj: PassTypeCertificate) -> str:
        """Show the owning tenant, or global."""
        return "global" if obj.is_global else (obj.tenant_id or "-")


@admin.register(IssuedPass)
class IssuedPassAdmin(ModelAdmin):  # type: ignore[misc]
    """Admin for issued passes."""

    list_display = ["serial_number", "pass_type_identifier", "template", "tenant_id", "size", "created_at"]
    list_filter = ["pass_type_identifier", "created_at"]
    search_fields = ["serial_number", "pass_type_identifier", "tenant_id"]
    readonly_fields = [
        "serial_number",
        "pass_type_identifier",
        "template",
        "tenant_id",
        "field_values",
        "size",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_add_permission(self, request: object) -> bool:
        """Issued passes are only created by pass generation."""
        return False
