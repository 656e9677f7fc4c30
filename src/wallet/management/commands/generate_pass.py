"""Generate a signed pass from a stored template.

Usage:
    python manage.py generate_pass <template_id> --field NAME=Ada --field POINTS=120
    python manage.py generate_pass <template_id> --tenant acme --output ada.pkpass
"""

import typing as t
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError, CommandParser

from wallet.exceptions import WalletPassError
from wallet.service import get_wallet_service


def parse_field(value: str) -> tuple[str, str]:
    key, separator, field_value = value.partition("=")
    if not separator or not key:
        raise CommandError(f"Invalid field {value!r}, expected KEY=VALUE")
    return key, field_value


class Command(BaseCommand):
    """Write a .pkpass for a template to disk."""

    help = "Generate a signed .pkpass from a stored template"

    def add_arguments(self, parser: CommandParser) -> None:
        """Add command arguments."""
        parser.add_argument("template_id", help="ID of the pass template")
        parser.add_argument(
            "--field",
            action="append",
            default=[],
            metavar="KEY=VALUE",
            help="Placeholder value (repeatable)",
        )
        parser.add_argument("--tenant", default=None, help="Tenant the pass is generated for")
        parser.add_argument("--output", type=Path, default=None, help="Output file (default: <serial>.pkpass)")

    def handle(self, *args: t.Any, **options: t.Any) -> None:
        """Execute the command."""
        field_values = dict(parse_field(value) for value in options["field"])

        try:
            generated = get_wallet_service().generate_pass(
                options["template_id"],
                field_values,
                tenant_id=options["tenant"],
            )
        except WalletPassError as e:
            raise CommandError(f"{type(e).__name__}: {e}") from e

        output: Path = options["output"] or Path(generated.filename)
        output.write_bytes(generated.pkpass)

        self.stdout.write(
            self.style.SUCCESS(
                f"Wrote {output} ({len(generated.pkpass)} bytes, serial {generated.serial_number}, "
                f"pass type {generated.pass_type_identifier})"
            )
        )
