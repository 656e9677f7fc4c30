"""Import a Pass Type ID certificate from a PKCS#12 bundle.

Usage:
    python manage.py import_pass_certificate cert.p12 --password secret --tenant acme
    python manage.py import_pass_certificate cert.p12 --password secret --global --default
    python manage.py import_pass_certificate cert.p12 --password secret --wwdr AppleWWDRCAG4.cer
"""

import typing as t
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError, CommandParser

from wallet.exceptions import WalletPassError
from wallet.service import get_wallet_service


class Command(BaseCommand):
    """Register a signing certificate from a .p12 file."""

    help = "Import a Pass Type ID certificate from a PKCS#12 bundle"

    def add_arguments(self, parser: CommandParser) -> None:
        """Add command arguments."""
        parser.add_argument("p12_path", type=Path, help="Path to the .p12 bundle")
        parser.add_argument("--password", default="", help="Password of the .p12 bundle")
        parser.add_argument("--tenant", default=None, help="Tenant that owns the certificate")
        parser.add_argument("--wwdr", type=Path, default=None, help="Certificate-specific WWDR intermediate")
        parser.add_argument(
            "--global",
            dest="is_global",
            action="store_true",
            help="Make the certificate visible to all tenants",
        )
        parser.add_argument(
            "--default",
            dest="make_default",
            action="store_true",
            help="Serve the global pass type identifier with this certificate (implies --global)",
        )

    def handle(self, *args: t.Any, **options: t.Any) -> None:
        """Execute the command."""
        p12_path: Path = options["p12_path"]
        wwdr_path: Path | None = options["wwdr"]

        if not options["is_global"] and not options["make_default"] and not options["tenant"]:
            raise CommandError("Either --tenant or --global is required")

        try:
            p12_bytes = p12_path.read_bytes()
            wwdr_bytes = wwdr_path.read_bytes() if wwdr_path else None
        except OSError as e:
            raise CommandError(f"Cannot read certificate file: {e}") from e

        try:
            info = get_wallet_service().register_certificate(
                p12_bytes,
                options["password"],
                tenant_id=options["tenant"],
                wwdr_bytes=wwdr_bytes,
                is_global=options["is_global"],
                make_default=options["make_default"],
            )
        except WalletPassError as e:
            raise CommandError(str(e)) from e

        self.stdout.write(
            self.style.SUCCESS(
                f"Imported certificate for {info.pass_type_identifier} "
                f"(team {info.team_identifier}, valid until {info.not_valid_after:%Y-%m-%d})"
            )
        )
