import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="PassTemplate",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("name", models.CharField(max_length=255)),
                ("tenant_id", models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ("pass_type_identifier", models.CharField(db_index=True, max_length=255)),
                ("pass_json", models.JSONField(default=dict)),
                ("images", models.JSONField(blank=True, default=dict)),
            ],
            options={
                "verbose_name": "Pass Template",
                "verbose_name_plural": "Pass Templates",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="PassTypeCertificate",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("pass_type_identifier", models.CharField(db_index=True, max_length=255)),
                ("team_identifier", models.CharField(max_length=32)),
                ("tenant_id", models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ("organization_name", models.CharField(blank=True, max_length=255)),
                ("p12_blob_url", models.URLField(blank=True, max_length=1024)),
                ("p12_path", models.CharField(blank=True, max_length=1024)),
                ("p12_password", models.CharField(blank=True, max_length=255)),
                ("wwdr_blob_url", models.URLField(blank=True, max_length=1024)),
                ("wwdr_path", models.CharField(blank=True, max_length=1024)),
                ("is_global", models.BooleanField(db_index=True, default=False)),
                ("is_default", models.BooleanField(default=False)),
                ("valid_from", models.DateTimeField(blank=True, null=True)),
                ("valid_until", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "verbose_name": "Pass Type Certificate",
                "verbose_name_plural": "Pass Type Certificates",
            },
        ),
        migrations.CreateModel(
            name="IssuedPass",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("serial_number", models.CharField(max_length=64, unique=True)),
                ("pass_type_identifier", models.CharField(db_index=True, max_length=255)),
                ("tenant_id", models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                (
                    "field_values",
                    models.JSONField(
                        blank=True, default=dict, help_text="Field values actually used to fill the template."
                    ),
                ),
                ("size", models.PositiveIntegerField(default=0, help_text="Size of the .pkpass in bytes.")),
                (
                    "template",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="issued_passes",
                        to="wallet.passtemplate",
                    ),
                ),
            ],
            options={
                "verbose_name": "Issued Pass",
                "verbose_name_plural": "Issued Passes",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["pass_type_identifier", "-created_at"], name="issued_pass_type_created_idx")
                ],
            },
        ),
        migrations.AddConstraint(
            model_name="passtypecertificate",
            constraint=models.UniqueConstraint(
                fields=("pass_type_identifier", "tenant_id"), name="unique_certificate_per_tenant"
            ),
        ),
        migrations.AddConstraint(
            model_name="passtypecertificate",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_default", True)), fields=("is_default",), name="single_default_certificate"
            ),
        ),
    ]
