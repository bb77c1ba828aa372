import django.db.models.deletion
import django.utils.timezone
import encrypted_fields.fields
import model_utils.fields
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CalendarCredential",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                (
                    "created",
                    model_utils.fields.AutoCreatedField(
                        db_index=True,
                        default=django.utils.timezone.now,
                        editable=False,
                        verbose_name="created",
                    ),
                ),
                (
                    "modified",
                    model_utils.fields.AutoLastModifiedField(
                        db_index=True,
                        default=django.utils.timezone.now,
                        editable=False,
                        verbose_name="modified",
                    ),
                ),
                ("meta", models.JSONField(blank=True, default=dict, verbose_name="meta")),
                (
                    "provider",
                    models.CharField(
                        choices=[
                            ("internal", "Internal Calendar"),
                            ("google", "Google Calendar"),
                            ("microsoft", "Microsoft Outlook Calendar"),
                            ("apple", "Apple Calendar"),
                            ("ics", "ICS"),
                        ],
                        max_length=50,
                    ),
                ),
                ("account_id", models.CharField(max_length=255)),
                ("token", encrypted_fields.fields.EncryptedTextField()),
                (
                    "refresh_token",
                    encrypted_fields.fields.EncryptedTextField(blank=True, default=""),
                ),
                (
                    "invalid",
                    models.BooleanField(
                        default=False,
                        help_text="Set when the provider rejects the stored tokens.",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="calendar_credentials",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="SelectedCalendar",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                (
                    "created",
                    model_utils.fields.AutoCreatedField(
                        db_index=True,
                        default=django.utils.timezone.now,
                        editable=False,
                        verbose_name="created",
                    ),
                ),
                (
                    "modified",
                    model_utils.fields.AutoLastModifiedField(
                        db_index=True,
                        default=django.utils.timezone.now,
                        editable=False,
                        verbose_name="modified",
                    ),
                ),
                ("meta", models.JSONField(blank=True, default=dict, verbose_name="meta")),
                (
                    "integration",
                    models.CharField(
                        choices=[
                            ("internal", "Internal Calendar"),
                            ("google", "Google Calendar"),
                            ("microsoft", "Microsoft Outlook Calendar"),
                            ("apple", "Apple Calendar"),
                            ("ics", "ICS"),
                        ],
                        max_length=50,
                    ),
                ),
                ("external_id", models.CharField(max_length=255)),
                ("name", models.CharField(blank=True, max_length=255)),
                ("is_destination", models.BooleanField(default=False)),
                (
                    "credential",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="selected_calendars",
                        to="calendar_integration.calendarcredential",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="selected_calendars",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "integration", "external_id"),
                        name="unique_selected_calendar_per_user",
                    )
                ],
            },
        ),
    ]
