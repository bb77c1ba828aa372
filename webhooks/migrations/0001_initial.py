import django.db.models.deletion
import django.utils.timezone
import model_utils.fields
from django.conf import settings
from django.db import migrations, models


WEBHOOK_TRIGGER_CHOICES = [
    ("BOOKING_CREATED", "Booking created"),
    ("BOOKING_REQUESTED", "Booking requested"),
    ("BOOKING_RESCHEDULED", "Booking rescheduled"),
    ("BOOKING_CANCELLED", "Booking cancelled"),
    ("BOOKING_REJECTED", "Booking rejected"),
]

WEBHOOK_DELIVERY_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("delivered", "Delivered"),
    ("failed", "Failed"),
]


def base_model_fields():
    return [
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
    ]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="WebhookSubscription",
            fields=[
                *base_model_fields(),
                ("subscriber_url", models.URLField(max_length=2000)),
                ("triggers", models.JSONField(default=list)),
                (
                    "secret",
                    models.CharField(
                        blank=True,
                        help_text="Signs the delivered body with HMAC-SHA256.",
                        max_length=255,
                    ),
                ),
                ("headers", models.JSONField(blank=True, default=dict)),
                ("active", models.BooleanField(default=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                (
                    "event_type",
                    models.ForeignKey(
                        blank=True,
                        help_text="Only deliver events of this event type. Empty means every event type.",
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="webhook_subscriptions",
                        to="bookings.eventtype",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="webhook_subscriptions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("id",),
            },
        ),
        migrations.CreateModel(
            name="WebhookDelivery",
            fields=[
                *base_model_fields(),
                ("trigger", models.CharField(choices=WEBHOOK_TRIGGER_CHOICES, max_length=50)),
                ("booking_uid", models.CharField(blank=True, db_index=True, max_length=64)),
                ("url", models.URLField(max_length=2000)),
                (
                    "status",
                    models.CharField(
                        choices=WEBHOOK_DELIVERY_STATUS_CHOICES, default="pending", max_length=50
                    ),
                ),
                ("headers", models.JSONField(default=dict)),
                ("body", models.JSONField()),
                ("response_status", models.PositiveIntegerField(blank=True, null=True)),
                ("response_body", models.JSONField(blank=True, null=True)),
                ("response_headers", models.JSONField(blank=True, null=True)),
                ("retry_number", models.PositiveIntegerField(default=0)),
                ("send_after", models.DateTimeField(blank=True, null=True)),
                (
                    "first_attempt",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="retries",
                        to="webhooks.webhookdelivery",
                    ),
                ),
                (
                    "subscription",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="deliveries",
                        to="webhooks.webhooksubscription",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="webhook_deliveries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-created", "-id"),
                "verbose_name_plural": "webhook deliveries",
            },
        ),
    ]
