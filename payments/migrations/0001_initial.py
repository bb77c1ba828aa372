import django.db.models.deletion
import django.utils.timezone
import model_utils.fields
from django.conf import settings
from django.db import migrations, models

import common.utils.model_utils


PAYMENT_STATUS_CHOICES = [
    ("pending_send", "Pending send"),
    ("pending", "Pending"),
    ("approved", "Approved"),
    ("rejected", "Rejected"),
    ("cancelled", "Cancelled"),
    ("refunded", "Refunded"),
    ("charged_back", "Charged back"),
    ("in_process", "In process"),
    ("in_mediation", "In mediation"),
    ("expired", "Expired"),
    ("unknown", "Unknown"),
    ("error", "Error"),
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
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                *base_model_fields(),
                (
                    "uid",
                    models.CharField(
                        default=common.utils.model_utils.generate_unique_id,
                        editable=False,
                        max_length=64,
                        unique=True,
                    ),
                ),
                ("amount", models.PositiveIntegerField()),
                ("currency", models.CharField(max_length=10)),
                (
                    "payment_provider",
                    models.CharField(
                        choices=[("mercadopago", "MercadoPago")],
                        default="mercadopago",
                        max_length=50,
                    ),
                ),
                ("external_id", models.CharField(blank=True, max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=PAYMENT_STATUS_CHOICES, default="pending_send", max_length=50
                    ),
                ),
                ("original_status", models.CharField(blank=True, max_length=50)),
                ("checkout_url", models.URLField(blank=True, max_length=1024)),
                ("description", models.TextField(blank=True)),
                ("payer_email", models.EmailField(max_length=255)),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        help_text="Host receiving the payment.",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="received_payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="PaymentStatusUpdate",
            fields=[
                *base_model_fields(),
                ("status", models.CharField(choices=PAYMENT_STATUS_CHOICES, max_length=50)),
                ("description", models.TextField(blank=True)),
                ("external_id", models.CharField(blank=True, max_length=255)),
                (
                    "payment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_updates",
                        to="payments.payment",
                    ),
                ),
            ],
            options={
                "abstract": False,
            },
        ),
    ]
