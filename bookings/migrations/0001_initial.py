import django.core.validators
import django.db.models.deletion
import django.utils.timezone
import model_utils.fields
from django.conf import settings
from django.db import migrations, models


CALENDAR_PROVIDER_CHOICES = [
    ("internal", "Internal Calendar"),
    ("google", "Google Calendar"),
    ("microsoft", "Microsoft Outlook Calendar"),
    ("apple", "Apple Calendar"),
    ("ics", "ICS"),
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
        ("calendar_integration", "0001_initial"),
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="EventType",
            fields=[
                *base_model_fields(),
                ("slug", models.SlugField(max_length=255, unique=True)),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                (
                    "length_minutes",
                    models.PositiveIntegerField(
                        validators=[django.core.validators.MinValueValidator(1)]
                    ),
                ),
                ("before_event_buffer", models.PositiveIntegerField(default=0)),
                ("after_event_buffer", models.PositiveIntegerField(default=0)),
                (
                    "minimum_booking_notice",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Minutes between now and the earliest bookable start.",
                    ),
                ),
                (
                    "slot_interval",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Minutes between slot starts. Defaults to the length.",
                        null=True,
                    ),
                ),
                (
                    "scheduling_type",
                    models.CharField(
                        blank=True,
                        choices=[("collective", "Collective"), ("round_robin", "Round robin")],
                        max_length=50,
                        null=True,
                    ),
                ),
                (
                    "seats_per_time_slot",
                    models.PositiveIntegerField(
                        blank=True,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                ("booking_limits", models.JSONField(blank=True, default=dict)),
                ("requires_confirmation", models.BooleanField(default=False)),
                ("requires_confirmation_threshold", models.JSONField(blank=True, null=True)),
                (
                    "price",
                    models.PositiveIntegerField(default=0, help_text="Minor currency units."),
                ),
                ("currency", models.CharField(default="usd", max_length=10)),
                (
                    "period_type",
                    models.CharField(
                        choices=[
                            ("unlimited", "Unlimited"),
                            ("rolling", "Rolling"),
                            ("range", "Range"),
                        ],
                        default="unlimited",
                        max_length=50,
                    ),
                ),
                ("period_days", models.PositiveIntegerField(blank=True, null=True)),
                ("period_count_calendar_days", models.BooleanField(default=True)),
                ("period_start_date", models.DateField(blank=True, null=True)),
                ("period_end_date", models.DateField(blank=True, null=True)),
                ("recurring_event", models.JSONField(blank=True, null=True)),
                ("custom_inputs", models.JSONField(blank=True, default=list)),
                ("time_zone", models.CharField(default="UTC", max_length=64)),
                ("location", models.CharField(blank=True, max_length=255)),
                (
                    "request_conference",
                    models.BooleanField(
                        default=False,
                        help_text="Ask the calendar provider for a video conference link.",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="owned_event_types",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="EventTypeHost",
            fields=[
                *base_model_fields(),
                ("priority", models.PositiveIntegerField(default=0)),
                (
                    "event_type",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="hosts",
                        to="bookings.eventtype",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="event_type_hosts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("priority", "id"),
                "constraints": [
                    models.UniqueConstraint(
                        fields=("event_type", "user"), name="unique_host_per_event_type"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="WorkingHours",
            fields=[
                *base_model_fields(),
                ("days", models.JSONField(default=list)),
                ("start_time", models.TimeField()),
                ("end_time", models.TimeField()),
                (
                    "event_type",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="working_hours",
                        to="bookings.eventtype",
                    ),
                ),
            ],
            options={
                "ordering": ("start_time", "id"),
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("end_time__gt", models.F("start_time"))),
                        name="working_hours_end_after_start",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="DateOverride",
            fields=[
                *base_model_fields(),
                ("date", models.DateField()),
                ("start_time", models.TimeField()),
                ("end_time", models.TimeField()),
                (
                    "event_type",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="date_overrides",
                        to="bookings.eventtype",
                    ),
                ),
            ],
            options={
                "ordering": ("date", "start_time", "id"),
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("end_time__gt", models.F("start_time"))),
                        name="date_override_end_after_start",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
                *base_model_fields(),
                (
                    "start_time",
                    models.DateTimeField(db_index=True, verbose_name="start time"),
                ),
                ("end_time", models.DateTimeField(db_index=True, verbose_name="end time")),
                ("uid", models.CharField(max_length=64, unique=True)),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("accepted", "Accepted"),
                            ("cancelled", "Cancelled"),
                            ("rejected", "Rejected"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=50,
                    ),
                ),
                (
                    "recurring_event_id",
                    models.CharField(blank=True, db_index=True, max_length=255),
                ),
                (
                    "from_reschedule",
                    models.CharField(
                        blank=True,
                        help_text="uid of the booking this one replaced.",
                        max_length=64,
                    ),
                ),
                ("rescheduled", models.BooleanField(default=False)),
                ("paid", models.BooleanField(default=False)),
                ("cancellation_reason", models.TextField(blank=True)),
                ("rejection_reason", models.TextField(blank=True)),
                ("responses", models.JSONField(blank=True, default=dict)),
                ("location", models.CharField(blank=True, max_length=255)),
                (
                    "event_type",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="bookings.eventtype",
                    ),
                ),
                (
                    "host",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="hosted_bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="bookings",
                        to="payments.payment",
                    ),
                ),
            ],
            options={
                "ordering": ("start_time", "id"),
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("end_time__gt", models.F("start_time"))),
                        name="booking_end_after_start",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Attendee",
            fields=[
                *base_model_fields(),
                ("email", models.EmailField(max_length=255)),
                ("name", models.CharField(max_length=255)),
                ("time_zone", models.CharField(default="UTC", max_length=64)),
                ("locale", models.CharField(default="en", max_length=16)),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attendees",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "ordering": ("id",),
                "constraints": [
                    models.UniqueConstraint(
                        fields=("booking", "email"), name="unique_attendee_email_per_booking"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="BookingReference",
            fields=[
                *base_model_fields(),
                (
                    "provider",
                    models.CharField(choices=CALENDAR_PROVIDER_CHOICES, max_length=50),
                ),
                ("calendar_external_id", models.CharField(max_length=255)),
                ("external_id", models.CharField(max_length=255)),
                ("meeting_url", models.URLField(blank=True, max_length=1024)),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="references",
                        to="bookings.booking",
                    ),
                ),
                (
                    "credential",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="booking_references",
                        to="calendar_integration.calendarcredential",
                    ),
                ),
            ],
            options={
                "abstract": False,
            },
        ),
    ]
