from django.db import models

from encrypted_fields.fields import EncryptedTextField  # type:ignore

from calendar_integration.constants import CALENDAR_INTEGRATION_PROVIDERS, CalendarProvider
from common.models import BaseModel
from users.models import User


class CalendarCredentialQuerySet(models.QuerySet):
    def calendar_integrations(self):
        return self.filter(provider__in=CALENDAR_INTEGRATION_PROVIDERS, invalid=False)


class CalendarCredential(BaseModel):
    """
    A host's connection to an external calendar provider. Tokens are stored encrypted and
    refreshed by the provider SDKs, the booking engine only reads them.
    """

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="calendar_credentials")
    provider = models.CharField(max_length=50, choices=CalendarProvider)
    account_id = models.CharField(max_length=255)
    token = EncryptedTextField()
    refresh_token = EncryptedTextField(blank=True, default="")
    invalid = models.BooleanField(
        default=False,
        help_text="Set when the provider rejects the stored tokens.",
    )

    objects = CalendarCredentialQuerySet.as_manager()

    selected_calendars: "models.Manager[SelectedCalendar]"

    def __str__(self):
        return f"CalendarCredential(id={self.pk}, provider={self.provider}, user={self.user_id})"

    @property
    def is_calendar_integration(self) -> bool:
        return self.provider in CALENDAR_INTEGRATION_PROVIDERS

    def to_credentials_dict(self) -> dict[str, str]:
        return {
            "token": self.token,
            "refresh_token": self.refresh_token,
            "account_id": self.account_id,
        }


class SelectedCalendar(BaseModel):
    """
    An external calendar whose busy times count against the host's availability.
    ``is_destination`` marks where new bookings are written.
    """

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="selected_calendars")
    credential = models.ForeignKey(
        CalendarCredential,
        on_delete=models.CASCADE,
        related_name="selected_calendars",
        null=True,
        blank=True,
    )
    integration = models.CharField(max_length=50, choices=CalendarProvider)
    external_id = models.CharField(max_length=255)
    name = models.CharField(max_length=255, blank=True)
    is_destination = models.BooleanField(default=False)

    class Meta:
        constraints = [  # noqa: RUF012
            models.UniqueConstraint(
                fields=["user", "integration", "external_id"],
                name="unique_selected_calendar_per_user",
            ),
        ]

    def __str__(self):
        return f"SelectedCalendar(id={self.pk}, integration={self.integration}, external_id={self.external_id})"
