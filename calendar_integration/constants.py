from django.db.models import TextChoices


class CalendarProvider(TextChoices):
    INTERNAL = "internal", "Internal Calendar"
    GOOGLE = "google", "Google Calendar"
    MICROSOFT = "microsoft", "Microsoft Outlook Calendar"
    APPLE = "apple", "Apple Calendar"
    ICS = "ics", "ICS"


# providers with a calendar adapter; busy times are only fetched for these
CALENDAR_INTEGRATION_PROVIDERS = frozenset({CalendarProvider.GOOGLE, CalendarProvider.MICROSOFT})


EXTERNAL_BUSY_SOURCE_PREFIX = "credential"
INTERNAL_BUSY_SOURCE_TEMPLATE = "eventType-{event_type_id}-booking-{booking_id}"
