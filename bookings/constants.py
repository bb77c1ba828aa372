from django.db.models import TextChoices
from django.utils.translation import gettext_lazy as _


class BookingStatus(TextChoices):
    PENDING = ("pending", _("Pending"))
    ACCEPTED = ("accepted", _("Accepted"))
    CANCELLED = ("cancelled", _("Cancelled"))
    REJECTED = ("rejected", _("Rejected"))


class SchedulingType(TextChoices):
    COLLECTIVE = ("collective", _("Collective"))
    ROUND_ROBIN = ("round_robin", _("Round robin"))


class PeriodType(TextChoices):
    UNLIMITED = ("unlimited", _("Unlimited"))
    ROLLING = ("rolling", _("Rolling"))
    RANGE = ("range", _("Range"))


class BookingLimitPeriod(TextChoices):
    PER_DAY = ("PER_DAY", _("Per day"))
    PER_WEEK = ("PER_WEEK", _("Per week"))
    PER_MONTH = ("PER_MONTH", _("Per month"))
    PER_YEAR = ("PER_YEAR", _("Per year"))


class ConfirmationThresholdUnit(TextChoices):
    MINUTES = ("minutes", _("Minutes"))
    HOURS = ("hours", _("Hours"))
    DAYS = ("days", _("Days"))


class CustomInputType(TextChoices):
    TEXT = ("TEXT", _("Text"))
    TEXTLONG = ("TEXTLONG", _("Long text"))
    NUMBER = ("NUMBER", _("Number"))
    BOOL = ("BOOL", _("Checkbox"))
    EMAIL = ("EMAIL", _("Email"))
    PHONE = ("PHONE", _("Phone"))


class RecurringFrequency(TextChoices):
    DAILY = ("daily", _("Daily"))
    WEEKLY = ("weekly", _("Weekly"))
    MONTHLY = ("monthly", _("Monthly"))
    YEARLY = ("yearly", _("Yearly"))


class BookingRejectionCode(TextChoices):
    VALIDATION_ERROR = ("validation_error", _("Validation error"))
    OUT_OF_BOUNDS = ("out_of_bounds", _("Out of bounds"))
    NOT_FOUND = ("not_found", _("Not found"))
    UNAVAILABLE = ("unavailable", _("Unavailable"))
    CONFLICT = ("conflict", _("Conflict"))


# statuses that still hold the time slot of a booking
ACTIVE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.ACCEPTED})
