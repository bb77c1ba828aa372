from typing import TYPE_CHECKING

from calendar_integration.constants import CalendarProvider
from calendar_integration.exceptions import UnsupportedCalendarProviderError
from calendar_integration.services.protocols.calendar_adapter import CalendarAdapter


if TYPE_CHECKING:
    from calendar_integration.models import CalendarCredential


def get_calendar_adapter_cls_for_provider(provider: str) -> type[CalendarAdapter]:
    if provider == CalendarProvider.GOOGLE:
        from calendar_integration.services.calendar_adapters.google_calendar_adapter import (
            GoogleCalendarAdapter,
        )

        return GoogleCalendarAdapter

    if provider == CalendarProvider.MICROSOFT:
        from calendar_integration.services.calendar_adapters.ms_outlook_calendar_adapter import (
            MSOutlookCalendarAdapter,
        )

        return MSOutlookCalendarAdapter

    raise UnsupportedCalendarProviderError(provider)


def get_calendar_adapter_for_credential(credential: "CalendarCredential") -> CalendarAdapter:
    adapter_cls = get_calendar_adapter_cls_for_provider(credential.provider)
    return adapter_cls(credential.to_credentials_dict())  # type: ignore[arg-type]
