import datetime
from collections.abc import Iterable
from typing import Protocol

from calendar_integration.services.dataclasses import (
    BusyInterval,
    CalendarData,
    CalendarEventAdapterInputData,
    CalendarEventAdapterOutputData,
    SelectedCalendarData,
)


class CalendarAdapter(Protocol):
    provider: str

    def __init__(self, credentials_dict: dict):
        ...

    def list_calendars(self) -> Iterable[CalendarData]:
        """
        Retrieve the calendars the account can read.
        :return: Iterable of CalendarData.
        """
        ...

    def get_availability(
        self,
        date_from: datetime.datetime,
        date_to: datetime.datetime,
        selected_calendars: Iterable[SelectedCalendarData],
    ) -> list[BusyInterval]:
        """
        Retrieve busy intervals in ``[date_from, date_to)`` for the selected calendars. When no
        calendar is selected the account's primary calendar is used.
        May raise; callers treat failures as an empty result.
        """
        ...

    def create_event(
        self, event_data: CalendarEventAdapterInputData
    ) -> CalendarEventAdapterOutputData:
        """
        Create a new event in the calendar.
        :param event_data: event details, including the destination calendar.
        :return: the remote event, with conferencing link when one was requested.
        """
        ...

    def update_event(
        self, calendar_id: str, event_id: str, event_data: CalendarEventAdapterInputData
    ) -> CalendarEventAdapterOutputData:
        """
        Update an existing event in the calendar.
        :param event_id: Unique identifier of the event to update.
        :param event_data: updated event details.
        """
        ...

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        """
        Delete an event from the calendar.
        :param event_id: Unique identifier of the event to delete.
        """
        ...
