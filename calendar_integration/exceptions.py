# Service Layer/Internal Errors
class CalendarIntegrationError(Exception):
    """Base exception for calendar integration errors"""

    default_message = ""

    def __init__(self, message: str | None = None):
        if message is None:
            message = self.default_message
        super().__init__(message)


class BusyTimesDependencyError(CalendarIntegrationError):
    """Raised when the internal booking store can't be read while aggregating busy times"""

    default_message = "Could not read bookings from the internal store."


class UnsupportedCalendarProviderError(CalendarIntegrationError):
    def __init__(self, provider: str):
        super().__init__(f"Calendar adapter for provider {provider} is not implemented.")


# Calendar Adapters - External API Errors
class CalendarAdapterError(CalendarIntegrationError):
    """Base class for calendar adapter errors"""

    pass


class GoogleCalendarAdapterError(CalendarAdapterError):
    """Google Calendar specific errors"""

    pass


class MSOutlookAdapterError(CalendarAdapterError):
    """Microsoft Outlook specific errors"""

    pass


class InvalidCredentialsError(CalendarAdapterError):
    """Raised when calendar credentials are invalid or expired"""

    pass


class GoogleCredentialsError(InvalidCredentialsError, GoogleCalendarAdapterError):
    default_message = "Invalid or expired Google credentials provided."


class MSGraphCredentialsError(InvalidCredentialsError, MSOutlookAdapterError):
    default_message = "Invalid or expired Microsoft Graph credentials provided."


class MSGraphAPIError(MSOutlookAdapterError):
    """Microsoft Graph returned an error or couldn't be reached"""

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}
