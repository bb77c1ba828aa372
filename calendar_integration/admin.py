from django.contrib import admin

from calendar_integration.models import CalendarCredential, SelectedCalendar


@admin.register(CalendarCredential)
class CalendarCredentialAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "provider", "account_id", "invalid", "created")
    list_filter = ("provider", "invalid")
    search_fields = ("user__email", "account_id")
    exclude = ("token", "refresh_token")


@admin.register(SelectedCalendar)
class SelectedCalendarAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "integration", "external_id", "is_destination", "credential")
    list_filter = ("integration", "is_destination")
    search_fields = ("user__email", "external_id")
