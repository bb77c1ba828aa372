from django.contrib import admin

from webhooks.models import WebhookDelivery, WebhookSubscription


@admin.register(WebhookSubscription)
class WebhookSubscriptionAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "subscriber_url", "event_type", "active", "deleted_at")
    list_filter = ("active",)
    search_fields = ("subscriber_url", "user__email")
    raw_id_fields = ("user", "event_type")


@admin.register(WebhookDelivery)
class WebhookDeliveryAdmin(admin.ModelAdmin):
    list_display = ("id", "trigger", "booking_uid", "url", "status", "retry_number", "created")
    list_filter = ("status", "trigger")
    search_fields = ("booking_uid", "url")
    raw_id_fields = ("user", "subscription", "first_attempt")
    readonly_fields = ("body", "response_status", "response_body", "response_headers")
