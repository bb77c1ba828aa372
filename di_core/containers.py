from dependency_injector import containers, providers
from vintasend.services.notification_service import NotificationService
from vintasend_django.services.notification_adapters.django_email import (
    DjangoEmailNotificationAdapter,
)
from vintasend_django.services.notification_backends.django_db_notification_backend import (
    DjangoDbNotificationBackend,
)
from vintasend_django.services.notification_template_renderers.django_templated_email_renderer import (
    DjangoTemplatedEmailRenderer,
)

from bookings.services.booking_service import BookingService
from bookings.services.booking_side_effects_service import BookingSideEffectsService
from bookings.services.calendar_event_side_effects import BookingCalendarEventsSideEffectsService
from bookings.services.notification_side_effects import BookingNotificationsSideEffectsService
from bookings.services.reminder_side_effects import BookingRemindersSideEffectsService
from bookings.services.slots_service import SlotsService
from calendar_integration.services.busy_times_service import BusyTimesService
from common.redis import get_redis_connection
from payments.services.payment_adapters.mercadopago_payment_adapter import MercadoPagoPaymentAdapter
from payments.services.payment_service import PaymentService
from webhooks.services import WebhookService
from webhooks.services.webhook_booking_side_effects import WebhookBookingSideEffectsService


class AppContainer(containers.DeclarativeContainer):
    config = providers.Configuration()

    busy_times_cache = providers.Singleton(get_redis_connection)

    busy_times_service = providers.Factory(
        BusyTimesService,
        cache=busy_times_cache,
        cache_ttl_seconds=config.BUSY_TIMES_CACHE_TTL_SECONDS,
        max_concurrency=config.BUSY_TIMES_MAX_CONCURRENCY,
        cache_key_prefix=config.BUSY_TIMES_CACHE_KEY_PREFIX,
    )

    slots_service = providers.Factory(
        SlotsService,
        busy_times_service=busy_times_service,
    )

    payment_gateway = providers.Factory(
        MercadoPagoPaymentAdapter,
        access_token=config.MERCADOPAGO_ACCESS_TOKEN,
    )

    payment_service = providers.Factory(
        PaymentService,
        payment_gateway=payment_gateway,
    )

    notification_service = providers.Singleton(
        NotificationService[
            DjangoEmailNotificationAdapter[
                DjangoDbNotificationBackend, DjangoTemplatedEmailRenderer
            ],
            DjangoDbNotificationBackend,
        ],
        notification_adapters=[
            DjangoEmailNotificationAdapter(
                DjangoTemplatedEmailRenderer(),
                DjangoDbNotificationBackend(),
            ),
        ],
        notification_backend=DjangoDbNotificationBackend(),
    )

    webhook_service = providers.Factory(
        WebhookService,
    )

    booking_notifications_side_effects_service = providers.Factory(
        BookingNotificationsSideEffectsService,
        notification_service=notification_service,
    )

    booking_side_effects_service = providers.Factory(
        BookingSideEffectsService,
        side_effects_pipeline=providers.List(
            providers.Factory(BookingCalendarEventsSideEffectsService),
            booking_notifications_side_effects_service,
            providers.Factory(WebhookBookingSideEffectsService, webhook_service=webhook_service),
            providers.Factory(
                BookingRemindersSideEffectsService,
                reminder_minutes_before=config.BOOKING_REMINDER_MINUTES_BEFORE,
            ),
        ),
    )

    booking_service = providers.Factory(
        BookingService,
        busy_times_service=busy_times_service,
        payment_service=payment_service,
        side_effects_service=booking_side_effects_service,
    )


container: AppContainer | None = None  # set during app startup
