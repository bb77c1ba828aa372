from typing import TypedDict


class BookingAttendeeWebhookPayload(TypedDict):
    email: str
    name: str
    time_zone: str


class BookingWebhookPayload(TypedDict):
    uid: str
    status: str
    title: str
    description: str
    start_time: str
    end_time: str
    location: str
    host: str
    attendees: list[BookingAttendeeWebhookPayload]
    responses: dict
    recurring_event_id: str | None
    paid: bool
    reason: str | None
    event_type_slug: str
    event_title: str
    event_description: str
    length_minutes: int
    requires_confirmation: bool
    price: int
    currency: str
    reschedule_uid: str | None
    reschedule_start_time: str | None
    reschedule_end_time: str | None


class WebhookBody(TypedDict):
    trigger: str
    created_at: str
    payload: dict
