import django_virtual_models as v

from bookings.models import Attendee, Booking, EventType
from payments.virtual_models import PaymentVirtualModel
from users.models import User


class HostVirtualModel(v.VirtualModel):
    class Meta:
        model = User


class EventTypeVirtualModel(v.VirtualModel):
    class Meta:
        model = EventType


class AttendeeVirtualModel(v.VirtualModel):
    class Meta:
        model = Attendee


class BookingVirtualModel(v.VirtualModel):
    event_type = EventTypeVirtualModel()
    host = HostVirtualModel()
    attendees = AttendeeVirtualModel(many=True)
    payment = PaymentVirtualModel()

    class Meta:
        model = Booking
