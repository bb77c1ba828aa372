from common.types import RouteDict

from .views import BookingViewSet, EventTypeViewSet


routes: list[RouteDict] = [
    {"regex": r"bookings", "viewset": BookingViewSet, "basename": "Bookings"},
    {"regex": r"event-types", "viewset": EventTypeViewSet, "basename": "EventTypes"},
]
