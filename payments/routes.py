from common.types import RouteDict

from .views import PaymentsViewSet


routes: list[RouteDict] = [
    {"regex": r"payments", "viewset": PaymentsViewSet, "basename": "Payments"},
]
