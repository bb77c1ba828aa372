from typing import Protocol, TypedDict

from rest_framework.viewsets import GenericViewSet, ModelViewSet, ViewSet, ViewSetMixin


class RouteDict(TypedDict):
    """
    A router registration: the url prefix, the viewset and the basename for reversing.
    """

    regex: str
    viewset: type[GenericViewSet] | type[ViewSet] | type[ModelViewSet] | type[ViewSetMixin]
    basename: str


class CacheClient(Protocol):
    """
    Minimal key/value store contract, satisfied by ``redis.Redis``.
    """

    def get(self, name: str) -> bytes | None:
        ...

    def set(self, name: str, value: bytes | str, ex: int | None = None) -> bool | None:  # noqa: A003
        ...
