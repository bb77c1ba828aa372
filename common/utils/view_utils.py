from django.shortcuts import get_object_or_404

import django_virtual_models as v
from rest_framework import generics, mixins, status
from rest_framework.response import Response
from rest_framework.viewsets import ModelViewSet, ViewSetMixin


class ReadWriteSerializersMixin:
    """
    Lets a viewset declare ``read_serializer_class`` and ``write_serializer_class`` next to
    ``serializer_class``. Writes validate with the write serializer and answer with the read one.
    """

    def get_read_serializer_class(self):
        return getattr(self, "read_serializer_class", None) or self.get_serializer_class()

    def get_write_serializer_class(self):
        return getattr(self, "write_serializer_class", None) or self.get_serializer_class()

    def get_read_serializer(self, *args, **kwargs):
        kwargs["context"] = self.get_serializer_context()
        return self.get_read_serializer_class()(*args, **kwargs)

    def get_write_serializer(self, *args, **kwargs):
        kwargs["context"] = self.get_serializer_context()
        return self.get_write_serializer_class()(*args, **kwargs)

    def get_return_object(self, instance):
        # re-fetches the instance so we get annotations, prefetches, and selects
        queryset = (
            self.get_return_queryset()
            if hasattr(self, "get_return_queryset")
            else self.get_queryset()
        )
        obj = get_object_or_404(queryset, pk=instance.pk)
        self.check_object_permissions(self.request, obj)
        return obj


class CreateModelMixin(ReadWriteSerializersMixin, mixins.CreateModelMixin):
    def create(self, request, *args, **kwargs):
        serializer = self.get_write_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)
        return_serializer = self.get_read_serializer(self.get_return_object(serializer.instance))
        headers = self.get_success_headers(return_serializer.data)
        return Response(return_serializer.data, status=status.HTTP_201_CREATED, headers=headers)


class UpdateModelMixin(ReadWriteSerializersMixin, mixins.UpdateModelMixin):
    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        instance = self.get_object()
        serializer = self.get_write_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        self.perform_update(serializer)
        return Response(self.get_read_serializer(self.get_return_object(serializer.instance)).data)


class FilterOnlyOnListMixin:
    def filter_queryset(self, queryset):
        if self.action != "list":
            return queryset
        return super().filter_queryset(queryset)


class BookingEngineModelViewSet(
    CreateModelMixin,
    UpdateModelMixin,
    FilterOnlyOnListMixin,
    v.GenericVirtualModelViewMixin,
    ModelViewSet,
):
    """
    Full CRUD viewset. The instance is refetched after writes so responses carry the same
    prefetches as reads.
    """


class ReadOnlyBookingEngineModelViewSet(
    ViewSetMixin,
    ReadWriteSerializersMixin,
    FilterOnlyOnListMixin,
    v.GenericVirtualModelViewMixin,
    mixins.RetrieveModelMixin,
    mixins.ListModelMixin,
    generics.GenericAPIView,
):
    """List and retrieve only. Extra ``@action``s may still write."""
