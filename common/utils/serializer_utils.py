import django_virtual_models as v
from rest_framework import serializers


class VirtualModelSerializer(v.VirtualModelSerializerMixin, serializers.ModelSerializer):
    pass


class TimeZoneField(serializers.CharField):
    """IANA time zone name, validated against the zoneinfo database."""

    default_error_messages = {  # noqa: RUF012
        "invalid_time_zone": "Invalid IANA time zone: {value}",
    }

    def to_internal_value(self, data):
        import zoneinfo

        value = super().to_internal_value(data)
        try:
            zoneinfo.ZoneInfo(value)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            self.fail("invalid_time_zone", value=value)
        return value
