from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _

from model_utils.fields import AutoCreatedField, AutoLastModifiedField


class IndexedTimeStampedModel(models.Model):
    created = AutoCreatedField(_("created"), db_index=True)
    modified = AutoLastModifiedField(_("modified"), db_index=True)

    class Meta:
        abstract = True


class MetaJsonFieldModel(models.Model):
    meta = models.JSONField(_("meta"), default=dict, blank=True)

    class Meta:
        abstract = True


class BaseModel(IndexedTimeStampedModel, MetaJsonFieldModel):
    class Meta(IndexedTimeStampedModel.Meta, MetaJsonFieldModel.Meta):
        abstract = True


class TimeRangeModel(models.Model):
    """
    Half-open ``[start_time, end_time)`` range. The database enforces ``end_time > start_time``
    through the concrete model's constraints, ``clean`` reports it on forms and serializers.
    """

    start_time = models.DateTimeField(_("start time"), db_index=True)
    end_time = models.DateTimeField(_("end time"), db_index=True)

    class Meta:
        abstract = True

    def clean(self):
        super().clean()
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValidationError({"end_time": _("End time must be after start time.")})

    @property
    def duration(self):
        return self.end_time - self.start_time

    def overlaps(self, start_time, end_time) -> bool:
        return self.start_time < end_time and self.end_time > start_time
