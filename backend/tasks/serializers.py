# tasks/serializers.py

from rest_framework import serializers

from progress.serializers import UserStatsSerializer
from .domain import PRIORITIES


class TaskSerializer(serializers.Serializer):
    """Read-only rendering of ``tasks.domain.TaskItem``."""
    id = serializers.UUIDField(read_only=True)
    text = serializers.CharField(read_only=True)
    completed = serializers.BooleanField(read_only=True)
    category = serializers.CharField(read_only=True)
    priority = serializers.CharField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)
    completed_at = serializers.DateTimeField(read_only=True, allow_null=True)
    start_date = serializers.DateField(read_only=True, allow_null=True)
    end_date = serializers.DateField(read_only=True, allow_null=True)
    start_time = serializers.CharField(read_only=True, allow_null=True)
    end_time = serializers.CharField(read_only=True, allow_null=True)
    reminder_time = serializers.DateTimeField(read_only=True, allow_null=True)


class _TaskScheduleFields(serializers.Serializer):
    start_date = serializers.DateField(required=False, allow_null=True)
    end_date = serializers.DateField(required=False, allow_null=True)
    start_time = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=16)
    end_time = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=16)
    reminder_time = serializers.DateTimeField(required=False, allow_null=True)

    def validate(self, attrs):
        start, end = attrs.get("start_date"), attrs.get("end_date")
        if start and end and end < start:
            raise serializers.ValidationError({"end_date": "end_date cannot be before start_date."})
        for key in ("start_time", "end_time"):
            if key in attrs and not attrs[key]:
                attrs[key] = None
        return attrs


class TaskCreateSerializer(_TaskScheduleFields):
    # Text, category and priority are checked by the task service.
    text = serializers.CharField(allow_blank=True, trim_whitespace=False, max_length=500)
    category = serializers.CharField(required=False, default="other", max_length=50)
    priority = serializers.CharField(required=False, default="medium")


class TaskUpdateSerializer(_TaskScheduleFields):
    text = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False, max_length=500)
    category = serializers.CharField(required=False, max_length=50)
    priority = serializers.CharField(required=False)


class TaskFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=("all", "ongoing", "finished"), required=False, default="all")
    category = serializers.CharField(required=False, default="all")
    priority = serializers.ChoiceField(choices=("all",) + PRIORITIES, required=False, default="all")


class TaskChangeSerializer(serializers.Serializer):
    """Response body of every mutation: the task, stats after it, and the sync outcome."""
    task = TaskSerializer(allow_null=True)
    stats = UserStatsSerializer()
    changed = serializers.BooleanField()
    leveled_up = serializers.BooleanField()
    sync = serializers.SerializerMethodField()

    def get_sync(self, obj):
        return obj.sync.as_dict()
