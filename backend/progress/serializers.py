# progress/serializers.py

from rest_framework import serializers


class UserStatsSerializer(serializers.Serializer):
    """Read-only view of ``progress.engine.UserStats`` plus level progress."""
    xp = serializers.IntegerField(read_only=True)
    level = serializers.IntegerField(read_only=True)
    streak = serializers.IntegerField(read_only=True)
    last_task_date = serializers.DateField(read_only=True, allow_null=True)
    xp_in_level = serializers.IntegerField(read_only=True)
    xp_required = serializers.IntegerField(read_only=True)


class CategorySerializer(serializers.Serializer):
    name = serializers.CharField(max_length=50, allow_blank=True, trim_whitespace=True)
