"""
Serializers for report models.

No business logic in serializers - validation only.
All mutations flow through service layer.
"""

from django.core.files.storage import default_storage
from rest_framework import serializers

from apps.reports.models import HistoryEntry, Report
from apps.reports import services


class HistoryEntrySerializer(serializers.ModelSerializer):
    """Serializer for one HistoryEntry."""

    actorId = serializers.UUIDField(source="actor_id", read_only=True, allow_null=True)
    actorName = serializers.SerializerMethodField()
    attachmentRef = serializers.CharField(source="attachment_ref", read_only=True)

    class Meta:
        model = HistoryEntry
        fields = [
            "sequence",
            "status",
            "actorId",
            "actorName",
            "note",
            "attachmentRef",
            "timestamp",
        ]
        read_only_fields = fields

    def get_actorName(self, obj):
        if obj.actor_id is None:
            return None
        return obj.actor.display_name or obj.actor.username


class ReportSerializer(serializers.ModelSerializer):
    """Serializer for Report list rows."""

    id = serializers.UUIDField(read_only=True)
    reporterId = serializers.UUIDField(source="reporter_id", read_only=True)
    reporterName = serializers.CharField(source="reporter.display_name", read_only=True)
    photoRef = serializers.CharField(source="photo_ref", read_only=True)
    photoUrl = serializers.SerializerMethodField()
    location = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Report
        fields = [
            "id",
            "reporterId",
            "reporterName",
            "description",
            "photoRef",
            "photoUrl",
            "location",
            "address",
            "status",
            "version",
            "createdAt",
            "updatedAt",
        ]
        read_only_fields = fields

    def get_photoUrl(self, obj):
        return default_storage.url(obj.photo_ref)

    def get_location(self, obj):
        return {"latitude": obj.latitude, "longitude": obj.longitude}


class ReportDetailSerializer(ReportSerializer):
    """Serializer for Report detail with history and next allowed statuses."""

    history = serializers.SerializerMethodField()
    allowedTransitions = serializers.SerializerMethodField()

    class Meta(ReportSerializer.Meta):
        fields = ReportSerializer.Meta.fields + ["history", "allowedTransitions"]
        read_only_fields = fields

    def get_history(self, obj):
        entries = obj.history.select_related("actor").order_by("sequence")
        return HistoryEntrySerializer(entries, many=True).data

    def get_allowedTransitions(self, obj):
        return services.allowed_transitions_for(obj, self.context.get("actor"))


class TransitionSerializer(serializers.Serializer):
    """Serializer for a status transition request."""

    status = serializers.CharField(required=True)
    note = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)
    attachmentRef = serializers.CharField(
        required=False, allow_blank=True, source="attachment_ref"
    )
    expectedVersion = serializers.IntegerField(
        required=False, min_value=1, source="expected_version"
    )
