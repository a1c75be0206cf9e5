from rest_framework import serializers

from fs_core.audit.models import AuditEvent


class AuditEventSerializer(serializers.ModelSerializer):
    timestamp = serializers.DateTimeField(source="occurred_at", read_only=True)
    actor_user_id = serializers.IntegerField(read_only=True)
    actor_username = serializers.SerializerMethodField()

    class Meta:
        model = AuditEvent
        fields = [
            "id",
            "entity_type",
            "entity_id",
            "event_code",
            "actor_user_id",
            "actor_username",
            "timestamp",
            "metadata",
        ]
        read_only_fields = fields

    def get_actor_username(self, obj) -> str | None:
        user = obj.actor_user
        return None if user is None else user.get_username()
