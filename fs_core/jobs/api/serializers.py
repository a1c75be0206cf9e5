# fs_core/jobs/api/serializers.py
from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from fs_core.common.api.fields import MoneyField, StatusInfoField
from fs_core.jobs.models import (
    AssignmentRole,
    Job,
    JobAssignment,
    JobChecklist,
    JobEvent,
    JobNote,
    JobPhoto,
    JobPriority,
    JobType,
    NoteType,
)
from fs_core.workflow.machines import JOB_BILLING_EVENTS, JOB_MACHINE, JobStatus


class JobAssignmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = JobAssignment
        fields = ["id", "job", "technician_id", "role", "assigned_by_id", "acknowledged_at", "created_at"]
        read_only_fields = fields


class JobNoteSerializer(serializers.ModelSerializer):
    class Meta:
        model = JobNote
        fields = ["id", "job", "note", "note_type", "is_customer_visible", "user_id", "created_at"]
        read_only_fields = fields


class JobPhotoSerializer(serializers.ModelSerializer):
    class Meta:
        model = JobPhoto
        fields = ["id", "job", "photo_url", "caption", "photo_type", "uploaded_by_id", "created_at"]
        read_only_fields = fields


class JobChecklistSerializer(serializers.ModelSerializer):
    class Meta:
        model = JobChecklist
        fields = [
            "id",
            "job",
            "name",
            "checklist_type",
            "items",
            "completed_at",
            "completed_by_id",
            "created_at",
        ]
        read_only_fields = fields


class JobEventSerializer(serializers.ModelSerializer):
    timestamp = serializers.DateTimeField(source="occurred_at", read_only=True)

    class Meta:
        model = JobEvent
        fields = ["id", "job", "event_type", "from_state", "to_state", "payload", "actor_id", "timestamp"]
        read_only_fields = fields


class JobSerializer(serializers.ModelSerializer):
    status_info = StatusInfoField(JOB_MACHINE)
    allowed_events = serializers.SerializerMethodField()
    assignments = JobAssignmentSerializer(many=True, read_only=True)

    class Meta:
        model = Job
        fields = [
            "id",
            "job_number",
            "customer_id",
            "customer_name",
            "customer_email",
            "site_address",
            "quote",
            "job_type",
            "priority",
            "status",
            "status_info",
            "allowed_events",
            "held_from_status",
            "description",
            "scope_summary",
            "scheduled_date",
            "scheduled_time_start",
            "scheduled_time_end",
            "actual_start_time",
            "actual_end_time",
            "completed_at",
            "completion_notes",
            "total_amount",
            "assignments",
            "created_by_id",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_allowed_events(self, obj) -> list[str]:
        resume_to = obj.held_from_status or None
        return [
            str(ev) for ev in JOB_MACHINE.allowed_events(obj.status)
            if ev not in JOB_BILLING_EVENTS and JOB_MACHINE.can_transition(obj.status, ev, resume_to=resume_to)
        ]


class JobDetailSerializer(JobSerializer):
    notes = JobNoteSerializer(many=True, read_only=True)
    photos = JobPhotoSerializer(many=True, read_only=True)
    checklists = JobChecklistSerializer(many=True, read_only=True)

    class Meta(JobSerializer.Meta):
        fields = JobSerializer.Meta.fields + ["notes", "photos", "checklists"]
        read_only_fields = fields


class JobCreateSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    customer_name = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
    customer_email = serializers.EmailField(required=False, allow_blank=True, default="")
    site_address = serializers.CharField(required=False, allow_blank=True, default="", max_length=500)
    job_type = serializers.ChoiceField(choices=JobType.choices, default=JobType.SERVICE_CALL)
    priority = serializers.ChoiceField(choices=JobPriority.choices, default=JobPriority.NORMAL)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    scope_summary = serializers.CharField(required=False, allow_blank=True, default="")
    scheduled_date = serializers.DateField(required=False, allow_null=True)
    scheduled_time_start = serializers.TimeField(required=False, allow_null=True)
    scheduled_time_end = serializers.TimeField(required=False, allow_null=True)
    total_amount = MoneyField(required=False, allow_null=True, min_value=Decimal("0.00"))


class JobFromQuoteSerializer(serializers.Serializer):
    job_type = serializers.ChoiceField(choices=JobType.choices, default=JobType.REPAIR)
    priority = serializers.ChoiceField(choices=JobPriority.choices, default=JobPriority.NORMAL)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    scope_summary = serializers.CharField(required=False, allow_blank=True, default="")
    scheduled_date = serializers.DateField(required=False, allow_null=True)
    scheduled_time_start = serializers.TimeField(required=False, allow_null=True)
    scheduled_time_end = serializers.TimeField(required=False, allow_null=True)


JOB_MACHINE_EVENTS = (
    {str(ev) for (_src, ev) in JOB_MACHINE.transitions}
    | {str(ev) for ev in JOB_MACHINE.universal}
    | {str(JOB_MACHINE.hold_event), str(JOB_MACHINE.resume_event)}
)

JOB_PATCH_ACTIONS = ("add_note", "add_photo", "assign_user", "remove_assignment", "acknowledge")


class JobPatchSerializer(serializers.Serializer):
    """
    PATCH /jobs/{id}/ accepts one of:
      {"status": "<target>"}                 resolved to the single event reaching it
      {"action": "<event>"}                  start, complete, hold, resume, cancel, ...
      {"action": "add_note" | "add_photo" | "assign_user" | "remove_assignment" | "acknowledge", ...}
      plain field edits (customer_name, priority, scheduled_date, ...)
    """
    action = serializers.CharField(required=False)
    status = serializers.ChoiceField(choices=JobStatus.choices, required=False)
    version = serializers.IntegerField(required=False, min_value=1)

    customer_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    customer_email = serializers.EmailField(required=False, allow_blank=True)
    site_address = serializers.CharField(required=False, allow_blank=True, max_length=500)
    job_type = serializers.ChoiceField(choices=JobType.choices, required=False)
    priority = serializers.ChoiceField(choices=JobPriority.choices, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    scope_summary = serializers.CharField(required=False, allow_blank=True)
    scheduled_date = serializers.DateField(required=False, allow_null=True)
    scheduled_time_start = serializers.TimeField(required=False, allow_null=True)
    scheduled_time_end = serializers.TimeField(required=False, allow_null=True)
    total_amount = MoneyField(required=False, allow_null=True, min_value=Decimal("0.00"))
    completion_notes = serializers.CharField(required=False, allow_blank=True)

    # action payloads
    note = serializers.CharField(required=False, allow_blank=True)
    note_type = serializers.ChoiceField(choices=NoteType.choices, required=False)
    is_customer_visible = serializers.BooleanField(required=False)
    photo_url = serializers.URLField(required=False, max_length=1000)
    caption = serializers.CharField(required=False, allow_blank=True, max_length=255)
    photo_type = serializers.CharField(required=False, allow_blank=True, max_length=32)
    user_id = serializers.IntegerField(required=False)
    role = serializers.ChoiceField(choices=AssignmentRole.choices, required=False)

    def validate(self, attrs):
        action = attrs.get("action")
        if action and "status" in attrs:
            raise serializers.ValidationError("Send either 'status' or 'action', not both.")
        if action and action not in JOB_PATCH_ACTIONS and action not in JOB_MACHINE_EVENTS:
            raise serializers.ValidationError({"action": f"Unknown action '{action}'."})
        return attrs

JOB_DETAIL_FIELDS = (
    "customer_name", "customer_email", "site_address", "job_type", "priority", "description",
    "scope_summary", "scheduled_date", "scheduled_time_start", "scheduled_time_end",
    "total_amount", "completion_notes",
)


class AssignmentCreateSerializer(serializers.Serializer):
    technician_id = serializers.IntegerField()
    role = serializers.ChoiceField(choices=AssignmentRole.choices, default=AssignmentRole.TECHNICIAN)


class NoteCreateSerializer(serializers.Serializer):
    note = serializers.CharField()
    note_type = serializers.ChoiceField(choices=NoteType.choices, default=NoteType.GENERAL)
    is_customer_visible = serializers.BooleanField(default=False)


class PhotoCreateSerializer(serializers.Serializer):
    photo_url = serializers.URLField(max_length=1000)
    caption = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
    photo_type = serializers.CharField(required=False, allow_blank=True, default="general", max_length=32)


class ChecklistCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    checklist_type = serializers.CharField(required=False, allow_blank=True, default="general", max_length=32)
    items = serializers.ListField(child=serializers.JSONField(), required=False, default=list)


class ChecklistCompleteSerializer(serializers.Serializer):
    items = serializers.ListField(child=serializers.JSONField(), required=False, allow_null=True, default=None)
