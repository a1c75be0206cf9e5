from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from fs_core.billing.api.serializers import InvoiceSerializer
from fs_core.common.api.pagination import paginate
from fs_core.common.api.utils import actor_id, with_warnings
from fs_core.common.notifications import dispatch
from fs_core.conversions.services import ConversionCoordinator
from fs_core.jobs.api.serializers import (
    JOB_DETAIL_FIELDS,
    AssignmentCreateSerializer,
    ChecklistCompleteSerializer,
    ChecklistCreateSerializer,
    JobAssignmentSerializer,
    JobChecklistSerializer,
    JobCreateSerializer,
    JobDetailSerializer,
    JobEventSerializer,
    JobNoteSerializer,
    JobPatchSerializer,
    JobPhotoSerializer,
    JobSerializer,
    NoteCreateSerializer,
    PhotoCreateSerializer,
)
from fs_core.jobs.models import Job
from fs_core.jobs.selectors import get_job, job_events, jobs_filtered
from fs_core.jobs.services import JobService


class JobViewSet(viewsets.GenericViewSet):
    """
    Jobs:
    - list (django-filter) / retrieve / create
    - PATCH: status change, action, or field edits
    - assignments, notes, photos, checklists, events
    - create-invoice (completed jobs)
    """
    permission_classes = [IsAuthenticated]
    serializer_class = JobSerializer
    queryset = Job.objects.none()

    @extend_schema(
        tags=["Jobs"],
        responses={200: JobSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False, many=True),
            OpenApiParameter(name="priority", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="job_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="customer_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="technician_id", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="scheduled_from", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="scheduled_to", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="search", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = jobs_filtered(params=request.query_params)
        return paginate(request, qs, JobSerializer)

    @extend_schema(tags=["Jobs"], responses={200: JobDetailSerializer})
    def retrieve(self, request, pk=None):
        job = get_job(job_id=UUID(str(pk)))
        return Response(JobDetailSerializer(job).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Jobs"], request=JobCreateSerializer, responses={201: JobSerializer})
    def create(self, request):
        ser = JobCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        job = JobService.create(created_by_id=actor_id(request), **ser.validated_data)
        return Response(JobSerializer(job).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Jobs"], request=JobPatchSerializer, responses={200: JobDetailSerializer})
    def partial_update(self, request, pk=None):
        job_id = UUID(str(pk))
        ser = JobPatchSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        uid = actor_id(request)
        version = data.get("version")
        act = data.get("action")

        if act == "add_note":
            if not data.get("note"):
                raise ValidationError({"note": "This field is required."})
            row = JobService.add_note(
                job_id=job_id,
                note=data["note"],
                note_type=data.get("note_type", "general"),
                is_customer_visible=data.get("is_customer_visible", False),
                user_id=uid,
            )
            return Response(JobNoteSerializer(row).data, status=status.HTTP_200_OK)

        if act == "add_photo":
            if not data.get("photo_url"):
                raise ValidationError({"photo_url": "This field is required."})
            row = JobService.add_photo(
                job_id=job_id,
                photo_url=data["photo_url"],
                caption=data.get("caption", ""),
                photo_type=data.get("photo_type") or "general",
                uploaded_by_id=uid,
            )
            return Response(JobPhotoSerializer(row).data, status=status.HTTP_200_OK)

        if act == "assign_user":
            if data.get("user_id") is None:
                raise ValidationError({"user_id": "This field is required."})
            row = JobService.assign(
                job_id=job_id,
                technician_id=data["user_id"],
                role=data.get("role", "technician"),
                assigned_by_id=uid,
            )
            return Response(JobAssignmentSerializer(row).data, status=status.HTTP_200_OK)

        if act == "remove_assignment":
            if data.get("user_id") is None:
                raise ValidationError({"user_id": "This field is required."})
            JobService.unassign(job_id=job_id, technician_id=data["user_id"], role=data.get("role"), actor_id=uid)
            return Response({"success": True}, status=status.HTTP_200_OK)

        if act == "acknowledge":
            rows = JobService.acknowledge_assignment(job_id=job_id, technician_id=uid)
            return Response(JobAssignmentSerializer(rows, many=True).data, status=status.HTTP_200_OK)

        details = {name: data[name] for name in JOB_DETAIL_FIELDS if name in data}
        completion_notes = details.pop("completion_notes", None)

        JobService.patch(
            job_id=job_id,
            details=details,
            event=act or None,
            status=data.get("status"),
            completion_notes=completion_notes,
            actor_id=uid,
            expected_version=version,
        )
        return Response(JobDetailSerializer(get_job(job_id=job_id)).data, status=status.HTTP_200_OK)

    # -------------------------
    # Assignments
    # -------------------------
    @extend_schema(
        tags=["Jobs"],
        request=AssignmentCreateSerializer,
        responses={200: JobAssignmentSerializer(many=True), 201: JobAssignmentSerializer},
    )
    @action(detail=True, methods=["get", "post"], url_path="assignments")
    def assignments(self, request, pk=None):
        job_id = UUID(str(pk))

        if request.method.lower() == "get":
            job = Job.objects.get(id=job_id)
            return Response(JobAssignmentSerializer(job.assignments.all(), many=True).data, status=status.HTTP_200_OK)

        ser = AssignmentCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        row = JobService.assign(job_id=job_id, assigned_by_id=actor_id(request), **ser.validated_data)
        return Response(JobAssignmentSerializer(row).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Jobs"],
        responses={204: None},
        parameters=[
            OpenApiParameter(name="role", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    @action(detail=True, methods=["delete"], url_path=r"assignments/(?P<technician_id>\d+)")
    def remove_assignment(self, request, pk=None, technician_id=None):
        JobService.unassign(
            job_id=UUID(str(pk)),
            technician_id=int(technician_id),
            role=request.query_params.get("role") or None,
            actor_id=actor_id(request),
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Jobs"], request=None, responses={200: JobAssignmentSerializer(many=True)})
    @action(detail=True, methods=["post"], url_path=r"assignments/(?P<technician_id>\d+)/acknowledge")
    def acknowledge(self, request, pk=None, technician_id=None):
        rows = JobService.acknowledge_assignment(job_id=UUID(str(pk)), technician_id=int(technician_id))
        return Response(JobAssignmentSerializer(rows, many=True).data, status=status.HTTP_200_OK)

    # -------------------------
    # Notes / photos / checklists / events
    # -------------------------
    @extend_schema(
        tags=["Jobs"],
        request=NoteCreateSerializer,
        responses={200: JobNoteSerializer(many=True), 201: JobNoteSerializer},
    )
    @action(detail=True, methods=["get", "post"], url_path="notes")
    def notes(self, request, pk=None):
        job_id = UUID(str(pk))

        if request.method.lower() == "get":
            job = Job.objects.get(id=job_id)
            qs = job.notes.all()
            if request.query_params.get("customer_visible") in {"1", "true", "True"}:
                qs = qs.filter(is_customer_visible=True)
            return Response(JobNoteSerializer(qs, many=True).data, status=status.HTTP_200_OK)

        ser = NoteCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        row = JobService.add_note(job_id=job_id, user_id=actor_id(request), **ser.validated_data)
        return Response(JobNoteSerializer(row).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Jobs"], request=PhotoCreateSerializer, responses={201: JobPhotoSerializer})
    @action(detail=True, methods=["post"], url_path="photos")
    def photos(self, request, pk=None):
        ser = PhotoCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        row = JobService.add_photo(job_id=UUID(str(pk)), uploaded_by_id=actor_id(request), **ser.validated_data)
        return Response(JobPhotoSerializer(row).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Jobs"],
        request=ChecklistCreateSerializer,
        responses={200: JobChecklistSerializer(many=True), 201: JobChecklistSerializer},
    )
    @action(detail=True, methods=["get", "post"], url_path="checklists")
    def checklists(self, request, pk=None):
        job_id = UUID(str(pk))

        if request.method.lower() == "get":
            job = Job.objects.get(id=job_id)
            return Response(JobChecklistSerializer(job.checklists.all(), many=True).data, status=status.HTTP_200_OK)

        ser = ChecklistCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        row = JobService.add_checklist(job_id=job_id, actor_id=actor_id(request), **ser.validated_data)
        return Response(JobChecklistSerializer(row).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Jobs"], request=ChecklistCompleteSerializer, responses={200: JobChecklistSerializer})
    @action(detail=True, methods=["post"], url_path=r"checklists/(?P<checklist_id>[^/.]+)/complete")
    def complete_checklist(self, request, pk=None, checklist_id=None):
        ser = ChecklistCompleteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        row = JobService.complete_checklist(
            job_id=UUID(str(pk)),
            checklist_id=UUID(str(checklist_id)),
            items=ser.validated_data.get("items"),
            actor_id=actor_id(request),
        )
        return Response(JobChecklistSerializer(row).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Jobs"],
        responses={200: JobEventSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="event_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    @action(detail=True, methods=["get"], url_path="events")
    def events(self, request, pk=None):
        job_id = UUID(str(pk))
        Job.objects.get(id=job_id)
        qs = job_events(job_id=job_id, event_type=request.query_params.get("event_type") or None)
        return Response(JobEventSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    # -------------------------
    # Conversion
    # -------------------------
    @extend_schema(tags=["Jobs"], request=None, responses={201: InvoiceSerializer})
    @action(detail=True, methods=["post"], url_path="create-invoice")
    def create_invoice(self, request, pk=None):
        invoice = ConversionCoordinator.create_invoice_from_job(
            job_id=UUID(str(pk)),
            actor_user_id=actor_id(request),
        )
        warnings = dispatch("invoice.created", {"invoice_id": str(invoice.id), "job_id": str(pk)})
        return Response(with_warnings(InvoiceSerializer(invoice).data, warnings), status=status.HTTP_201_CREATED)
