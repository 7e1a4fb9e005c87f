# sped_core/compliance/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from sped_core.common.api.pagination import paginate
from sped_core.common.permissions import Action, actor_from_request, require
from sped_core.compliance import selectors
from sped_core.compliance.api.serializers import (
    ComplianceDashboardSerializer,
    ComplianceTaskCompleteSerializer,
    ComplianceTaskCreateSerializer,
    ComplianceTaskDismissSerializer,
    ComplianceTaskListQuerySerializer,
    ComplianceTaskSerializer,
    ComplianceTaskUpdateSerializer,
)
from sped_core.compliance.models import ComplianceTask, ComplianceTaskType
from sped_core.compliance.services import ComplianceTaskService


def _can_view(request):
    require(actor_from_request(request), Action.TASK_VIEW, "Not authorized to view compliance tasks.")


@extend_schema_view(
    list=extend_schema(
        tags=["Compliance Tasks"],
        parameters=[ComplianceTaskListQuerySerializer],
        responses={200: ComplianceTaskSerializer(many=True)},
    ),
    retrieve=extend_schema(tags=["Compliance Tasks"], responses={200: ComplianceTaskSerializer}),
    create=extend_schema(
        tags=["Compliance Tasks"],
        request=ComplianceTaskCreateSerializer,
        responses={201: ComplianceTaskSerializer},
    ),
    partial_update=extend_schema(
        tags=["Compliance Tasks"],
        request=ComplianceTaskUpdateSerializer,
        responses={200: ComplianceTaskSerializer},
    ),
)
class ComplianceTaskViewSet(viewsets.ViewSet):
    """
    /compliance-tasks/

    Status changes only through start / complete / dismiss.
    """

    serializer_class = ComplianceTaskSerializer
    queryset = ComplianceTask.objects.none()

    def _task_response(self, task_id, http_status=status.HTTP_200_OK) -> Response:
        task = selectors.get_task(task_id=task_id)
        return Response(ComplianceTaskSerializer(task).data, status=http_status)

    # ----------------------------
    # Reads
    # ----------------------------
    def list(self, request):
        _can_view(request)
        qs = selectors.list_tasks(params=request.query_params)
        return paginate(request, qs, ComplianceTaskSerializer)

    def retrieve(self, request, pk=None):
        _can_view(request)
        return self._task_response(pk)

    @extend_schema(
        tags=["Compliance Tasks"],
        parameters=[OpenApiParameter("status", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False)],
        responses={200: ComplianceTaskSerializer(many=True)},
    )
    @action(detail=False, methods=["get"])
    def mine(self, request):
        _can_view(request)
        qs = selectors.my_tasks(user_id=request.user.id, status=request.query_params.get("status"))
        return paginate(request, qs, ComplianceTaskSerializer)

    @extend_schema(tags=["Compliance Tasks"], responses={200: ComplianceDashboardSerializer})
    @action(detail=False, methods=["get"])
    def dashboard(self, request):
        _can_view(request)
        return Response(ComplianceDashboardSerializer(selectors.dashboard()).data)

    @extend_schema(tags=["Compliance Tasks"], responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path="task-types")
    def task_types(self, request):
        _can_view(request)
        return Response([{"value": value, "label": label} for value, label in ComplianceTaskType.choices])

    # ----------------------------
    # Writes
    # ----------------------------
    def create(self, request):
        actor = actor_from_request(request)
        require(actor, Action.TASK_MANAGE, "Not authorized to create compliance tasks.")
        ser = ComplianceTaskCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        task = ComplianceTaskService.create_task(actor=actor, **ser.validated_data)
        return self._task_response(task.id, status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        actor = actor_from_request(request)
        require(actor, Action.TASK_MANAGE, "Not authorized to update compliance tasks.")
        ser = ComplianceTaskUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        task = ComplianceTaskService.update_task(actor=actor, task_id=pk, **ser.validated_data)
        return self._task_response(task.id)

    @extend_schema(tags=["Compliance Tasks"], request=None, responses={200: ComplianceTaskSerializer})
    @action(detail=True, methods=["post"])
    def start(self, request, pk=None):
        task = ComplianceTaskService.start_task(actor=actor_from_request(request), task_id=pk)
        return self._task_response(task.id)

    @extend_schema(
        tags=["Compliance Tasks"],
        request=ComplianceTaskCompleteSerializer,
        responses={200: ComplianceTaskSerializer},
    )
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        actor = actor_from_request(request)
        require(actor, Action.TASK_MANAGE, "Not authorized to complete compliance tasks.")
        ser = ComplianceTaskCompleteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        task = ComplianceTaskService.complete_task(
            actor=actor,
            task_id=pk,
            notes=ser.validated_data.get("notes"),
        )
        return self._task_response(task.id)

    @extend_schema(
        tags=["Compliance Tasks"],
        request=ComplianceTaskDismissSerializer,
        responses={200: ComplianceTaskSerializer},
    )
    @action(detail=True, methods=["post"])
    def dismiss(self, request, pk=None):
        actor = actor_from_request(request)
        require(actor, Action.TASK_MANAGE, "Not authorized to dismiss compliance tasks.")
        ser = ComplianceTaskDismissSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        task = ComplianceTaskService.dismiss_task(
            actor=actor,
            task_id=pk,
            reason=ser.validated_data["reason"],
        )
        return self._task_response(task.id)
