# sped_core/reviews/api/views.py
from __future__ import annotations

from django.conf import settings
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from sped_core.common.api.pagination import paginate
from sped_core.common.permissions import Action, actor_from_request, require
from sped_core.reviews import selectors
from sped_core.reviews.api.serializers import (
    ReviewDashboardQuerySerializer,
    ReviewDashboardSerializer,
    ReviewScheduleCompleteSerializer,
    ReviewScheduleCreateSerializer,
    ReviewScheduleListQuerySerializer,
    ReviewScheduleSerializer,
    ReviewScheduleUpdateSerializer,
)
from sped_core.reviews.models import ReviewSchedule, ScheduleType
from sped_core.reviews.services import ReviewScheduleService


@extend_schema_view(
    list=extend_schema(
        tags=["Review Schedules"],
        parameters=[ReviewScheduleListQuerySerializer],
        responses={200: ReviewScheduleSerializer(many=True)},
    ),
    create=extend_schema(
        tags=["Review Schedules"],
        request=ReviewScheduleCreateSerializer,
        responses={201: ReviewScheduleSerializer},
    ),
)
class PlanReviewScheduleViewSet(viewsets.ViewSet):
    """
    /plans/{plan_id}/review-schedules/
    """

    serializer_class = ReviewScheduleSerializer
    queryset = ReviewSchedule.objects.none()

    def list(self, request, plan_id=None):
        require(actor_from_request(request), Action.REVIEW_VIEW, "Not authorized to view review schedules.")
        qs = selectors.list_plan_schedules(plan_id=plan_id, params=request.query_params)
        return paginate(request, qs, ReviewScheduleSerializer)

    def create(self, request, plan_id=None):
        actor = actor_from_request(request)
        require(actor, Action.REVIEW_MANAGE, "Not authorized to create review schedules.")
        ser = ReviewScheduleCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        schedule = ReviewScheduleService.create_schedule(
            actor=actor,
            plan_id=plan_id,
            **ser.validated_data,
        )
        schedule = selectors.get_schedule(schedule_id=schedule.id)
        return Response(ReviewScheduleSerializer(schedule).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    retrieve=extend_schema(tags=["Review Schedules"], responses={200: ReviewScheduleSerializer}),
    partial_update=extend_schema(
        tags=["Review Schedules"],
        request=ReviewScheduleUpdateSerializer,
        responses={200: ReviewScheduleSerializer},
    ),
    destroy=extend_schema(tags=["Review Schedules"], responses={204: None}),
)
class ReviewScheduleViewSet(viewsets.ViewSet):
    """
    /review-schedules/

    Writes go through ReviewScheduleService; deleting is ADMIN only.
    """

    serializer_class = ReviewScheduleSerializer
    queryset = ReviewSchedule.objects.none()

    def retrieve(self, request, pk=None):
        require(actor_from_request(request), Action.REVIEW_VIEW, "Not authorized to view review schedules.")
        schedule = selectors.get_schedule(schedule_id=pk)
        return Response(ReviewScheduleSerializer(schedule).data)

    def partial_update(self, request, pk=None):
        actor = actor_from_request(request)
        require(actor, Action.REVIEW_MANAGE, "Not authorized to update review schedules.")
        ser = ReviewScheduleUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        ReviewScheduleService.update_schedule(actor=actor, schedule_id=pk, **ser.validated_data)
        schedule = selectors.get_schedule(schedule_id=pk)
        return Response(ReviewScheduleSerializer(schedule).data)

    def destroy(self, request, pk=None):
        ReviewScheduleService.delete_schedule(actor=actor_from_request(request), schedule_id=pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        tags=["Review Schedules"],
        request=ReviewScheduleCompleteSerializer,
        responses={200: ReviewScheduleSerializer},
    )
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        actor = actor_from_request(request)
        require(actor, Action.REVIEW_MANAGE, "Not authorized to complete review schedules.")
        ser = ReviewScheduleCompleteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        ReviewScheduleService.complete_schedule(
            actor=actor,
            schedule_id=pk,
            notes=ser.validated_data.get("notes"),
        )
        schedule = selectors.get_schedule(schedule_id=pk)
        return Response(ReviewScheduleSerializer(schedule).data)

    @extend_schema(
        tags=["Review Schedules"],
        parameters=[ReviewDashboardQuerySerializer],
        responses={200: ReviewDashboardSerializer},
    )
    @action(detail=False, methods=["get"])
    def dashboard(self, request):
        require(actor_from_request(request), Action.REVIEW_VIEW, "Not authorized to view review schedules.")
        ser = ReviewDashboardQuerySerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)

        days = ser.validated_data.get("days", settings.COMPLIANCE_DASHBOARD_DEFAULT_DAYS)
        data = selectors.overdue_and_upcoming(within_days=days)
        return Response(ReviewDashboardSerializer(data).data)

    @extend_schema(tags=["Review Schedules"], responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path="schedule-types")
    def schedule_types(self, request):
        require(actor_from_request(request), Action.REVIEW_VIEW, "Not authorized to view review schedules.")
        return Response([{"value": value, "label": label} for value, label in ScheduleType.choices])
