# sped_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from sped_core.compliance.api.views import ComplianceTaskViewSet
from sped_core.reviews.api.views import PlanReviewScheduleViewSet, ReviewScheduleViewSet
from sped_core.rules.api.views import PlanRuleContextView, RulePackViewSet

router = DefaultRouter()

# ViewSet-backed modules (centralized)
router.register(r"rule-packs", RulePackViewSet, basename="rule-packs")
router.register(r"review-schedules", ReviewScheduleViewSet, basename="review-schedules")
router.register(
    r"plans/(?P<plan_id>[^/.]+)/review-schedules",
    PlanReviewScheduleViewSet,
    basename="plan-review-schedules",
)
router.register(r"compliance-tasks", ComplianceTaskViewSet, basename="compliance-tasks")

urlpatterns = [
    # Auth (simplejwt)
    path("auth/token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),

    # Non-ViewSet endpoint
    path("plans/<uuid:plan_id>/rule-context/", PlanRuleContextView.as_view(), name="plan-rule-context"),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
