# sped_core/rules/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from sped_core.common.permissions import Action, actor_from_request, require
from sped_core.plans.selectors import get_plan
from sped_core.rules import selectors
from sped_core.rules.api.serializers import (
    ActivePackQuerySerializer,
    EvidenceAttachSerializer,
    EvidenceReplaceSerializer,
    EvidenceRequirementSerializer,
    EvidenceTypeSerializer,
    RuleAttachSerializer,
    RuleContextQuerySerializer,
    RuleDefinitionSerializer,
    RulePackCreateSerializer,
    RulePackRuleSerializer,
    RulePackSerializer,
    RulePackUpdateSerializer,
    RuleReplaceSerializer,
    RuleUpdateSerializer,
    effective_rule_payload,
    resolution_payload,
)
from sped_core.rules.due_dates import calculate_due_dates
from sped_core.rules.models import RulePack
from sped_core.rules.resolver import effective_rules, resolve_active_pack, resolve_for_plan
from sped_core.rules.services import EvidenceRequirementService, RulePackService


@extend_schema_view(
    list=extend_schema(tags=["Rule Packs"], responses={200: RulePackSerializer(many=True)}),
    retrieve=extend_schema(tags=["Rule Packs"], responses={200: RulePackSerializer}),
    create=extend_schema(tags=["Rule Packs"], request=RulePackCreateSerializer, responses={201: RulePackSerializer}),
    partial_update=extend_schema(tags=["Rule Packs"], request=RulePackUpdateSerializer, responses={200: RulePackSerializer}),
    destroy=extend_schema(tags=["Rule Packs"], responses={204: None}),
)
class RulePackViewSet(viewsets.ViewSet):
    """
    Thin API layer over RulePackService / EvidenceRequirementService.
    Views check authorization before reading the body; services check it again.
    Routing is centralized in sped_core/api/urls.py.
    """

    serializer_class = RulePackSerializer
    queryset = RulePack.objects.none()

    def _pack_response(self, pack_id, http_status=status.HTTP_200_OK) -> Response:
        pack = selectors.get_rule_pack(pack_id=pack_id)
        return Response(RulePackSerializer(pack).data, status=http_status)

    # ----------------------------
    # Reads
    # ----------------------------
    @extend_schema(
        parameters=[
            OpenApiParameter("scope_type", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("scope_id", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("plan_type", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("is_active", OpenApiTypes.BOOL, OpenApiParameter.QUERY, required=False),
        ]
    )
    def list(self, request):
        require(actor_from_request(request), Action.RULE_PACK_VIEW, "Not authorized to view rule packs.")
        qs = selectors.list_rule_packs(params=request.query_params)
        return Response(RulePackSerializer(qs, many=True).data)

    def retrieve(self, request, pk=None):
        require(actor_from_request(request), Action.RULE_PACK_VIEW, "Not authorized to view rule packs.")
        return self._pack_response(pk)

    @extend_schema(
        tags=["Rule Packs"],
        parameters=[ActivePackQuerySerializer],
        responses={200: OpenApiTypes.OBJECT},
    )
    @action(detail=False, methods=["get"])
    def active(self, request):
        require(actor_from_request(request), Action.RULE_PACK_VIEW, "Not authorized to view rule packs.")
        ser = ActivePackQuerySerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)

        resolution = resolve_active_pack(
            scope_type=ser.validated_data["scope_type"],
            scope_id=ser.validated_data["scope_id"],
            plan_type=ser.validated_data["plan_type"],
            as_of=ser.validated_data.get("as_of"),
        )
        return Response(resolution_payload(resolution), status=status.HTTP_200_OK)

    @extend_schema(tags=["Rule Packs"], responses={200: RuleDefinitionSerializer(many=True)})
    @action(detail=False, methods=["get"])
    def definitions(self, request):
        require(actor_from_request(request), Action.RULE_PACK_VIEW, "Not authorized to view rule packs.")
        return Response(RuleDefinitionSerializer(selectors.list_rule_definitions(), many=True).data)

    @extend_schema(tags=["Rule Packs"], responses={200: EvidenceTypeSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path="evidence-types")
    def evidence_types(self, request):
        require(actor_from_request(request), Action.RULE_PACK_VIEW, "Not authorized to view rule packs.")
        qs = selectors.list_evidence_types(plan_type=request.query_params.get("plan_type"))
        return Response(EvidenceTypeSerializer(qs, many=True).data)

    # ----------------------------
    # Pack writes
    # ----------------------------
    def create(self, request):
        actor = actor_from_request(request)
        require(actor, Action.RULE_PACK_MANAGE, "Not authorized to manage rule packs.")
        ser = RulePackCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        pack = RulePackService.create_rule_pack(actor=actor, **ser.validated_data)
        return self._pack_response(pack.id, status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        actor = actor_from_request(request)
        require(actor, Action.RULE_PACK_MANAGE, "Not authorized to manage rule packs.")
        ser = RulePackUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        pack = RulePackService.update_rule_pack(actor=actor, pack_id=pk, **ser.validated_data)
        return self._pack_response(pack.id)

    def destroy(self, request, pk=None):
        RulePackService.delete_rule_pack(actor=actor_from_request(request), pack_id=pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ----------------------------
    # Rules
    # ----------------------------
    @extend_schema(tags=["Rule Packs"], request=RuleAttachSerializer, responses={201: RulePackRuleSerializer})
    @action(detail=True, methods=["post", "put"], url_path="rules")
    def rules(self, request, pk=None):
        actor = actor_from_request(request)

        if request.method == "PUT":
            require(actor, Action.RULE_PACK_BULK_REPLACE, "Only administrators can bulk edit rule packs.")
            ser = RuleReplaceSerializer(data=request.data)
            ser.is_valid(raise_exception=True)
            RulePackService.replace_rules(actor=actor, pack_id=pk, rules=ser.validated_data["rules"])
            return self._pack_response(pk)

        require(actor, Action.RULE_PACK_MANAGE, "Not authorized to manage rule packs.")
        ser = RuleAttachSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        rule = RulePackService.attach_rule(actor=actor, pack_id=pk, **ser.validated_data)
        return Response(RulePackRuleSerializer(rule).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Rule Packs"], request=RuleUpdateSerializer, responses={200: RulePackRuleSerializer})
    @action(detail=True, methods=["patch", "delete"], url_path=r"rules/(?P<rule_id>[^/.]+)")
    def rule_detail(self, request, pk=None, rule_id=None):
        actor = actor_from_request(request)
        require(actor, Action.RULE_PACK_MANAGE, "Not authorized to manage rule packs.")

        if request.method == "DELETE":
            RulePackService.detach_rule(actor=actor, pack_id=pk, rule_id=rule_id)
            return Response(status=status.HTTP_204_NO_CONTENT)

        ser = RuleUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        rule = RulePackService.update_rule(actor=actor, pack_id=pk, rule_id=rule_id, **ser.validated_data)
        return Response(RulePackRuleSerializer(rule).data, status=status.HTTP_200_OK)

    # ----------------------------
    # Evidence requirements
    # ----------------------------
    @extend_schema(tags=["Rule Packs"], request=EvidenceAttachSerializer, responses={201: EvidenceRequirementSerializer})
    @action(detail=True, methods=["post", "put"], url_path=r"rules/(?P<rule_id>[^/.]+)/evidence")
    def rule_evidence(self, request, pk=None, rule_id=None):
        actor = actor_from_request(request)

        if request.method == "PUT":
            require(actor, Action.RULE_PACK_BULK_REPLACE, "Only administrators can bulk edit rule packs.")
            ser = EvidenceReplaceSerializer(data=request.data)
            ser.is_valid(raise_exception=True)
            requirements = EvidenceRequirementService.replace_evidence_requirements(
                actor=actor,
                pack_id=pk,
                rule_id=rule_id,
                items=ser.validated_data["evidence_requirements"],
            )
            return Response(EvidenceRequirementSerializer(requirements, many=True).data, status=status.HTTP_200_OK)

        require(actor, Action.RULE_PACK_MANAGE, "Not authorized to manage rule packs.")
        ser = EvidenceAttachSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        requirement = EvidenceRequirementService.attach_evidence_requirement(
            actor=actor,
            pack_id=pk,
            rule_id=rule_id,
            **ser.validated_data,
        )
        return Response(EvidenceRequirementSerializer(requirement).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Rule Packs"], responses={204: None})
    @action(
        detail=True,
        methods=["delete"],
        url_path=r"rules/(?P<rule_id>[^/.]+)/evidence/(?P<evidence_id>[^/.]+)",
    )
    def evidence_detail(self, request, pk=None, rule_id=None, evidence_id=None):
        EvidenceRequirementService.detach_evidence_requirement(
            actor=actor_from_request(request),
            pack_id=pk,
            rule_id=rule_id,
            requirement_id=evidence_id,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


class PlanRuleContextView(APIView):
    """
    Resolved pack for a plan (through its student's school), with effective rule
    configs, evidence requirements and, when meeting_date is given, document deadlines.
    """

    @extend_schema(tags=["Rule Packs"], parameters=[RuleContextQuerySerializer], responses={200: OpenApiTypes.OBJECT})
    def get(self, request, plan_id=None):
        require(actor_from_request(request), Action.RULE_CONTEXT_VIEW, "Not authorized to view plan rules.")
        ser = RuleContextQuerySerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)

        plan = get_plan(plan_id=plan_id)
        resolution = resolve_for_plan(plan=plan, as_of=ser.validated_data.get("as_of"))

        payload = resolution_payload(resolution)
        rules = effective_rules(resolution.rule_pack) if resolution.rule_pack else []
        payload["rules"] = [effective_rule_payload(r) for r in rules]

        meeting_date = ser.validated_data.get("meeting_date")
        if meeting_date is not None:
            due = calculate_due_dates(meeting_date, rules)
            payload["due_dates"] = {
                "pre_docs_deadline": due.pre_docs_deadline,
                "post_docs_deadline": due.post_docs_deadline,
                "us_mail_pre_docs_deadline": due.us_mail_pre_docs_deadline,
                "us_mail_post_docs_deadline": due.us_mail_post_docs_deadline,
            }
        return Response(payload, status=status.HTTP_200_OK)
