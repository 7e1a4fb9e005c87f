# sped_core/rules/services.py

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional
from uuid import UUID

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Max
from rest_framework.exceptions import ValidationError

from sped_core.common.api.exceptions import ConflictError
from sped_core.common.lookups import get_or_not_found
from sped_core.common.models import PlanType
from sped_core.common.permissions import Action, Actor, require
from sped_core.rules.configs import RuleConfigError, validate_override
from sped_core.rules.models import (
    EvidenceType,
    RuleDefinition,
    RulePack,
    RulePackEvidenceRequirement,
    RulePackRule,
    RulePackVersionMark,
    RuleScopeType,
)

logger = logging.getLogger(__name__)

_UNSET = object()


def _validate_window(effective_from, effective_to) -> None:
    if effective_from is None:
        raise ValidationError({"effective_from": "This field is required."})
    if effective_to is not None and effective_to < effective_from:
        raise ValidationError({"effective_to": "Must be on or after effective_from."})


def _as_uuid(value, field: str) -> UUID:
    try:
        return value if isinstance(value, UUID) else UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError({field: f"Invalid id: {value!r}."})


def _config_or_400(definition: RuleDefinition, config: Any) -> dict:
    try:
        return validate_override(definition.key, definition.default_config, config)
    except RuleConfigError as e:
        raise ValidationError({"config": e.errors})


class RulePackService:
    """
    Rule pack write-model: versioned creation, in-place patching, aggregate-root delete,
    rule attachment.

    Notes:
    - version is server-assigned: 1 + the highest version ever issued for
      (scope_type, scope_id, plan_type). The high-water mark outlives deleted packs.
    - Concurrent creators racing for the same version hit the unique constraint; the insert
      runs in a savepoint and is retried with a fresh max, up to RULE_PACK_VERSION_MAX_RETRIES.
    - Children use PROTECT; delete_rule_pack removes evidence, then rules, then the pack.
    """

    # -------------------------
    # Internal helpers
    # -------------------------
    @staticmethod
    def _next_version(*, scope_type: str, scope_id: str, plan_type: str) -> int:
        key = {"scope_type": scope_type, "scope_id": scope_id, "plan_type": plan_type}
        current = RulePack.objects.filter(**key).aggregate(v=Max("version"))["v"] or 0
        issued = RulePackVersionMark.objects.filter(**key).values_list("last_version", flat=True).first() or 0
        return max(current, issued) + 1

    @staticmethod
    def _record_version(*, scope_type: str, scope_id: str, plan_type: str, version: int) -> None:
        mark, _ = RulePackVersionMark.objects.get_or_create(
            scope_type=scope_type,
            scope_id=scope_id,
            plan_type=plan_type,
        )
        RulePackVersionMark.objects.filter(pk=mark.pk, last_version__lt=version).update(last_version=version)

    @staticmethod
    def _get_pack(pack_id: UUID) -> RulePack:
        return get_or_not_found(RulePack, "Rule pack not found.", id=pack_id)

    @staticmethod
    def _get_rule(pack: RulePack, rule_id: UUID) -> RulePackRule:
        return get_or_not_found(
            RulePackRule.objects.select_related("rule_definition"),
            "Rule not found in this rule pack.",
            id=rule_id,
            rule_pack=pack,
        )

    @staticmethod
    def _get_definition(rule_definition_id: UUID) -> RuleDefinition:
        return get_or_not_found(RuleDefinition, "Rule definition not found.", id=rule_definition_id)

    # -------------------------
    # Packs
    # -------------------------
    @staticmethod
    def create_rule_pack(
        *,
        actor: Actor,
        scope_type: str,
        scope_id: str,
        plan_type: str,
        name: str,
        effective_from,
        effective_to=None,
        is_active: bool = True,
    ) -> RulePack:
        require(actor, Action.RULE_PACK_MANAGE, "Not authorized to manage rule packs.")

        if scope_type not in RuleScopeType.values:
            raise ValidationError({"scope_type": f"Must be one of {RuleScopeType.values}."})
        if plan_type not in PlanType.values:
            raise ValidationError({"plan_type": f"Must be one of {PlanType.values}."})
        if not scope_id:
            raise ValidationError({"scope_id": "This field is required."})
        if not name:
            raise ValidationError({"name": "This field is required."})
        _validate_window(effective_from, effective_to)

        max_retries = getattr(settings, "RULE_PACK_VERSION_MAX_RETRIES", 3)

        for attempt in range(max_retries + 1):
            version = RulePackService._next_version(
                scope_type=scope_type,
                scope_id=scope_id,
                plan_type=plan_type,
            )
            try:
                with transaction.atomic(savepoint=True):
                    pack = RulePack.objects.create(
                        scope_type=scope_type,
                        scope_id=scope_id,
                        plan_type=plan_type,
                        version=version,
                        name=name,
                        is_active=is_active,
                        effective_from=effective_from,
                        effective_to=effective_to,
                    )
                    RulePackService._record_version(
                        scope_type=scope_type,
                        scope_id=scope_id,
                        plan_type=plan_type,
                        version=version,
                    )
            except IntegrityError:
                logger.warning(
                    "Rule pack version %s already taken for %s:%s:%s (attempt %s)",
                    version,
                    scope_type,
                    scope_id,
                    plan_type,
                    attempt + 1,
                )
                continue

            logger.info("Created rule pack %s (%s:%s:%s v%s)", pack.id, scope_type, scope_id, plan_type, version)
            return pack

        raise ConflictError("Could not assign a rule pack version; concurrent creation in progress. Retry the request.")

    @staticmethod
    @transaction.atomic
    def update_rule_pack(
        *,
        actor: Actor,
        pack_id: UUID,
        name: Optional[str] = None,
        is_active: Optional[bool] = None,
        effective_from=None,
        effective_to=_UNSET,
    ) -> RulePack:
        """
        In-place patch. Never touches version.
        effective_to accepts an explicit None to make the pack open-ended.
        """
        require(actor, Action.RULE_PACK_MANAGE, "Not authorized to manage rule packs.")
        pack = RulePackService._get_pack(pack_id)

        update_fields: list[str] = []
        if name is not None:
            if not name:
                raise ValidationError({"name": "This field may not be blank."})
            pack.name = name
            update_fields.append("name")
        if is_active is not None:
            pack.is_active = is_active
            update_fields.append("is_active")
        if effective_from is not None:
            pack.effective_from = effective_from
            update_fields.append("effective_from")
        if effective_to is not _UNSET:
            pack.effective_to = effective_to
            update_fields.append("effective_to")

        if not update_fields:
            return pack

        _validate_window(pack.effective_from, pack.effective_to)
        update_fields.append("updated_at")
        pack.save(update_fields=update_fields)
        return pack

    @staticmethod
    @transaction.atomic
    def delete_rule_pack(*, actor: Actor, pack_id: UUID) -> dict[str, int]:
        require(actor, Action.RULE_PACK_MANAGE, "Not authorized to manage rule packs.")
        pack = RulePackService._get_pack(pack_id)

        evidence_deleted, _ = RulePackEvidenceRequirement.objects.filter(rule__rule_pack=pack).delete()
        rules_deleted, _ = RulePackRule.objects.filter(rule_pack=pack).delete()
        pack.delete()

        logger.info(
            "Deleted rule pack %s with %s rules and %s evidence requirements",
            pack_id,
            rules_deleted,
            evidence_deleted,
        )
        return {"rules": rules_deleted, "evidence_requirements": evidence_deleted}

    # -------------------------
    # Rules in a pack
    # -------------------------
    @staticmethod
    @transaction.atomic
    def attach_rule(
        *,
        actor: Actor,
        pack_id: UUID,
        rule_definition_id: UUID,
        is_enabled: bool = True,
        config: Any = None,
        sort_order: int = 0,
    ) -> RulePackRule:
        require(actor, Action.RULE_PACK_MANAGE, "Not authorized to manage rule packs.")
        pack = RulePackService._get_pack(pack_id)
        definition = RulePackService._get_definition(rule_definition_id)
        override = _config_or_400(definition, config)

        if RulePackRule.objects.filter(rule_pack=pack, rule_definition=definition).exists():
            raise ConflictError(f"Rule {definition.key} is already attached to this rule pack.")

        try:
            with transaction.atomic(savepoint=True):
                return RulePackRule.objects.create(
                    rule_pack=pack,
                    rule_definition=definition,
                    is_enabled=is_enabled,
                    config=override,
                    sort_order=sort_order,
                )
        except IntegrityError:
            raise ConflictError(f"Rule {definition.key} is already attached to this rule pack.")

    @staticmethod
    @transaction.atomic
    def update_rule(
        *,
        actor: Actor,
        pack_id: UUID,
        rule_id: UUID,
        is_enabled: Optional[bool] = None,
        config: Any = _UNSET,
        sort_order: Optional[int] = None,
    ) -> RulePackRule:
        require(actor, Action.RULE_PACK_MANAGE, "Not authorized to manage rule packs.")
        pack = RulePackService._get_pack(pack_id)
        rule = RulePackService._get_rule(pack, rule_id)

        update_fields: list[str] = []
        if is_enabled is not None:
            rule.is_enabled = is_enabled
            update_fields.append("is_enabled")
        if config is not _UNSET:
            rule.config = _config_or_400(rule.rule_definition, config)
            update_fields.append("config")
        if sort_order is not None:
            rule.sort_order = sort_order
            update_fields.append("sort_order")

        if update_fields:
            update_fields.append("updated_at")
            rule.save(update_fields=update_fields)
        return rule

    @staticmethod
    @transaction.atomic
    def detach_rule(*, actor: Actor, pack_id: UUID, rule_id: UUID) -> None:
        require(actor, Action.RULE_PACK_MANAGE, "Not authorized to manage rule packs.")
        pack = RulePackService._get_pack(pack_id)
        rule = RulePackService._get_rule(pack, rule_id)

        RulePackEvidenceRequirement.objects.filter(rule=rule).delete()
        rule.delete()

    @staticmethod
    @transaction.atomic
    def replace_rules(*, actor: Actor, pack_id: UUID, rules: Iterable[dict]) -> list[RulePackRule]:
        """
        Bulk edit: replaces every rule (and their evidence requirements) of the pack.

        Each item: {rule_definition_id, is_enabled, config?, sort_order?}.
        All definitions must exist; missing ids are reported together.
        """
        require(actor, Action.RULE_PACK_BULK_REPLACE, "Only administrators can bulk edit rule packs.")
        pack = RulePackService._get_pack(pack_id)
        items = list(rules)

        requested_ids = [_as_uuid(item.get("rule_definition_id"), "rule_definition_id") for item in items]
        if len(set(requested_ids)) != len(requested_ids):
            raise ValidationError({"rules": "Each rule definition may appear only once."})

        definitions = {d.id: d for d in RuleDefinition.objects.filter(id__in=requested_ids)}
        missing = [str(i) for i in requested_ids if i not in definitions]
        if missing:
            raise ValidationError({"detail": "Some rule definitions were not found.", "missing_ids": missing})

        prepared = []
        config_errors = {}
        for item in items:
            definition = definitions[_as_uuid(item["rule_definition_id"], "rule_definition_id")]
            try:
                override = validate_override(definition.key, definition.default_config, item.get("config"))
            except RuleConfigError as e:
                config_errors[definition.key] = e.errors
                continue
            prepared.append((definition, item, override))
        if config_errors:
            raise ValidationError({"config": config_errors})

        RulePackEvidenceRequirement.objects.filter(rule__rule_pack=pack).delete()
        RulePackRule.objects.filter(rule_pack=pack).delete()

        created = [
            RulePackRule.objects.create(
                rule_pack=pack,
                rule_definition=definition,
                is_enabled=item.get("is_enabled", True),
                config=override,
                sort_order=item.get("sort_order", 0),
            )
            for definition, item, override in prepared
        ]
        logger.info("Replaced rules of rule pack %s (%s rules)", pack.id, len(created))
        return created


class EvidenceRequirementService:
    """
    Pure association between a rule-in-pack and an evidence type.
    """

    @staticmethod
    def _check_plan_type(pack: RulePack, evidence_type: EvidenceType) -> None:
        if pack.plan_type == PlanType.ALL or evidence_type.plan_type == PlanType.ALL:
            return
        if evidence_type.plan_type != pack.plan_type:
            raise ValidationError(
                {
                    "evidence_type_id": (
                        f"Evidence type {evidence_type.key} applies to {evidence_type.plan_type} plans, "
                        f"not {pack.plan_type}."
                    )
                }
            )

    @staticmethod
    @transaction.atomic
    def attach_evidence_requirement(
        *,
        actor: Actor,
        pack_id: UUID,
        rule_id: UUID,
        evidence_type_id: UUID,
        is_required: bool = True,
    ) -> RulePackEvidenceRequirement:
        require(actor, Action.RULE_PACK_MANAGE, "Not authorized to manage rule packs.")
        pack = RulePackService._get_pack(pack_id)
        rule = RulePackService._get_rule(pack, rule_id)
        evidence_type = get_or_not_found(EvidenceType, "Evidence type not found.", id=evidence_type_id)
        EvidenceRequirementService._check_plan_type(pack, evidence_type)

        if RulePackEvidenceRequirement.objects.filter(rule=rule, evidence_type=evidence_type).exists():
            raise ConflictError(f"Evidence type {evidence_type.key} is already required by this rule.")

        try:
            with transaction.atomic(savepoint=True):
                return RulePackEvidenceRequirement.objects.create(
                    rule=rule,
                    evidence_type=evidence_type,
                    is_required=is_required,
                )
        except IntegrityError:
            raise ConflictError(f"Evidence type {evidence_type.key} is already required by this rule.")

    @staticmethod
    @transaction.atomic
    def detach_evidence_requirement(
        *,
        actor: Actor,
        pack_id: UUID,
        rule_id: UUID,
        requirement_id: UUID,
    ) -> None:
        require(actor, Action.RULE_PACK_MANAGE, "Not authorized to manage rule packs.")
        pack = RulePackService._get_pack(pack_id)
        rule = RulePackService._get_rule(pack, rule_id)
        requirement = get_or_not_found(
            RulePackEvidenceRequirement,
            "Evidence requirement not found for this rule.",
            id=requirement_id,
            rule=rule,
        )
        requirement.delete()

    @staticmethod
    @transaction.atomic
    def replace_evidence_requirements(
        *,
        actor: Actor,
        pack_id: UUID,
        rule_id: UUID,
        items: Iterable[dict],
    ) -> list[RulePackEvidenceRequirement]:
        """
        Bulk edit: replaces every evidence requirement of one rule.
        Each item: {evidence_type_id, is_required}.
        """
        require(actor, Action.RULE_PACK_BULK_REPLACE, "Only administrators can bulk edit rule packs.")
        pack = RulePackService._get_pack(pack_id)
        rule = RulePackService._get_rule(pack, rule_id)
        items = list(items)

        requested_ids = [_as_uuid(item.get("evidence_type_id"), "evidence_type_id") for item in items]
        if len(set(requested_ids)) != len(requested_ids):
            raise ValidationError({"evidence_requirements": "Each evidence type may appear only once."})

        evidence_types = {e.id: e for e in EvidenceType.objects.filter(id__in=requested_ids)}
        missing = [str(i) for i in requested_ids if i not in evidence_types]
        if missing:
            raise ValidationError({"detail": "Some evidence types were not found.", "missing_ids": missing})

        for evidence_type in evidence_types.values():
            EvidenceRequirementService._check_plan_type(pack, evidence_type)

        RulePackEvidenceRequirement.objects.filter(rule=rule).delete()
        return [
            RulePackEvidenceRequirement.objects.create(
                rule=rule,
                evidence_type=evidence_types[_as_uuid(item["evidence_type_id"], "evidence_type_id")],
                is_required=item.get("is_required", True),
            )
            for item in items
        ]
