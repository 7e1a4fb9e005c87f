import uuid
from datetime import timedelta

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils.timezone import now
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from sped_core.common.api.exceptions import ConflictError
from sped_core.rules.configs import DeliveryMethodConfig, DocumentDaysConfig
from sped_core.rules.models import RulePack, RulePackEvidenceRequirement, RulePackRule
from sped_core.rules.resolver import effective_rules
from sped_core.rules.selectors import list_evidence_requirements
from sped_core.rules.services import EvidenceRequirementService, RulePackService

pytestmark = pytest.mark.django_db


@pytest.fixture
def pack(case_manager):
    return RulePackService.create_rule_pack(
        actor=case_manager,
        scope_type="DISTRICT",
        scope_id="HCPSS",
        plan_type="IEP",
        name="HCPSS IEP",
        effective_from=now() - timedelta(days=1),
    )


def attach(actor, pack, definition, **kwargs):
    return RulePackService.attach_rule(actor=actor, pack_id=pack.id, rule_definition_id=definition.id, **kwargs)


# ----------------------------
# Rules
# ----------------------------
def test_attach_rule_with_valid_override(case_manager, pack, catalog):
    definition = catalog["definitions"]["PRE_MEETING_DOCS_DAYS"]

    rule = attach(case_manager, pack, definition, config={"days": 7}, sort_order=1)

    assert rule.config == {"days": 7}
    [effective] = effective_rules(pack)
    assert effective.config == DocumentDaysConfig(days=7)


def test_attach_rule_without_override_uses_definition_default(case_manager, pack, catalog):
    attach(case_manager, pack, catalog["definitions"]["DEFAULT_DELIVERY_METHOD"])

    [effective] = effective_rules(pack)
    assert effective.config == DeliveryMethodConfig(method="SEND_HOME")


@pytest.mark.parametrize(
    "key,config",
    [
        ("PRE_MEETING_DOCS_DAYS", {"days": "five"}),
        ("PRE_MEETING_DOCS_DAYS", {"days": -1}),
        ("PRE_MEETING_DOCS_DAYS", {"weeks": 1}),
        ("DEFAULT_DELIVERY_METHOD", {"method": "CARRIER_PIGEON"}),
        ("CONFERENCE_NOTES_REQUIRED", {"required": "yes"}),
        ("AUDIO_RECORDING_RULE", ["not", "an", "object"]),
    ],
)
def test_attach_rule_rejects_bad_config(case_manager, pack, catalog, key, config):
    with pytest.raises(ValidationError):
        attach(case_manager, pack, catalog["definitions"][key], config=config)
    assert RulePackRule.objects.filter(rule_pack=pack).count() == 0


def test_attach_same_definition_twice_conflicts(case_manager, pack, catalog):
    definition = catalog["definitions"]["CONFERENCE_NOTES_REQUIRED"]
    attach(case_manager, pack, definition)

    with pytest.raises(ConflictError):
        attach(case_manager, pack, definition)


def test_attach_unknown_definition_is_not_found(case_manager, pack, catalog):
    with pytest.raises(NotFound):
        RulePackService.attach_rule(actor=case_manager, pack_id=pack.id, rule_definition_id=uuid.uuid4())


def test_update_rule_revalidates_config(case_manager, pack, catalog):
    rule = attach(case_manager, pack, catalog["definitions"]["POST_MEETING_DOCS_DAYS"])

    with pytest.raises(ValidationError):
        RulePackService.update_rule(actor=case_manager, pack_id=pack.id, rule_id=rule.id, config={"days": 400})

    updated = RulePackService.update_rule(
        actor=case_manager,
        pack_id=pack.id,
        rule_id=rule.id,
        config={"days": 2},
        is_enabled=False,
    )
    assert updated.config == {"days": 2}
    assert updated.is_enabled is False


def test_rule_from_another_pack_is_not_found(case_manager, pack, catalog):
    other = RulePackService.create_rule_pack(
        actor=case_manager,
        scope_type="STATE",
        scope_id="MD",
        plan_type="IEP",
        name="MD",
        effective_from=now(),
    )
    rule = attach(case_manager, other, catalog["definitions"]["PRE_MEETING_DOCS_DAYS"])

    with pytest.raises(NotFound):
        RulePackService.detach_rule(actor=case_manager, pack_id=pack.id, rule_id=rule.id)


def test_teacher_cannot_attach_rules(teacher, pack, catalog):
    with pytest.raises(PermissionDenied):
        attach(teacher, pack, catalog["definitions"]["PRE_MEETING_DOCS_DAYS"])


# ----------------------------
# Evidence requirements
# ----------------------------
def test_evidence_requirements_only_for_enabled_rules(case_manager, pack, catalog):
    defs = catalog["definitions"]
    types = catalog["evidence_types"]

    notes_rule = attach(case_manager, pack, defs["CONFERENCE_NOTES_REQUIRED"], sort_order=2)
    consent_rule = attach(case_manager, pack, defs["INITIAL_IEP_CONSENT_GATE"], sort_order=1)
    audio_rule = attach(case_manager, pack, defs["AUDIO_RECORDING_RULE"], is_enabled=False)

    for rule, evidence_key in [
        (notes_rule, "CONFERENCE_NOTES"),
        (consent_rule, "CONSENT_FORM"),
        (audio_rule, "AUDIO_RECORDING"),
    ]:
        EvidenceRequirementService.attach_evidence_requirement(
            actor=case_manager,
            pack_id=pack.id,
            rule_id=rule.id,
            evidence_type_id=types[evidence_key].id,
        )

    keys = [r.evidence_type.key for r in list_evidence_requirements(pack=pack)]
    assert keys == ["CONSENT_FORM", "CONFERENCE_NOTES"]


def test_duplicate_evidence_requirement_conflicts(case_manager, pack, catalog):
    rule = attach(case_manager, pack, catalog["definitions"]["CONFERENCE_NOTES_REQUIRED"])
    evidence_type = catalog["evidence_types"]["CONFERENCE_NOTES"]

    EvidenceRequirementService.attach_evidence_requirement(
        actor=case_manager, pack_id=pack.id, rule_id=rule.id, evidence_type_id=evidence_type.id
    )
    with pytest.raises(ConflictError):
        EvidenceRequirementService.attach_evidence_requirement(
            actor=case_manager, pack_id=pack.id, rule_id=rule.id, evidence_type_id=evidence_type.id
        )


def test_evidence_type_for_other_plan_type_is_rejected(case_manager, pack, catalog):
    rule = attach(case_manager, pack, catalog["definitions"]["CONFERENCE_NOTES_REQUIRED"])

    with pytest.raises(ValidationError):
        EvidenceRequirementService.attach_evidence_requirement(
            actor=case_manager,
            pack_id=pack.id,
            rule_id=rule.id,
            evidence_type_id=catalog["evidence_types"]["BEHAVIOR_DATA"].id,
        )


def test_replace_evidence_requirements_is_admin_only(case_manager, admin_actor, pack, catalog):
    rule = attach(case_manager, pack, catalog["definitions"]["CONFERENCE_NOTES_REQUIRED"])
    types = catalog["evidence_types"]
    items = [
        {"evidence_type_id": types["CONFERENCE_NOTES"].id, "is_required": True},
        {"evidence_type_id": types["PARENT_NOTICE"].id, "is_required": False},
    ]

    with pytest.raises(PermissionDenied):
        EvidenceRequirementService.replace_evidence_requirements(
            actor=case_manager, pack_id=pack.id, rule_id=rule.id, items=items
        )

    created = EvidenceRequirementService.replace_evidence_requirements(
        actor=admin_actor, pack_id=pack.id, rule_id=rule.id, items=items
    )
    assert sorted((r.evidence_type.key, r.is_required) for r in created) == [
        ("CONFERENCE_NOTES", True),
        ("PARENT_NOTICE", False),
    ]


# ----------------------------
# Bulk replace + delete
# ----------------------------
def test_replace_rules_reports_missing_definitions(admin_actor, pack, catalog):
    attach(admin_actor, pack, catalog["definitions"]["PRE_MEETING_DOCS_DAYS"])
    missing = uuid.uuid4()

    with pytest.raises(ValidationError) as excinfo:
        RulePackService.replace_rules(
            actor=admin_actor,
            pack_id=pack.id,
            rules=[
                {"rule_definition_id": catalog["definitions"]["POST_MEETING_DOCS_DAYS"].id, "is_enabled": True},
                {"rule_definition_id": missing, "is_enabled": True},
            ],
        )

    assert excinfo.value.detail["missing_ids"] == [str(missing)]
    # nothing changed
    assert [r.rule_definition.key for r in pack.rules.all()] == ["PRE_MEETING_DOCS_DAYS"]


def test_replace_rules_swaps_the_whole_set(admin_actor, pack, catalog):
    defs = catalog["definitions"]
    old = attach(admin_actor, pack, defs["PRE_MEETING_DOCS_DAYS"])
    EvidenceRequirementService.attach_evidence_requirement(
        actor=admin_actor,
        pack_id=pack.id,
        rule_id=old.id,
        evidence_type_id=catalog["evidence_types"]["PARENT_NOTICE"].id,
    )

    created = RulePackService.replace_rules(
        actor=admin_actor,
        pack_id=pack.id,
        rules=[
            {"rule_definition_id": str(defs["POST_MEETING_DOCS_DAYS"].id), "is_enabled": True, "config": {"days": 4}},
            {"rule_definition_id": defs["CONFERENCE_NOTES_REQUIRED"].id, "is_enabled": False, "sort_order": 5},
        ],
    )

    assert len(created) == 2
    assert set(pack.rules.values_list("rule_definition__key", flat=True)) == {
        "POST_MEETING_DOCS_DAYS",
        "CONFERENCE_NOTES_REQUIRED",
    }
    assert not RulePackEvidenceRequirement.objects.filter(rule__rule_pack=pack).exists()


def test_delete_pack_removes_rules_and_evidence(case_manager, pack, catalog):
    rule = attach(case_manager, pack, catalog["definitions"]["CONFERENCE_NOTES_REQUIRED"])
    EvidenceRequirementService.attach_evidence_requirement(
        actor=case_manager,
        pack_id=pack.id,
        rule_id=rule.id,
        evidence_type_id=catalog["evidence_types"]["CONFERENCE_NOTES"].id,
    )

    counts = RulePackService.delete_rule_pack(actor=case_manager, pack_id=pack.id)

    assert counts == {"rules": 1, "evidence_requirements": 1}
    assert not RulePack.objects.filter(id=pack.id).exists()
    assert not RulePackRule.objects.filter(id=rule.id).exists()
    assert RulePackEvidenceRequirement.objects.count() == 0


# ----------------------------
# Admin-form validation
# ----------------------------
def test_definition_clean_rejects_bad_default_config(catalog):
    definition = catalog["definitions"]["PRE_MEETING_DOCS_DAYS"]
    definition.default_config = {"days": "five"}

    with pytest.raises(DjangoValidationError) as excinfo:
        definition.full_clean()
    assert "default_config" in excinfo.value.message_dict


def test_pack_rule_clean_rejects_bad_override(case_manager, pack, catalog):
    rule = attach(case_manager, pack, catalog["definitions"]["DEFAULT_DELIVERY_METHOD"])
    rule.config = {"method": "CARRIER_PIGEON"}

    with pytest.raises(DjangoValidationError) as excinfo:
        rule.full_clean()
    assert "config" in excinfo.value.message_dict

    rule.config = {"method": "US_MAIL"}
    rule.full_clean()
