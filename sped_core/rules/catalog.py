# sped_core/rules/catalog.py
from __future__ import annotations

from django.db import transaction

from sped_core.common.models import PlanType
from sped_core.rules.configs import DEFAULT_CONFIGS, RuleKey
from sped_core.rules.models import EvidenceType, RuleDefinition

RULE_DEFINITIONS = [
    (RuleKey.PRE_MEETING_DOCS_DAYS, "Pre-meeting documents deadline",
     "Business days before a meeting that draft documents must reach the family."),
    (RuleKey.POST_MEETING_DOCS_DAYS, "Post-meeting documents deadline",
     "Business days after a meeting that final documents must reach the family."),
    (RuleKey.DEFAULT_DELIVERY_METHOD, "Default delivery method",
     "How documents are delivered to the family when no preference is recorded."),
    (RuleKey.US_MAIL_PRE_MEETING_DAYS, "US mail offset (pre-meeting)",
     "Extra business days to allow when pre-meeting documents go by US mail."),
    (RuleKey.US_MAIL_POST_MEETING_DAYS, "US mail offset (post-meeting)",
     "Extra business days to allow when post-meeting documents go by US mail."),
    (RuleKey.CONFERENCE_NOTES_REQUIRED, "Conference notes required",
     "A meeting cannot be closed without conference notes."),
    (RuleKey.INITIAL_IEP_CONSENT_GATE, "Initial IEP consent gate",
     "An initial IEP cannot be implemented until parental consent is obtained."),
    (RuleKey.CONTINUED_MEETING_NOTICE_DAYS, "Continued meeting notice",
     "Days of notice required before a continued meeting."),
    (RuleKey.CONTINUED_MEETING_MUTUAL_AGREEMENT, "Continued meeting mutual agreement",
     "A continued meeting requires mutual agreement on the date."),
    (RuleKey.AUDIO_RECORDING_RULE, "Audio recording",
     "Staff must also record when the family records; recordings are not the official record."),
]

EVIDENCE_TYPES = [
    ("CONFERENCE_NOTES", "Conference notes", PlanType.ALL),
    ("CONSENT_FORM", "Parental consent form", PlanType.IEP),
    ("PARENT_NOTICE", "Prior written notice to parents", PlanType.ALL),
    ("AUDIO_RECORDING", "Meeting audio recording", PlanType.ALL),
    ("MUTUAL_AGREEMENT_FORM", "Continued meeting agreement", PlanType.ALL),
    ("BEHAVIOR_DATA", "Behavior data summary", PlanType.BIP),
    ("ACCOMMODATION_CHECKLIST", "504 accommodation checklist", PlanType.PLAN504),
]


@transaction.atomic
def seed_catalog() -> dict[str, int]:
    """
    Idempotent: creates missing catalog rows, never overwrites existing ones.
    """
    created_definitions = 0
    for key, name, description in RULE_DEFINITIONS:
        _, created = RuleDefinition.objects.get_or_create(
            key=key,
            defaults={
                "name": name,
                "description": description,
                "default_config": DEFAULT_CONFIGS[key],
            },
        )
        created_definitions += int(created)

    created_evidence = 0
    for key, name, plan_type in EVIDENCE_TYPES:
        _, created = EvidenceType.objects.get_or_create(
            key=key,
            defaults={"name": name, "plan_type": plan_type},
        )
        created_evidence += int(created)

    return {"rule_definitions": created_definitions, "evidence_types": created_evidence}
