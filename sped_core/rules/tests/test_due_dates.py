from datetime import date, timedelta

import pytest
from django.utils.timezone import now

from sped_core.rules.configs import DocumentDaysConfig, MailOffsetConfig, RuleKey
from sped_core.rules.due_dates import add_business_days, calculate_due_dates
from sped_core.rules.resolver import EffectiveRule, effective_rules
from sped_core.rules.services import RulePackService


def rule(key, config):
    return EffectiveRule(key=key, name=key, sort_order=0, config=config)


def test_add_business_days_skips_weekends():
    friday = date(2024, 3, 8)

    assert add_business_days(friday, 1) == date(2024, 3, 11)
    assert add_business_days(date(2024, 3, 11), -1) == friday
    assert add_business_days(date(2024, 3, 11), -5) == date(2024, 3, 4)
    assert add_business_days(friday, 0) == friday


def test_due_dates_from_effective_rules():
    meeting = date(2024, 3, 13)  # Wednesday
    rules = [
        rule(RuleKey.PRE_MEETING_DOCS_DAYS, DocumentDaysConfig(days=5)),
        rule(RuleKey.POST_MEETING_DOCS_DAYS, DocumentDaysConfig(days=5)),
        rule(RuleKey.US_MAIL_PRE_MEETING_DAYS, MailOffsetConfig(days=3)),
        rule(RuleKey.US_MAIL_POST_MEETING_DAYS, MailOffsetConfig(days=3)),
    ]

    due = calculate_due_dates(meeting, rules)

    assert due.pre_docs_deadline == date(2024, 3, 6)
    assert due.post_docs_deadline == date(2024, 3, 20)
    assert due.us_mail_pre_docs_deadline == date(2024, 3, 1)
    assert due.us_mail_post_docs_deadline == date(2024, 3, 15)


def test_missing_rules_leave_deadlines_empty():
    due = calculate_due_dates(date(2024, 3, 13), [rule(RuleKey.US_MAIL_PRE_MEETING_DAYS, MailOffsetConfig(days=3))])

    assert due.pre_docs_deadline is None
    assert due.us_mail_pre_docs_deadline is None


@pytest.mark.django_db
def test_due_dates_follow_pack_overrides(case_manager, catalog):
    pack = RulePackService.create_rule_pack(
        actor=case_manager,
        scope_type="STATE",
        scope_id="MD",
        plan_type="IEP",
        name="MD",
        effective_from=now() - timedelta(days=1),
    )
    RulePackService.attach_rule(
        actor=case_manager,
        pack_id=pack.id,
        rule_definition_id=catalog["definitions"]["PRE_MEETING_DOCS_DAYS"].id,
        config={"days": 10},
    )

    due = calculate_due_dates(date(2024, 3, 15), effective_rules(pack))

    assert due.pre_docs_deadline == date(2024, 3, 1)
    assert due.post_docs_deadline is None
