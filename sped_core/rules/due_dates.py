# sped_core/rules/due_dates.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

from sped_core.rules.configs import RuleKey

DateLike = Union[date, datetime]


@dataclass(frozen=True)
class DocumentDueDates:
    pre_docs_deadline: Optional[DateLike] = None
    post_docs_deadline: Optional[DateLike] = None
    us_mail_pre_docs_deadline: Optional[DateLike] = None
    us_mail_post_docs_deadline: Optional[DateLike] = None


def add_business_days(start: DateLike, days: int) -> DateLike:
    """
    Move `days` business days from `start` (negative goes backwards). Weekends are skipped;
    holidays are not known here.
    """
    result = start
    step = timedelta(days=1 if days >= 0 else -1)
    remaining = abs(days)
    while remaining:
        result = result + step
        if result.weekday() < 5:
            remaining -= 1
    return result


def calculate_due_dates(meeting_at: DateLike, rules: Iterable) -> DocumentDueDates:
    """
    Document deadlines around a meeting from a resolved pack's effective rules.

    - pre deadline:  meeting - PRE_MEETING_DOCS_DAYS
    - post deadline: meeting + POST_MEETING_DOCS_DAYS
    - US-mail variants move each deadline earlier by the US_MAIL_* offsets.
    """
    by_key = {rule.key: rule.config for rule in rules}

    pre = post = mail_pre = mail_post = None

    if RuleKey.PRE_MEETING_DOCS_DAYS in by_key:
        pre = add_business_days(meeting_at, -by_key[RuleKey.PRE_MEETING_DOCS_DAYS].days)
    if RuleKey.POST_MEETING_DOCS_DAYS in by_key:
        post = add_business_days(meeting_at, by_key[RuleKey.POST_MEETING_DOCS_DAYS].days)
    if pre is not None and RuleKey.US_MAIL_PRE_MEETING_DAYS in by_key:
        mail_pre = add_business_days(pre, -by_key[RuleKey.US_MAIL_PRE_MEETING_DAYS].days)
    if post is not None and RuleKey.US_MAIL_POST_MEETING_DAYS in by_key:
        mail_post = add_business_days(post, -by_key[RuleKey.US_MAIL_POST_MEETING_DAYS].days)

    return DocumentDueDates(
        pre_docs_deadline=pre,
        post_docs_deadline=post,
        us_mail_pre_docs_deadline=mail_pre,
        us_mail_post_docs_deadline=mail_post,
    )
