# sped_core/rules/configs.py
"""
Typed rule configuration.

Each known RuleDefinition.key maps to one frozen dataclass. Pack overrides are
shallow-merged over the definition default and parsed into that dataclass, so
bad shapes are rejected when a rule is attached instead of when it is read.
Unknown keys keep a free-form mapping (OpaqueConfig).
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, ClassVar, Mapping, Union


class RuleConfigError(ValueError):
    def __init__(self, key: str, errors: dict[str, str]):
        self.key = key
        self.errors = errors
        super().__init__(f"Invalid config for rule {key}: {errors}")


class RuleKey:
    PRE_MEETING_DOCS_DAYS = "PRE_MEETING_DOCS_DAYS"
    POST_MEETING_DOCS_DAYS = "POST_MEETING_DOCS_DAYS"
    DEFAULT_DELIVERY_METHOD = "DEFAULT_DELIVERY_METHOD"
    US_MAIL_PRE_MEETING_DAYS = "US_MAIL_PRE_MEETING_DAYS"
    US_MAIL_POST_MEETING_DAYS = "US_MAIL_POST_MEETING_DAYS"
    CONFERENCE_NOTES_REQUIRED = "CONFERENCE_NOTES_REQUIRED"
    INITIAL_IEP_CONSENT_GATE = "INITIAL_IEP_CONSENT_GATE"
    CONTINUED_MEETING_NOTICE_DAYS = "CONTINUED_MEETING_NOTICE_DAYS"
    CONTINUED_MEETING_MUTUAL_AGREEMENT = "CONTINUED_MEETING_MUTUAL_AGREEMENT"
    AUDIO_RECORDING_RULE = "AUDIO_RECORDING_RULE"


DELIVERY_METHODS = ("SEND_HOME", "US_MAIL", "PICK_UP")


@dataclass(frozen=True)
class DocumentDaysConfig:
    kind: ClassVar[str] = "document_lead_days"
    days: int


@dataclass(frozen=True)
class MailOffsetConfig:
    kind: ClassVar[str] = "mail_offset_days"
    days: int


@dataclass(frozen=True)
class NoticeDaysConfig:
    kind: ClassVar[str] = "notice_days"
    days: int


@dataclass(frozen=True)
class DeliveryMethodConfig:
    kind: ClassVar[str] = "delivery_method"
    method: str


@dataclass(frozen=True)
class RequirementConfig:
    kind: ClassVar[str] = "requirement"
    required: bool


@dataclass(frozen=True)
class GateConfig:
    kind: ClassVar[str] = "gate"
    enabled: bool


@dataclass(frozen=True)
class AudioRecordingConfig:
    kind: ClassVar[str] = "audio_recording"
    staff_must_record_if_parent_records: bool
    mark_as_not_official_record: bool


@dataclass(frozen=True)
class OpaqueConfig:
    kind: ClassVar[str] = "opaque"
    values: Mapping[str, Any] = field(default_factory=dict)


RuleConfig = Union[
    DocumentDaysConfig,
    MailOffsetConfig,
    NoticeDaysConfig,
    DeliveryMethodConfig,
    RequirementConfig,
    GateConfig,
    AudioRecordingConfig,
    OpaqueConfig,
]


CONFIG_TYPES: dict[str, type] = {
    RuleKey.PRE_MEETING_DOCS_DAYS: DocumentDaysConfig,
    RuleKey.POST_MEETING_DOCS_DAYS: DocumentDaysConfig,
    RuleKey.US_MAIL_PRE_MEETING_DAYS: MailOffsetConfig,
    RuleKey.US_MAIL_POST_MEETING_DAYS: MailOffsetConfig,
    RuleKey.CONTINUED_MEETING_NOTICE_DAYS: NoticeDaysConfig,
    RuleKey.DEFAULT_DELIVERY_METHOD: DeliveryMethodConfig,
    RuleKey.CONFERENCE_NOTES_REQUIRED: RequirementConfig,
    RuleKey.CONTINUED_MEETING_MUTUAL_AGREEMENT: RequirementConfig,
    RuleKey.INITIAL_IEP_CONSENT_GATE: GateConfig,
    RuleKey.AUDIO_RECORDING_RULE: AudioRecordingConfig,
}

DEFAULT_CONFIGS: dict[str, dict[str, Any]] = {
    RuleKey.PRE_MEETING_DOCS_DAYS: {"days": 5},
    RuleKey.POST_MEETING_DOCS_DAYS: {"days": 5},
    RuleKey.US_MAIL_PRE_MEETING_DAYS: {"days": 3},
    RuleKey.US_MAIL_POST_MEETING_DAYS: {"days": 3},
    RuleKey.CONTINUED_MEETING_NOTICE_DAYS: {"days": 10},
    RuleKey.DEFAULT_DELIVERY_METHOD: {"method": "SEND_HOME"},
    RuleKey.CONFERENCE_NOTES_REQUIRED: {"required": True},
    RuleKey.CONTINUED_MEETING_MUTUAL_AGREEMENT: {"required": True},
    RuleKey.INITIAL_IEP_CONSENT_GATE: {"enabled": True},
    RuleKey.AUDIO_RECORDING_RULE: {
        "staff_must_record_if_parent_records": True,
        "mark_as_not_official_record": True,
    },
}

MAX_DAYS = 365


def _check_value(name: str, value: Any, expected: Any) -> str | None:
    if expected is bool or expected == "bool":
        if not isinstance(value, bool):
            return "Must be a boolean."
        return None
    if expected is int or expected == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            return "Must be an integer."
        if name == "days" and not 0 <= value <= MAX_DAYS:
            return f"Must be between 0 and {MAX_DAYS}."
        return None
    if expected is str or expected == "str":
        if not isinstance(value, str):
            return "Must be a string."
        if name == "method" and value not in DELIVERY_METHODS:
            return f"Must be one of {', '.join(DELIVERY_METHODS)}."
        return None
    return None


def parse_config(key: str, data: Mapping[str, Any] | None) -> RuleConfig:
    """
    Build the typed config for `key` from a complete mapping.
    Raises RuleConfigError listing every bad field.
    """
    data = dict(data or {})
    config_type = CONFIG_TYPES.get(key)
    if config_type is None:
        return OpaqueConfig(values=data)

    errors: dict[str, str] = {}
    kwargs: dict[str, Any] = {}
    known = {f.name: f.type for f in fields(config_type)}

    for name in data:
        if name not in known:
            errors[name] = "Unknown field."

    for name, expected in known.items():
        if name not in data:
            errors[name] = "This field is required."
            continue
        problem = _check_value(name, data[name], expected)
        if problem:
            errors[name] = problem
        else:
            kwargs[name] = data[name]

    if errors:
        raise RuleConfigError(key, errors)
    return config_type(**kwargs)


def merge_config(key: str, default: Mapping[str, Any] | None, override: Mapping[str, Any] | None) -> RuleConfig:
    """
    Shallow per-field merge of `override` over `default` (falling back to the
    built-in default for known keys), then parse.
    """
    base = dict(DEFAULT_CONFIGS.get(key, {}))
    base.update(default or {})
    base.update(override or {})
    return parse_config(key, base)


def validate_override(key: str, default: Mapping[str, Any] | None, override: Any) -> dict[str, Any]:
    """
    Validate a pack-level override and return it as a plain dict to persist.
    """
    if override is None:
        return {}
    if not isinstance(override, Mapping):
        raise RuleConfigError(key, {"config": "Must be an object."})
    merge_config(key, default, override)
    return dict(override)


def config_to_dict(config: RuleConfig) -> dict[str, Any]:
    if isinstance(config, OpaqueConfig):
        payload = dict(config.values)
    else:
        payload = asdict(config)
    payload["kind"] = config.kind
    return payload
