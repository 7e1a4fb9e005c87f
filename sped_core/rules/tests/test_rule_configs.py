import pytest

from sped_core.rules.configs import (
    AudioRecordingConfig,
    DocumentDaysConfig,
    OpaqueConfig,
    RuleConfigError,
    RuleKey,
    config_to_dict,
    merge_config,
    parse_config,
    validate_override,
)


def test_override_is_shallow_merged_over_default():
    config = merge_config(
        RuleKey.AUDIO_RECORDING_RULE,
        {"staff_must_record_if_parent_records": True, "mark_as_not_official_record": True},
        {"mark_as_not_official_record": False},
    )
    assert config == AudioRecordingConfig(
        staff_must_record_if_parent_records=True,
        mark_as_not_official_record=False,
    )


def test_builtin_default_fills_an_empty_definition_default():
    assert merge_config(RuleKey.PRE_MEETING_DOCS_DAYS, {}, None) == DocumentDaysConfig(days=5)


def test_parse_reports_every_bad_field():
    with pytest.raises(RuleConfigError) as excinfo:
        parse_config(
            RuleKey.AUDIO_RECORDING_RULE,
            {"staff_must_record_if_parent_records": "yes", "extra": 1},
        )

    errors = excinfo.value.errors
    assert set(errors) == {"staff_must_record_if_parent_records", "mark_as_not_official_record", "extra"}


def test_booleans_are_not_accepted_as_days():
    with pytest.raises(RuleConfigError):
        parse_config(RuleKey.CONTINUED_MEETING_NOTICE_DAYS, {"days": True})


def test_unknown_keys_keep_free_form_config():
    config = merge_config("DISTRICT_SPECIFIC_RULE", {"threshold": 3}, {"note": "x"})

    assert config == OpaqueConfig(values={"threshold": 3, "note": "x"})
    assert config_to_dict(config) == {"threshold": 3, "note": "x", "kind": "opaque"}


def test_validate_override_returns_only_the_override():
    stored = validate_override(RuleKey.POST_MEETING_DOCS_DAYS, {"days": 5}, {"days": 8})
    assert stored == {"days": 8}
    assert validate_override(RuleKey.POST_MEETING_DOCS_DAYS, {"days": 5}, None) == {}


def test_config_to_dict_tags_the_kind():
    payload = config_to_dict(DocumentDaysConfig(days=3))
    assert payload == {"days": 3, "kind": DocumentDaysConfig.kind}
