"""
SpecDate Backend — Requirement Evaluation Unit Tests
======================================================

Pure-function tests: no database, profiles and requirements are plain
namespaces shaped like the ORM rows.
"""

from datetime import date
from types import SimpleNamespace

import pytest

from app.exceptions import ValidationError
from app.services.requirements import (
    age_from_dob,
    check_requirements,
    decode_value,
    encode_value,
)

TODAY = date(2026, 10, 19)


def profile(**overrides):
    fields = {
        "dob": date(1995, 6, 15),
        "height": 170,
        "sex": "Female",
        "religion": "None",
        "hobbies": ["hiking", "Chess"],
        "is_smoker": False,
        "city": "London",
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def req(field, operator, value, compulsory=True):
    return SimpleNamespace(
        field=field,
        operator=operator,
        value=encode_value(value),
        is_compulsory=compulsory,
    )


class TestAgeFromDob:

    def test_birthday_not_yet_reached(self):
        assert age_from_dob(date(2000, 10, 20), today=TODAY) == 25

    def test_birthday_today(self):
        assert age_from_dob(date(2000, 10, 19), today=TODAY) == 26

    def test_missing_dob(self):
        assert age_from_dob(None, today=TODAY) is None


class TestValueEncoding:

    def test_lists_are_json(self):
        assert encode_value(["a", "b"]) == '["a", "b"]'
        assert decode_value('["a", "b"]') == ["a", "b"]

    def test_scalars_are_text(self):
        assert encode_value(170) == "170"
        assert decode_value("170") == "170"

    def test_malformed_json_is_kept_as_text(self):
        assert decode_value("[not json") == "[not json"


class TestCheckRequirements:

    def test_no_requirements(self):
        check_requirements(profile(), [], today=TODAY)

    def test_optional_requirements_are_ignored(self):
        check_requirements(profile(), [req("height", ">=", 190, compulsory=False)], today=TODAY)

    def test_age_within_range(self):
        check_requirements(
            profile(),
            [req("age", ">=", 25), req("age", "<=", 35)],
            today=TODAY,
        )

    def test_age_too_young(self):
        with pytest.raises(ValidationError, match=r"Requirement not met: age \(your age is 31\)"):
            check_requirements(profile(), [req("age", ">=", 35)], today=TODAY)

    def test_age_needs_dob(self):
        with pytest.raises(ValidationError, match="date of birth required"):
            check_requirements(profile(dob=None), [req("age", ">=", 18)], today=TODAY)

    def test_height_minimum_message(self):
        with pytest.raises(ValidationError) as exc_info:
            check_requirements(profile(), [req("height", ">=", 175)], today=TODAY)
        assert exc_info.value.message == "Requirement not met: height (min 175 cm, yours is 170 cm)"
        assert exc_info.value.errors == {"requirements": [exc_info.value.message]}

    def test_height_required(self):
        with pytest.raises(ValidationError, match="height is required"):
            check_requirements(profile(height=None), [req("height", ">=", 150)], today=TODAY)

    def test_membership_is_case_insensitive(self):
        check_requirements(profile(), [req("religion", "in", ["Christian", "none"])], today=TODAY)

    def test_exclusion(self):
        with pytest.raises(ValidationError, match="Requirement not met: sex"):
            check_requirements(profile(), [req("sex", "not_in", ["Female"])], today=TODAY)

    def test_list_attribute_matches_any_item(self):
        check_requirements(profile(), [req("hobbies", "=", "chess")], today=TODAY)

    def test_boolean_attribute(self):
        check_requirements(profile(), [req("is_smoker", "=", "false")], today=TODAY)
        with pytest.raises(ValidationError, match="Requirement not met: is_smoker"):
            check_requirements(profile(), [req("is_smoker", "=", "true")], today=TODAY)

    @pytest.mark.parametrize("wanted", ["1", 1, True, "true", " TRUE "])
    def test_boolean_attribute_numeric_spelling(self, wanted):
        check_requirements(profile(is_smoker=True), [req("is_smoker", "=", wanted)], today=TODAY)
        with pytest.raises(ValidationError, match="Requirement not met: is_smoker"):
            check_requirements(profile(is_smoker=False), [req("is_smoker", "=", wanted)], today=TODAY)

    def test_boolean_attribute_in_list(self):
        check_requirements(profile(is_drug_user=False), [req("is_drug_user", "!=", "1")], today=TODAY)
        check_requirements(profile(is_smoker=False), [req("is_smoker", "in", ["0"])], today=TODAY)

    def test_empty_attribute_fails_inclusion_but_passes_exclusion(self):
        empty = profile(religion=None)
        check_requirements(empty, [req("religion", "!=", "Christian")], today=TODAY)
        with pytest.raises(ValidationError):
            check_requirements(empty, [req("religion", "=", "Christian")], today=TODAY)

    def test_first_unmet_requirement_wins(self):
        with pytest.raises(ValidationError, match="age"):
            check_requirements(
                profile(),
                [req("age", ">=", 40), req("height", ">=", 190)],
                today=TODAY,
            )
