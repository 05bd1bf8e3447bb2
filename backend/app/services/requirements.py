"""
SpecDate Backend — Spec Requirement Evaluation
================================================

What:  Pure functions deciding whether a profile satisfies a spec's
       compulsory requirements.
Who:   SpecService.join_spec(); unit-tested directly.

Rules:
    age      derived from profile.dob in whole years; numeric comparison
    height   centimetres; numeric comparison
    other    profile attribute compared as strings:
               list value  → membership (`in`, `=`) / exclusion (`not_in`, `!=`)
               scalar      → equality, or numeric ordering for > >= < <=
             list-valued attributes (hobbies) match when any item matches
             booleans (is_smoker) match "1"/"0" and "true"/"false" alike

The first unmet requirement raises ValidationError with a message such as
"Requirement not met: height (min 170 cm, yours is 165 cm)".
"""

import json
from datetime import date
from typing import Any, Iterable, List, Optional

from app.exceptions import ValidationError

NUMERIC_OPERATORS = {">", ">=", "<", "<=", "=", "!="}


def age_from_dob(dob: Optional[date], today: Optional[date] = None) -> Optional[int]:
    if dob is None:
        return None
    today = today or date.today()
    years = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        years -= 1
    return years


def decode_value(raw: Any) -> Any:
    """Requirement values are stored as text; lists are JSON-encoded."""
    if isinstance(raw, str):
        stripped = raw.strip()
        if stripped.startswith("[") or stripped.startswith("{"):
            try:
                return json.loads(stripped)
            except ValueError:
                return raw
    return raw


def encode_value(value: Any) -> str:
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


def _to_number(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def compare_numeric(actual: float, operator: str, expected: float) -> bool:
    if operator == ">=":
        return actual >= expected
    if operator == "<=":
        return actual <= expected
    if operator == ">":
        return actual > expected
    if operator == "<":
        return actual < expected
    if operator == "!=":
        return actual != expected
    return actual == expected


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


BOOLEAN_SPELLINGS = {"true": "1", "false": "0"}


def _normalize(value: Any) -> str:
    """Lowercased text; booleans compare as "1" / "0" whichever way they are spelled."""
    if isinstance(value, bool):
        return "1" if value else "0"
    text = str(value).strip().lower()
    return BOOLEAN_SPELLINGS.get(text, text)


def _as_strings(values: Iterable[Any]) -> List[str]:
    return [_normalize(v) for v in values if v is not None]


def _matches_attribute(user_value: Any, operator: str, expected: Any) -> bool:
    if isinstance(user_value, list):
        user_values = _as_strings(user_value)
    elif user_value is None or (isinstance(user_value, str) and not user_value.strip()):
        user_values = []
    else:
        user_values = _as_strings([user_value])

    negated = operator in ("!=", "not_in")

    if not user_values:
        # Nothing to compare; an exclusion rule is satisfied, anything else is not
        return negated

    if isinstance(expected, list):
        allowed = set(_as_strings(expected))
        hit = any(v in allowed for v in user_values)
        return not hit if negated else hit

    if operator in (">", ">=", "<", "<="):
        expected_num = _to_number(expected)
        actual_num = _to_number(user_values[0])
        if expected_num is None or actual_num is None:
            return False
        return compare_numeric(actual_num, operator, expected_num)

    hit = _normalize(expected) in user_values
    return not hit if negated else hit


def check_requirements(profile: Any, requirements: Iterable[Any], today: Optional[date] = None) -> None:
    """
    Raises ValidationError for the first compulsory requirement the profile misses.

    `profile` is a UserProfile (or None); `requirements` are SpecRequirement rows.
    """
    for req in requirements:
        if not req.is_compulsory:
            continue

        field = req.field
        operator = req.operator or "="
        expected = decode_value(req.value)

        if field == "age":
            user_age = age_from_dob(getattr(profile, "dob", None), today)
            if user_age is None:
                raise _unmet("age (date of birth required)")
            if not _numeric_requirement_met(user_age, operator, expected):
                raise _unmet(f"age (your age is {user_age})")
            continue

        if field == "height":
            user_height = getattr(profile, "height", None)
            if user_height is None or user_height == "":
                raise _unmet("height (height is required)")
            user_height = int(user_height)
            if not _numeric_requirement_met(user_height, operator, expected):
                if operator == ">=" and _to_number(expected) is not None:
                    raise _unmet(
                        f"height (min {_format_number(_to_number(expected))} cm, "
                        f"yours is {user_height} cm)"
                    )
                raise _unmet(f"height (yours is {user_height} cm)")
            continue

        user_value = getattr(profile, field, None) if profile is not None else None
        if not _matches_attribute(user_value, operator, expected):
            raise _unmet(field)


def _numeric_requirement_met(actual: int, operator: str, expected: Any) -> bool:
    if isinstance(expected, list):
        allowed = {_to_number(v) for v in expected}
        hit = float(actual) in allowed
        return not hit if operator in ("!=", "not_in") else hit
    expected_num = _to_number(expected)
    if expected_num is None:
        return False
    return compare_numeric(float(actual), operator, expected_num)


def _unmet(detail: str) -> ValidationError:
    return ValidationError(
        message=f"Requirement not met: {detail}",
        field="requirements",
    )
