"""Validation rules: pure predicates over a single field value.

Every rule returns exactly one ValidationOutcome and never raises; an absent
(None) or malformed value is simply invalid.
"""

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum


class Rule(str, Enum):
    REQUIRED = "required"
    MIN_LENGTH = "min_length"
    MAX_LENGTH = "max_length"
    EMAIL = "email"
    DATE = "date"
    ONLY_NUMBERS = "only_numbers"
    ONLY_LETTERS = "only_letters"
    NUMBERS_AND_LETTERS = "numbers_and_letters"
    UNIQUE = "unique"


@dataclass(frozen=True)
class ValidationOutcome:
    rule: Rule
    is_valid: bool
    message: str


# Basic local@domain.tld shape, not full RFC 5322.
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
ONLY_NUMBERS_PATTERN = re.compile(r"[0-9]+")
ONLY_LETTERS_PATTERN = re.compile(r"[a-zA-Z]+")
NUMBERS_AND_LETTERS_PATTERN = re.compile(r"[0-9a-zA-Z]+")


def _fullmatch(pattern: re.Pattern[str], value: str | None) -> bool:
    return isinstance(value, str) and pattern.fullmatch(value) is not None


def is_required(value: str | None, field_name: str) -> ValidationOutcome:
    """Present and non-blank after trimming."""
    return ValidationOutcome(
        rule=Rule.REQUIRED,
        is_valid=isinstance(value, str) and value.strip() != "",
        message=f"{field_name} is required",
    )


def is_max_length(value: str | None, field_name: str, max_length: int) -> ValidationOutcome:
    return ValidationOutcome(
        rule=Rule.MAX_LENGTH,
        is_valid=isinstance(value, str) and len(value) <= max_length,
        message=f"{field_name} should be at most {max_length} characters long",
    )


def is_min_length(value: str | None, field_name: str, min_length: int) -> ValidationOutcome:
    return ValidationOutcome(
        rule=Rule.MIN_LENGTH,
        is_valid=isinstance(value, str) and len(value) >= min_length,
        message=f"{field_name} should be at least {min_length} characters long",
    )


def is_valid_email(value: str | None, field_name: str) -> ValidationOutcome:
    return ValidationOutcome(
        rule=Rule.EMAIL,
        is_valid=_fullmatch(EMAIL_PATTERN, value),
        message="Please enter a valid email address",
    )


def is_valid_date(value: str | None, field_name: str) -> ValidationOutcome:
    """YYYY-MM-DD that is also a real calendar date (2022-02-30 is rejected)."""
    if not _fullmatch(DATE_PATTERN, value):
        return ValidationOutcome(
            rule=Rule.DATE,
            is_valid=False,
            message=f"{field_name} should be a valid date in the format YYYY-MM-DD",
        )
    try:
        date.fromisoformat(value)
    except ValueError:
        return ValidationOutcome(
            rule=Rule.DATE,
            is_valid=False,
            message=f"{field_name} contains an invalid date",
        )
    return ValidationOutcome(rule=Rule.DATE, is_valid=True, message=f"{field_name} is a valid date")


def is_only_numbers(value: str | None, field_name: str) -> ValidationOutcome:
    return ValidationOutcome(
        rule=Rule.ONLY_NUMBERS,
        is_valid=_fullmatch(ONLY_NUMBERS_PATTERN, value),
        message=f"{field_name} should contain only numbers",
    )


def is_only_letters(value: str | None, field_name: str) -> ValidationOutcome:
    return ValidationOutcome(
        rule=Rule.ONLY_LETTERS,
        is_valid=_fullmatch(ONLY_LETTERS_PATTERN, value),
        message=f"{field_name} should contain only letters",
    )


def is_numbers_and_letters(value: str | None, field_name: str) -> ValidationOutcome:
    return ValidationOutcome(
        rule=Rule.NUMBERS_AND_LETTERS,
        is_valid=_fullmatch(NUMBERS_AND_LETTERS_PATTERN, value),
        message=f"{field_name} should contain only numbers and letters",
    )
