"""Field validation: ordered rule checks plus the async uniqueness check against storage."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from accounts.services import rules
from accounts.services.rules import Rule, ValidationOutcome

if TYPE_CHECKING:
    from accounts.core.storage import Collection

logger = logging.getLogger(__name__)


class ValidationFailed(Exception):
    """One or more fields failed validation; messages are in report order."""

    def __init__(self, messages: list[str]) -> None:
        self.messages = messages
        super().__init__("; ".join(messages))


@dataclass(frozen=True)
class FieldDescriptor:
    """
    One input value and the exact constraints to check it against.

    unique_in is the collection to look for an existing record in; when it is
    None no uniqueness check is made. field_name doubles as the column name for
    that lookup.
    """

    field_name: str
    value: str | None
    min_length: int | None = None
    max_length: int | None = None
    required: bool = False
    is_date: bool = False
    is_email: bool = False
    only_numbers: bool = False
    only_letters: bool = False
    numbers_and_letters: bool = False
    unique_in: Collection[Any] | None = None


async def is_unique(value: str | None, field_name: str, collection: Collection[Any]) -> ValidationOutcome:
    """
    Valid when no record in collection has field_name equal to value.

    Fails closed: if storage cannot be queried the value is reported as not
    unique with the error description.
    """
    try:
        existing = await collection.find_one({field_name: value})
    except (SQLAlchemyError, OSError) as e:
        logger.error(
            "Uniqueness check failed",
            extra={"field": field_name, "reason": str(e)[:500]},
        )
        return ValidationOutcome(
            rule=Rule.UNIQUE,
            is_valid=False,
            message=f"Error checking field value uniqueness: {e}",
        )
    return ValidationOutcome(
        rule=Rule.UNIQUE,
        is_valid=existing is None,
        message=f"{field_name} already exists",
    )


def check_rules(field: FieldDescriptor) -> list[ValidationOutcome]:
    """Evaluate the synchronous rules configured on field, in report order."""
    value, name = field.value, field.field_name
    outcomes: list[ValidationOutcome] = []
    if field.min_length is not None:
        outcomes.append(rules.is_min_length(value, name, field.min_length))
    if field.max_length is not None:
        outcomes.append(rules.is_max_length(value, name, field.max_length))
    if field.required:
        outcomes.append(rules.is_required(value, name))
    if field.is_date:
        outcomes.append(rules.is_valid_date(value, name))
    if field.is_email:
        outcomes.append(rules.is_valid_email(value, name))
    if field.only_numbers:
        outcomes.append(rules.is_only_numbers(value, name))
    if field.only_letters:
        outcomes.append(rules.is_only_letters(value, name))
    if field.numbers_and_letters:
        outcomes.append(rules.is_numbers_and_letters(value, name))
    return outcomes


async def validate(fields: Iterable[FieldDescriptor]) -> list[str]:
    """
    Return the failure messages for fields; an empty list means all valid.

    Fields are checked in input order. Uniqueness runs last for each field and
    is awaited before moving on, so one call never has more than one storage
    query in flight.
    """
    errors: list[str] = []
    for field in fields:
        errors.extend(o.message for o in check_rules(field) if not o.is_valid)
        if field.unique_in is not None:
            outcome = await is_unique(field.value, field.field_name, field.unique_in)
            if not outcome.is_valid:
                errors.append(outcome.message)
    return errors


async def ensure_valid(fields: Iterable[FieldDescriptor]) -> None:
    """Raise ValidationFailed if any field fails."""
    errors = await validate(fields)
    if errors:
        raise ValidationFailed(errors)
