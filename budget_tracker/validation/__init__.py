"""Input validation package."""

from budget_tracker.validation.validator import (
    TransactionValidator,
    convert_pydantic_error,
    get_user_friendly_message,
    parse_amount,
    parse_budget_limit,
    parse_category,
    parse_direction,
    parse_installment_count,
    parse_stored_amount,
    validate_unique_ids,
    validate_user_owns,
)

__all__ = [
    "TransactionValidator",
    "convert_pydantic_error",
    "get_user_friendly_message",
    "parse_amount",
    "parse_budget_limit",
    "parse_category",
    "parse_direction",
    "parse_installment_count",
    "parse_stored_amount",
    "validate_unique_ids",
    "validate_user_owns",
]
