"""
Input Validation Boundary

DESIGN DECISION: Raw values enter the system in exactly two ways:

1. FORM INPUT - strings typed by the user (amount, installment count,
   budget limit, category picked from a list)
2. STORED RECORDS - dicts loaded back from the persistence gateway,
   possibly written by older versions of the app

Both pass through this module before they become models.

IMPORTANT: Validation NEVER silently fixes issues.
A non-numeric amount is an error naming the field, never a zero.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from budget_tracker.exceptions import LedgerError, RangeError, ValidationError
from budget_tracker.models.transaction import Category, Direction, Transaction


CENT = Decimal("0.01")

# Keys written by older versions of the app, mapped to current ones
LEGACY_KEYS = {
    "recurring": "isRecurring",
    "installment": "isInstallment",
}

# Optional monetary fields, in both naming styles
OPTIONAL_AMOUNT_KEYS = (
    "totalAmount",
    "total_amount",
    "installmentAmount",
    "installment_amount",
)

FIELD_LABELS = {
    "amount": "Amount",
    "category": "Category",
    "title": "Description",
    "type": "Transaction type",
    "totalInstallments": "Number of installments",
    "totalAmount": "Total amount",
    "currentInstallment": "Installment number",
    "budget": "Budget limit",
}


# =============================================================================
# SCALAR PARSERS (form input)
# =============================================================================

def _parse_number(raw: Any, field: str) -> Decimal:
    if raw is None or isinstance(raw, bool):
        raise ValidationError(field, "Amount is required")

    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, int):
        value = Decimal(raw)
    elif isinstance(raw, (float, str)):
        text = str(raw).strip().replace(",", ".")
        if not text:
            raise ValidationError(field, "Amount is required")
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise ValidationError(field, f"'{raw}' is not a valid number") from None
    else:
        raise ValidationError(
            field, f"Unsupported amount type: {type(raw).__name__}"
        )

    if not value.is_finite():
        raise ValidationError(field, f"'{raw}' is not a finite number")
    return value


def parse_amount(raw: Any, field: str = "amount") -> Decimal:
    """
    Parse a monetary amount.

    Accepts Decimal, int, float and numeric strings (surrounding whitespace
    ignored, a comma is accepted as the decimal separator). Rejects missing
    values, non-numbers, NaN/Infinity and more than two decimal places.
    """
    value = _parse_number(raw, field)
    if value != value.quantize(CENT):
        raise ValidationError(field, "Amount cannot have more than two decimal places")

    return value.quantize(CENT)


def parse_stored_amount(raw: Any, field: str = "amount") -> Decimal:
    """
    Parse an amount read back from storage.

    Older records hold float installment shares such as -33.333333333333336;
    these are rounded half-up to cents instead of being rejected.
    """
    return _parse_number(raw, field).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_category(raw: Any) -> Category:
    """Match a category by name, case-insensitively."""
    if isinstance(raw, Category):
        return raw
    if isinstance(raw, str):
        wanted = raw.strip().lower()
        for category in Category:
            if category.value.lower() == wanted:
                return category
    raise ValidationError(
        "category",
        f"'{raw}' is not a known category. "
        f"Expected one of: {', '.join(c.value for c in Category)}",
    )


def parse_direction(raw: Any) -> Direction:
    """Parse 'income' / 'expense'."""
    if isinstance(raw, Direction):
        return raw
    if isinstance(raw, str):
        try:
            return Direction(raw.strip().lower())
        except ValueError:
            pass
    raise ValidationError("type", f"'{raw}' is not 'income' or 'expense'")


def parse_installment_count(raw: Any) -> int:
    """Number of installments: a whole number of at least 1."""
    if isinstance(raw, bool):
        raise ValidationError("totalInstallments", "Please enter a valid number of installments")
    if isinstance(raw, int):
        count = raw
    elif isinstance(raw, str) and raw.strip().isdigit():
        count = int(raw.strip())
    else:
        raise ValidationError("totalInstallments", "Please enter a valid number of installments")

    if count < 1:
        raise ValidationError("totalInstallments", "Number of installments must be at least 1")
    return count


def parse_budget_limit(raw: Any) -> Decimal:
    """Budget limits are amounts that may be zero but never negative."""
    value = parse_amount(raw, field="budget")
    if value < 0:
        raise ValidationError("budget", "Budget limit cannot be negative")
    return value


# =============================================================================
# RECORD VALIDATION (stored documents)
# =============================================================================

class TransactionValidator:
    """
    Turns raw stored records into Transaction models.

    Normalizes legacy shapes first:
    - `recurring` / `installment` keys become `isRecurring` / `isInstallment`
    - a `type` field ("income"/"expense") sets the sign of `amount` and is
      then dropped, so direction is never stored twice
    """

    def normalize_record(self, record: dict) -> dict:
        """Return a normalized copy of record; the input is not modified."""
        data = dict(record)

        for legacy, key in LEGACY_KEYS.items():
            if legacy in data:
                value = data.pop(legacy)
                data.setdefault(key, bool(value))

        amount = parse_stored_amount(data.get("amount"))
        kind = data.pop("type", None)
        if kind is not None:
            amount = parse_direction(kind).signed(amount)
        data["amount"] = amount

        if "category" in data:
            data["category"] = parse_category(data["category"])

        for key in OPTIONAL_AMOUNT_KEYS:
            if data.get(key) in (None, ""):
                data.pop(key, None)
            else:
                data[key] = abs(parse_stored_amount(data[key], field=key))

        return data

    def parse_record(self, record: Any) -> Transaction:
        """
        Validate one stored record.

        Raises:
            ValidationError: naming the first offending field
        """
        if not isinstance(record, dict):
            raise ValidationError(
                "record", f"Expected a mapping, got {type(record).__name__}"
            )

        data = self.normalize_record(record)
        try:
            return Transaction.model_validate(data)
        except PydanticValidationError as e:
            raise convert_pydantic_error(e) from e

    def parse_records(self, records: Iterable[Any]) -> list[Transaction]:
        """
        Validate a user's whole transaction list.

        Ids must be unique within the list.
        """
        transactions = [self.parse_record(record) for record in records]
        validate_unique_ids(transactions)
        return transactions


def convert_pydantic_error(error: PydanticValidationError) -> ValidationError:
    """Map a pydantic error to our ValidationError (first issue wins)."""
    first = error.errors()[0]

    # Errors raised by our own model validators keep their field
    inner = (first.get("ctx") or {}).get("error")
    if isinstance(inner, ValidationError):
        return inner

    field = ".".join(str(part) for part in first.get("loc", ())) or "record"
    return ValidationError(field, first.get("msg", "Invalid value"))


def get_user_friendly_message(error: LedgerError) -> str:
    """
    Message shown to the user for a ledger error.

    The presentation layer decides how to display it (alert, inline text).
    """
    if isinstance(error, ValidationError):
        label = FIELD_LABELS.get(error.field, error.field)
        return f"{label}: {error.message}"
    if isinstance(error, RangeError):
        return "Please choose one of Week, Month, Year or All."
    return "Something went wrong. Please try again."


def validate_unique_ids(transactions: Iterable[Transaction]) -> None:
    """Raise if two transactions share an id."""
    seen: set[str] = set()
    for transaction in transactions:
        if transaction.id in seen:
            raise ValidationError("id", f"Duplicate transaction id: {transaction.id}")
        seen.add(transaction.id)


def validate_user_owns(
    transactions: Iterable[Transaction],
    user_id: Optional[str],
) -> None:
    """Raise if a transaction belongs to a different user."""
    for transaction in transactions:
        if transaction.user_id is not None and transaction.user_id != user_id:
            raise ValidationError(
                "userId",
                f"Transaction {transaction.id} belongs to another user",
            )
