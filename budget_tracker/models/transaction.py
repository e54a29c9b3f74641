"""
Core Data Models for Budget Tracker

These models define the strict schemas for all transaction data.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Stay immutable once built (the ledger never mutates records)

DESIGN DECISION: The sign of `amount` is the ONLY source of truth for
direction. Positive = income, negative = expense. The `direction` and
`type` attributes are derived properties and are never stored, so the
two representations can never disagree.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from budget_tracker.exceptions import ValidationError
from budget_tracker.utils.date_helpers import as_utc, utc_now


# Installment amounts are compared with this tolerance (one cent)
ROUNDING_TOLERANCE = Decimal("0.01")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Category(str, Enum):
    """
    Supported transaction categories.

    DESIGN DECISION: Using explicit categories rather than free text ensures
    consistent categorization and reliable aggregation. Colors and icons are
    a presentation concern and live outside this package.
    """
    HOUSING = "Housing"
    FOOD = "Food"
    TRANSPORT = "Transport"
    BILLS = "Bills"
    ENTERTAINMENT = "Entertainment"
    HEALTH = "Health"
    SHOPPING = "Shopping"
    OTHER = "Other"


# Sentinel accepted by category filters; not a real category
ALL_CATEGORIES = "All"


class Direction(str, Enum):
    """Whether a transaction increases or decreases the balance."""
    INCOME = "income"
    EXPENSE = "expense"

    def signed(self, magnitude: Decimal) -> Decimal:
        """Apply this direction's sign to a magnitude."""
        magnitude = abs(magnitude)
        return magnitude if self is Direction.INCOME else -magnitude


class DateRange(str, Enum):
    """Look-back windows offered by the date-range filter."""
    WEEK = "Week"
    MONTH = "Month"
    YEAR = "Year"
    ALL = "All"


# =============================================================================
# CORE TRANSACTION MODEL
# =============================================================================

class Transaction(BaseModel):
    """
    A single income or expense record.

    Stored documents use camelCase keys (isRecurring, totalInstallments,
    userId, ...); Python code uses the snake_case field names. Both are
    accepted on input.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        alias_generator=to_camel,
        frozen=True,
    )

    # Identity
    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Opaque unique identifier, stable for the record's lifetime"
    )
    user_id: Optional[str] = Field(
        default=None,
        description="Owning user"
    )

    # Core fields
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Free-text label"
    )
    amount: Decimal = Field(
        ...,
        decimal_places=2,
        description="Signed amount: positive = income, negative = expense"
    )
    category: Category = Field(
        ...,
        description="Transaction category"
    )
    date: datetime = Field(
        default_factory=utc_now,
        description="When the transaction happened (UTC)"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=1000,
        description="Optional user note"
    )

    # Recurrence
    is_recurring: bool = Field(
        default=False,
        description="Repeats monthly"
    )

    # Installment plan membership
    is_installment: bool = False
    total_installments: Optional[int] = Field(default=None, ge=1)
    current_installment: Optional[int] = Field(default=None, ge=1)
    total_amount: Optional[Decimal] = Field(default=None, gt=0)
    installment_amount: Optional[Decimal] = Field(default=None, gt=0)
    installment_description: Optional[str] = Field(
        default=None,
        max_length=300,
        description="Display label, e.g. 'Laptop (1/3 Installment Payment)'"
    )

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        """Store every instant as aware UTC."""
        return as_utc(v)

    @model_validator(mode='after')
    def validate_amount_and_installments(self) -> 'Transaction':
        """Check the amount and the installment invariants."""
        if self.amount == 0:
            raise ValidationError(
                "amount", "Amount must be non-zero (its sign encodes the direction)"
            )

        if not self.is_installment:
            return self

        if self.total_installments is None:
            raise ValidationError(
                "totalInstallments", "Installment transaction is missing totalInstallments"
            )
        if self.total_amount is None:
            raise ValidationError(
                "totalAmount", "Installment transaction is missing totalAmount"
            )
        if (
            self.current_installment is not None
            and self.current_installment > self.total_installments
        ):
            raise ValidationError(
                "currentInstallment",
                f"Installment {self.current_installment} exceeds "
                f"the plan's {self.total_installments} installments",
            )

        expected = self.total_amount / self.total_installments
        if abs(abs(self.amount) - expected) > ROUNDING_TOLERANCE:
            raise ValidationError(
                "amount",
                f"Installment amount {abs(self.amount)} does not match "
                f"{self.total_amount} / {self.total_installments}",
            )

        return self

    # -------------------------------------------------------------------------
    # Derived properties
    # -------------------------------------------------------------------------

    @property
    def direction(self) -> Direction:
        return Direction.INCOME if self.amount > 0 else Direction.EXPENSE

    @property
    def type(self) -> str:
        """Legacy string form of the direction ('income' / 'expense')."""
        return self.direction.value

    @property
    def is_income(self) -> bool:
        return self.amount > 0

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    @property
    def magnitude(self) -> Decimal:
        return abs(self.amount)

    def to_document(self) -> dict:
        """
        Convert to the stored document form.

        camelCase keys, ISO-8601 date, amounts as strings, unset optional
        fields omitted.
        """
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
