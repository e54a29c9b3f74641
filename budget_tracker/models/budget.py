"""
Derived-value models returned by the ledger.

These are plain immutable records. The presentation layer decides how to
render them (colors, alerts, vibration); nothing here triggers UI action.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from budget_tracker.models.transaction import Category


class BudgetSeverity(str, Enum):
    """
    Budget consumption classification.

    normal   -> percentage < 80
    warning  -> 80 <= percentage < 100
    exceeded -> percentage >= 100
    """
    NORMAL = "normal"
    WARNING = "warning"
    EXCEEDED = "exceeded"


class _DerivedModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        frozen=True,
    )


class BudgetProgress(_DerivedModel):
    """How much of a budget limit has been spent."""

    spent: Decimal
    budget: Decimal
    percentage: Decimal = Field(
        ...,
        description="spent / budget * 100, or 0 when no budget is set"
    )
    severity: BudgetSeverity

    @property
    def remaining(self) -> Decimal:
        return max(Decimal("0"), self.budget - self.spent)


class UpcomingPayment(_DerivedModel):
    """The next projected occurrence of a recurring transaction."""

    transaction_id: str
    title: str
    amount: Decimal
    due_date: datetime
    days_until_due: int = Field(..., ge=0)


class CategoryBreakdown(_DerivedModel):
    """One slice of the spending-by-category chart."""

    category: Category
    amount: Decimal = Field(..., ge=0)
    percentage: Decimal = Field(..., ge=0)


class BudgetAlert(_DerivedModel):
    """
    Signal that a category crossed into 'exceeded' for the first time in
    a month. Emitted once per category per month.
    """

    category: Category
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    spent: Decimal
    budget: Decimal
    percentage: Decimal
