"""
Ledger Aggregator

DESIGN DECISION: Aggregation is a set of PURE functions.
Every function takes the current transaction list (owned by the caller),
never mutates it, and returns new values. There is no cache and no state:
callers pass a fresh list on every query.

Reference instants are always explicit parameters so that results are
reproducible. Monetary values are Decimal end to end.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from budget_tracker.exceptions import RangeError, ValidationError
from budget_tracker.models.budget import (
    BudgetProgress,
    BudgetSeverity,
    CategoryBreakdown,
    UpcomingPayment,
)
from budget_tracker.models.transaction import (
    ALL_CATEGORIES,
    Category,
    DateRange,
    Direction,
    Transaction,
)
from budget_tracker.utils.date_helpers import (
    ONE_DAY,
    add_months,
    add_years,
    as_utc,
    days_until,
    month_bounds,
)
from budget_tracker.validation import (
    convert_pydantic_error,
    parse_amount,
    parse_category,
)


ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

WARNING_THRESHOLD = Decimal("80")
EXCEEDED_THRESHOLD = Decimal("100")

DEFAULT_RECENT_LIMIT = 5
DEFAULT_UPCOMING_LIMIT = 5

INSTALLMENT_LABEL = "{title} ({current}/{total} Installment Payment)"


# =============================================================================
# TOTALS
# =============================================================================

def total_income(transactions: Iterable[Transaction]) -> Decimal:
    """Sum of all income amounts. 0 for an empty list."""
    return sum((t.amount for t in transactions if t.is_income), ZERO)


def total_expense(transactions: Iterable[Transaction]) -> Decimal:
    """Sum of expense magnitudes. 0 for an empty list."""
    return sum((t.magnitude for t in transactions if t.is_expense), ZERO)


def balance(transactions: Sequence[Transaction]) -> Decimal:
    """Income minus expense. May be negative."""
    return total_income(transactions) - total_expense(transactions)


# =============================================================================
# FILTERS
# =============================================================================

def _parse_date_range(date_range: Union[DateRange, str]) -> DateRange:
    if isinstance(date_range, DateRange):
        return date_range
    try:
        return DateRange(date_range)
    except ValueError:
        raise RangeError(date_range) from None


def date_range_cutoff(
    date_range: Union[DateRange, str],
    reference: datetime,
) -> Optional[datetime]:
    """
    Cutoff instant for a look-back window, or None for All.

    Week subtracts 7 days; Month and Year use calendar arithmetic with the
    day clamped to the target month's last valid day.
    """
    window = _parse_date_range(date_range)
    ref = as_utc(reference)

    if window is DateRange.WEEK:
        return ref - 7 * ONE_DAY
    if window is DateRange.MONTH:
        return add_months(ref, -1)
    if window is DateRange.YEAR:
        return add_years(ref, -1)
    return None


def filter_by_date_range(
    transactions: Iterable[Transaction],
    date_range: Union[DateRange, str],
    reference: datetime,
) -> list[Transaction]:
    """Transactions dated on or after the window's cutoff."""
    cutoff = date_range_cutoff(date_range, reference)
    if cutoff is None:
        return list(transactions)
    return [t for t in transactions if t.date >= cutoff]


def filter_by_category(
    transactions: Iterable[Transaction],
    category: Union[Category, str],
) -> list[Transaction]:
    """
    Exact category match. "All" is a sentinel meaning no filtering and
    returns the same elements in the same order.
    """
    if category == ALL_CATEGORIES:
        return list(transactions)
    wanted = parse_category(category)
    return [t for t in transactions if t.category is wanted]


def recent_transactions(
    transactions: Iterable[Transaction],
    limit: int = DEFAULT_RECENT_LIMIT,
) -> list[Transaction]:
    """
    Most recent first. Ties keep their original relative order
    (sorted() is stable, also with reverse=True).
    """
    return sorted(transactions, key=lambda t: t.date, reverse=True)[:limit]


# =============================================================================
# MONTHLY VIEWS
# =============================================================================

def monthly_expense(
    transactions: Iterable[Transaction],
    reference: datetime,
    category: Optional[Union[Category, str]] = None,
) -> Decimal:
    """
    Expense magnitudes dated inside the calendar month of reference,
    optionally limited to one category.
    """
    wanted = parse_category(category) if category is not None else None
    start, end = month_bounds(reference)
    return sum(
        (
            t.magnitude for t in transactions
            if t.is_expense
            and start <= t.date < end
            and (wanted is None or t.category is wanted)
        ),
        ZERO,
    )


def monthly_income(
    transactions: Iterable[Transaction],
    reference: datetime,
) -> Decimal:
    """Income dated inside the calendar month of reference, all categories."""
    start, end = month_bounds(reference)
    return sum(
        (t.amount for t in transactions if t.is_income and start <= t.date < end),
        ZERO,
    )


# =============================================================================
# BUDGETS
# =============================================================================

def classify_budget(
    percentage: Decimal,
    warning_threshold: Decimal = WARNING_THRESHOLD,
    exceeded_threshold: Decimal = EXCEEDED_THRESHOLD,
) -> BudgetSeverity:
    if percentage >= exceeded_threshold:
        return BudgetSeverity.EXCEEDED
    if percentage >= warning_threshold:
        return BudgetSeverity.WARNING
    return BudgetSeverity.NORMAL


def budget_progress(
    spent: Decimal,
    budget: Decimal,
    warning_threshold: Decimal = WARNING_THRESHOLD,
    exceeded_threshold: Decimal = EXCEEDED_THRESHOLD,
) -> BudgetProgress:
    """
    Budget consumption as pure data.

    percentage is 0 when no positive budget is set. Alerting on
    'exceeded' is the presentation layer's job.
    """
    spent = Decimal(spent)
    budget = Decimal(budget)
    percentage = (spent / budget) * HUNDRED if budget > 0 else ZERO

    return BudgetProgress(
        spent=spent,
        budget=budget,
        percentage=percentage,
        severity=classify_budget(percentage, warning_threshold, exceeded_threshold),
    )


def budget_report(
    transactions: Sequence[Transaction],
    budgets: dict[Category, Decimal],
    reference: datetime,
    warning_threshold: Decimal = WARNING_THRESHOLD,
    exceeded_threshold: Decimal = EXCEEDED_THRESHOLD,
) -> dict[Category, BudgetProgress]:
    """Progress of every budgeted category for the month of reference."""
    report = {}
    for category in Category:
        if category not in budgets:
            continue
        report[category] = budget_progress(
            monthly_expense(transactions, reference, category),
            budgets[category],
            warning_threshold,
            exceeded_threshold,
        )
    return report


# =============================================================================
# STATISTICS
# =============================================================================

def spending_by_category(
    transactions: Iterable[Transaction],
) -> dict[Category, Decimal]:
    """Expense magnitudes per category; every category is present."""
    totals = {category: ZERO for category in Category}
    for t in transactions:
        if t.is_expense:
            totals[t.category] += t.magnitude
    return totals


def category_breakdown(
    transactions: Sequence[Transaction],
) -> list[CategoryBreakdown]:
    """
    Non-zero spending categories in enumeration order, each with its share
    of total expense.
    """
    totals = spending_by_category(transactions)
    overall = sum(totals.values(), ZERO)

    breakdown = []
    for category, amount in totals.items():
        if amount == 0:
            continue
        breakdown.append(CategoryBreakdown(
            category=category,
            amount=amount,
            percentage=(amount / overall) * HUNDRED,
        ))
    return breakdown


# =============================================================================
# PROJECTIONS
# =============================================================================

def project_upcoming_payments(
    transactions: Iterable[Transaction],
    reference: datetime,
    limit: int = DEFAULT_UPCOMING_LIMIT,
) -> list[UpcomingPayment]:
    """
    Next occurrence of each recurring transaction.

    Only ONE step ahead is projected: date + 1 calendar month. Occurrences
    not strictly after reference are dropped. Sorted by days until due
    (stable), nearest `limit` kept.
    """
    ref = as_utc(reference)
    upcoming = []

    for t in transactions:
        if not t.is_recurring:
            continue
        due = add_months(t.date, 1)
        if due <= ref:
            continue
        upcoming.append(UpcomingPayment(
            transaction_id=t.id,
            title=t.title,
            amount=t.amount,
            due_date=due,
            days_until_due=days_until(due, ref),
        ))

    upcoming.sort(key=lambda p: p.days_until_due)
    return upcoming[:limit]


def expand_installment_plan(
    title: str,
    total_amount: Union[Decimal, int, str],
    total_installments: int,
    start_date: datetime,
    direction: Union[Direction, str],
    category: Union[Category, str] = Category.OTHER,
    user_id: Optional[str] = None,
    description: Optional[str] = None,
) -> list[Transaction]:
    """
    Split a purchase into N monthly installments.

    Each installment is total / N rounded half-up to cents. The last
    installment is NOT adjusted for the rounding residue, so 100 in 3
    installments gives 3 x 33.33 = 99.99.

    Installment i (0-based) is dated start_date + i calendar months, with
    the day clamped to the month's end.
    """
    if isinstance(total_installments, bool) or not isinstance(total_installments, int):
        raise ValidationError("totalInstallments", "Installment count must be an integer")
    if total_installments < 1:
        raise ValidationError("totalInstallments", "Installment count must be at least 1")

    total = parse_amount(total_amount, field="totalAmount")
    if total <= 0:
        raise ValidationError("totalAmount", "Total amount must be greater than zero")

    try:
        direction = Direction(direction)
    except ValueError:
        raise ValidationError("type", f"Unknown direction: {direction!r}") from None

    category = parse_category(category)
    installment_amount = (total / total_installments).quantize(CENT, rounding=ROUND_HALF_UP)
    if installment_amount <= 0:
        raise ValidationError(
            "totalAmount",
            f"Total amount {total} is too small to split into {total_installments} installments",
        )
    start = as_utc(start_date)

    plan = []
    for i in range(total_installments):
        plan.append(_build_installment(
            title=title,
            amount=direction.signed(installment_amount),
            category=category,
            date=add_months(start, i),
            description=description,
            user_id=user_id,
            is_installment=True,
            total_installments=total_installments,
            current_installment=i + 1,
            total_amount=total,
            installment_amount=installment_amount,
            installment_description=INSTALLMENT_LABEL.format(
                title=title, current=i + 1, total=total_installments,
            ),
        ))
    return plan


def _build_installment(**fields) -> Transaction:
    try:
        return Transaction(**fields)
    except PydanticValidationError as e:
        raise convert_pydantic_error(e) from e


def split_installment_plan(
    plan: Sequence[Transaction],
) -> tuple[Transaction, list[Transaction]]:
    """(first installment recorded now, remaining installments deferred)."""
    if not plan:
        raise ValidationError("totalInstallments", "Installment plan is empty")
    return plan[0], list(plan[1:])
