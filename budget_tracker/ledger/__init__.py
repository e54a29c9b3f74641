"""Ledger aggregation package."""

from budget_tracker.ledger.aggregator import (
    balance,
    budget_progress,
    budget_report,
    category_breakdown,
    classify_budget,
    date_range_cutoff,
    expand_installment_plan,
    filter_by_category,
    filter_by_date_range,
    monthly_expense,
    monthly_income,
    project_upcoming_payments,
    recent_transactions,
    spending_by_category,
    split_installment_plan,
    total_expense,
    total_income,
)

__all__ = [
    "balance",
    "budget_progress",
    "budget_report",
    "category_breakdown",
    "classify_budget",
    "date_range_cutoff",
    "expand_installment_plan",
    "filter_by_category",
    "filter_by_date_range",
    "monthly_expense",
    "monthly_income",
    "project_upcoming_payments",
    "recent_transactions",
    "spending_by_category",
    "split_installment_plan",
    "total_expense",
    "total_income",
]
