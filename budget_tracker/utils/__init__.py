"""Shared helpers."""

from budget_tracker.utils.date_helpers import (
    add_months,
    add_years,
    as_utc,
    days_until,
    month_bounds,
    month_key,
    utc_now,
)

__all__ = [
    "add_months",
    "add_years",
    "as_utc",
    "days_until",
    "month_bounds",
    "month_key",
    "utc_now",
]
