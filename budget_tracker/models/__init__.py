"""
Data Models Package

This package contains all Pydantic models used in the Budget Tracker.
All data flowing through the system must conform to these schemas.
"""

from budget_tracker.models.transaction import (
    ALL_CATEGORIES,
    Category,
    DateRange,
    Direction,
    Transaction,
)
from budget_tracker.models.budget import (
    BudgetAlert,
    BudgetProgress,
    BudgetSeverity,
    CategoryBreakdown,
    UpcomingPayment,
)
from budget_tracker.models.preferences import (
    Currency,
    Language,
    Theme,
    UserPreferences,
)
from budget_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "ALL_CATEGORIES",
    "Category",
    "DateRange",
    "Direction",
    "Transaction",
    # Derived values
    "BudgetAlert",
    "BudgetProgress",
    "BudgetSeverity",
    "CategoryBreakdown",
    "UpcomingPayment",
    # Preferences
    "Currency",
    "Language",
    "Theme",
    "UserPreferences",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
