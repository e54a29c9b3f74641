"""
In-Memory Storage Implementation

Used by tests and by the "memory" backend for throwaway sessions.
Stores copies, so callers can never mutate stored state through a
returned list.
"""

from decimal import Decimal

from budget_tracker.models.preferences import UserPreferences
from budget_tracker.models.transaction import Category, Transaction
from budget_tracker.services.storage.interface import (
    LedgerStorageInterface,
    PreferenceStoreInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed ledger storage keyed by user id."""

    def __init__(self):
        self._transactions: dict[str, list[Transaction]] = {}
        self._budgets: dict[str, dict[Category, Decimal]] = {}
        self._pending: dict[str, list[Transaction]] = {}

    async def load_transactions(self, user_id: str) -> list[Transaction]:
        return list(self._transactions.get(user_id, []))

    async def save_transactions(
        self,
        user_id: str,
        transactions: list[Transaction],
    ) -> bool:
        self._transactions[user_id] = list(transactions)
        return True

    async def load_budgets(self, user_id: str) -> dict[Category, Decimal]:
        return dict(self._budgets.get(user_id, {}))

    async def save_budgets(
        self,
        user_id: str,
        budgets: dict[Category, Decimal],
    ) -> bool:
        self._budgets[user_id] = dict(budgets)
        return True

    async def load_pending_installments(self, user_id: str) -> list[Transaction]:
        return list(self._pending.get(user_id, []))

    async def save_pending_installments(
        self,
        user_id: str,
        transactions: list[Transaction],
    ) -> bool:
        self._pending[user_id] = list(transactions)
        return True


class InMemoryPreferenceStore(PreferenceStoreInterface):
    """Dict-backed preference store keyed by user id."""

    def __init__(self):
        self._preferences: dict[str, UserPreferences] = {}

    async def load_preferences(self, user_id: str) -> UserPreferences:
        stored = self._preferences.get(user_id)
        return stored.model_copy() if stored else UserPreferences()

    async def save_preferences(
        self,
        user_id: str,
        preferences: UserPreferences,
    ) -> bool:
        self._preferences[user_id] = preferences.model_copy()
        return True
