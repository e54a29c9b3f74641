"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the JSON document store for Google Sheets (or a real database)
2. Use in-memory storage for testing
3. Keep the ledger decoupled from storage implementation

The interface mirrors how the app thinks about data: one document per
user holding the whole transaction list, the budget limits and the
deferred installments. Loads return validated models; saves replace the
stored collection.

CONCURRENCY: implementations must serialize writes per user. Two
mutations issued at the same time must not lose each other's changes.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from budget_tracker.models.preferences import UserPreferences
from budget_tracker.models.transaction import Category, Transaction


class LedgerStorageInterface(ABC):
    """
    Abstract interface for per-user ledger storage.

    Any storage implementation (JSON files, Google Sheets, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def load_transactions(self, user_id: str) -> list[Transaction]:
        """
        Load a user's transaction list.

        Returns:
            The stored transactions in stored order (empty for a new user)

        Raises:
            StorageError: If the backend cannot be read
            ValidationError: If a stored record is malformed
        """
        pass

    @abstractmethod
    async def save_transactions(
        self,
        user_id: str,
        transactions: list[Transaction],
    ) -> bool:
        """
        Replace a user's transaction list.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def load_budgets(self, user_id: str) -> dict[Category, Decimal]:
        """Load a user's monthly budget limits by category."""
        pass

    @abstractmethod
    async def save_budgets(
        self,
        user_id: str,
        budgets: dict[Category, Decimal],
    ) -> bool:
        """Replace a user's budget limits."""
        pass

    @abstractmethod
    async def load_pending_installments(self, user_id: str) -> list[Transaction]:
        """Load installments that are deferred until their date arrives."""
        pass

    @abstractmethod
    async def save_pending_installments(
        self,
        user_id: str,
        transactions: list[Transaction],
    ) -> bool:
        """Replace a user's deferred installments."""
        pass


class PreferenceStoreInterface(ABC):
    """
    Abstract interface for user preference storage.

    Preferences are small, device-local style settings; they never
    influence ledger math.
    """

    @abstractmethod
    async def load_preferences(self, user_id: str) -> UserPreferences:
        """
        Load a user's preferences.

        Returns:
            Stored preferences, or defaults when none were saved yet
        """
        pass

    @abstractmethod
    async def save_preferences(
        self,
        user_id: str,
        preferences: UserPreferences,
    ) -> bool:
        """Replace a user's preferences."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
