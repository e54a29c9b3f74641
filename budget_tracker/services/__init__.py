"""Services package."""

from budget_tracker.services.storage import (
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    InMemoryPreferenceStore,
    JsonFileLedgerStorage,
    JsonFilePreferenceStore,
    LedgerStorageInterface,
    NotFoundError,
    PreferenceStoreInterface,
    StorageError,
)

__all__ = [
    # Storage services
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryLedgerStorage",
    "InMemoryPreferenceStore",
    "JsonFileLedgerStorage",
    "JsonFilePreferenceStore",
    "LedgerStorageInterface",
    "NotFoundError",
    "PreferenceStoreInterface",
    "StorageError",
]
