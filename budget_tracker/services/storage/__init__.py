"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
JSON documents are the default backend; Google Sheets and in-memory
backends implement the same interface.
"""

from budget_tracker.services.storage.interface import (
    ConnectionError,
    LedgerStorageInterface,
    NotFoundError,
    PreferenceStoreInterface,
    StorageError,
)
from budget_tracker.services.storage.memory import (
    InMemoryLedgerStorage,
    InMemoryPreferenceStore,
)
from budget_tracker.services.storage.json_file import (
    JsonFileLedgerStorage,
    JsonFilePreferenceStore,
)
from budget_tracker.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "LedgerStorageInterface",
    "PreferenceStoreInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryLedgerStorage",
    "InMemoryPreferenceStore",
    # JSON document implementation
    "JsonFileLedgerStorage",
    "JsonFilePreferenceStore",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
