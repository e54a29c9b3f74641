"""
JSON Document Storage Implementation

DESIGN DECISION: One JSON document per user, shaped like the app's
remote user document:

    {
        "transactions": [...],
        "budgets": {"Food": "2000.00", ...},
        "pendingInstallments": [...]
    }

Preferences live in a separate document per user, the way a device-local
settings store would keep them.

File I/O runs in a worker thread so the event loop is never blocked.
Writes are atomic (temp file + os.replace) and retried on transient OS
errors. Every save is a read-modify-write of the latest document under a
per-user asyncio.Lock, so concurrent saves of different collections for
the same user never clobber each other.
"""

import asyncio
import json
import os
import re
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union

import structlog
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from budget_tracker.models.preferences import UserPreferences
from budget_tracker.models.transaction import Category, Transaction
from budget_tracker.services.storage.interface import (
    LedgerStorageInterface,
    PreferenceStoreInterface,
    StorageError,
)
from budget_tracker.validation import (
    TransactionValidator,
    parse_budget_limit,
    parse_category,
)


TRANSACTIONS_KEY = "transactions"
BUDGETS_KEY = "budgets"
PENDING_KEY = "pendingInstallments"

_USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.@-]+$")

logger = structlog.get_logger(__name__)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
    retry=retry_if_exception_type(OSError),
    reraise=True,
)
def _write_json_atomic(path: Path, document: dict) -> None:
    """Write document to path atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(
        json.dumps(document, indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    os.replace(tmp, path)


def _read_json(path: Path) -> dict:
    """Read a JSON document; a missing file is an empty document."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise StorageError(f"Failed to read {path}: {e}") from e

    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise StorageError(f"Corrupt document {path}: {e}") from e

    if not isinstance(document, dict):
        raise StorageError(f"Corrupt document {path}: expected an object")
    return document


class _UserDocumentStore:
    """Shared plumbing: per-user paths and per-user write locks."""

    def __init__(self, root: Path):
        self._root = root
        self._locks: dict[str, asyncio.Lock] = {}

    def _path_for(self, user_id: str) -> Path:
        if not user_id or not _USER_ID_PATTERN.match(user_id):
            raise StorageError(f"Invalid user id: {user_id!r}")
        return self._root / f"{user_id}.json"

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        if user_id not in self._locks:
            self._locks[user_id] = asyncio.Lock()
        return self._locks[user_id]

    async def _read(self, user_id: str) -> dict:
        return await asyncio.to_thread(_read_json, self._path_for(user_id))

    async def _update(self, user_id: str, key: Optional[str], value: Any) -> bool:
        """Replace one key (or, with key=None, the whole document)."""
        path = self._path_for(user_id)
        async with self._lock_for(user_id):
            if key is None:
                document = value
            else:
                document = {**(await asyncio.to_thread(_read_json, path)), key: value}
            try:
                await asyncio.to_thread(_write_json_atomic, path, document)
            except OSError as e:
                logger.error("document_write_failed", path=str(path), error=str(e))
                raise StorageError(f"Failed to save document for {user_id}: {e}") from e
        return True


class JsonFileLedgerStorage(_UserDocumentStore, LedgerStorageInterface):
    """Ledger storage backed by one JSON file per user."""

    def __init__(
        self,
        data_dir: Union[str, Path],
        validator: Optional[TransactionValidator] = None,
    ):
        super().__init__(Path(data_dir) / "users")
        self._validator = validator or TransactionValidator()

    async def load_transactions(self, user_id: str) -> list[Transaction]:
        records = (await self._read(user_id)).get(TRANSACTIONS_KEY, [])
        return self._validator.parse_records(records)

    async def save_transactions(
        self,
        user_id: str,
        transactions: list[Transaction],
    ) -> bool:
        return await self._update(
            user_id, TRANSACTIONS_KEY, [t.to_document() for t in transactions]
        )

    async def load_budgets(self, user_id: str) -> dict[Category, Decimal]:
        stored = (await self._read(user_id)).get(BUDGETS_KEY, {})
        return {
            parse_category(category): parse_budget_limit(limit)
            for category, limit in stored.items()
        }

    async def save_budgets(
        self,
        user_id: str,
        budgets: dict[Category, Decimal],
    ) -> bool:
        return await self._update(
            user_id,
            BUDGETS_KEY,
            {category.value: str(limit) for category, limit in budgets.items()},
        )

    async def load_pending_installments(self, user_id: str) -> list[Transaction]:
        records = (await self._read(user_id)).get(PENDING_KEY, [])
        return self._validator.parse_records(records)

    async def save_pending_installments(
        self,
        user_id: str,
        transactions: list[Transaction],
    ) -> bool:
        return await self._update(
            user_id, PENDING_KEY, [t.to_document() for t in transactions]
        )


class JsonFilePreferenceStore(_UserDocumentStore, PreferenceStoreInterface):
    """Preference store backed by one small JSON file per user."""

    def __init__(self, data_dir: Union[str, Path]):
        super().__init__(Path(data_dir) / "preferences")

    async def load_preferences(self, user_id: str) -> UserPreferences:
        try:
            return UserPreferences.model_validate(await self._read(user_id))
        except PydanticValidationError as e:
            raise StorageError(f"Corrupt preferences for {user_id}: {e}") from e

    async def save_preferences(
        self,
        user_id: str,
        preferences: UserPreferences,
    ) -> bool:
        return await self._update(user_id, None, preferences.to_document())
