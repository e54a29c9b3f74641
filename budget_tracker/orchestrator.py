"""
Main Orchestrator for Budget Tracker

This module ties together the ledger, storage and audit components and
defines the end-to-end flows for one user's ledger:
1. Load (storage → validate → in-memory snapshot)
2. Mutate (validate → build new list → persist → replace snapshot)
3. Report (snapshot → pure aggregation → budget alerts)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The aggregator never sees storage; it only gets the current list
- Nothing replaces the in-memory list until the save has succeeded
- Every mutation is audited

The in-memory list is held as a tuple of frozen models, so callers can
never mutate it behind the flow's back.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from budget_tracker import ledger
from budget_tracker.audit import AuditLogger, configure_logging, create_correlation_id
from budget_tracker.config import LedgerSettings, Settings, get_settings
from budget_tracker.exceptions import ValidationError
from budget_tracker.models.budget import (
    BudgetAlert,
    BudgetProgress,
    BudgetSeverity,
    UpcomingPayment,
)
from budget_tracker.models.preferences import UserPreferences
from budget_tracker.models.transaction import Category, Direction, Transaction
from budget_tracker.services.storage import (
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
from budget_tracker.utils import as_utc, month_key, utc_now
from budget_tracker.validation import (
    TransactionValidator,
    convert_pydantic_error,
    parse_amount,
    parse_budget_limit,
    parse_category,
    parse_direction,
    parse_installment_count,
    validate_user_owns,
)


# Fields a user may edit on an existing transaction
EDITABLE_FIELDS = {
    "title",
    "amount",
    "direction",
    "category",
    "date",
    "description",
    "is_recurring",
}


class BudgetAlertTracker:
    """
    Remembers which (category, month) pairs already raised an alert.

    The presentation layer shows an alert when a category first reaches
    'exceeded' in a month; re-rendering the same report must not alert
    again.
    """

    def __init__(self):
        self._raised: set[tuple[Category, str]] = set()

    def check(
        self,
        report: dict[Category, BudgetProgress],
        reference: datetime,
    ) -> list[BudgetAlert]:
        month = month_key(reference)
        alerts = []

        for category, progress in report.items():
            if progress.severity is not BudgetSeverity.EXCEEDED:
                continue
            key = (category, month)
            if key in self._raised:
                continue
            self._raised.add(key)
            alerts.append(BudgetAlert(
                category=category,
                month=month,
                spent=progress.spent,
                budget=progress.budget,
                percentage=progress.percentage,
            ))

        return alerts


class LedgerFlow:
    """
    Orchestrates reads and mutations of one user's ledger.

    Flow for every mutation:
    1. Validate input → raise ValidationError naming the field
    2. Build the new list from the current snapshot
    3. Persist → on failure audit SAVE_FAILED and re-raise StorageError
    4. Replace the snapshot

    Mutations are serialized with an asyncio.Lock, so two concurrent adds
    never lose each other.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        user_id: str,
        audit_logger: Optional[AuditLogger] = None,
        ledger_settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._user_id = user_id
        self._audit_logger = audit_logger
        self._settings = ledger_settings or LedgerSettings()
        self._warning_threshold = Decimal(str(self._settings.warning_threshold))
        self._exceeded_threshold = Decimal(str(self._settings.exceeded_threshold))

        self._transactions: tuple[Transaction, ...] = ()
        self._pending: tuple[Transaction, ...] = ()
        self._budgets: dict[Category, Decimal] = {}
        self._alerts = BudgetAlertTracker()
        self._lock = asyncio.Lock()

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        """Current snapshot of the ledger, in stored order."""
        return self._transactions

    @property
    def pending_installments(self) -> tuple[Transaction, ...]:
        return self._pending

    @property
    def budgets(self) -> dict[Category, Decimal]:
        return dict(self._budgets)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load(self) -> tuple[Transaction, ...]:
        """
        Load the user's transactions, budgets and pending installments.

        Raises:
            StorageError: If the backend cannot be read
            ValidationError: If a stored record is malformed or belongs
                to another user
        """
        async with self._lock:
            transactions = await self._storage.load_transactions(self._user_id)
            pending = await self._storage.load_pending_installments(self._user_id)
            budgets = await self._storage.load_budgets(self._user_id)

            validate_user_owns(transactions, self._user_id)
            validate_user_owns(pending, self._user_id)

            self._transactions = tuple(transactions)
            self._pending = tuple(pending)
            self._budgets = dict(budgets)

        if self._audit_logger:
            await self._audit_logger.log_ledger_loaded(
                user_id=self._user_id,
                transaction_count=len(self._transactions),
                budget_count=len(self._budgets),
            )
        return self._transactions

    # -------------------------------------------------------------------------
    # Persistence helpers
    # -------------------------------------------------------------------------

    async def _save(self, target: str, save_call, correlation_id=None) -> None:
        try:
            await save_call
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    user_id=self._user_id,
                    target=target,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

    async def _persist_transactions(
        self,
        transactions: list[Transaction],
        correlation_id=None,
    ) -> None:
        await self._save(
            "transactions",
            self._storage.save_transactions(self._user_id, transactions),
            correlation_id,
        )
        self._transactions = tuple(transactions)

    async def _persist_pending(
        self,
        pending: list[Transaction],
        correlation_id=None,
    ) -> None:
        await self._save(
            "pending_installments",
            self._storage.save_pending_installments(self._user_id, pending),
            correlation_id,
        )
        self._pending = tuple(pending)

    async def _reject(self, error: ValidationError) -> None:
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                user_id=self._user_id,
                field=error.field,
                message=error.message,
            )

    def _find(self, transaction_id: str) -> int:
        for index, transaction in enumerate(self._transactions):
            if transaction.id == transaction_id:
                return index
        raise NotFoundError(f"Transaction not found: {transaction_id}")

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def add_transaction(
        self,
        title: str,
        amount: Union[Decimal, int, str],
        category: Union[Category, str],
        direction: Union[Direction, str],
        date: Optional[datetime] = None,
        is_recurring: bool = False,
        description: Optional[str] = None,
    ) -> Transaction:
        """
        Record a new income or expense.

        amount is a magnitude (form input may be a string); its sign comes
        from direction.
        """
        try:
            transaction = _build_transaction({
                "title": title,
                "amount": parse_direction(direction).signed(parse_amount(amount)),
                "category": parse_category(category),
                "date": date if date is not None else utc_now(),
                "is_recurring": is_recurring,
                "description": description,
                "user_id": self._user_id,
            })
        except ValidationError as e:
            await self._reject(e)
            raise

        async with self._lock:
            await self._persist_transactions([*self._transactions, transaction])

        if self._audit_logger:
            await self._audit_logger.log_transaction_added(
                user_id=self._user_id,
                transaction_id=transaction.id,
                title=transaction.title,
                amount=transaction.amount,
                category=transaction.category.value,
            )
        return transaction

    async def update_transaction(self, transaction_id: str, **changes: Any) -> Transaction:
        """
        Edit fields of an existing transaction.

        A new amount keeps the current direction unless `direction` is
        given as well.

        Raises:
            NotFoundError: If no transaction has this id
            ValidationError: If a change is invalid or not editable
        """
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            error = ValidationError(unknown[0], "This field cannot be changed")
            await self._reject(error)
            raise error

        async with self._lock:
            index = self._find(transaction_id)
            current = self._transactions[index]

            try:
                updated = _build_transaction(_apply_changes(current, changes))
            except ValidationError as e:
                await self._reject(e)
                raise

            transactions = list(self._transactions)
            transactions[index] = updated
            await self._persist_transactions(transactions)

        if self._audit_logger:
            await self._audit_logger.log_transaction_updated(
                user_id=self._user_id,
                transaction_id=transaction_id,
                changed_fields=sorted(changes),
            )
        return updated

    async def delete_transaction(self, transaction_id: str) -> Transaction:
        """
        Remove a transaction.

        Raises:
            NotFoundError: If no transaction has this id
        """
        async with self._lock:
            index = self._find(transaction_id)
            removed = self._transactions[index]
            transactions = [*self._transactions[:index], *self._transactions[index + 1:]]
            await self._persist_transactions(transactions)

        if self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                user_id=self._user_id,
                transaction_id=transaction_id,
            )
        return removed

    # -------------------------------------------------------------------------
    # Installment plans
    # -------------------------------------------------------------------------

    async def add_installment_plan(
        self,
        title: str,
        total_amount: Union[Decimal, int, str],
        total_installments: Union[int, str],
        category: Union[Category, str] = Category.OTHER,
        direction: Union[Direction, str] = Direction.EXPENSE,
        start_date: Optional[datetime] = None,
        description: Optional[str] = None,
    ) -> tuple[Transaction, list[Transaction]]:
        """
        Split a purchase into monthly installments.

        The first installment is recorded immediately. The rest go to the
        pending store until their date arrives (see
        materialize_due_installments).

        Returns:
            (first, deferred)
        """
        correlation_id = create_correlation_id()

        try:
            plan = ledger.expand_installment_plan(
                title=title,
                total_amount=total_amount,
                total_installments=parse_installment_count(total_installments),
                start_date=start_date if start_date is not None else utc_now(),
                direction=parse_direction(direction),
                category=category,
                user_id=self._user_id,
                description=description,
            )
        except ValidationError as e:
            await self._reject(e)
            raise
        first, deferred = ledger.split_installment_plan(plan)

        async with self._lock:
            previous_pending = list(self._pending)
            if deferred:
                await self._persist_pending(
                    [*previous_pending, *deferred], correlation_id
                )
            try:
                await self._persist_transactions(
                    [*self._transactions, first], correlation_id
                )
            except StorageError:
                # Undo the deferred installments so no orphaned plan remains
                if deferred:
                    await self._persist_pending(previous_pending, correlation_id)
                raise

        if self._audit_logger:
            await self._audit_logger.log_installment_plan_created(
                user_id=self._user_id,
                title=title,
                total_amount=first.total_amount,
                total_installments=first.total_installments,
                correlation_id=correlation_id,
            )
            await self._audit_logger.log_transaction_added(
                user_id=self._user_id,
                transaction_id=first.id,
                title=first.installment_description or first.title,
                amount=first.amount,
                category=first.category.value,
                correlation_id=correlation_id,
            )
        return first, deferred

    async def materialize_due_installments(
        self,
        reference: Optional[datetime] = None,
    ) -> list[Transaction]:
        """
        Move pending installments dated on or before reference into the
        ledger, oldest first. Each installment is recorded exactly once.
        """
        ref = as_utc(reference) if reference is not None else utc_now()

        async with self._lock:
            due = sorted(
                (p for p in self._pending if p.date <= ref),
                key=lambda p: p.date,
            )
            if not due:
                return []

            recorded_ids = {t.id for t in self._transactions}
            new = [p for p in due if p.id not in recorded_ids]
            due_ids = {p.id for p in due}

            if new:
                await self._persist_transactions([*self._transactions, *new])
            await self._persist_pending(
                [p for p in self._pending if p.id not in due_ids]
            )

        if new and self._audit_logger:
            await self._audit_logger.log_installments_materialized(
                user_id=self._user_id,
                transaction_ids=[p.id for p in new],
            )
        return new

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def set_budget(
        self,
        category: Union[Category, str],
        limit: Union[Decimal, int, str],
    ) -> dict[Category, Decimal]:
        """Set the monthly limit for a category."""
        try:
            category = parse_category(category)
            limit = parse_budget_limit(limit)
        except ValidationError as e:
            await self._reject(e)
            raise

        async with self._lock:
            budgets = {**self._budgets, category: limit}
            await self._save(
                "budgets",
                self._storage.save_budgets(self._user_id, budgets),
            )
            self._budgets = budgets

        if self._audit_logger:
            await self._audit_logger.log_budget_saved(
                user_id=self._user_id,
                category=category.value,
                limit=limit,
            )
        return dict(budgets)

    async def budget_report(
        self,
        reference: Optional[datetime] = None,
    ) -> tuple[dict[Category, BudgetProgress], list[BudgetAlert]]:
        """
        Progress of every budgeted category for the month of reference,
        plus the alerts raised for the first time by this report.
        """
        ref = reference if reference is not None else utc_now()
        report = ledger.budget_report(
            self._transactions,
            self._budgets,
            ref,
            self._warning_threshold,
            self._exceeded_threshold,
        )
        alerts = self._alerts.check(report, ref)

        if self._audit_logger:
            for alert in alerts:
                await self._audit_logger.log_budget_exceeded(
                    user_id=self._user_id,
                    category=alert.category.value,
                    month=alert.month,
                    percentage=alert.percentage,
                )
        return report, alerts

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    def recent_transactions(self, limit: Optional[int] = None) -> list[Transaction]:
        return ledger.recent_transactions(
            self._transactions,
            limit if limit is not None else self._settings.recent_limit,
        )

    def upcoming_payments(
        self,
        reference: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[UpcomingPayment]:
        return ledger.project_upcoming_payments(
            self._transactions,
            reference if reference is not None else utc_now(),
            limit if limit is not None else self._settings.upcoming_limit,
        )


def _apply_changes(current: Transaction, changes: dict[str, Any]) -> dict[str, Any]:
    """Field values of current with the edits applied."""
    data = current.model_dump()
    direction = (
        parse_direction(changes["direction"])
        if "direction" in changes
        else current.direction
    )

    if "amount" in changes:
        data["amount"] = direction.signed(parse_amount(changes["amount"]))
    elif "direction" in changes:
        data["amount"] = direction.signed(current.amount)

    if "category" in changes:
        data["category"] = parse_category(changes["category"])

    for field in ("title", "date", "description", "is_recurring"):
        if field in changes:
            data[field] = changes[field]

    return data


def _build_transaction(data: dict[str, Any]) -> Transaction:
    try:
        return Transaction.model_validate(data)
    except PydanticValidationError as e:
        raise convert_pydantic_error(e) from e


async def update_preferences(
    store: PreferenceStoreInterface,
    user_id: str,
    audit_logger: Optional[AuditLogger] = None,
    **changes: Any,
) -> UserPreferences:
    """
    Change some of a user's display preferences.

    Raises:
        ValidationError: On an unknown preference or invalid value
    """
    unknown = sorted(set(changes) - set(UserPreferences.model_fields))
    if unknown:
        raise ValidationError(unknown[0], "Unknown preference")

    current = await store.load_preferences(user_id)
    try:
        updated = UserPreferences.model_validate({**current.model_dump(), **changes})
    except PydanticValidationError as e:
        raise convert_pydantic_error(e) from e

    await store.save_preferences(user_id, updated)

    if audit_logger:
        await audit_logger.log_preferences_updated(
            user_id=user_id,
            preferences=updated.to_document(),
        )
    return updated


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[LedgerStorageInterface, PreferenceStoreInterface, AuditLogger]:
    """
    Factory function to create all application components.

    The storage backend comes from STORAGE_BACKEND:
    - memory: nothing persists beyond the process
    - json: per-user documents under STORAGE_DATA_DIR
    - google_sheets: ledger in the configured spreadsheet; preferences
      stay in local JSON documents

    Returns:
        (ledger_storage, preference_store, audit_logger)
    """
    settings = settings or get_settings()
    configure_logging(settings.app.log_level)
    storage_settings = settings.storage

    if storage_settings.backend == "memory":
        storage = InMemoryLedgerStorage()
        preference_store = InMemoryPreferenceStore()
    elif storage_settings.backend == "google_sheets":
        storage = GoogleSheetsLedgerStorage(
            GoogleSheetsClient(settings.google_sheets)
        )
        preference_store = JsonFilePreferenceStore(storage_settings.data_path)
    else:
        storage = JsonFileLedgerStorage(storage_settings.data_path)
        preference_store = JsonFilePreferenceStore(storage_settings.data_path)

    return storage, preference_store, AuditLogger()
