"""
Integration tests for the ledger flow.

Every test drives one event loop with asyncio.run and uses in-memory or
temp-dir storage.
"""

import asyncio

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from budget_tracker import ledger
from budget_tracker.audit import AuditLogger
from budget_tracker.config import LedgerSettings, Settings
from budget_tracker.exceptions import ValidationError
from budget_tracker.models.audit import AuditEventType
from budget_tracker.models.budget import BudgetSeverity
from budget_tracker.models.preferences import Currency, UserPreferences
from budget_tracker.models.transaction import Category, Direction, Transaction
from budget_tracker.orchestrator import (
    BudgetAlertTracker,
    LedgerFlow,
    create_app_components,
    update_preferences,
)
from budget_tracker.services.storage import (
    InMemoryLedgerStorage,
    InMemoryPreferenceStore,
    JsonFileLedgerStorage,
    JsonFilePreferenceStore,
    NotFoundError,
    StorageError,
)


def utc(year, month, day):
    return datetime(year, month, day, tzinfo=timezone.utc)


class RecordingAuditLogger(AuditLogger):
    """Keeps every event so tests can assert on the audit trail."""

    def __init__(self):
        super().__init__()
        self.events = []

    async def log(self, event):
        self.events.append(event)
        return True

    def types(self):
        return [e.event_type for e in self.events]


class FailingStorage(InMemoryLedgerStorage):
    """Loads fine, refuses every save."""

    async def save_transactions(self, user_id, transactions):
        raise StorageError("disk full")

    async def save_budgets(self, user_id, budgets):
        raise StorageError("disk full")


class PendingFailingStorage(InMemoryLedgerStorage):
    """Saves transactions, refuses pending installments."""

    async def save_pending_installments(self, user_id, transactions):
        raise StorageError("disk full")


def make_flow(storage=None, user_id="alice"):
    audit = RecordingAuditLogger()
    flow = LedgerFlow(storage or InMemoryLedgerStorage(), user_id, audit_logger=audit)
    return flow, audit


class TestLoad:
    """Tests for LedgerFlow.load."""

    def test_load_existing_ledger(self):
        storage = InMemoryLedgerStorage()
        stored = Transaction(
            user_id="alice", title="Rent", amount=Decimal("-900"), category=Category.HOUSING,
        )

        async def scenario():
            await storage.save_transactions("alice", [stored])
            await storage.save_budgets("alice", {Category.FOOD: Decimal("200")})
            flow, audit = make_flow(storage)
            await flow.load()
            return flow, audit

        flow, audit = asyncio.run(scenario())

        assert flow.transactions == (stored,)
        assert flow.budgets == {Category.FOOD: Decimal("200")}
        assert audit.types() == [AuditEventType.LEDGER_LOADED]

    def test_load_rejects_foreign_records(self):
        storage = InMemoryLedgerStorage()
        foreign = Transaction(
            user_id="bob", title="Rent", amount=Decimal("-900"), category=Category.HOUSING,
        )

        async def scenario():
            await storage.save_transactions("alice", [foreign])
            flow, _ = make_flow(storage)
            await flow.load()

        with pytest.raises(ValidationError):
            asyncio.run(scenario())


class TestTransactionMutations:
    """Tests for add, update and delete."""

    def test_add_transaction_persists_and_signs_amount(self):
        storage = InMemoryLedgerStorage()

        async def scenario():
            flow, audit = make_flow(storage)
            await flow.load()
            added = await flow.add_transaction(
                "Groceries", "42,50", "food", "expense", date=utc(2024, 3, 2),
            )
            return flow, audit, added, await storage.load_transactions("alice")

        flow, audit, added, stored = asyncio.run(scenario())

        assert added.amount == Decimal("-42.50")
        assert added.category is Category.FOOD
        assert added.user_id == "alice"
        assert flow.transactions == (added,)
        assert stored == [added]
        assert AuditEventType.TRANSACTION_ADDED in audit.types()

    def test_add_invalid_amount(self):
        """Test that a non-numeric amount is rejected, never saved as zero."""
        async def scenario():
            flow, audit = make_flow()
            await flow.load()
            with pytest.raises(ValidationError):
                await flow.add_transaction("Coffee", "abc", "Food", "expense")
            return flow, audit

        flow, audit = asyncio.run(scenario())

        assert flow.transactions == ()
        assert audit.types()[-1] == AuditEventType.VALIDATION_FAILED

    def test_add_invalid_amount_raises(self):
        async def scenario():
            flow, _ = make_flow()
            await flow.add_transaction("Coffee", "0", "Food", "expense")

        with pytest.raises(ValidationError) as exc:
            asyncio.run(scenario())
        assert exc.value.field == "amount"

    def test_failed_save_keeps_list_unchanged(self):
        async def scenario():
            flow, audit = make_flow(FailingStorage())
            await flow.load()
            with pytest.raises(StorageError):
                await flow.add_transaction("Rent", "900", "Housing", "expense")
            return flow, audit

        flow, audit = asyncio.run(scenario())

        assert flow.transactions == ()
        assert audit.types()[-1] == AuditEventType.SAVE_FAILED

    def test_concurrent_adds_are_not_lost(self):
        async def scenario():
            flow, _ = make_flow()
            await flow.load()
            await asyncio.gather(*(
                flow.add_transaction(f"Item {i}", "1", "Other", "expense")
                for i in range(10)
            ))
            return flow

        flow = asyncio.run(scenario())
        assert len(flow.transactions) == 10

    def test_update_keeps_direction(self):
        async def scenario():
            flow, audit = make_flow()
            await flow.load()
            added = await flow.add_transaction("Rent", "900", "Housing", "expense")
            updated = await flow.update_transaction(added.id, amount="950", title="Rent (new)")
            return flow, audit, added, updated

        flow, audit, added, updated = asyncio.run(scenario())

        assert updated.id == added.id
        assert updated.amount == Decimal("-950.00")
        assert updated.title == "Rent (new)"
        assert flow.transactions == (updated,)
        assert audit.events[-1].details["changed_fields"] == ["amount", "title"]

    def test_update_direction_flips_sign(self):
        async def scenario():
            flow, _ = make_flow()
            added = await flow.add_transaction("Refund", "20", "Other", "expense")
            return await flow.update_transaction(added.id, direction=Direction.INCOME)

        assert asyncio.run(scenario()).amount == Decimal("20.00")

    def test_update_rejects_non_editable_field(self):
        async def scenario():
            flow, _ = make_flow()
            added = await flow.add_transaction("Rent", "900", "Housing", "expense")
            await flow.update_transaction(added.id, user_id="mallory")

        with pytest.raises(ValidationError):
            asyncio.run(scenario())

    def test_update_unknown_id(self):
        async def scenario():
            flow, _ = make_flow()
            await flow.update_transaction("missing", title="x")

        with pytest.raises(NotFoundError):
            asyncio.run(scenario())

    def test_delete(self):
        async def scenario():
            flow, audit = make_flow()
            a = await flow.add_transaction("A", "1", "Other", "expense")
            b = await flow.add_transaction("B", "2", "Other", "income")
            removed = await flow.delete_transaction(a.id)
            return flow, audit, removed, b

        flow, audit, removed, b = asyncio.run(scenario())

        assert removed.title == "A"
        assert flow.transactions == (b,)
        assert audit.types()[-1] == AuditEventType.TRANSACTION_DELETED

    def test_delete_unknown_id(self):
        async def scenario():
            flow, _ = make_flow()
            await flow.delete_transaction("missing")

        with pytest.raises(NotFoundError):
            asyncio.run(scenario())


class TestInstallmentFlow:
    """Tests for installment plans and pending installments."""

    def test_first_installment_recorded_rest_deferred(self):
        storage = InMemoryLedgerStorage()

        async def scenario():
            flow, audit = make_flow(storage)
            await flow.load()
            result = await flow.add_installment_plan(
                "Laptop", "1200", "3", "Shopping", start_date=utc(2024, 1, 15),
            )
            return flow, audit, result, await storage.load_pending_installments("alice")

        flow, audit, (first, deferred), pending = asyncio.run(scenario())

        assert first.current_installment == 1
        assert first.amount == Decimal("-400.00")
        assert flow.transactions == (first,)
        assert [t.date for t in deferred] == [utc(2024, 2, 15), utc(2024, 3, 15)]
        assert pending == deferred

        plan_events = [e for e in audit.events if e.correlation_id is not None]
        assert {e.event_type for e in plan_events} == {
            AuditEventType.INSTALLMENT_PLAN_CREATED,
            AuditEventType.TRANSACTION_ADDED,
        }
        assert len({e.correlation_id for e in plan_events}) == 1

    def test_materialize_due_installments_once(self):
        async def scenario():
            flow, audit = make_flow()
            await flow.add_installment_plan(
                "Laptop", "1200", 3, Category.SHOPPING, start_date=utc(2024, 1, 15),
            )
            first_run = await flow.materialize_due_installments(utc(2024, 2, 20))
            second_run = await flow.materialize_due_installments(utc(2024, 2, 20))
            return flow, audit, first_run, second_run

        flow, audit, first_run, second_run = asyncio.run(scenario())

        assert [t.current_installment for t in first_run] == [2]
        assert second_run == []
        assert [t.current_installment for t in flow.transactions] == [1, 2]
        assert [t.current_installment for t in flow.pending_installments] == [3]
        assert audit.types().count(AuditEventType.INSTALLMENTS_MATERIALIZED) == 1

    def test_invalid_installment_count(self):
        async def scenario():
            flow, _ = make_flow()
            await flow.add_installment_plan("Laptop", "1200", "zero")

        with pytest.raises(ValidationError) as exc:
            asyncio.run(scenario())
        assert exc.value.field == "totalInstallments"

    def test_failed_pending_save_leaves_ledger_unchanged(self):
        storage = PendingFailingStorage()

        async def scenario():
            flow, audit = make_flow(storage)
            with pytest.raises(StorageError):
                await flow.add_installment_plan(
                    "Laptop", "1200", 3, Category.SHOPPING, start_date=utc(2024, 1, 15),
                )
            return flow, audit, await storage.load_transactions("alice")

        flow, audit, stored = asyncio.run(scenario())

        assert flow.transactions == ()
        assert flow.pending_installments == ()
        assert stored == []
        assert AuditEventType.SAVE_FAILED in audit.types()
        assert AuditEventType.INSTALLMENT_PLAN_CREATED not in audit.types()

    def test_failed_transaction_save_rolls_back_pending(self):
        storage = FailingStorage()

        async def scenario():
            flow, _ = make_flow(storage)
            with pytest.raises(StorageError):
                await flow.add_installment_plan(
                    "Laptop", "1200", 3, Category.SHOPPING, start_date=utc(2024, 1, 15),
                )
            return flow, await storage.load_pending_installments("alice")

        flow, pending = asyncio.run(scenario())

        assert flow.transactions == ()
        assert flow.pending_installments == ()
        assert pending == []

    def test_invalid_title_is_audited(self):
        async def scenario():
            flow, audit = make_flow()
            with pytest.raises(ValidationError) as exc:
                await flow.add_installment_plan("", "1200", 3)
            return flow, audit, exc.value

        flow, audit, error = asyncio.run(scenario())

        assert error.field == "title"
        assert audit.types() == [AuditEventType.VALIDATION_FAILED]
        assert flow.transactions == ()

    def test_total_too_small_to_split(self):
        async def scenario():
            flow, _ = make_flow()
            await flow.add_installment_plan("Gum", "0.01", 3)

        with pytest.raises(ValidationError) as exc:
            asyncio.run(scenario())
        assert exc.value.field == "totalAmount"

    def test_single_installment_has_nothing_deferred(self):
        async def scenario():
            flow, _ = make_flow()
            return await flow.add_installment_plan("Chair", "80", 1)

        first, deferred = asyncio.run(scenario())
        assert deferred == []
        assert first.installment_description == "Chair (1/1 Installment Payment)"


class TestBudgets:
    """Tests for budgets and one-time alerts."""

    def test_set_budget(self):
        storage = InMemoryLedgerStorage()

        async def scenario():
            flow, audit = make_flow(storage)
            await flow.set_budget("food", "200")
            return flow, audit, await storage.load_budgets("alice")

        flow, audit, stored = asyncio.run(scenario())

        assert flow.budgets == {Category.FOOD: Decimal("200.00")}
        assert stored == flow.budgets
        assert audit.types() == [AuditEventType.BUDGET_SAVED]

    def test_negative_budget_rejected(self):
        async def scenario():
            flow, _ = make_flow()
            await flow.set_budget("Food", "-1")

        with pytest.raises(ValidationError):
            asyncio.run(scenario())

    def test_failed_budget_save(self):
        async def scenario():
            flow, _ = make_flow(FailingStorage())
            with pytest.raises(StorageError):
                await flow.set_budget("Food", "100")
            return flow

        assert asyncio.run(scenario()).budgets == {}

    def test_alert_raised_once_per_month(self):
        async def scenario():
            flow, audit = make_flow()
            await flow.set_budget("Food", "100")
            await flow.add_transaction("Feast", "120", "Food", "expense", date=utc(2024, 3, 5))
            first = await flow.budget_report(utc(2024, 3, 10))
            second = await flow.budget_report(utc(2024, 3, 11))
            return audit, first, second

        audit, (report, alerts), (_, repeat_alerts) = asyncio.run(scenario())

        assert report[Category.FOOD].severity is BudgetSeverity.EXCEEDED
        assert [a.category for a in alerts] == [Category.FOOD]
        assert alerts[0].month == "2024-03"
        assert repeat_alerts == []
        assert audit.types().count(AuditEventType.BUDGET_EXCEEDED) == 1

    def test_custom_thresholds_from_settings(self):
        async def scenario():
            flow = LedgerFlow(
                InMemoryLedgerStorage(),
                "alice",
                ledger_settings=LedgerSettings(warning_threshold=50, exceeded_threshold=90),
            )
            await flow.set_budget("Food", "100")
            await flow.add_transaction("Lunch", "60", "Food", "expense", date=utc(2024, 3, 5))
            report, _ = await flow.budget_report(utc(2024, 3, 10))
            return report

        assert asyncio.run(scenario())[Category.FOOD].severity is BudgetSeverity.WARNING


class TestBudgetAlertTracker:
    """Tests for BudgetAlertTracker on its own."""

    def test_new_month_alerts_again(self):
        tracker = BudgetAlertTracker()
        report = {Category.FOOD: ledger.budget_progress(Decimal("150"), Decimal("100"))}

        assert len(tracker.check(report, utc(2024, 3, 1))) == 1
        assert tracker.check(report, utc(2024, 3, 30)) == []
        assert len(tracker.check(report, utc(2024, 4, 1))) == 1


class TestReadViews:
    """Tests for the flow's read-only views."""

    def test_recent_and_upcoming(self):
        async def scenario():
            flow, _ = make_flow()
            for day in range(1, 8):
                await flow.add_transaction(
                    f"Day {day}", "1", "Bills", "expense",
                    date=utc(2024, 1, day), is_recurring=(day == 7),
                )
            return flow

        flow = asyncio.run(scenario())

        recent = flow.recent_transactions()
        assert [t.title for t in recent] == ["Day 7", "Day 6", "Day 5", "Day 4", "Day 3"]

        upcoming = flow.upcoming_payments(utc(2024, 2, 1))
        assert [(p.title, p.days_until_due) for p in upcoming] == [("Day 7", 6)]

    def test_zero_limit_means_none(self):
        async def scenario():
            flow, _ = make_flow()
            await flow.add_transaction(
                "Gym", "30", "Health", "expense", date=utc(2024, 1, 5), is_recurring=True,
            )
            return flow

        flow = asyncio.run(scenario())

        assert flow.recent_transactions(limit=0) == []
        assert flow.upcoming_payments(utc(2024, 2, 1), limit=0) == []
        assert len(flow.recent_transactions()) == 1

    def test_transactions_snapshot_is_immutable(self):
        flow, _ = make_flow()
        assert isinstance(flow.transactions, tuple)
        flow.budgets[Category.FOOD] = Decimal("1")
        assert flow.budgets == {}


class TestPreferences:
    """Tests for update_preferences."""

    def test_update_preferences(self):
        store = InMemoryPreferenceStore()
        audit = RecordingAuditLogger()

        async def scenario():
            updated = await update_preferences(store, "alice", audit, currency="EUR")
            return updated, await store.load_preferences("alice")

        updated, stored = asyncio.run(scenario())

        assert updated.currency is Currency.EUR
        assert stored == updated
        assert audit.types() == [AuditEventType.PREFERENCES_UPDATED]

    def test_unknown_preference(self):
        with pytest.raises(ValidationError):
            asyncio.run(update_preferences(InMemoryPreferenceStore(), "alice", font="Comic"))

    def test_invalid_value(self):
        with pytest.raises(ValidationError):
            asyncio.run(update_preferences(InMemoryPreferenceStore(), "alice", theme="neon"))


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_memory_backend(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        storage, preferences, audit = create_app_components(Settings())

        assert isinstance(storage, InMemoryLedgerStorage)
        assert isinstance(preferences, InMemoryPreferenceStore)
        assert isinstance(audit, AuditLogger)

    def test_json_backend(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STORAGE_BACKEND", "json")
        monkeypatch.setenv("STORAGE_DATA_DIR", str(tmp_path))
        storage, preferences, _ = create_app_components(Settings())

        assert isinstance(storage, JsonFileLedgerStorage)
        assert isinstance(preferences, JsonFilePreferenceStore)

        async def scenario():
            flow = LedgerFlow(storage, "alice")
            await flow.add_transaction("Rent", "900", "Housing", "expense")
            reloaded = LedgerFlow(storage, "alice")
            return await reloaded.load()

        assert [t.title for t in asyncio.run(scenario())] == ["Rent"]
        assert (tmp_path / "users" / "alice.json").exists()
        assert UserPreferences() == asyncio.run(preferences.load_preferences("alice"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
