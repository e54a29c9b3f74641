"""
Audit Logger

DESIGN DECISION: Every mutation of a user's ledger is logged.
This provides:
1. Complete traceability of what changed and when
2. Debugging capability when a save fails
3. A record of the budget alerts that were raised

The audit logger:
- Is async so the ledger flow can await it alongside storage calls
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events (one installment plan)
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from budget_tracker.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=log_level.upper())
    logging.getLogger().setLevel(log_level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Writes one structured `audit_event` record per event, at the level
    implied by the event severity.
    """

    def __init__(self, logger_name: str = "budget_tracker.audit"):
        self._logger = structlog.get_logger(logger_name)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written.
        """
        log_dict = event.to_log_dict()

        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            elif event.severity.value == "debug":
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            logging.getLogger(__name__).error(
                "audit logging failed for %s: %s", log_dict["event_id"], e
            )
            return False

        return True

    async def log_ledger_loaded(
        self,
        user_id: str,
        transaction_count: int,
        budget_count: int,
    ) -> None:
        """Log ledger load."""
        event = AuditEventBuilder.ledger_loaded(
            user_id=user_id,
            transaction_count=transaction_count,
            budget_count=budget_count,
        )
        await self.log(event)

    async def log_transaction_added(
        self,
        user_id: str,
        transaction_id: str,
        title: str,
        amount: Decimal,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a new transaction."""
        event = AuditEventBuilder.transaction_added(
            user_id=user_id,
            transaction_id=transaction_id,
            title=title,
            amount=str(amount),
            category=category,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_updated(
        self,
        user_id: str,
        transaction_id: str,
        changed_fields: list[str],
    ) -> None:
        event = AuditEventBuilder.transaction_updated(
            user_id=user_id,
            transaction_id=transaction_id,
            changed_fields=changed_fields,
        )
        await self.log(event)

    async def log_transaction_deleted(
        self,
        user_id: str,
        transaction_id: str,
    ) -> None:
        event = AuditEventBuilder.transaction_deleted(
            user_id=user_id,
            transaction_id=transaction_id,
        )
        await self.log(event)

    async def log_installment_plan_created(
        self,
        user_id: str,
        title: str,
        total_amount: Decimal,
        total_installments: int,
        correlation_id: UUID,
    ) -> None:
        """Log installment plan creation."""
        event = AuditEventBuilder.installment_plan_created(
            user_id=user_id,
            title=title,
            total_amount=str(total_amount),
            total_installments=total_installments,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_installments_materialized(
        self,
        user_id: str,
        transaction_ids: list[str],
    ) -> None:
        event = AuditEventBuilder.installments_materialized(
            user_id=user_id,
            transaction_ids=transaction_ids,
        )
        await self.log(event)

    async def log_budget_saved(
        self,
        user_id: str,
        category: str,
        limit: Decimal,
    ) -> None:
        event = AuditEventBuilder.budget_saved(
            user_id=user_id,
            category=category,
            limit=str(limit),
        )
        await self.log(event)

    async def log_budget_exceeded(
        self,
        user_id: str,
        category: str,
        month: str,
        percentage: Decimal,
    ) -> None:
        """Log the first time a category crosses its budget in a month."""
        event = AuditEventBuilder.budget_exceeded(
            user_id=user_id,
            category=category,
            month=month,
            percentage=str(percentage),
        )
        await self.log(event)

    async def log_preferences_updated(
        self,
        user_id: str,
        preferences: dict,
    ) -> None:
        event = AuditEventBuilder.preferences_updated(
            user_id=user_id,
            preferences=preferences,
        )
        await self.log(event)

    async def log_save_failed(
        self,
        user_id: str,
        target: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed persistence call."""
        event = AuditEventBuilder.save_failed(
            user_id=user_id,
            target=target,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        user_id: Optional[str],
        field: str,
        message: str,
    ) -> None:
        """Log validation failure."""
        event = AuditEventBuilder.validation_failed(
            user_id=user_id,
            field=field,
            message=message,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-record user action (e.g., an
    installment plan) and pass it through all subsequent events.
    """
    return uuid4()
