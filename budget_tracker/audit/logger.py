"""
Audit Logger

DESIGN DECISION: Every write against a ledger is logged.
This provides:
1. Traceability of who changed which row and when
2. Debugging capability when a row id has shifted under an edit
3. A record of rejected passwords

The audit logger:
- Writes structured JSON lines through structlog
- Supports correlation IDs to trace related events
- Never persists to the spreadsheet (the ledger holds only transactions)
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from budget_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


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


class AuditLogger:
    """Central audit logging service."""

    def __init__(self):
        self._logger = structlog.get_logger("budget_tracker.audit")

    async def log(self, event: AuditEvent) -> None:
        """Emit one audit event at a level matching its severity."""
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    async def log_transaction_created(
        self,
        budget: str,
        line_item: str,
        amount: str,
        currency: str,
        correlation_id: UUID,
    ) -> None:
        """Log a new row at the top of the ledger."""
        event = AuditEventBuilder.transaction_created(
            budget=budget,
            line_item=line_item,
            amount=amount,
            currency=currency,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_updated(
        self,
        budget: str,
        row_id: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_updated(
            budget=budget,
            row_id=row_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_deleted(
        self,
        budget: str,
        row_id: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_deleted(
            budget=budget,
            row_id=row_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_receipt_uploaded(
        self,
        url: str,
        size_bytes: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.receipt_uploaded(
            url=url,
            size_bytes=size_bytes,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_auth_result(
        self,
        operation: str,
        succeeded: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a password check."""
        event = AuditEventBuilder.auth_result(
            operation=operation,
            succeeded=succeeded,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_request_rejected(
        self,
        operation: str,
        status_code: int,
        error_message: str,
        budget: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a request that ended in an error envelope."""
        event = AuditEventBuilder.request_rejected(
            operation=operation,
            status_code=status_code,
            error_message=error_message,
            budget=budget,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., saving a transaction).
    Pass it through all subsequent operations.
    """
    return uuid4()
