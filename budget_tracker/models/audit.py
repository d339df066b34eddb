"""
Audit Models for Budget Tracker

Every write to a ledger produces an audit event. Events are emitted to the
structured log; they are not written back into the spreadsheet.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger writes
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Receipts
    RECEIPT_UPLOADED = "receipt_uploaded"

    # Password gate
    AUTH_SUCCEEDED = "auth_succeeded"
    AUTH_FAILED = "auth_failed"

    # Failures
    REQUEST_REJECTED = "request_rejected"
    STORE_ERROR = "store_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """A single audit event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    budget: Optional[str] = Field(
        default=None,
        description="Ledger the event relates to"
    )
    row_id: Optional[int] = Field(
        default=None,
        description="Sheet row at the time of the event"
    )
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "budget": self.budget,
            "row_id": self.row_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created("personal", "Groceries", "12.50", "CAD", cid)
    """

    @staticmethod
    def transaction_created(
        budget: str,
        line_item: str,
        amount: str,
        currency: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            budget=budget,
            row_id=2,
            correlation_id=correlation_id,
            description=f"Transaction added: {line_item} {amount} {currency}",
            details={
                "line_item": line_item,
                "amount": amount,
                "currency": currency,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        budget: str,
        row_id: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            budget=budget,
            row_id=row_id,
            correlation_id=correlation_id,
            description=f"Transaction in row {row_id} overwritten",
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        budget: str,
        row_id: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            budget=budget,
            row_id=row_id,
            correlation_id=correlation_id,
            description=f"Transaction in row {row_id} deleted",
            is_user_action=True,
        )

    @staticmethod
    def receipt_uploaded(
        url: str,
        size_bytes: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            correlation_id=correlation_id,
            description="Receipt uploaded",
            details={
                "url": url,
                "size_bytes": size_bytes,
            },
            is_user_action=True,
        )

    @staticmethod
    def auth_result(
        operation: str,
        succeeded: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.AUTH_SUCCEEDED
                if succeeded
                else AuditEventType.AUTH_FAILED
            ),
            severity=AuditSeverity.INFO if succeeded else AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Password check for {operation}",
            details={"operation": operation},
            is_user_action=True,
        )

    @staticmethod
    def request_rejected(
        operation: str,
        status_code: int,
        error_message: str,
        budget: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        if status_code >= 500:
            severity = AuditSeverity.ERROR
            event_type = AuditEventType.STORE_ERROR
        else:
            severity = AuditSeverity.WARNING
            event_type = AuditEventType.REQUEST_REJECTED
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            budget=budget,
            correlation_id=correlation_id,
            description=f"{operation} failed with status {status_code}",
            error_message=error_message,
            details={
                "operation": operation,
                "status_code": status_code,
            },
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
