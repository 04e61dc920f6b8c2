"""
Ledger Event Models

Every state change in the ledger is described by a LedgerEvent and written
to the structured log. Events are diagnostic output only; they are not
stored and cannot be replayed.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ledger.models.entities import utcnow


class LedgerEventType(str, Enum):
    """
    Types of events the ledger reports.

    Every step of the write and sync paths has its own event type.
    """
    # Entity store
    ENTITY_CREATED = "entity_created"
    ENTITY_UPDATED = "entity_updated"
    ENTITY_DELETED = "entity_deleted"
    VALIDATION_REJECTED = "validation_rejected"
    COMMIT_FAILED = "commit_failed"

    # Balances and budgets
    BALANCE_ADJUSTED = "balance_adjusted"
    BALANCE_RECOMPUTED = "balance_recomputed"
    BUDGET_THRESHOLD_CROSSED = "budget_threshold_crossed"

    # Sync
    SYNC_STATUS_CHANGED = "sync_status_changed"
    SYNC_CONFLICT_DETECTED = "sync_conflict_detected"
    SYNC_CONFLICT_RESOLVED = "sync_conflict_resolved"
    SYNC_UPLOAD_FAILED = "sync_upload_failed"
    SYNC_UPLOAD_CANCELLED = "sync_upload_cancelled"
    SYNC_REMOTE_CHANGE_REJECTED = "sync_remote_change_rejected"

    # Conventions the ledger tolerates but reports
    CATEGORY_TYPE_MISMATCH = "category_type_mismatch"


class EventSeverity(str, Enum):
    """Severity level for ledger events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LedgerEvent(BaseModel):
    """A single ledger event."""

    # Identity
    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: LedgerEventType
    severity: EventSeverity = EventSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Kind of entity (e.g. 'transaction', 'account')"
    )
    entity_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


def entity_kind(entity) -> str:
    """'Transaction' -> 'transaction', UserSettings -> 'user_settings' (instance or class)."""
    cls = entity if isinstance(entity, type) else type(entity)
    name = cls.__name__
    return "".join(
        f"_{c.lower()}" if c.isupper() and i else c.lower()
        for i, c in enumerate(name)
    )


class LedgerEventBuilder:
    """
    Helper class to build ledger events with common patterns.

    Usage:
        event = LedgerEventBuilder.entity_created(account)
        event = LedgerEventBuilder.balance_adjusted(account_id, delta, balance)
    """

    @staticmethod
    def entity_created(entity: BaseModel) -> LedgerEvent:
        kind = entity_kind(entity)
        return LedgerEvent(
            event_type=LedgerEventType.ENTITY_CREATED,
            entity_type=kind,
            entity_id=entity.id,
            description=f"{kind} created",
        )

    @staticmethod
    def entity_updated(entity: BaseModel, changed_fields: list[str]) -> LedgerEvent:
        kind = entity_kind(entity)
        return LedgerEvent(
            event_type=LedgerEventType.ENTITY_UPDATED,
            entity_type=kind,
            entity_id=entity.id,
            description=f"{kind} updated: {', '.join(changed_fields) or 'no changes'}",
            details={"changed_fields": changed_fields},
        )

    @staticmethod
    def entity_deleted(entity: BaseModel) -> LedgerEvent:
        kind = entity_kind(entity)
        return LedgerEvent(
            event_type=LedgerEventType.ENTITY_DELETED,
            entity_type=kind,
            entity_id=entity.id,
            description=f"{kind} deleted",
        )

    @staticmethod
    def validation_rejected(
        entity_type: str,
        entity_id: Optional[UUID],
        issues: list[dict],
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.VALIDATION_REJECTED,
            severity=EventSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type} rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def commit_failed(
        entity_type: str,
        entity_id: UUID,
        error_message: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.COMMIT_FAILED,
            severity=EventSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Storage commit failed for {entity_type}",
            error_message=error_message,
        )

    @staticmethod
    def balance_adjusted(
        account_id: UUID,
        delta: Decimal,
        balance: Decimal,
        transaction_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BALANCE_ADJUSTED,
            entity_type="account",
            entity_id=account_id,
            description=f"Balance adjusted by {delta}",
            details={
                "delta": str(delta),
                "balance": str(balance),
                "transaction_id": str(transaction_id) if transaction_id else None,
            },
        )

    @staticmethod
    def balance_recomputed(
        account_id: UUID,
        previous: Decimal,
        balance: Decimal,
    ) -> LedgerEvent:
        drifted = previous != balance
        return LedgerEvent(
            event_type=LedgerEventType.BALANCE_RECOMPUTED,
            severity=EventSeverity.WARNING if drifted else EventSeverity.INFO,
            entity_type="account",
            entity_id=account_id,
            description="Balance recomputed" + (" (drift corrected)" if drifted else ""),
            details={"previous": str(previous), "balance": str(balance)},
        )

    @staticmethod
    def budget_threshold_crossed(
        budget_id: UUID,
        percent_used: Decimal,
        threshold: float,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BUDGET_THRESHOLD_CROSSED,
            severity=EventSeverity.WARNING,
            entity_type="budget",
            entity_id=budget_id,
            description=f"Budget at {percent_used:.0%} (alert at {threshold:.0%})",
            details={
                "percent_used": str(percent_used),
                "threshold": threshold,
            },
        )

    @staticmethod
    def sync_status_changed(
        transaction_id: UUID,
        previous: str,
        current: str,
        trigger: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SYNC_STATUS_CHANGED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Sync status {previous} -> {current} ({trigger})",
            details={"previous": previous, "current": current, "trigger": trigger},
        )

    @staticmethod
    def sync_conflict_detected(
        transaction_id: UUID,
        remote_version: Optional[str],
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SYNC_CONFLICT_DETECTED,
            severity=EventSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Remote copy diverged from unsynced local changes",
            details={"remote_version": remote_version},
        )

    @staticmethod
    def sync_conflict_resolved(
        transaction_id: UUID,
        resolution: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SYNC_CONFLICT_RESOLVED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Conflict resolved: {resolution}",
            details={"resolution": resolution},
        )

    @staticmethod
    def sync_upload_failed(
        transaction_id: UUID,
        error_message: str,
        attempts: int,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SYNC_UPLOAD_FAILED,
            severity=EventSeverity.ERROR,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Upload failed after {attempts} attempts",
            error_message=error_message,
            details={"attempts": attempts},
        )

    @staticmethod
    def sync_upload_cancelled(transaction_id: UUID) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SYNC_UPLOAD_CANCELLED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Upload cancelled; sync status left unchanged",
        )

    @staticmethod
    def sync_remote_change_rejected(
        transaction_id: UUID,
        remote_version: Optional[str],
        error_message: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SYNC_REMOTE_CHANGE_REJECTED,
            severity=EventSeverity.ERROR,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Remote change could not be applied",
            error_message=error_message,
            details={"remote_version": remote_version},
        )

    @staticmethod
    def category_type_mismatch(
        transaction_id: UUID,
        transaction_type: str,
        category_id: UUID,
        category_type: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.CATEGORY_TYPE_MISMATCH,
            severity=EventSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"{transaction_type} transaction filed under {category_type} category",
            details={"category_id": str(category_id)},
        )
