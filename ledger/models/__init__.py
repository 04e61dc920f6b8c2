"""
Data Models Package

This package contains all Pydantic models used by the ledger.
All data flowing through the system must conform to these schemas.
"""

from ledger.models.entities import (
    DEFAULT_CURRENCY,
    ENTITY_KINDS,
    Account,
    AccountPreset,
    AccountType,
    AppTheme,
    Budget,
    BudgetPeriod,
    Category,
    Entity,
    SyncStatus,
    Transaction,
    TransactionType,
    UserSettings,
    ensure_aware,
    utcnow,
)
from ledger.models.events import (
    EventSeverity,
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventType,
    entity_kind,
)
from ledger.models.reports import (
    BudgetEvaluation,
    CategoryShare,
    ConflictResolution,
    NetWorthSummary,
    PeriodTotals,
    PullResult,
    RejectedChange,
    SyncConflict,
    TransactionFilter,
)

__all__ = [
    # Entities
    "DEFAULT_CURRENCY",
    "ENTITY_KINDS",
    "Account",
    "AccountPreset",
    "AccountType",
    "AppTheme",
    "Budget",
    "BudgetPeriod",
    "Category",
    "Entity",
    "SyncStatus",
    "Transaction",
    "TransactionType",
    "UserSettings",
    "ensure_aware",
    "utcnow",
    # Events
    "EventSeverity",
    "LedgerEvent",
    "LedgerEventBuilder",
    "LedgerEventType",
    "entity_kind",
    # Read-side models
    "BudgetEvaluation",
    "CategoryShare",
    "ConflictResolution",
    "NetWorthSummary",
    "PeriodTotals",
    "PullResult",
    "RejectedChange",
    "SyncConflict",
    "TransactionFilter",
]
