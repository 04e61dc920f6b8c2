"""
Read-Side Models

Filters, evaluation results and report shapes produced by the ledger.
None of these are persisted; they are computed from a snapshot of the
entity store on demand.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from ledger.models.entities import (
    Transaction,
    TransactionType,
    ensure_aware,
    utcnow,
)


# =============================================================================
# QUERY MODELS
# =============================================================================

class TransactionFilter(BaseModel):
    """
    Filter for listing transactions.

    All criteria are optional and combined with AND. Date bounds are
    inclusive and compared against the transaction's `date` as given.
    """

    type: Optional[TransactionType] = None
    account_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    # Limit results
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)

    @field_validator('date_from', 'date_to')
    @classmethod
    def normalize_bounds(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(v) if v is not None else None

    @model_validator(mode='after')
    def validate_range(self) -> 'TransactionFilter':
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from cannot be after date_to")
        return self

    def matches(self, transaction: Transaction) -> bool:
        """Check a single transaction against every criterion."""
        if self.type is not None and transaction.type != self.type:
            return False
        if self.account_id is not None and transaction.account_id != self.account_id:
            return False
        if self.category_id is not None and transaction.category_id != self.category_id:
            return False
        if self.date_from is not None and transaction.date < self.date_from:
            return False
        if self.date_to is not None and transaction.date > self.date_to:
            return False
        return True


# =============================================================================
# BUDGET EVALUATION
# =============================================================================

class BudgetEvaluation(BaseModel):
    """
    Spend-to-date of a budget over its window.

    `percent_used` is a fraction (0.55 means 55%), and is 0 for a budget
    whose total is zero.
    """

    budget_id: UUID
    evaluated_at: datetime = Field(default_factory=utcnow)

    total_amount: Decimal
    spent: Decimal
    remaining: Decimal
    percent_used: Decimal

    alert_threshold: float
    is_over_threshold: bool
    is_expired: bool


# =============================================================================
# REPORTS
# =============================================================================

class PeriodTotals(BaseModel):
    """Income and expense totals for one rolling period."""

    period: str
    window_start: date
    window_end: date
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    transaction_count: int = Field(default=0, ge=0)

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


class CategoryShare(BaseModel):
    """One slice of a category breakdown."""

    category_id: Optional[UUID] = Field(
        default=None,
        description="None groups uncategorized and dangling references"
    )
    category_name: str
    amount: Decimal
    share: Decimal = Field(description="Fraction of the breakdown total")
    transaction_count: int = Field(ge=0)


class NetWorthSummary(BaseModel):
    """Aggregate position over all accounts."""

    total: Decimal
    assets: Decimal
    liabilities: Decimal
    account_count: int = Field(ge=0)


# =============================================================================
# SYNC
# =============================================================================

class ConflictResolution(str, Enum):
    """Outcome chosen by an external conflict policy or by the user."""
    KEEP_LOCAL = "keep_local"        # Re-upload the local version
    ACCEPT_REMOTE = "accept_remote"  # Adopt the remote fields


class SyncConflict(BaseModel):
    """A transaction whose remote copy diverged from unsynced local changes."""

    transaction_id: UUID
    remote: Transaction
    detected_at: datetime = Field(default_factory=utcnow)


class RejectedChange(BaseModel):
    """A record from the remote change feed that could not be applied."""

    transaction_id: UUID
    remote_version: Optional[str] = None
    reason: str = Field(..., description="Exception class that rejected the change")
    message: str


class PullResult(BaseModel):
    """Outcome of applying one fetched batch of the remote change feed."""

    applied: list[Transaction] = Field(default_factory=list)
    rejected: list[RejectedChange] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.rejected
