"""
Core Data Models for the Spendo Ledger

These models define the schemas of the five persisted entity kinds:
accounts, transactions, categories, budgets and user settings.

They are designed to:
1. Coerce and type-check raw input (strings to Decimal, UUID, dates)
2. Be serializable for storage and logging
3. Carry references by identifier only, never embedded objects

DESIGN DECISION: Ledger invariants (non-negative amounts, ordered budget
windows, threshold bounds) are NOT encoded as field constraints here.
They are checked explicitly by the EntityValidator on every mutation, so the
entity store can reject bad input with one error type before touching state.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_CURRENCY = "CNY"


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Kinds of account a user can hold."""
    CASH = "cash"
    BANK_CARD = "bankCard"
    CREDIT_CARD = "creditCard"
    DIGITAL = "digital"
    INVESTMENT = "investment"
    OTHER = "other"


class TransactionType(str, Enum):
    """
    Direction of a transaction.

    The amount is always stored as a magnitude; the type decides whether it
    adds to or subtracts from the account balance.
    """
    INCOME = "income"
    EXPENSE = "expense"


class SyncStatus(str, Enum):
    """
    Sync lifecycle of a transaction.

    local -> pending -> synced, with conflict reachable from pending.
    See ledger.sync.states for the full transition table.
    """
    LOCAL = "local"        # Never offered for upload
    PENDING = "pending"    # Queued for upload
    SYNCED = "synced"      # Acknowledged by the remote store
    CONFLICT = "conflict"  # Remote diverged while local changes were unsynced


class BudgetPeriod(str, Enum):
    """Recurrence of a budget."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class AppTheme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


# =============================================================================
# ENTITIES
# =============================================================================

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class Account(BaseModel):
    """
    A place money is held: wallet, bank card, credit card, e-wallet...

    CRITICAL: `balance` is maintained by the ledger. It always equals
    `opening_balance` plus the effect of every current transaction that
    references this account. Negative balances are valid (credit card debt).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique account ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    type: AccountType
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Running balance (maintained, signed)"
    )
    opening_balance: Decimal = Field(
        default=Decimal("0"),
        description="Balance before any recorded transaction"
    )
    currency: str = Field(
        default=DEFAULT_CURRENCY,
        min_length=3,
        max_length=3,
        description="ISO 4217 currency code"
    )

    # Display metadata
    icon_name: str = Field(default="banknote", max_length=100)
    icon_color_hex: str = Field(default="#FFFFFF", pattern=HEX_COLOR_PATTERN)
    icon_bg_color_hex: str = Field(default="#007AFF", pattern=HEX_COLOR_PATTERN)
    subtitle: Optional[str] = Field(default=None, max_length=100)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


class Transaction(BaseModel):
    """
    A single income or expense entry.

    Category and account are optional references by ID. A reference to a
    record that no longer exists is valid and reads as "uncategorized" or
    "no account".
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    amount: Decimal = Field(
        ...,
        description="Magnitude of the transaction; sign comes from `type`"
    )
    type: TransactionType
    category_id: Optional[UUID] = None
    account_id: Optional[UUID] = None
    date: datetime = Field(
        default_factory=utcnow,
        description="When the money moved"
    )
    note: str = Field(default="", max_length=1000)
    currency: str = Field(
        default=DEFAULT_CURRENCY,
        min_length=3,
        max_length=3,
    )

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Cloud sync
    user_id: Optional[str] = Field(
        default=None,
        description="Owning user on the remote store"
    )
    sync_status: SyncStatus = Field(default=SyncStatus.LOCAL)
    remote_version: Optional[str] = Field(
        default=None,
        description="Version tag of the last acknowledged upload"
    )

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return ensure_aware(v)


class Category(BaseModel):
    """
    A spending or income category.

    A transaction's category is expected to share its type, but this is a
    convention only; mismatches are accepted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    icon_name: str = Field(default="tag", max_length=100)
    type: TransactionType
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Budget(BaseModel):
    """
    A spending limit over an explicit window of calendar days.

    `category_id=None` means the budget covers the whole ledger.
    `start_date` and `end_date` are both inclusive.
    """

    id: UUID = Field(default_factory=uuid4)
    period: BudgetPeriod
    total_amount: Decimal
    category_id: Optional[UUID] = Field(
        default=None,
        description="Category this budget is limited to (None = overall budget)"
    )
    start_date: date
    end_date: date
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UserSettings(BaseModel):
    """Per-installation preferences. Exactly one exists."""

    id: UUID = Field(default_factory=uuid4)
    primary_currency: str = Field(
        default=DEFAULT_CURRENCY,
        min_length=3,
        max_length=3,
    )
    theme: AppTheme = AppTheme.SYSTEM
    notifications_enabled: bool = True
    budget_alert_threshold: float = Field(
        default=0.8,
        description="Fraction of a budget that triggers an alert"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator('primary_currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


class AccountPreset(BaseModel):
    """
    Template for creating an account (e.g. "Cash wallet", "Credit card").

    The preset catalog itself lives with the presentation layer; the ledger
    only knows how to turn one into an Account.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    type: AccountType
    icon_name: str = Field(..., max_length=100)
    icon_color_hex: str = Field(default="#FFFFFF", pattern=HEX_COLOR_PATTERN)
    icon_bg_color_hex: str = Field(default="#007AFF", pattern=HEX_COLOR_PATTERN)


Entity = Union[Account, Transaction, Category, Budget, UserSettings]

ENTITY_KINDS: tuple[type, ...] = (Account, Transaction, Category, Budget, UserSettings)
