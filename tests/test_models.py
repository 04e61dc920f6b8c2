"""
Tests for the Spendo Ledger models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (in-memory storage, scripted transport)
3. No real network or disk access in tests
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from ledger.models import (
    Account,
    AccountPreset,
    AccountType,
    AppTheme,
    Budget,
    BudgetPeriod,
    Category,
    EventSeverity,
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventType,
    SyncStatus,
    Transaction,
    TransactionFilter,
    TransactionType,
    UserSettings,
    entity_kind,
)
from ledger.validation import EntityValidator, ValidationError, ValidationIssue


class TestEntityModels:
    """Tests for the persisted entity models."""

    def test_account_defaults(self):
        """Test Account model creation with defaults."""
        account = Account(name="Wallet", type=AccountType.CASH)
        assert account.balance == Decimal("0")
        assert account.opening_balance == Decimal("0")
        assert account.currency == "CNY"
        assert account.created_at.tzinfo is not None

    def test_account_strips_whitespace(self):
        """Test that whitespace is stripped from account names."""
        account = Account(name="  Wallet  ", type=AccountType.CASH)
        assert account.name == "Wallet"

    def test_account_currency_uppercased(self):
        """Test currency codes are normalized to upper case."""
        account = Account(name="Card", type=AccountType.BANK_CARD, currency="usd")
        assert account.currency == "USD"

    def test_account_rejects_bad_color(self):
        """Test icon colors must be #RRGGBB."""
        with pytest.raises(ValueError):
            Account(name="Card", type=AccountType.BANK_CARD, icon_color_hex="blue")

    def test_account_type_values(self):
        """Test account type string values."""
        assert AccountType("bankCard") is AccountType.BANK_CARD
        assert AccountType("creditCard") is AccountType.CREDIT_CARD
        assert {t.value for t in AccountType} == {
            "cash", "bankCard", "creditCard", "digital", "investment", "other",
        }

    def test_transaction_defaults(self):
        """Test a new transaction starts local and unversioned."""
        tx = Transaction(amount=Decimal("12.50"), type=TransactionType.EXPENSE)
        assert tx.sync_status == SyncStatus.LOCAL
        assert tx.remote_version is None
        assert tx.category_id is None
        assert tx.account_id is None

    def test_transaction_naive_date_is_utc(self):
        """Test naive dates are taken to be UTC."""
        tx = Transaction(
            amount=Decimal("1"),
            type=TransactionType.INCOME,
            date=datetime(2024, 1, 1, 8, 30),
        )
        assert tx.date == datetime(2024, 1, 1, 8, 30, tzinfo=timezone.utc)

    def test_transaction_amount_coerced_from_string(self):
        """Test string amounts become Decimal."""
        tx = Transaction(amount="99.90", type=TransactionType.EXPENSE)
        assert tx.amount == Decimal("99.90")

    def test_budget_dates(self):
        """Test Budget model creation."""
        budget = Budget(
            period=BudgetPeriod.MONTHLY,
            total_amount=Decimal("1000"),
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
        )
        assert budget.category_id is None
        assert budget.start_date < budget.end_date

    def test_user_settings_defaults(self):
        """Test UserSettings defaults."""
        settings = UserSettings()
        assert settings.theme == AppTheme.SYSTEM
        assert settings.notifications_enabled is True
        assert settings.budget_alert_threshold == 0.8

    def test_account_preset_is_frozen(self):
        """Test presets cannot be modified."""
        preset = AccountPreset(name="Cash", type=AccountType.CASH, icon_name="banknote")
        with pytest.raises(ValueError):
            preset.name = "Other"


class TestTransactionFilter:
    """Tests for TransactionFilter."""

    def test_inverted_range_rejected(self):
        """Test date_from cannot be after date_to."""
        with pytest.raises(ValueError, match="date_from cannot be after date_to"):
            TransactionFilter(
                date_from=datetime(2024, 2, 1, tzinfo=timezone.utc),
                date_to=datetime(2024, 1, 1, tzinfo=timezone.utc),
            )

    def test_matches_all_criteria(self):
        """Test criteria are combined with AND and bounds are inclusive."""
        account_id = uuid4()
        when = datetime(2024, 1, 15, tzinfo=timezone.utc)
        tx = Transaction(
            amount=Decimal("5"),
            type=TransactionType.EXPENSE,
            account_id=account_id,
            date=when,
        )
        assert TransactionFilter(account_id=account_id, date_from=when, date_to=when).matches(tx)
        assert not TransactionFilter(type=TransactionType.INCOME).matches(tx)
        assert not TransactionFilter(category_id=uuid4()).matches(tx)
        assert not TransactionFilter(date_from=when + timedelta(seconds=1)).matches(tx)


class TestEntityValidator:
    """Tests for the two-stage entity validator."""

    def test_negative_amount_rejected(self):
        """Test transactions must carry a non-negative magnitude."""
        tx = Transaction(amount=Decimal("-1"), type=TransactionType.EXPENSE)
        with pytest.raises(ValidationError) as exc:
            EntityValidator().validate(tx)
        assert exc.value.fields == ["amount"]
        assert exc.value.issues[0].issue_type == "negative_amount"

    def test_zero_amount_accepted(self):
        """Test zero is a valid magnitude."""
        tx = Transaction(amount=Decimal("0"), type=TransactionType.INCOME)
        assert EntityValidator().validate(tx) is tx

    @pytest.mark.parametrize("amount", ["NaN", "Infinity"])
    def test_non_finite_amount_rejected(self, amount):
        """Test NaN and infinity are rejected."""
        with pytest.raises(ValidationError) as exc:
            EntityValidator().build_and_validate(
                Transaction, {"amount": amount, "type": "expense"}
            )
        assert exc.value.fields == ["amount"]

    def test_inverted_budget_rejected(self):
        """Test budget start must not be after its end."""
        budget = Budget(
            period=BudgetPeriod.WEEKLY,
            total_amount=Decimal("100"),
            start_date=date(2024, 1, 8),
            end_date=date(2024, 1, 1),
        )
        with pytest.raises(ValidationError) as exc:
            EntityValidator().validate(budget)
        assert "start_date" in exc.value.fields

    def test_single_day_budget_accepted(self):
        """Test start == end is a valid window."""
        budget = Budget(
            period=BudgetPeriod.DAILY,
            total_amount=Decimal("50"),
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 1),
        )
        assert EntityValidator().check(budget) == []

    @pytest.mark.parametrize("threshold", [-0.01, 1.01, float("nan")])
    def test_threshold_out_of_bounds(self, threshold):
        """Test alert threshold must be within [0, 1]."""
        with pytest.raises(ValidationError):
            EntityValidator().validate(UserSettings(budget_alert_threshold=threshold))

    @pytest.mark.parametrize("threshold", [0.0, 0.5, 1.0])
    def test_threshold_bounds_inclusive(self, threshold):
        """Test 0 and 1 are valid thresholds."""
        assert EntityValidator().check(UserSettings(budget_alert_threshold=threshold)) == []

    def test_build_converts_schema_errors(self):
        """Test pydantic failures surface as ValidationError."""
        with pytest.raises(ValidationError) as exc:
            EntityValidator().build(Transaction, {"amount": "abc", "type": "expense"})
        assert exc.value.entity_type == "transaction"
        assert "amount" in exc.value.fields

    def test_validation_error_is_value_error(self):
        """Test callers can catch ValidationError as ValueError."""
        error = ValidationError("budget", [
            ValidationIssue(field="start_date", issue_type="inverted_range", message="bad"),
        ])
        assert isinstance(error, ValueError)
        assert error.issue_dicts()[0]["field"] == "start_date"


class TestLedgerEvents:
    """Tests for ledger event models."""

    def test_event_creation(self):
        """Test LedgerEvent model creation."""
        event = LedgerEvent(
            event_type=LedgerEventType.ENTITY_CREATED,
            description="account created",
        )
        assert event.severity == EventSeverity.INFO
        assert event.timestamp.tzinfo is not None

    def test_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        account = Account(name="Wallet", type=AccountType.CASH)
        log_dict = LedgerEventBuilder.entity_created(account).to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "entity_created"
        assert log_dict["entity_type"] == "account"
        assert log_dict["entity_id"] == str(account.id)

    def test_entity_kind_names(self):
        """Test snake_case kind names for classes and instances."""
        assert entity_kind(UserSettings) == "user_settings"
        assert entity_kind(Category(name="Food", type=TransactionType.EXPENSE)) == "category"

    def test_balance_adjusted_details(self):
        """Test LedgerEventBuilder.balance_adjusted."""
        account_id = uuid4()
        tx_id = uuid4()
        event = LedgerEventBuilder.balance_adjusted(
            account_id, Decimal("-40"), Decimal("60"), tx_id
        )
        assert event.entity_id == account_id
        assert event.details == {
            "delta": "-40",
            "balance": "60",
            "transaction_id": str(tx_id),
        }

    def test_upload_failed_is_error(self):
        """Test LedgerEventBuilder.sync_upload_failed."""
        event = LedgerEventBuilder.sync_upload_failed(uuid4(), "timeout", attempts=3)
        assert event.severity == EventSeverity.ERROR
        assert event.error_message == "timeout"
        assert event.details["attempts"] == 3

    def test_threshold_crossed_description(self):
        """Test budget alert events render percentages."""
        event = LedgerEventBuilder.budget_threshold_crossed(
            uuid4(), Decimal("0.85"), 0.8
        )
        assert event.severity == EventSeverity.WARNING
        assert "85%" in event.description


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
