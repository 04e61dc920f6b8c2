"""
Tests for read-side reports: period totals, category breakdown, net worth.
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from ledger.models import Account, AccountType, Category, Transaction, TransactionType
from ledger.periods import PeriodFilter, TimePeriod
from ledger.queries import UNCATEGORIZED, ReportExecutor


UTC = timezone.utc
NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def reports(store, calendar):
    return ReportExecutor(store, PeriodFilter(calendar))


def entry(amount, type, when, **kwargs):
    return Transaction(amount=Decimal(amount), type=type, date=when, **kwargs)


class TestPeriodTotals:
    """Tests for ReportExecutor.period_totals."""

    @pytest.mark.asyncio
    async def test_month_totals(self, store, reports):
        """Test income, expense and net over the current month."""
        await store.create(entry("5000", TransactionType.INCOME, datetime(2024, 3, 1, tzinfo=UTC)))
        await store.create(entry("1200", TransactionType.EXPENSE, datetime(2024, 3, 10, tzinfo=UTC)))
        await store.create(entry("300", TransactionType.EXPENSE, datetime(2024, 3, 15, tzinfo=UTC)))
        await store.create(entry("999", TransactionType.EXPENSE, datetime(2024, 2, 28, tzinfo=UTC)))

        totals = await reports.period_totals(TimePeriod.MONTH, NOW)

        assert totals.income == Decimal("5000")
        assert totals.expense == Decimal("1500")
        assert totals.net == Decimal("3500")
        assert totals.transaction_count == 3
        assert (totals.window_start, totals.window_end) == (date(2024, 3, 1), date(2024, 3, 31))

    @pytest.mark.asyncio
    async def test_empty_period(self, reports):
        """Test an empty ledger yields zero totals."""
        totals = await reports.period_totals("day", NOW)
        assert totals.income == Decimal("0")
        assert totals.expense == Decimal("0")
        assert totals.transaction_count == 0

    @pytest.mark.asyncio
    async def test_totals_for_one_account(self, store, reports):
        """Test totals can be limited to one account."""
        account = await store.create(Account(name="Cash", type=AccountType.CASH))
        await store.create(entry("10", TransactionType.EXPENSE, NOW, account_id=account.id))
        await store.create(entry("20", TransactionType.EXPENSE, NOW))

        totals = await reports.period_totals(TimePeriod.DAY, NOW, account_id=account.id)
        assert totals.expense == Decimal("10")


class TestCategoryBreakdown:
    """Tests for ReportExecutor.category_breakdown."""

    @pytest.mark.asyncio
    async def test_breakdown_largest_first(self, store, reports):
        """Test amounts and shares per category, largest first."""
        food = await store.create(Category(name="Food", type=TransactionType.EXPENSE))
        rent = await store.create(Category(name="Rent", type=TransactionType.EXPENSE))
        await store.create(entry("100", TransactionType.EXPENSE, NOW, category_id=food.id))
        await store.create(entry("50", TransactionType.EXPENSE, NOW, category_id=food.id))
        await store.create(entry("600", TransactionType.EXPENSE, NOW, category_id=rent.id))
        await store.create(entry("250", TransactionType.EXPENSE, NOW))
        await store.create(entry("9000", TransactionType.INCOME, NOW))

        shares = await reports.category_breakdown(TimePeriod.MONTH, NOW)

        assert [s.category_name for s in shares] == ["Rent", UNCATEGORIZED, "Food"]
        assert [s.amount for s in shares] == [Decimal("600"), Decimal("250"), Decimal("150")]
        assert shares[0].share == Decimal("0.6")
        assert shares[2].transaction_count == 2
        assert sum(s.share for s in shares) == Decimal("1")

    @pytest.mark.asyncio
    async def test_dangling_category_is_uncategorized(self, store, reports):
        """Test deleted or unknown categories fall into the uncategorized bucket."""
        gone = await store.create(Category(name="Gone", type=TransactionType.EXPENSE))
        await store.create(entry("10", TransactionType.EXPENSE, NOW, category_id=gone.id))
        await store.create(entry("5", TransactionType.EXPENSE, NOW, category_id=uuid4()))
        await store.delete(gone.id)

        shares = await reports.category_breakdown(TimePeriod.DAY, NOW)

        assert len(shares) == 1
        assert shares[0].category_id is None
        assert shares[0].amount == Decimal("15")

    @pytest.mark.asyncio
    async def test_income_breakdown(self, store, reports):
        """Test the breakdown can be taken over income."""
        salary = await store.create(Category(name="Salary", type=TransactionType.INCOME))
        await store.create(entry("3000", TransactionType.INCOME, NOW, category_id=salary.id))
        await store.create(entry("10", TransactionType.EXPENSE, NOW))

        shares = await reports.category_breakdown(TimePeriod.YEAR, NOW, TransactionType.INCOME)

        assert [(s.category_name, s.share) for s in shares] == [("Salary", Decimal("1"))]

    @pytest.mark.asyncio
    async def test_empty_breakdown(self, reports):
        """Test no transactions gives an empty breakdown."""
        assert await reports.category_breakdown(TimePeriod.WEEK, NOW) == []


class TestNetWorth:
    """Tests for ReportExecutor.net_worth."""

    @pytest.mark.asyncio
    async def test_assets_and_liabilities(self, store, reports):
        """Test negative balances count as liabilities."""
        await store.create(Account(name="Bank", type=AccountType.BANK_CARD, balance=Decimal("8000")))
        await store.create(Account(name="Cash", type=AccountType.CASH, balance=Decimal("500")))
        card = await store.create(Account(name="Card", type=AccountType.CREDIT_CARD))
        await store.create(entry("1500", TransactionType.EXPENSE, NOW, account_id=card.id))

        summary = await reports.net_worth()

        assert summary.assets == Decimal("8500")
        assert summary.liabilities == Decimal("1500")
        assert summary.total == Decimal("7000")
        assert summary.account_count == 3

    @pytest.mark.asyncio
    async def test_currency_filter(self, store, reports):
        """Test net worth can be restricted to one currency."""
        await store.create(Account(name="CNY", type=AccountType.CASH, balance=Decimal("100")))
        await store.create(Account(
            name="USD", type=AccountType.CASH, balance=Decimal("40"), currency="USD"
        ))
        summary = await reports.net_worth(currency="usd")
        assert summary.total == Decimal("40")
        assert summary.account_count == 1
