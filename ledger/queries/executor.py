"""
Report Execution

DESIGN DECISION: Reports are computed, never stored.
Every report reads a fresh snapshot from the entity store and aggregates
it here. Nothing in this module writes.

Reports:
- period_totals: income, expense and net for the current day/week/month/year
- category_breakdown: spend (or income) per category over a period
- net_worth: assets, liabilities and total across accounts
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from ledger.models.entities import Account, Category, Transaction, TransactionType
from ledger.models.reports import (
    CategoryShare,
    NetWorthSummary,
    PeriodTotals,
    TransactionFilter,
)
from ledger.periods import PeriodFilter, TimePeriod
from ledger.store import EntityStore


ZERO = Decimal("0")
UNCATEGORIZED = "Uncategorized"


class ReportExecutor:
    """
    Executes read-only reports against the entity store.

    GUARANTEES:
    - Only aggregates records that exist in the store
    - Dangling category references are reported as uncategorized
    - An empty ledger yields zero totals, not errors
    """

    def __init__(self, store: EntityStore, period_filter: Optional[PeriodFilter] = None):
        self._store = store
        self._periods = period_filter or PeriodFilter()

    async def period_totals(
        self,
        period: Union[TimePeriod, str],
        now: datetime,
        account_id: Optional[UUID] = None,
    ) -> PeriodTotals:
        """Income and expense inside the period containing `now`."""
        period = TimePeriod(period)
        transactions = await self._transactions_in(period, now, account_id=account_id)
        start, end = self._periods.window(period, now)

        income = ZERO
        expense = ZERO
        for transaction in transactions:
            if transaction.type is TransactionType.INCOME:
                income += transaction.amount
            else:
                expense += transaction.amount

        return PeriodTotals(
            period=period.value,
            window_start=start,
            window_end=end,
            income=income,
            expense=expense,
            transaction_count=len(transactions),
        )

    async def category_breakdown(
        self,
        period: Union[TimePeriod, str],
        now: datetime,
        transaction_type: TransactionType = TransactionType.EXPENSE,
    ) -> list[CategoryShare]:
        """
        Amount per category inside the period containing `now`, largest first.

        Shares are fractions of the breakdown's total and sum to 1 unless
        the breakdown is empty.
        """
        transactions = await self._transactions_in(
            TimePeriod(period), now, type=transaction_type
        )
        categories = {
            c.id: c for c in await self._store.list_entities(Category)
        }

        amounts: dict[Optional[UUID], Decimal] = defaultdict(lambda: ZERO)
        counts: dict[Optional[UUID], int] = defaultdict(int)
        for transaction in transactions:
            # Dangling references fall into the uncategorized bucket
            key = transaction.category_id if transaction.category_id in categories else None
            amounts[key] += transaction.amount
            counts[key] += 1

        total = sum(amounts.values(), ZERO)
        shares = [
            CategoryShare(
                category_id=key,
                category_name=categories[key].name if key is not None else UNCATEGORIZED,
                amount=amount,
                share=amount / total if total else ZERO,
                transaction_count=counts[key],
            )
            for key, amount in amounts.items()
        ]
        shares.sort(key=lambda s: (-s.amount, s.category_name))
        return shares

    async def net_worth(self, currency: Optional[str] = None) -> NetWorthSummary:
        """
        Sum of account balances.

        Assets are the non-negative balances; liabilities the magnitude of
        the negative ones (e.g. credit card debt). No currency conversion is
        done: pass `currency` to restrict the sum to one currency.
        """
        accounts: list[Account] = await self._store.list_entities(Account)
        if currency is not None:
            accounts = [a for a in accounts if a.currency == currency.upper()]

        assets = sum((a.balance for a in accounts if a.balance >= ZERO), ZERO)
        liabilities = -sum((a.balance for a in accounts if a.balance < ZERO), ZERO)

        return NetWorthSummary(
            total=assets - liabilities,
            assets=assets,
            liabilities=liabilities,
            account_count=len(accounts),
        )

    async def _transactions_in(
        self,
        period: TimePeriod,
        now: datetime,
        **criteria,
    ) -> list[Transaction]:
        transaction_filter = TransactionFilter(**criteria)
        transactions = await self._store.list_entities(Transaction, transaction_filter)
        return self._periods.select(period, transactions, now)
