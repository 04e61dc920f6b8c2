"""
Budget Evaluator

Computes spend-to-date and alert state of a budget over its window.
This is a pure read-side computation: it is handed a budget, the
transactions to consider and an explicit "now", and mutates nothing.

RULES:
- Only expense transactions count
- A transaction counts when its local calendar date lies within
  [start_date, end_date], both inclusive
- A budget with a category counts only that category; a budget without
  one counts every expense
- A zero budget reports 0% used and never alerts
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from ledger.models.entities import Budget, Transaction, TransactionType
from ledger.models.reports import BudgetEvaluation
from ledger.periods import LedgerCalendar


ZERO = Decimal("0")


class BudgetEvaluator:
    """Evaluates budgets against a snapshot of transactions."""

    def __init__(self, calendar: Optional[LedgerCalendar] = None):
        self._calendar = calendar or LedgerCalendar.from_settings()

    def counts_toward(self, budget: Budget, transaction: Transaction) -> bool:
        """Does this transaction consume this budget?"""
        if transaction.type is not TransactionType.EXPENSE:
            return False
        if budget.category_id is not None and transaction.category_id != budget.category_id:
            return False
        day = self._calendar.local_date(transaction.date)
        return budget.start_date <= day <= budget.end_date

    def spent(self, budget: Budget, transactions: Iterable[Transaction]) -> Decimal:
        return sum(
            (t.amount for t in transactions if self.counts_toward(budget, t)),
            ZERO,
        )

    def evaluate(
        self,
        budget: Budget,
        transactions: Iterable[Transaction],
        now: datetime,
        alert_threshold: float,
    ) -> BudgetEvaluation:
        """
        Evaluate one budget.

        Args:
            budget: The budget to evaluate
            transactions: Candidate transactions (non-matching ones are ignored)
            now: Reference instant for the expiry check
            alert_threshold: Fraction of the total that raises an alert

        Returns:
            BudgetEvaluation with spent, remaining, percent used and flags
        """
        spent = self.spent(budget, transactions)

        if budget.total_amount == ZERO:
            percent_used = ZERO
            over_threshold = False
        else:
            percent_used = spent / budget.total_amount
            over_threshold = percent_used >= Decimal(str(alert_threshold))

        return BudgetEvaluation(
            budget_id=budget.id,
            evaluated_at=now,
            total_amount=budget.total_amount,
            spent=spent,
            remaining=budget.total_amount - spent,
            percent_used=percent_used,
            alert_threshold=alert_threshold,
            is_over_threshold=over_threshold,
            is_expired=self._calendar.local_date(now) > budget.end_date,
        )

    def is_active(self, budget: Budget, now: datetime) -> bool:
        """Is `now` inside the budget's window?"""
        today = self._calendar.local_date(now)
        return budget.start_date <= today <= budget.end_date

    def active(self, budgets: Iterable[Budget], now: datetime) -> list[Budget]:
        """
        Budgets whose window contains today.

        Several budgets may be active for the same period and category;
        they are all returned, oldest first.
        """
        return sorted(
            (b for b in budgets if self.is_active(b, now)),
            key=lambda b: b.created_at,
        )
