"""Budget evaluation package."""

from ledger.budgets.evaluator import BudgetEvaluator

__all__ = ["BudgetEvaluator"]
