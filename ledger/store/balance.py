"""
Balance Maintainer

Keeps `Account.balance` equal to `opening_balance` plus the signed effect
of every current transaction that references the account.

DESIGN DECISION: The maintainer never writes anything. It turns a
transaction mutation into per-account deltas and applies them to account
snapshots; the entity store commits those snapshots together with the
transaction in one storage batch. A failed commit therefore leaves every
balance exactly as it was.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping, Optional
from uuid import UUID

from ledger.models.entities import Account, Transaction, TransactionType, utcnow


ZERO = Decimal("0")


class BalanceMaintainer:
    """Computes balance effects of transaction mutations."""

    @staticmethod
    def effect(transaction: Transaction) -> Decimal:
        """Signed effect of a transaction on its account: +income, -expense."""
        if transaction.type is TransactionType.INCOME:
            return transaction.amount
        return -transaction.amount

    def deltas(
        self,
        old: Optional[Transaction] = None,
        new: Optional[Transaction] = None,
    ) -> dict[UUID, Decimal]:
        """
        Reverse the old effect on the old account, apply the new effect on
        the new account. Pass only `new` for a create and only `old` for a
        delete; a reassignment between accounts yields two deltas.
        """
        deltas: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        if old is not None and old.account_id is not None:
            deltas[old.account_id] -= self.effect(old)
        if new is not None and new.account_id is not None:
            deltas[new.account_id] += self.effect(new)
        return {account_id: d for account_id, d in deltas.items() if d != ZERO}

    def apply(
        self,
        accounts: Mapping[UUID, Account],
        deltas: Mapping[UUID, Decimal],
        now: Optional[datetime] = None,
    ) -> list[Account]:
        """
        Apply deltas to account snapshots.

        Deltas for accounts missing from `accounts` (dangling references)
        are dropped. Returns the updated copies; inputs are not modified.
        """
        now = now or utcnow()
        updated = []
        for account_id, delta in deltas.items():
            account = accounts.get(account_id)
            if account is None:
                continue
            updated.append(account.model_copy(update={
                "balance": account.balance + delta,
                "updated_at": now,
            }))
        return updated

    def recompute(
        self,
        account: Account,
        transactions: Iterable[Transaction],
    ) -> Decimal:
        """Balance rebuilt from scratch: opening balance plus every effect."""
        total = account.opening_balance
        for transaction in transactions:
            if transaction.account_id == account.id:
                total += self.effect(transaction)
        return total
