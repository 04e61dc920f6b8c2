"""
Tests for balance maintenance.

The core invariant: for every account,
    balance == opening_balance + sum(+amount for income, -amount for expense)
over its current transactions, after any sequence of mutations.
"""

import asyncio
import random

import pytest
from decimal import Decimal
from uuid import uuid4

from ledger.models import Account, AccountType, Transaction, TransactionType
from ledger.store import BalanceMaintainer


def tx(amount, type=TransactionType.EXPENSE, account_id=None):
    return Transaction(amount=Decimal(amount), type=type, account_id=account_id)


async def assert_invariant(store):
    maintainer = BalanceMaintainer()
    transactions = await store.list_transactions()
    for account in await store.list_entities(Account):
        assert account.balance == maintainer.recompute(account, transactions), account.name


class TestBalanceMaintainer:
    """Unit tests for the delta arithmetic."""

    def test_effect_sign(self):
        """Test income adds and expense subtracts."""
        assert BalanceMaintainer.effect(tx("10", TransactionType.INCOME)) == Decimal("10")
        assert BalanceMaintainer.effect(tx("10", TransactionType.EXPENSE)) == Decimal("-10")

    def test_create_and_delete_deltas(self):
        """Test create applies the effect and delete reverses it."""
        account_id = uuid4()
        t = tx("25", account_id=account_id)
        maintainer = BalanceMaintainer()
        assert maintainer.deltas(new=t) == {account_id: Decimal("-25")}
        assert maintainer.deltas(old=t) == {account_id: Decimal("25")}

    def test_update_same_account_nets_out(self):
        """Test old and new effects on one account combine into one delta."""
        account_id = uuid4()
        old = tx("100", account_id=account_id)
        new = old.model_copy(update={"amount": Decimal("40")})
        assert BalanceMaintainer().deltas(old=old, new=new) == {account_id: Decimal("60")}

    def test_update_type_flip(self):
        """Test flipping expense to income swings the balance by twice the amount."""
        account_id = uuid4()
        old = tx("50", account_id=account_id)
        new = old.model_copy(update={"type": TransactionType.INCOME})
        assert BalanceMaintainer().deltas(old=old, new=new) == {account_id: Decimal("100")}

    def test_reassignment_touches_both_accounts(self):
        """Test moving a transaction reverses on the old account and applies on the new."""
        a, b = uuid4(), uuid4()
        old = tx("30", account_id=a)
        new = old.model_copy(update={"account_id": b})
        assert BalanceMaintainer().deltas(old=old, new=new) == {
            a: Decimal("30"),
            b: Decimal("-30"),
        }

    def test_no_account_no_deltas(self):
        """Test transactions without an account affect nothing."""
        assert BalanceMaintainer().deltas(new=tx("30")) == {}

    def test_unchanged_effect_dropped(self):
        """Test a note-only change yields no deltas."""
        old = tx("30", account_id=uuid4())
        assert BalanceMaintainer().deltas(old=old, new=old) == {}

    def test_apply_skips_missing_accounts(self):
        """Test deltas for unknown accounts are dropped."""
        account = Account(name="Cash", type=AccountType.CASH)
        updated = BalanceMaintainer().apply(
            {account.id: account},
            {account.id: Decimal("-5"), uuid4(): Decimal("7")},
        )
        assert len(updated) == 1
        assert updated[0].balance == Decimal("-5")
        assert account.balance == Decimal("0")


class TestStoreBalances:
    """Balance scenarios through the entity store."""

    @pytest.mark.asyncio
    async def test_create_update_delete_scenario(self, store):
        """Test 0 -> -100 -> -40 -> 0 across create, update, delete."""
        account = await store.create(Account(name="Wallet", type=AccountType.CASH))
        t = await store.create(tx("100", account_id=account.id))
        assert (await store.get(account.id)).balance == Decimal("-100")

        await store.update(t.id, {"amount": Decimal("40")})
        assert (await store.get(account.id)).balance == Decimal("-40")

        await store.delete(t.id)
        assert (await store.get(account.id)).balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_reassignment_between_accounts(self, store):
        """Test the pair's sum changes by exactly new effect minus old effect."""
        a = await store.create(Account(name="A", type=AccountType.CASH))
        b = await store.create(Account(name="B", type=AccountType.BANK_CARD))
        t = await store.create(tx("50", TransactionType.INCOME, account_id=a.id))

        await store.update(t.id, {"account_id": b.id, "amount": Decimal("70")})

        a_after = await store.get(a.id)
        b_after = await store.get(b.id)
        assert a_after.balance == Decimal("0")
        assert b_after.balance == Decimal("70")
        assert (a_after.balance + b_after.balance) - Decimal("50") == Decimal("70") - Decimal("50")

    @pytest.mark.asyncio
    async def test_negative_balance_preserved(self, store):
        """Test balances may go negative (e.g. credit card debt)."""
        card = await store.create(Account(name="Card", type=AccountType.CREDIT_CARD))
        await store.create(tx("1200", account_id=card.id))
        assert (await store.get(card.id)).balance == Decimal("-1200")

    @pytest.mark.asyncio
    async def test_opening_balance_shift(self, store):
        """Test changing the opening balance shifts the balance by the same delta."""
        account = await store.create(Account(
            name="Bank", type=AccountType.BANK_CARD, balance=Decimal("100")
        ))
        await store.create(tx("30", account_id=account.id))
        updated = await store.update(account.id, {"opening_balance": Decimal("150")})
        assert updated.balance == Decimal("120")
        await assert_invariant(store)

    @pytest.mark.asyncio
    async def test_unknown_account_effect_skipped(self, store):
        """Test a transaction on an unknown account is stored without a balance effect."""
        t = await store.create(tx("9", account_id=uuid4()))
        assert (await store.get(t.id)).amount == Decimal("9")

    @pytest.mark.asyncio
    async def test_recompute_repairs_drift(self, store, storage):
        """Test recompute_balance rebuilds a balance changed behind the store's back."""
        account = await store.create(Account(name="Cash", type=AccountType.CASH))
        await store.create(tx("20", account_id=account.id))
        drifted = (await store.get(account.id)).model_copy(update={"balance": Decimal("999")})
        await storage.commit(upserts=[drifted])

        repaired = await store.recompute_balance(account.id)

        assert repaired.balance == Decimal("-20")
        assert (await store.get(account.id)).balance == Decimal("-20")

    @pytest.mark.asyncio
    async def test_concurrent_mutations_same_account(self, store):
        """Test concurrent creates on one account lose no updates."""
        account = await store.create(Account(name="Cash", type=AccountType.CASH))
        await asyncio.gather(*(
            store.create(tx(str(n), account_id=account.id)) for n in range(1, 21)
        ))
        assert (await store.get(account.id)).balance == Decimal(-sum(range(1, 21)))

    @pytest.mark.asyncio
    async def test_lock_table_stays_bounded(self, store):
        """Test locks are released once no mutation holds or waits for them."""
        account = await store.create(Account(name="Cash", type=AccountType.CASH))
        for _ in range(200):
            created = await store.create(tx("1", account_id=account.id))
            await store.delete(created.id)

        assert len(store.locks) == 0
        assert (await store.get(account.id)).balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_lock_table_empty_after_concurrent_writers(self, store):
        """Test contended locks are handed over and then released."""
        account = await store.create(Account(name="Cash", type=AccountType.CASH))
        await asyncio.gather(*(
            store.create(tx("2", account_id=account.id)) for _ in range(10)
        ))
        assert len(store.locks) == 0
        assert (await store.get(account.id)).balance == Decimal("-20")

    @pytest.mark.asyncio
    async def test_invariant_after_random_mutations(self, store):
        """Test the balance invariant after a long random sequence of mutations."""
        rng = random.Random(20240101)
        accounts = [
            await store.create(Account(name=f"acct-{i}", type=AccountType.OTHER))
            for i in range(3)
        ]
        live: list = []

        for _ in range(200):
            op = rng.choice(["create", "create", "update", "delete"])
            if op == "create" or not live:
                created = await store.create(Transaction(
                    amount=Decimal(rng.randint(0, 500)),
                    type=rng.choice(list(TransactionType)),
                    account_id=rng.choice(accounts).id if rng.random() > 0.1 else None,
                ))
                live.append(created.id)
            elif op == "update":
                target = rng.choice(live)
                await store.update(target, {
                    "amount": Decimal(rng.randint(0, 500)),
                    "type": rng.choice(list(TransactionType)),
                    "account_id": rng.choice(accounts).id,
                })
            else:
                target = live.pop(rng.randrange(len(live)))
                await store.delete(target)

        await assert_invariant(store)
