"""
Entity Store

The sole writer of ledger state. Every create, update and delete of an
account, transaction, category, budget or user settings record goes
through here.

GUARANTEES:
- Invalid input is rejected (ValidationError) before any state changes
- A transaction mutation and the balance adjustments it causes are
  committed to storage in one batch, or not at all
- Mutations of one entity, and balance changes of one account, are
  serialized through per-key locks
- Deleting an account, category or budget never cascades; references to
  it are left dangling and read as absent

LOCK ORDER: an entity's own lock is always taken before account locks,
and account locks are taken together in sorted order.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence
from uuid import UUID

from ledger.budgets import BudgetEvaluator
from ledger.config import LedgerSettings, get_settings
from ledger.events import EventLogger, get_event_logger
from ledger.models.entities import (
    ENTITY_KINDS,
    Account,
    AccountPreset,
    Budget,
    Category,
    Entity,
    SyncStatus,
    Transaction,
    TransactionType,
    UserSettings,
    utcnow,
)
from ledger.models.events import LedgerEventBuilder, entity_kind
from ledger.models.reports import TransactionFilter
from ledger.periods import LedgerCalendar
from ledger.services.storage import (
    DuplicateError,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from ledger.store.balance import BalanceMaintainer
from ledger.store.classify import suggest_category
from ledger.store.locks import KeyedLocks
from ledger.sync.states import SyncEvent, next_sync_status
from ledger.validation import EntityValidator, ValidationError, ValidationIssue


# Fields no caller may change through update()
IMMUTABLE_FIELDS = frozenset({"id", "created_at", "updated_at"})

# Fields the ledger maintains itself
MAINTAINED_FIELDS: dict[type, frozenset[str]] = {
    Account: frozenset({"balance"}),
    Transaction: frozenset({"sync_status", "remote_version"}),
}


class EntityStore:
    """
    Validating, lock-protected front of the ledger storage.

    Reads return snapshots and may run concurrently with writes; storage
    commits are atomic, so a reader never observes a half-applied balance
    reversal.
    """

    def __init__(
        self,
        storage: Optional[LedgerStorageInterface] = None,
        validator: Optional[EntityValidator] = None,
        balance: Optional[BalanceMaintainer] = None,
        event_logger: Optional[EventLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage if storage is not None else InMemoryLedgerStorage()
        self._validator = validator or EntityValidator()
        self._balance = balance or BalanceMaintainer()
        self._events = event_logger or get_event_logger()
        self._settings = settings or get_settings().ledger
        self._locks = KeyedLocks()
        self._delete_listeners: list[Callable[[Entity], None]] = []

    @property
    def locks(self) -> KeyedLocks:
        return self._locks

    @property
    def balance_maintainer(self) -> BalanceMaintainer:
        return self._balance

    def on_delete(self, listener: Callable[[Entity], None]) -> None:
        """Call `listener` with the last state of every deleted entity."""
        self._delete_listeners.append(listener)

    # =========================================================================
    # READS
    # =========================================================================

    async def get(self, entity_id: UUID, kind: Optional[type] = None) -> Optional[Entity]:
        """
        Look up an entity by ID.

        Returns None when the ID is unknown, or when `kind` is given and the
        record is of a different kind.
        """
        entity = await self._storage.get(entity_id)
        if entity is None or (kind is not None and not isinstance(entity, kind)):
            return None
        return entity

    async def require(self, entity_id: UUID, kind: Optional[type] = None) -> Entity:
        """Like get(), but raises NotFoundError instead of returning None."""
        entity = await self.get(entity_id, kind)
        if entity is None:
            raise NotFoundError(entity_id, entity_kind(kind) if kind else None)
        return entity

    async def list_entities(
        self,
        kind: type,
        transaction_filter: Optional[TransactionFilter] = None,
    ) -> list[Entity]:
        """
        List entities of one kind.

        For transactions, `transaction_filter` narrows by type, date range,
        account and category; the result is newest first.
        """
        if kind is Transaction:
            return await self._storage.scan_transactions(transaction_filter)
        if transaction_filter is not None:
            raise ValueError("transaction_filter only applies to Transaction")
        return await self._storage.list_entities(kind)

    async def list_transactions(self, **criteria: Any) -> list[Transaction]:
        """Shortcut: list_transactions(account_id=..., date_from=...)."""
        transaction_filter = TransactionFilter(**criteria) if criteria else None
        return await self._storage.scan_transactions(transaction_filter)

    async def resolve_account(self, transaction: Transaction) -> Optional[Account]:
        """The transaction's account, or None if unset or deleted."""
        if transaction.account_id is None:
            return None
        return await self.get(transaction.account_id, Account)

    async def resolve_category(self, transaction: Transaction) -> Optional[Category]:
        """The transaction's category, or None if uncategorized or deleted."""
        if transaction.category_id is None:
            return None
        return await self.get(transaction.category_id, Category)

    async def active_budgets(
        self,
        now: datetime,
        calendar: Optional[LedgerCalendar] = None,
    ) -> list[Budget]:
        """Budgets whose start..end dates contain today's local date, oldest first."""
        evaluator = BudgetEvaluator(calendar or LedgerCalendar.from_settings(self._settings))
        return evaluator.active(await self._storage.list_entities(Budget), now)

    async def get_user_settings(self) -> UserSettings:
        """
        The installation's settings record.

        Created with configured defaults on first call.
        """
        existing = await self._storage.list_entities(UserSettings)
        if existing:
            return existing[0]
        try:
            return await self.create(UserSettings(
                primary_currency=self._settings.default_currency,
                budget_alert_threshold=self._settings.default_budget_alert_threshold,
            ))
        except DuplicateError:
            # Created concurrently by another caller
            return (await self._storage.list_entities(UserSettings))[0]

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create(self, entity: Entity) -> Entity:
        """
        Validate and store a new entity.

        Transactions start in the `local` sync state and immediately adjust
        their account's balance.

        Raises:
            ValidationError: If an invariant is violated
            DuplicateError: If the ID is taken, or settings already exist
            StorageError: If the commit fails (nothing is changed)
        """
        if not isinstance(entity, ENTITY_KINDS):
            raise TypeError(f"Not a ledger entity: {type(entity).__name__}")

        self._validate(entity)

        singleton = "user_settings" if isinstance(entity, UserSettings) else None
        async with self._locks.hold(entity.id, singleton):
            if await self._storage.get(entity.id) is not None:
                raise DuplicateError(f"{entity_kind(entity)} already exists: {entity.id}")

            if isinstance(entity, Transaction):
                record = entity.model_copy(update={
                    "sync_status": SyncStatus.LOCAL,
                    "remote_version": None,
                })
                await self._warn_on_category_mismatch(record)
                await self._write_transaction(old=None, new=record)
                self._events.log_created(record)
                return record

            record = entity
            if isinstance(entity, Account):
                record = self._with_opening_balance(entity)
            elif isinstance(entity, UserSettings) and await self._storage.list_entities(UserSettings):
                raise DuplicateError("User settings already exist")

            await self._commit(record, upserts=[record])
            self._events.log_created(record)
            return record

    async def create_account_from_preset(
        self,
        preset: AccountPreset,
        opening_balance: Decimal = Decimal("0"),
        custom_name: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Account:
        """Create an account from a template, keeping its icon and colors."""
        account = self._validator.build(Account, {
            "name": custom_name or preset.name,
            "type": preset.type,
            "balance": opening_balance,
            "opening_balance": opening_balance,
            "currency": currency or self._settings.default_currency,
            "icon_name": preset.icon_name,
            "icon_color_hex": preset.icon_color_hex,
            "icon_bg_color_hex": preset.icon_bg_color_hex,
            "subtitle": preset.type.value,
        })
        return await self.create(account)

    async def suggest_category(
        self,
        note: str,
        transaction_type: TransactionType,
    ) -> Optional[Category]:
        """Category of `transaction_type` whose keywords or name match the note."""
        categories = await self._storage.list_entities(Category)
        return suggest_category(note, transaction_type, categories)

    def _with_opening_balance(self, account: Account) -> Account:
        """
        A new account has no transactions, so its balance is its opening
        balance. Either field may be given; both must agree if both are.
        """
        zero = Decimal("0")
        if account.opening_balance == zero:
            return account.model_copy(update={"opening_balance": account.balance})
        if account.balance == zero:
            return account.model_copy(update={"balance": account.opening_balance})
        if account.balance != account.opening_balance:
            issue = ValidationIssue(
                field="opening_balance",
                issue_type="inconsistent",
                message="A new account's balance must equal its opening balance",
            )
            self._events.log_validation_rejected("account", account.id, [issue.model_dump()])
            raise ValidationError("account", [issue])
        return account

    # =========================================================================
    # UPDATE
    # =========================================================================

    async def update(self, entity_id: UUID, changes: dict[str, Any]) -> Entity:
        """
        Apply a partial change and return the new state.

        Changing a transaction's amount, type or account re-balances the
        affected accounts; any content change moves a synced or conflicted
        transaction back to pending. Changing an account's opening balance
        shifts its balance by the same amount.

        A change that leaves every field as it was is a no-op: nothing is
        written and `updated_at` is not touched.

        Raises:
            NotFoundError: If the ID is unknown
            ValidationError: If the result is invalid or a protected field is set
            StorageError: If the commit fails (nothing is changed)
        """
        async with self._locks.hold(entity_id):
            current = await self._storage.get(entity_id)
            if current is None:
                raise NotFoundError(entity_id)

            self._check_updatable(current, changes)

            now = utcnow()
            candidate = self._build(type(current), {
                **current.model_dump(),
                **changes,
                "updated_at": now,
            })
            changed = [
                name for name in changes
                if getattr(candidate, name) != getattr(current, name)
            ]
            if not changed:
                return current

            if isinstance(candidate, Account) and "opening_balance" in changed:
                shift = candidate.opening_balance - current.opening_balance
                candidate = candidate.model_copy(update={
                    "balance": current.balance + shift,
                })

            self._validate(candidate)

            if isinstance(candidate, Transaction):
                candidate = candidate.model_copy(update={
                    "sync_status": next_sync_status(current.sync_status, SyncEvent.LOCAL_EDIT),
                })
                if "category_id" in changed or "type" in changed:
                    await self._warn_on_category_mismatch(candidate)
                await self._write_transaction(old=current, new=candidate)
                self._events.log_sync_status_changed(
                    candidate.id,
                    current.sync_status.value,
                    candidate.sync_status.value,
                    trigger="local_edit",
                )
            else:
                await self._commit(candidate, upserts=[candidate])

            self._events.log_updated(candidate, changed)
            return candidate

    def _check_updatable(self, current: Entity, changes: dict[str, Any]) -> None:
        protected = IMMUTABLE_FIELDS | MAINTAINED_FIELDS.get(type(current), frozenset())
        known = set(type(current).model_fields)
        issues = []
        for name in changes:
            if name not in known:
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="unknown_field",
                    message=f"{entity_kind(current)} has no field '{name}'",
                ))
            elif name in protected:
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="read_only",
                    message=f"'{name}' is maintained by the ledger and cannot be set",
                ))
        if issues:
            self._events.log_validation_rejected(
                entity_kind(current), current.id, [i.model_dump() for i in issues]
            )
            raise ValidationError(entity_kind(current), issues)

    # =========================================================================
    # DELETE
    # =========================================================================

    async def delete(self, entity_id: UUID) -> Entity:
        """
        Remove an entity and return its last state.

        Deleting a transaction reverses its balance effect. Deleting an
        account, category or budget does not touch records that reference it.

        Raises:
            NotFoundError: If the ID is unknown
            ValidationError: For the user settings record, which is never deleted
            StorageError: If the commit fails (nothing is changed)
        """
        async with self._locks.hold(entity_id):
            current = await self._storage.get(entity_id)
            if current is None:
                raise NotFoundError(entity_id)

            if isinstance(current, UserSettings):
                raise ValidationError("user_settings", [ValidationIssue(
                    field="id",
                    issue_type="undeletable",
                    message="User settings exist for the life of the installation",
                )])

            if isinstance(current, Transaction):
                await self._write_transaction(old=current, new=None)
            else:
                await self._commit(current, deletes=[current.id])

            self._events.log_deleted(current)
            for listener in self._delete_listeners:
                listener(current)
            return current

    # =========================================================================
    # BALANCES
    # =========================================================================

    async def recompute_balance(self, account_id: UUID) -> Account:
        """
        Rebuild an account's balance from its opening balance and every
        current transaction. Repairs drift left by an external writer.

        Raises:
            NotFoundError: If the account does not exist
        """
        async with self._locks.hold(account_id):
            account = await self.require(account_id, Account)
            transactions = await self._storage.scan_transactions(
                TransactionFilter(account_id=account_id)
            )
            balance = self._balance.recompute(account, transactions)
            self._events.log(LedgerEventBuilder.balance_recomputed(
                account_id, account.balance, balance
            ))
            if balance == account.balance:
                return account

            repaired = account.model_copy(update={"balance": balance, "updated_at": utcnow()})
            await self._commit(repaired, upserts=[repaired])
            return repaired

    # =========================================================================
    # SYNC HOOKS (used by the sync coordinator)
    # =========================================================================

    async def apply_sync_event(
        self,
        transaction_id: UUID,
        event: SyncEvent,
        remote_version: Optional[str] = None,
        expected_updated_at: Optional[datetime] = None,
    ) -> Transaction:
        """
        Move a transaction through the sync state machine without editing it.

        If `expected_updated_at` is given and the record has been edited
        since (its `updated_at` differs), nothing changes and the current
        record is returned.

        Raises:
            NotFoundError: If the transaction does not exist
            SyncTransitionError: If the event is undefined for its status
        """
        async with self._locks.hold(transaction_id):
            current = await self.require(transaction_id, Transaction)
            if expected_updated_at is not None and current.updated_at != expected_updated_at:
                return current

            status = next_sync_status(current.sync_status, event)
            update: dict[str, Any] = {"sync_status": status}
            if remote_version is not None:
                update["remote_version"] = remote_version
            record = current.model_copy(update=update)

            if record == current:
                return current

            await self._commit(record, upserts=[record])
            self._events.log_sync_status_changed(
                transaction_id, current.sync_status.value, status.value, trigger=event.value
            )
            return record

    async def adopt_remote(
        self,
        remote: Transaction,
        event: Optional[SyncEvent] = None,
    ) -> Transaction:
        """
        Replace a transaction's content with the remote copy.

        The local record's sync status advances by `event`; a transaction
        unknown locally is created directly as synced. Balances follow the
        content change like any other update.

        Raises:
            ValidationError: If the remote copy violates an invariant
            SyncTransitionError: If `event` is undefined for the local status
        """
        self._validate(remote)

        async with self._locks.hold(remote.id):
            current = await self.get(remote.id, Transaction)
            if current is None:
                status = SyncStatus.SYNCED
            else:
                if event is None:
                    raise ValueError("An event is required to adopt over a local record")
                status = next_sync_status(current.sync_status, event)

            record = remote.model_copy(update={"sync_status": status})
            await self._write_transaction(old=current, new=record)

            if current is None:
                self._events.log_created(record)
            else:
                self._events.log_sync_status_changed(
                    record.id, current.sync_status.value, status.value, trigger=event.value
                )
            return record

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _write_transaction(
        self,
        old: Optional[Transaction],
        new: Optional[Transaction],
    ) -> None:
        """Commit a transaction change and its balance effects as one batch."""
        subject = new if new is not None else old
        account_ids = {t.account_id for t in (old, new) if t is not None}

        async with self._locks.hold(*account_ids):
            deltas = self._balance.deltas(old=old, new=new)
            accounts: dict[UUID, Account] = {}
            for account_id in deltas:
                account = await self.get(account_id, Account)
                if account is not None:
                    accounts[account_id] = account

            updated_accounts = self._balance.apply(accounts, deltas)
            upserts: list[Entity] = list(updated_accounts)
            deletes: list[UUID] = []
            if new is not None:
                upserts.insert(0, new)
            else:
                deletes.append(old.id)

            await self._commit(subject, upserts=upserts, deletes=deletes)

            for account in updated_accounts:
                self._events.log(LedgerEventBuilder.balance_adjusted(
                    account.id, deltas[account.id], account.balance, subject.id
                ))

    async def _commit(
        self,
        subject: Entity,
        upserts: Sequence[Entity] = (),
        deletes: Sequence[UUID] = (),
    ) -> None:
        try:
            await self._storage.commit(upserts=upserts, deletes=deletes)
        except StorageError as e:
            self._events.log_commit_failed(entity_kind(subject), subject.id, str(e))
            raise

    def _build(self, kind: type, data: dict[str, Any]) -> Entity:
        try:
            return self._validator.build(kind, data)
        except ValidationError as e:
            self._events.log_validation_rejected(e.entity_type, data.get("id"), e.issue_dicts())
            raise

    def _validate(self, entity: Entity) -> None:
        try:
            self._validator.validate(entity)
        except ValidationError as e:
            self._events.log_validation_rejected(e.entity_type, entity.id, e.issue_dicts())
            raise

    async def _warn_on_category_mismatch(self, transaction: Transaction) -> None:
        category = await self.resolve_category(transaction)
        if category is not None and category.type != transaction.type:
            self._events.log(LedgerEventBuilder.category_type_mismatch(
                transaction.id,
                transaction.type.value,
                category.id,
                category.type.value,
            ))
