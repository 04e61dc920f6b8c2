"""
Main Orchestrator for the Spendo Ledger

This module ties the components together and defines the end-to-end
flows a client uses:
1. Mutation (validate -> store -> re-balance -> sync status)
2. Budget evaluation (snapshot -> evaluate -> alert)
3. Sync (push local changes, pull remote changes, resolve conflicts)

DESIGN DECISION: The orchestrator only composes. Invariants live in the
entity store and the sync state machine, so a client that talks to the
components directly gets the same guarantees.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from ledger.budgets import BudgetEvaluator
from ledger.config import get_settings
from ledger.events import EventLogger, get_event_logger
from ledger.models.entities import (
    Budget,
    BudgetPeriod,
    Entity,
    Transaction,
    TransactionType,
    utcnow,
)
from ledger.models.events import LedgerEventBuilder
from ledger.models.reports import BudgetEvaluation, ConflictResolution
from ledger.periods import LedgerCalendar, PeriodFilter
from ledger.queries import ReportExecutor
from ledger.services.storage import InMemoryLedgerStorage, LedgerStorageInterface
from ledger.store import EntityStore
from ledger.sync import SyncCoordinator, SyncTransportInterface, SyncWorker


class LedgerService:
    """
    Facade over the ledger components.

    Flow for a mutation:
    1. Entity store validates (ValidationError, nothing changed)
    2. Record and balance effects are committed together
    3. Edited transactions that were synced go back to pending

    Budget alerts are raised at evaluation time; nothing is scheduled.
    """

    def __init__(
        self,
        store: EntityStore,
        period_filter: PeriodFilter,
        evaluator: BudgetEvaluator,
        reports: ReportExecutor,
        coordinator: SyncCoordinator,
        worker: Optional[SyncWorker] = None,
        event_logger: Optional[EventLogger] = None,
    ):
        self.store = store
        self.periods = period_filter
        self.evaluator = evaluator
        self.reports = reports
        self.coordinator = coordinator
        self.worker = worker
        self._events = event_logger or get_event_logger()

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    async def create(self, entity: Entity) -> Entity:
        return await self.store.create(entity)

    async def update(self, entity_id: UUID, changes: dict[str, Any]) -> Entity:
        return await self.store.update(entity_id, changes)

    async def delete(self, entity_id: UUID) -> Entity:
        return await self.store.delete(entity_id)

    async def record_transaction(
        self,
        amount: Decimal,
        type: TransactionType,
        account_id: Optional[UUID] = None,
        category_id: Optional[UUID] = None,
        date: Optional[datetime] = None,
        note: str = "",
        currency: Optional[str] = None,
    ) -> Transaction:
        """Build and store a transaction in the user's primary currency by default."""
        if currency is None:
            currency = (await self.store.get_user_settings()).primary_currency
        transaction = Transaction(
            amount=amount,
            type=type,
            account_id=account_id,
            category_id=category_id,
            date=date or utcnow(),
            note=note,
            currency=currency,
        )
        return await self.store.create(transaction)

    async def open_budget(
        self,
        period: BudgetPeriod,
        total_amount: Decimal,
        category_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> Budget:
        """Create a budget covering the current day/week/month/year."""
        start, end = self.periods.budget_window(period, now or utcnow())
        return await self.store.create(Budget(
            period=period,
            total_amount=total_amount,
            category_id=category_id,
            start_date=start,
            end_date=end,
        ))

    # =========================================================================
    # BUDGETS
    # =========================================================================

    async def evaluate_budget(
        self,
        budget_id: UUID,
        now: Optional[datetime] = None,
    ) -> BudgetEvaluation:
        """
        Evaluate one budget against the current snapshot.

        Raises:
            NotFoundError: If the budget does not exist
        """
        budget = await self.store.require(budget_id, Budget)
        settings = await self.store.get_user_settings()
        return await self._evaluate(budget, now or utcnow(), settings.budget_alert_threshold)

    async def evaluate_active_budgets(
        self,
        now: Optional[datetime] = None,
    ) -> list[BudgetEvaluation]:
        now = now or utcnow()
        settings = await self.store.get_user_settings()
        budgets = await self.store.active_budgets(now, self.periods.calendar)
        return [
            await self._evaluate(budget, now, settings.budget_alert_threshold)
            for budget in budgets
        ]

    async def _evaluate(
        self,
        budget: Budget,
        now: datetime,
        threshold: float,
    ) -> BudgetEvaluation:
        transactions = await self.store.list_transactions(
            type=TransactionType.EXPENSE,
            category_id=budget.category_id,
        )
        evaluation = self.evaluator.evaluate(budget, transactions, now, threshold)
        if evaluation.is_over_threshold:
            self._events.log(LedgerEventBuilder.budget_threshold_crossed(
                budget.id, evaluation.percent_used, threshold
            ))
        return evaluation

    # =========================================================================
    # SYNC
    # =========================================================================

    async def synchronize(self) -> dict[str, Any]:
        """
        Push every unsynced transaction, then apply the remote change feed.

        Returns:
            {"pushed": {id: Transaction or exception}, "pulled": PullResult}
        """
        if self.worker is None:
            raise RuntimeError("No sync transport configured")
        pushed = await self.worker.push_all()
        pulled = await self.worker.pull()
        return {"pushed": pushed, "pulled": pulled}

    async def resolve_conflict(
        self,
        transaction_id: UUID,
        resolution: ConflictResolution,
    ) -> Transaction:
        return await self.coordinator.resolve_conflict(transaction_id, resolution)


def create_ledger_service(
    storage: Optional[LedgerStorageInterface] = None,
    transport: Optional[SyncTransportInterface] = None,
    calendar: Optional[LedgerCalendar] = None,
    event_logger: Optional[EventLogger] = None,
) -> LedgerService:
    """
    Factory function to create all ledger components.

    Args:
        storage: Storage engine. Defaults to in-memory storage.
        transport: Remote sync endpoint. Without one, sync is disabled.
        calendar: Timezone and week/year conventions.
                  Defaults to the LEDGER_* settings.
        event_logger: Shared event logger.

    Returns:
        A LedgerService wired to one entity store
    """
    settings = get_settings()
    event_logger = event_logger or get_event_logger()
    calendar = calendar or LedgerCalendar.from_settings(settings.ledger)

    store = EntityStore(
        storage=storage if storage is not None else InMemoryLedgerStorage(),
        event_logger=event_logger,
        settings=settings.ledger,
    )
    period_filter = PeriodFilter(calendar)
    coordinator = SyncCoordinator(store, event_logger=event_logger)

    worker = None
    if transport is not None:
        worker = SyncWorker(
            coordinator,
            store,
            transport,
            settings=settings.sync,
            event_logger=event_logger,
        )

    return LedgerService(
        store=store,
        period_filter=period_filter,
        evaluator=BudgetEvaluator(calendar),
        reports=ReportExecutor(store, period_filter),
        coordinator=coordinator,
        worker=worker,
        event_logger=event_logger,
    )
