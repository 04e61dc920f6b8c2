"""
In-Memory Storage Implementation

Keeps every record in a dict keyed by ID. Used by tests and by
installations that persist the ledger some other way (e.g. a snapshot
file written by the host application).

- Reads return deep copies, so callers always see a consistent snapshot
- `commit` checks the whole batch first and then swaps it in without
  yielding to the event loop, so concurrent readers never observe half of it
"""

from typing import Optional, Sequence
from uuid import UUID

from ledger.models.entities import Entity, Transaction
from ledger.models.reports import TransactionFilter
from ledger.services.storage.interface import (
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed ledger storage."""

    def __init__(self, records: Optional[Sequence[Entity]] = None):
        self._records: dict[UUID, Entity] = {}
        for record in records or ():
            self._records[record.id] = record.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._records)

    async def get(self, entity_id: UUID) -> Optional[Entity]:
        record = self._records.get(entity_id)
        return record.model_copy(deep=True) if record is not None else None

    async def list_entities(self, kind: type) -> list[Entity]:
        records = [r for r in self._records.values() if isinstance(r, kind)]
        records.sort(key=lambda r: r.created_at)
        return [r.model_copy(deep=True) for r in records]

    async def scan_transactions(
        self,
        transaction_filter: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        transactions = [
            r for r in self._records.values()
            if isinstance(r, Transaction)
            and (transaction_filter is None or transaction_filter.matches(r))
        ]
        transactions.sort(key=lambda t: (t.date, t.created_at), reverse=True)

        if transaction_filter is not None:
            start = transaction_filter.offset
            stop = (
                start + transaction_filter.limit
                if transaction_filter.limit is not None
                else None
            )
            transactions = transactions[start:stop]

        return [t.model_copy(deep=True) for t in transactions]

    async def commit(
        self,
        upserts: Sequence[Entity] = (),
        deletes: Sequence[UUID] = (),
    ) -> None:
        upsert_ids = {entity.id for entity in upserts}
        if upsert_ids & set(deletes):
            raise StorageError("An entity cannot be written and deleted in one commit")

        for entity_id in deletes:
            if entity_id not in self._records:
                raise NotFoundError(entity_id)

        staged = dict(self._records)
        for entity in upserts:
            staged[entity.id] = entity.model_copy(deep=True)
        for entity_id in deletes:
            del staged[entity_id]

        self._records = staged
