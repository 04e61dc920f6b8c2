"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger core independent of any storage engine
2. Use in-memory storage for testing
3. Add caching layers transparently

The interface is intentionally small - we're not building an ORM.
Reads are by identifier or by filtered scan; the only write path is
`commit`, which must apply a whole batch or nothing.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence
from uuid import UUID

from ledger.models.entities import Entity, Transaction
from ledger.models.reports import TransactionFilter


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (SQLite, a document store, etc.)
    must implement these methods. Returned entities must be snapshots:
    mutating them must not change stored state.
    """

    @abstractmethod
    async def get(self, entity_id: UUID) -> Optional[Entity]:
        """
        Retrieve any entity by its ID.

        Returns:
            The entity if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_entities(self, kind: type) -> list[Entity]:
        """
        List every stored entity of one kind (e.g. Account).

        Returns:
            Entities ordered by creation time
        """
        pass

    @abstractmethod
    async def scan_transactions(
        self,
        transaction_filter: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        """
        Range/filter scan over transactions.

        Args:
            transaction_filter: Type, account, category and date criteria,
                plus limit/offset. None returns every transaction.

        Returns:
            Matching transactions, newest first
        """
        pass

    @abstractmethod
    async def commit(
        self,
        upserts: Sequence[Entity] = (),
        deletes: Sequence[UUID] = (),
    ) -> None:
        """
        Atomically write a batch of records.

        Args:
            upserts: Entities to insert or replace (keyed by id)
            deletes: IDs of entities to remove

        Raises:
            NotFoundError: If a delete names an unknown ID
            StorageError: If the batch could not be written. In that case
                no record of the batch may have changed.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""

    def __init__(self, entity_id: UUID, entity_type: Optional[str] = None):
        self.entity_id = entity_id
        self.entity_type = entity_type
        label = entity_type or "entity"
        super().__init__(f"{label} not found: {entity_id}")


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
