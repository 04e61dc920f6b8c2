"""
Sync Coordinator

Owns the per-transaction sync lifecycle. Every status change goes through
the state machine in ledger.sync.states and is written back through the
entity store, so sync never bypasses validation, locking or balance
maintenance.

Conflicts are state, not errors: a divergent remote copy moves the record
to `conflict` and is held here until resolve_conflict() is called with a
resolution chosen by the user or an external policy.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from ledger.events import EventLogger, get_event_logger
from ledger.models.entities import SyncStatus, Transaction
from ledger.models.events import LedgerEventBuilder
from ledger.models.reports import ConflictResolution, SyncConflict
from ledger.sync.states import SyncEvent, SyncTransitionError

if TYPE_CHECKING:
    from ledger.store.entity_store import EntityStore


class SyncCoordinator:
    """Drives transactions through local -> pending -> synced, and conflicts."""

    def __init__(
        self,
        store: "EntityStore",
        event_logger: Optional[EventLogger] = None,
    ):
        self._store = store
        self._events = event_logger or get_event_logger()
        self._conflicts: dict[UUID, SyncConflict] = {}
        store.on_delete(self._discard_deleted)

    async def mark_pending(self, transaction_id: UUID) -> Transaction:
        """
        Record an upload attempt. `local` and `synced` move to `pending`;
        `pending` stays `pending`.

        Raises:
            NotFoundError: If the transaction does not exist
            SyncTransitionError: If the record is in conflict
        """
        return await self._store.apply_sync_event(transaction_id, SyncEvent.UPLOAD_QUEUED)

    async def mark_synced(
        self,
        transaction_id: UUID,
        remote_version: str,
        expected_updated_at: Optional[datetime] = None,
    ) -> Transaction:
        """
        Record the remote's acknowledgment and the version it assigned.

        With `expected_updated_at`, an acknowledgment for content that has
        since been edited locally is dropped and the record stays pending.
        """
        return await self._store.apply_sync_event(
            transaction_id,
            SyncEvent.UPLOAD_ACKED,
            remote_version=remote_version,
            expected_updated_at=expected_updated_at,
        )

    async def mark_conflict(self, transaction_id: UUID, remote: Transaction) -> Transaction:
        """
        Record that the remote holds a divergent copy.

        The remote snapshot is kept until the conflict is resolved; a newer
        divergent copy replaces an older one.
        """
        if remote.id != transaction_id:
            raise ValueError(f"Remote snapshot {remote.id} is not transaction {transaction_id}")

        record = await self._store.apply_sync_event(transaction_id, SyncEvent.REMOTE_DIVERGED)
        self._conflicts[transaction_id] = SyncConflict(
            transaction_id=transaction_id,
            remote=remote,
        )
        self._events.log(LedgerEventBuilder.sync_conflict_detected(
            transaction_id, remote.remote_version
        ))
        return record

    async def resolve_conflict(
        self,
        transaction_id: UUID,
        resolution: ConflictResolution,
    ) -> Transaction:
        """
        Settle a conflict.

        KEEP_LOCAL moves the record to `pending` so the local version is
        uploaded again, on top of the remote's version. ACCEPT_REMOTE adopts
        the remote fields (re-balancing accounts) and marks it `synced`.

        Raises:
            SyncTransitionError: If the record is not in conflict
            ValueError: ACCEPT_REMOTE without a held remote snapshot
        """
        resolution = ConflictResolution(resolution)
        conflict = self._conflicts.get(transaction_id)

        if resolution is ConflictResolution.KEEP_LOCAL:
            record = await self._store.apply_sync_event(
                transaction_id,
                SyncEvent.RESOLVED_KEEP_LOCAL,
                remote_version=conflict.remote.remote_version if conflict else None,
            )
        else:
            if conflict is None:
                raise ValueError(f"No remote copy held for transaction {transaction_id}")
            record = await self._store.adopt_remote(
                conflict.remote, SyncEvent.RESOLVED_ACCEPT_REMOTE
            )

        self._conflicts.pop(transaction_id, None)
        self._events.log(LedgerEventBuilder.sync_conflict_resolved(
            transaction_id, resolution.value
        ))
        return record

    async def apply_remote_change(self, remote: Transaction) -> Transaction:
        """
        Apply one record from the remote change feed.

        - unknown locally: stored as `synced`
        - `synced` locally: remote fields adopted, stays `synced`
        - `pending` or `conflict` locally: becomes a conflict
        - `local`: never uploaded, so the remote cannot have diverged from
          it; raises SyncTransitionError
        """
        current = await self._store.get(remote.id, Transaction)
        if current is None:
            return await self._store.adopt_remote(remote)

        if current.sync_status is SyncStatus.SYNCED:
            if remote.remote_version is not None and remote.remote_version == current.remote_version:
                # Echo of our own upload
                return current
            try:
                return await self._store.adopt_remote(remote, SyncEvent.REMOTE_APPLIED)
            except SyncTransitionError:
                # Edited locally after the status check
                pass

        return await self.mark_conflict(remote.id, remote)

    def conflicts(self) -> list[SyncConflict]:
        """Unresolved conflicts, oldest first."""
        return sorted(self._conflicts.values(), key=lambda c: c.detected_at)

    def conflict_for(self, transaction_id: UUID) -> Optional[SyncConflict]:
        return self._conflicts.get(transaction_id)

    def _discard_deleted(self, entity) -> None:
        # A deleted transaction has nothing left to resolve
        if isinstance(entity, Transaction):
            self._conflicts.pop(entity.id, None)
