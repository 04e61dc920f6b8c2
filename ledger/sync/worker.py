"""
Sync Worker

Runs uploads in the background as asyncio tasks and posts their outcome
back through the sync coordinator.

Each upload:
1. marks the record pending (the upload step has started)
2. calls the transport, retrying TransportError with exponential backoff
   and a per-attempt timeout
3. on completion, posts the ack (-> synced) or conflict (-> conflict)

A task cancelled during step 2 posts nothing, so the record keeps the
status it had when the upload began. An ack for content that was edited
while the upload was in flight is dropped; the record stays pending and is
picked up by the next push.
"""

import asyncio
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledger.config import SyncSettings, get_settings
from ledger.events import EventLogger, get_event_logger
from ledger.models.entities import SyncStatus, Transaction
from ledger.models.events import LedgerEventBuilder
from ledger.models.reports import PullResult, RejectedChange
from ledger.sync.coordinator import SyncCoordinator
from ledger.sync.states import SyncTransitionError
from ledger.sync.transport import SyncTransportInterface, TransportError, UploadOutcome
from ledger.validation import ValidationError

if TYPE_CHECKING:
    from ledger.store.entity_store import EntityStore


class SyncWorker:
    """Background uploader for unsynced transactions."""

    def __init__(
        self,
        coordinator: SyncCoordinator,
        store: "EntityStore",
        transport: SyncTransportInterface,
        settings: Optional[SyncSettings] = None,
        event_logger: Optional[EventLogger] = None,
    ):
        self._coordinator = coordinator
        self._store = store
        self._transport = transport
        self._settings = settings or get_settings().sync
        self._events = event_logger or get_event_logger()
        self._tasks: dict[UUID, asyncio.Task] = {}

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    def push(self, transaction_id: UUID) -> asyncio.Task:
        """
        Start uploading one transaction in the background.

        If an upload of the same transaction is already running, its task is
        returned instead of starting a second one. Must be called from a
        running event loop.
        """
        running = self._tasks.get(transaction_id)
        if running is not None and not running.done():
            return running

        task = asyncio.create_task(self._push(transaction_id))
        self._tasks[transaction_id] = task

        def _forget(done: asyncio.Task) -> None:
            if self._tasks.get(transaction_id) is done:
                del self._tasks[transaction_id]

        task.add_done_callback(_forget)
        return task

    async def push_all(self) -> dict[UUID, object]:
        """
        Upload every `local` and `pending` transaction and wait for all.

        Returns:
            {transaction_id: resulting Transaction, or the exception that
            ended its upload (including cancellation)}
        """
        transactions = await self._store.list_transactions()
        ids = [
            t.id for t in transactions
            if t.sync_status in (SyncStatus.LOCAL, SyncStatus.PENDING)
        ]
        tasks = [self.push(transaction_id) for transaction_id in ids]
        results = await asyncio.gather(*tasks, return_exceptions=True)
        return dict(zip(ids, results))

    def cancel(self, transaction_id: UUID) -> bool:
        """
        Cancel a running upload.

        Returns False when no upload of this transaction is running.
        """
        task = self._tasks.get(transaction_id)
        if task is None or task.done():
            return False
        return task.cancel()

    def in_flight(self) -> list[UUID]:
        return [tid for tid, task in self._tasks.items() if not task.done()]

    async def pull(self) -> PullResult:
        """
        Fetch the remote change feed and apply each record in order.

        The feed is drained by the fetch, so one bad record never stops the
        rest of the batch: a change that targets a never-uploaded record, or
        whose content is invalid, is logged and reported in `rejected`.

        Raises:
            TransportError: If the feed cannot be fetched after retries
        """
        changes = await self._retrying()(self._transport.fetch_changes)
        result = PullResult()
        for remote in changes:
            try:
                result.applied.append(await self._coordinator.apply_remote_change(remote))
            except (SyncTransitionError, ValidationError) as e:
                self._events.log(LedgerEventBuilder.sync_remote_change_rejected(
                    remote.id, remote.remote_version, str(e)
                ))
                result.rejected.append(RejectedChange(
                    transaction_id=remote.id,
                    remote_version=remote.remote_version,
                    reason=type(e).__name__,
                    message=str(e),
                ))
        return result

    # =========================================================================
    # UPLOAD
    # =========================================================================

    async def _push(self, transaction_id: UUID) -> Transaction:
        snapshot = await self._coordinator.mark_pending(transaction_id)

        try:
            result = await self._upload_with_retry(snapshot)
        except asyncio.CancelledError:
            self._events.log(LedgerEventBuilder.sync_upload_cancelled(transaction_id))
            raise
        except TransportError as e:
            self._events.log(LedgerEventBuilder.sync_upload_failed(
                transaction_id, str(e), self._settings.max_attempts
            ))
            raise

        if result.outcome is UploadOutcome.ACKED:
            return await self._coordinator.mark_synced(
                transaction_id,
                result.remote_version,
                expected_updated_at=snapshot.updated_at,
            )
        return await self._coordinator.mark_conflict(transaction_id, result.remote)

    async def _upload_with_retry(self, transaction: Transaction):
        return await self._retrying()(self._upload_once, transaction)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(TransportError),
            stop=stop_after_attempt(self._settings.max_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self._settings.wait_min_secs,
                max=self._settings.wait_max_secs,
            ),
            reraise=True,
        )

    async def _upload_once(self, transaction: Transaction):
        try:
            return await asyncio.wait_for(
                self._transport.upload(transaction),
                timeout=self._settings.upload_timeout_secs,
            )
        except asyncio.TimeoutError:
            raise TransportError(
                f"Upload timed out after {self._settings.upload_timeout_secs}s"
            ) from None
