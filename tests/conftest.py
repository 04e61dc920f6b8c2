"""
Shared fixtures for ledger tests.

No network and no persistent storage: the in-memory storage, a storage
whose commits can be made to fail, and a scripted sync transport stand in
for every external collaborator.
"""

import asyncio
from datetime import timezone
from typing import Optional, Sequence
from uuid import UUID

import pytest

from ledger.config import LedgerSettings, SyncSettings
from ledger.events import EventLogger
from ledger.models.entities import Entity, Transaction
from ledger.periods import LedgerCalendar
from ledger.services.storage import InMemoryLedgerStorage, StorageError
from ledger.store import EntityStore
from ledger.sync import SyncTransportInterface, UploadResult


class FailingStorage(InMemoryLedgerStorage):
    """In-memory storage whose commits fail while `fail_commits` is set."""

    def __init__(self):
        super().__init__()
        self.fail_commits = False

    async def commit(
        self,
        upserts: Sequence[Entity] = (),
        deletes: Sequence[UUID] = (),
    ) -> None:
        if self.fail_commits:
            raise StorageError("disk full")
        await super().commit(upserts=upserts, deletes=deletes)


class FakeTransport(SyncTransportInterface):
    """
    Scripted remote.

    Each upload pops the next entry of `script`: an UploadResult is
    returned, an exception is raised. An empty script acknowledges with
    version "v<n>". Set `gate` to hold uploads until it is released.
    """

    def __init__(self):
        self.script: list = []
        self.changes: list[Transaction] = []
        self.uploads: list[Transaction] = []
        self.started: Optional[asyncio.Event] = None
        self.gate: Optional[asyncio.Event] = None
        self.delay = 0.0

    async def upload(self, transaction: Transaction) -> UploadResult:
        self.uploads.append(transaction)
        if self.started is not None:
            self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.script:
            step = self.script.pop(0)
            if isinstance(step, Exception):
                raise step
            return step
        return UploadResult.acked(f"v{len(self.uploads)}")

    async def fetch_changes(self) -> list[Transaction]:
        changes, self.changes = self.changes, []
        return changes


@pytest.fixture
def ledger_settings():
    return LedgerSettings(timezone="UTC", first_weekday=0, first_month_of_year=1)


@pytest.fixture
def sync_settings():
    return SyncSettings(
        max_attempts=3,
        wait_min_secs=0,
        wait_max_secs=0,
        upload_timeout_secs=5,
    )


@pytest.fixture
def calendar():
    return LedgerCalendar(tz=timezone.utc)


@pytest.fixture
def event_logger():
    return EventLogger("ledger.tests")


@pytest.fixture
def storage():
    return FailingStorage()


@pytest.fixture
def store(storage, event_logger, ledger_settings):
    return EntityStore(
        storage=storage,
        event_logger=event_logger,
        settings=ledger_settings,
    )


@pytest.fixture
def transport():
    return FakeTransport()
