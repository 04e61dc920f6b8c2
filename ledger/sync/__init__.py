"""
Sync Package

Per-transaction sync lifecycle: the status state machine, the coordinator
that applies it through the entity store, and the background worker that
talks to the remote transport.
"""

from ledger.sync.states import (
    TRANSITIONS,
    SyncEvent,
    SyncTransitionError,
    is_defined,
    next_sync_status,
)
from ledger.sync.transport import (
    SyncTransportInterface,
    TransportError,
    UploadOutcome,
    UploadResult,
)
from ledger.sync.coordinator import SyncCoordinator
from ledger.sync.worker import SyncWorker

__all__ = [
    # State machine
    "TRANSITIONS",
    "SyncEvent",
    "SyncTransitionError",
    "is_defined",
    "next_sync_status",
    # Transport
    "SyncTransportInterface",
    "TransportError",
    "UploadOutcome",
    "UploadResult",
    # Services
    "SyncCoordinator",
    "SyncWorker",
]
