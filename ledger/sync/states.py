"""
Sync Status State Machine

The complete transition table for a transaction's sync lifecycle:

    local --UPLOAD_QUEUED--> pending --UPLOAD_ACKED--> synced
                               |                         |
                        REMOTE_DIVERGED             LOCAL_EDIT
                               v                         |
                            conflict <-------------------+ (via pending)

Every (status, event) pair not listed in TRANSITIONS is undefined and
raises SyncTransitionError. Undefined events are never silently ignored.
"""

from enum import Enum

from ledger.models.entities import SyncStatus


class SyncEvent(str, Enum):
    """Things that can happen to a transaction's sync state."""
    LOCAL_EDIT = "local_edit"                        # User changed the record
    UPLOAD_QUEUED = "upload_queued"                  # Upload attempt started
    UPLOAD_ACKED = "upload_acked"                    # Remote accepted the upload
    REMOTE_DIVERGED = "remote_diverged"              # Remote has a different version
    REMOTE_APPLIED = "remote_applied"                # Remote change adopted, no local edits
    RESOLVED_KEEP_LOCAL = "resolved_keep_local"
    RESOLVED_ACCEPT_REMOTE = "resolved_accept_remote"


class SyncTransitionError(Exception):
    """An event that is not defined for the record's current sync status."""

    def __init__(self, status: SyncStatus, event: SyncEvent):
        self.status = status
        self.event = event
        super().__init__(f"Sync event '{event.value}' is not defined in state '{status.value}'")


TRANSITIONS: dict[tuple[SyncStatus, SyncEvent], SyncStatus] = {
    # Never synced: edits keep it local; the first upload attempt queues it
    (SyncStatus.LOCAL, SyncEvent.LOCAL_EDIT): SyncStatus.LOCAL,
    (SyncStatus.LOCAL, SyncEvent.UPLOAD_QUEUED): SyncStatus.PENDING,

    (SyncStatus.PENDING, SyncEvent.LOCAL_EDIT): SyncStatus.PENDING,
    (SyncStatus.PENDING, SyncEvent.UPLOAD_QUEUED): SyncStatus.PENDING,
    (SyncStatus.PENDING, SyncEvent.UPLOAD_ACKED): SyncStatus.SYNCED,
    (SyncStatus.PENDING, SyncEvent.REMOTE_DIVERGED): SyncStatus.CONFLICT,

    # Any later local edit re-opens the cycle
    (SyncStatus.SYNCED, SyncEvent.LOCAL_EDIT): SyncStatus.PENDING,
    (SyncStatus.SYNCED, SyncEvent.UPLOAD_QUEUED): SyncStatus.PENDING,
    (SyncStatus.SYNCED, SyncEvent.REMOTE_APPLIED): SyncStatus.SYNCED,

    (SyncStatus.CONFLICT, SyncEvent.LOCAL_EDIT): SyncStatus.PENDING,
    (SyncStatus.CONFLICT, SyncEvent.REMOTE_DIVERGED): SyncStatus.CONFLICT,
    (SyncStatus.CONFLICT, SyncEvent.RESOLVED_KEEP_LOCAL): SyncStatus.PENDING,
    (SyncStatus.CONFLICT, SyncEvent.RESOLVED_ACCEPT_REMOTE): SyncStatus.SYNCED,
}


def next_sync_status(status: SyncStatus, event: SyncEvent) -> SyncStatus:
    """
    Look up the next status.

    Raises:
        SyncTransitionError: If the event is undefined for `status`
    """
    try:
        return TRANSITIONS[(SyncStatus(status), SyncEvent(event))]
    except KeyError:
        raise SyncTransitionError(SyncStatus(status), SyncEvent(event)) from None


def is_defined(status: SyncStatus, event: SyncEvent) -> bool:
    return (status, event) in TRANSITIONS
