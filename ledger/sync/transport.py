"""
Remote Sync Transport Interface

Abstract interface for the remote store that transactions are uploaded to.
The wire protocol is an external concern; implementations wrap whatever
API the remote exposes.

A transport provides two things:
- upload(transaction): the remote either acknowledges the record with a
  new version, or reports a conflict carrying its own copy
- fetch_changes(): the feed of records changed remotely
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from ledger.models.entities import Transaction


class UploadOutcome(str, Enum):
    ACKED = "acked"
    CONFLICT = "conflict"


class UploadResult(BaseModel):
    """What the remote said about one upload."""

    outcome: UploadOutcome
    remote_version: Optional[str] = Field(
        default=None,
        description="Version assigned by the remote (acked) or held by it (conflict)"
    )
    remote: Optional[Transaction] = Field(
        default=None,
        description="The remote's copy of the record; required for conflicts"
    )

    @model_validator(mode='after')
    def validate_outcome(self) -> 'UploadResult':
        if self.outcome is UploadOutcome.ACKED and not self.remote_version:
            raise ValueError("An acknowledgment must carry a remote version")
        if self.outcome is UploadOutcome.CONFLICT and self.remote is None:
            raise ValueError("A conflict must carry the remote copy")
        return self

    @classmethod
    def acked(cls, remote_version: str) -> 'UploadResult':
        return cls(outcome=UploadOutcome.ACKED, remote_version=remote_version)

    @classmethod
    def conflict(cls, remote: Transaction) -> 'UploadResult':
        return cls(
            outcome=UploadOutcome.CONFLICT,
            remote_version=remote.remote_version,
            remote=remote,
        )


class TransportError(Exception):
    """Remote could not be reached or answered with an error. Retryable."""
    pass


class SyncTransportInterface(ABC):
    """
    Abstract interface for the remote sync endpoint.

    Implementations raise TransportError for anything the worker should
    retry; any other exception is treated as permanent.
    """

    @abstractmethod
    async def upload(self, transaction: Transaction) -> UploadResult:
        """
        Send one transaction to the remote.

        Args:
            transaction: Local snapshot, including its last known remote_version

        Returns:
            UploadResult (acked or conflict)

        Raises:
            TransportError: If the remote could not be reached
        """
        pass

    @abstractmethod
    async def fetch_changes(self) -> list[Transaction]:
        """
        Records changed remotely since the last call.

        Each returned transaction carries the remote's `remote_version`.

        Raises:
            TransportError: If the remote could not be reached
        """
        pass
