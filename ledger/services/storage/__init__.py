"""
Storage Services Package

Provides the abstract storage interface the ledger writes through and an
in-memory implementation. Persistent engines plug in behind the interface.
"""

from ledger.services.storage.interface import (
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from ledger.services.storage.memory import InMemoryLedgerStorage

__all__ = [
    # Interfaces
    "LedgerStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryLedgerStorage",
]
