"""Entity store package: the ledger's single writer and its balance maintainer."""

from ledger.store.balance import BalanceMaintainer
from ledger.store.entity_store import EntityStore
from ledger.store.locks import KeyedLocks

__all__ = ["BalanceMaintainer", "EntityStore", "KeyedLocks"]
