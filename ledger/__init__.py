"""
Spendo Ledger - Core Package

The in-process ledger core of a personal-finance tracker: accounts,
transactions, categories, budgets and user settings, kept mutually
consistent as records are created, edited and reconciled with a remote store.

DESIGN PRINCIPLES:
1. The entity store is the only writer of record state
2. Balances are derived, never typed in
3. Every mutation is all-or-nothing
4. Sync conflicts are state, not failures
5. Storage and sync transport are swappable
"""

__version__ = "1.0.0"
__author__ = "Spendo Team"
