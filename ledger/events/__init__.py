"""Ledger event logging package."""

from ledger.events.logger import EventLogger, get_event_logger

__all__ = ["EventLogger", "get_event_logger"]
