"""
Ledger Event Logger

DESIGN DECISION: Every state change in the ledger is logged as one
structured line. This provides:
1. Traceability of balance adjustments back to the transaction that caused them
2. Visibility into the sync lifecycle (who moved a record to pending, when)
3. Debugging capability when a balance drifts

The event logger:
- Is synchronous and local (nothing is persisted)
- Never raises into the ledger operation that emitted the event
"""

import logging
from typing import Optional
from uuid import UUID

import structlog

from ledger.models.events import LedgerEvent, LedgerEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Plain stdlib logger for failures of the structured sink itself
_fallback = logging.getLogger(__name__)


class EventLogger:
    """
    Central ledger event logging service.

    Components receive an EventLogger and call its helpers instead of
    talking to structlog directly, so every line carries the same shape.
    """

    def __init__(self, name: str = "ledger"):
        self._logger = structlog.get_logger(name)
        self._emitted = 0
        self._dropped = 0

    @property
    def emitted(self) -> int:
        """Number of events logged by this instance."""
        return self._emitted

    @property
    def dropped(self) -> int:
        """Number of events the structured sink failed to write."""
        return self._dropped

    def log(self, event: LedgerEvent) -> bool:
        """
        Log an event at the level matching its severity.

        Returns True if the structured sink accepted the event. A sink
        failure is reported on the plain stdlib logger instead of raising,
        since the ledger change it describes has already been committed.
        """
        log_dict = event.to_log_dict()

        try:
            if event.severity.value == "error":
                self._logger.error("ledger_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("ledger_event", **log_dict)
            elif event.severity.value == "debug":
                self._logger.debug("ledger_event", **log_dict)
            else:
                self._logger.info("ledger_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            self._dropped += 1
            _fallback.error(
                "ledger_event_log_failed event_id=%s event_type=%s error=%s",
                log_dict["event_id"],
                log_dict["event_type"],
                e,
            )
            return False

        self._emitted += 1
        return True

    def log_created(self, entity) -> None:
        self.log(LedgerEventBuilder.entity_created(entity))

    def log_updated(self, entity, changed_fields: list[str]) -> None:
        self.log(LedgerEventBuilder.entity_updated(entity, changed_fields))

    def log_deleted(self, entity) -> None:
        self.log(LedgerEventBuilder.entity_deleted(entity))

    def log_validation_rejected(
        self,
        entity_type: str,
        entity_id: Optional[UUID],
        issues: list[dict],
    ) -> None:
        self.log(LedgerEventBuilder.validation_rejected(
            entity_type=entity_type,
            entity_id=entity_id,
            issues=issues,
        ))

    def log_commit_failed(
        self,
        entity_type: str,
        entity_id: UUID,
        error_message: str,
    ) -> None:
        self.log(LedgerEventBuilder.commit_failed(
            entity_type=entity_type,
            entity_id=entity_id,
            error_message=error_message,
        ))

    def log_sync_status_changed(
        self,
        transaction_id: UUID,
        previous: str,
        current: str,
        trigger: str,
    ) -> None:
        if previous == current:
            return
        self.log(LedgerEventBuilder.sync_status_changed(
            transaction_id=transaction_id,
            previous=previous,
            current=current,
            trigger=trigger,
        ))


_default_logger: Optional[EventLogger] = None


def get_event_logger() -> EventLogger:
    """Process-wide logger used when a component is not given one."""
    global _default_logger
    if _default_logger is None:
        _default_logger = EventLogger()
    return _default_logger
