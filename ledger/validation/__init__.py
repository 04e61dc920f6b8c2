"""Entity validation package."""

from ledger.validation.validator import (
    EntityValidator,
    ValidationError,
    ValidationIssue,
)

__all__ = ["EntityValidator", "ValidationError", "ValidationIssue"]
