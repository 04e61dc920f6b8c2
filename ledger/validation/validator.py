"""
Two-Stage Entity Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type coercion (strings to Decimal/UUID/date)
- Required field presence
- Format validation (currency codes, colors)
- Delegated to the pydantic models

STAGE 2 - INVARIANT VALIDATION:
- Transaction amounts are non-negative magnitudes
- Budget windows are ordered
- Alert thresholds are fractions in [0, 1]
- Amounts are finite numbers

Both stages run before the entity store changes any state. A failure in
either stage raises ValidationError; nothing is silently corrected.
"""

from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaError

from ledger.models.entities import (
    Account,
    Budget,
    Entity,
    Transaction,
    UserSettings,
)
from ledger.models.events import entity_kind


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g. 'negative_amount', 'inverted_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
    )


class ValidationError(ValueError):
    """
    Malformed input rejected before any state change.

    Not retryable until the input is corrected.
    """

    def __init__(self, entity_type: str, issues: list[ValidationIssue]):
        self.entity_type = entity_type
        self.issues = issues
        summary = "; ".join(f"{i.field}: {i.message}" for i in issues)
        super().__init__(f"Invalid {entity_type}: {summary}")

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]

    def issue_dicts(self) -> list[dict]:
        return [
            {"field": i.field, "type": i.issue_type, "message": i.message}
            for i in self.issues
        ]


class EntityValidator:
    """
    Validates entities through a two-stage pipeline.

    Stage 1 (build) turns raw field data into a model instance.
    Stage 2 (check) enforces ledger invariants on a model instance.
    """

    def build(self, kind: type, data: dict[str, Any]) -> Entity:
        """
        Stage 1: Schema validation.

        Raises:
            ValidationError: If pydantic rejects the data
        """
        try:
            return kind.model_validate(data)
        except SchemaError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(part) for part in err["loc"]) or "__root__",
                    issue_type=err["type"],
                    message=err["msg"],
                )
                for err in e.errors()
            ]
            raise ValidationError(entity_kind(kind), issues) from e

    def check(self, entity: Entity) -> list[ValidationIssue]:
        """
        Stage 2: Invariant validation.

        Returns all issues found (errors only; warnings are the caller's
        business since they need cross-entity lookups).
        """
        if isinstance(entity, Transaction):
            return self._check_transaction(entity)
        if isinstance(entity, Budget):
            return self._check_budget(entity)
        if isinstance(entity, UserSettings):
            return self._check_user_settings(entity)
        if isinstance(entity, Account):
            return self._check_account(entity)
        return []

    def validate(self, entity: Entity) -> Entity:
        """
        Run stage 2 and raise on any error.

        Raises:
            ValidationError: If any invariant is violated
        """
        issues = self.check(entity)
        if issues:
            raise ValidationError(entity_kind(entity), issues)
        return entity

    def build_and_validate(self, kind: type, data: dict[str, Any]) -> Entity:
        """Run both stages."""
        return self.validate(self.build(kind, data))

    def _check_transaction(self, transaction: Transaction) -> list[ValidationIssue]:
        issues = []

        if not transaction.amount.is_finite():
            issues.append(ValidationIssue(
                field="amount",
                issue_type="not_finite",
                message="Amount must be a finite number",
            ))
        elif transaction.amount < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="negative_amount",
                message=(
                    f"Amount ({transaction.amount}) must be a non-negative "
                    "magnitude; use the transaction type for direction"
                ),
            ))

        return issues

    def _check_budget(self, budget: Budget) -> list[ValidationIssue]:
        issues = []

        if budget.start_date > budget.end_date:
            issues.append(ValidationIssue(
                field="start_date",
                issue_type="inverted_range",
                message=(
                    f"Start date ({budget.start_date}) is after "
                    f"end date ({budget.end_date})"
                ),
            ))

        if not budget.total_amount.is_finite():
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="not_finite",
                message="Total amount must be a finite number",
            ))
        elif budget.total_amount < 0:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="negative_amount",
                message=f"Total amount ({budget.total_amount}) cannot be negative",
            ))

        return issues

    def _check_user_settings(self, settings: UserSettings) -> list[ValidationIssue]:
        threshold = settings.budget_alert_threshold
        # NaN fails both comparisons, so test for the valid range
        if not (0.0 <= threshold <= 1.0):
            return [ValidationIssue(
                field="budget_alert_threshold",
                issue_type="out_of_bounds",
                message=f"Threshold ({threshold}) must be between 0 and 1",
            )]
        return []

    def _check_account(self, account: Account) -> list[ValidationIssue]:
        issues = []
        for field_name in ("balance", "opening_balance"):
            if not getattr(account, field_name).is_finite():
                issues.append(ValidationIssue(
                    field=field_name,
                    issue_type="not_finite",
                    message=f"{field_name} must be a finite number",
                ))
        return issues

