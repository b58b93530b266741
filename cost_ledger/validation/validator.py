"""
Two-Stage Cost Profile Validation

STAGE 1 - SCHEMA VALIDATION:
- Explicit distribution names an area
- Prices fit the currency's minor unit

STAGE 2 - SEMANTIC VALIDATION:
- Legacy spellings that fell back to a default
- Active rules that can never charge anything
- Explicit areas that are not part of the campaign

Structural errors (missing `active`/`amount`, unknown categories) never
get this far: the pydantic models reject them when the profile is read.

IMPORTANT: Validation NEVER silently fixes issues. It reports them; the
engine still evaluates the profile the way it was normalized.
"""

from decimal import Decimal
from typing import Optional

from cost_ledger.config import LedgerSettings, get_settings
from cost_ledger.models.costs import (
    CostProfile,
    Distribution,
    ValidationIssue,
    ValidationResult,
)


class CostConfigValidator:
    """
    Validates a cost profile through a two-stage pipeline.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def _named_rules(self, profile: CostProfile) -> list[tuple[str, object, Decimal, bool]]:
        """(field name, rule, price, active) for every rule of the profile."""
        rules = [
            (f"costs.{category.value}", config, config.amount, config.active)
            for category, config in profile.costs.items()
        ]
        rules.extend(
            (f"special_items.{item.name}", item, item.sum, item.active)
            for item in profile.special_items
        )
        return rules

    def _validate_schema(self, profile: CostProfile) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        quantum = self._settings.amount_quantum

        for field, rule, price, _active in self._named_rules(profile):
            if rule.distribution == Distribution.EXPLICIT and not rule.explicit_area_id:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing_area",
                    message="Explicit distribution without an area; the rule is distributed proportionally",
                    severity="warning",
                    suggested_fix="Set explicit_area_id or switch to proportional distribution",
                ))
            if price != price.quantize(quantum):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="precision",
                    message=f"Price {price} has more decimals than the currency allows",
                    severity="warning",
                    suggested_fix=f"Round the price to {quantum}",
                ))

        is_valid = not any(i.severity == "error" for i in issues)
        return is_valid, issues

    def _validate_semantics(
        self,
        profile: CostProfile,
        campaign_area_ids: Optional[list[str]],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        for field, rule, price, active in self._named_rules(profile):
            for note in rule.normalization_notes:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="legacy_fallback",
                    message=note,
                    severity="warning",
                    suggested_fix="Re-save the cost configuration with current values",
                ))

            if active and not price:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="zero_amount",
                    message="Rule is active but priced at zero; it is never charged",
                    severity="info",
                ))

            if (
                campaign_area_ids is not None
                and rule.distribution == Distribution.EXPLICIT
                and rule.explicit_area_id
                and rule.explicit_area_id not in campaign_area_ids
            ):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="unknown_area",
                    message=f"Explicit area {rule.explicit_area_id} is not part of the campaign",
                    severity="warning",
                    suggested_fix="Pick one of the campaign's areas",
                ))

        is_valid = not any(i.severity == "error" for i in issues)
        return is_valid, issues

    def validate(
        self,
        profile: CostProfile,
        subject: str,
        campaign_area_ids: Optional[list[str]] = None,
    ) -> ValidationResult:
        """
        Run both validation stages.

        Args:
            profile: The profile to check
            subject: Label for the result, e.g. "area:<id>"
            campaign_area_ids: Areas of the campaign, if known

        Returns:
            ValidationResult with all issues found
        """
        schema_valid, schema_issues = self._validate_schema(profile)
        semantic_valid, semantic_issues = self._validate_semantics(
            profile, campaign_area_ids
        )

        return ValidationResult(
            subject=subject,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=schema_issues + semantic_issues,
        )
