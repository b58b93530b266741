"""Cost configuration validation package."""

from cost_ledger.validation.validator import CostConfigValidator

__all__ = ["CostConfigValidator"]
