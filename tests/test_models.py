"""
Tests for the Campaign Cost Ledger models

Test strategy:
1. Unit tests for individual components (models, legacy tables, validators)
2. Flow tests against the in-memory store
3. No real API calls in tests (Sheets adapters get mocked worksheets)
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from cost_ledger.models import (
    AttendanceRecord,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    CostCategory,
    CostConfig,
    CostProfile,
    Distribution,
    LedgerKey,
    Period,
    SpecialLineItem,
    UnitBasis,
)
from cost_ledger.models.legacy import (
    normalize_category,
    normalize_period,
    normalize_unit_basis,
    rename_legacy_fields,
)


class TestLegacyTables:
    """Tests for the versioned legacy value tables."""

    @pytest.mark.parametrize("value", ["night", "day", "piece", "per-person", "Nacht "])
    def test_retired_unit_basis_maps_to_person(self, value):
        assert normalize_unit_basis(value) == ("person", True)

    def test_unknown_unit_basis_defaults_to_team(self):
        assert normalize_unit_basis("bus") == ("team", False)

    def test_month_period_maps_to_block(self):
        assert normalize_period("month") == ("block", True)

    def test_unknown_period_defaults_to_day(self):
        assert normalize_period("fortnight") == ("day", False)

    def test_missing_period_uses_default(self):
        assert normalize_period(None, default="once") == ("once", True)

    def test_german_category_keys(self):
        assert normalize_category("kfz") == "vehicle"
        assert normalize_category("Unterkunft") == "lodging"
        assert normalize_category("boat") is None

    def test_unknown_table_version_rejected(self):
        with pytest.raises(ValueError, match="Unknown legacy table version"):
            normalize_unit_basis("team", version=99)

    def test_rename_legacy_fields_prefers_current_spelling(self):
        renamed = rename_legacy_fields({"betrag": 10, "amount": 20, "aktiv": True})
        assert renamed == {"amount": 20, "active": True}


class TestCostConfig:
    """Tests for category cost rules."""

    def test_cost_config_creation(self):
        config = CostConfig(
            active=True,
            amount=Decimal("50"),
            unit_basis="team",
            period="day",
        )
        assert config.unit_basis == UnitBasis.TEAM
        assert config.period == Period.DAY
        assert config.distribution == Distribution.PROPORTIONAL
        assert config.normalization_notes == []

    def test_legacy_field_names_and_values(self):
        config = CostConfig.model_validate({
            "aktiv": True,
            "betrag": "12.50",
            "pro": "night",
            "zeitraum": "month",
            "artFrei": "Hotel",
        })
        assert config.active is True
        assert config.amount == Decimal("12.50")
        assert config.unit_basis == UnitBasis.PERSON
        assert config.period == Period.BLOCK
        assert config.label == "Hotel"

    def test_unknown_values_are_flagged(self):
        config = CostConfig(active=True, amount=Decimal("5"), unit_basis="bus", period="?")
        assert config.unit_basis == UnitBasis.TEAM
        assert config.period == Period.DAY
        assert len(config.normalization_notes) == 2

    def test_missing_active_fails(self):
        with pytest.raises(ValueError):
            CostConfig(amount=Decimal("50"))

    def test_missing_amount_fails(self):
        with pytest.raises(ValueError):
            CostConfig(active=True)

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            CostConfig(active=True, amount=Decimal("-1"))

    def test_notes_not_serialized(self):
        config = CostConfig(active=True, amount=Decimal("5"), unit_basis="bus")
        assert "normalization_notes" not in config.model_dump()


class TestCostProfile:
    """Tests for profile-level normalization and rule extraction."""

    def test_vehicle_forced_to_team(self):
        profile = CostProfile.model_validate({
            "costs": {"vehicle": {"active": True, "amount": 50, "unit_basis": "person"}},
        })
        vehicle = profile.costs[CostCategory.VEHICLE]
        assert vehicle.unit_basis == UnitBasis.TEAM
        assert any("forced" in note for note in vehicle.normalization_notes)

    def test_legacy_category_keys(self):
        profile = CostProfile.model_validate({
            "costs": {"kfz": {"aktiv": True, "betrag": 50}},
        })
        assert CostCategory.VEHICLE in profile.costs

    def test_unknown_category_rejected(self):
        with pytest.raises(ValueError, match="Unknown cost category"):
            CostProfile.model_validate({
                "costs": {"boat": {"active": True, "amount": 1}},
            })

    def test_duplicate_special_items_rejected(self):
        with pytest.raises(ValueError, match="Duplicate special line items"):
            CostProfile.model_validate({
                "special_items": [
                    {"name": "ferry", "sum": 10},
                    {"name": "ferry", "sum": 20},
                ],
            })

    def test_special_item_defaults_to_once(self):
        item = SpecialLineItem(name="ferry", sum=Decimal("30"))
        assert item.period == Period.ONCE
        assert item.unit_basis == UnitBasis.TEAM

    def test_rules_skip_inactive_and_zero_priced(self):
        profile = CostProfile.model_validate({
            "costs": {
                "vehicle": {"active": True, "amount": 50},
                "lodging": {"active": False, "amount": 30},
                "meals": {"active": True, "amount": 0},
            },
            "special_items": [
                {"name": "ferry", "sum": 30},
                {"name": "parking", "sum": 5, "active": False},
            ],
        })
        rules = profile.rules()
        assert [rule.category for rule in rules] == ["vehicle", "special_ferry"]
        assert rules[1].is_special
        assert rules[1].label == "ferry"

    def test_rules_use_configured_prefix(self):
        profile = CostProfile.model_validate({
            "special_items": [{"name": "ferry", "sum": 30}],
        })
        assert profile.rules("extra:")[0].category == "extra:ferry"

    def test_rule_flags(self):
        profile = CostProfile.model_validate({
            "costs": {
                "vehicle": {"active": True, "amount": 50},
                "clothing": {"active": True, "amount": 25, "pro": "person", "zeitraum": "einmalig"},
            },
        })
        vehicle, clothing = profile.rules()
        assert vehicle.is_shared_team_daily
        assert not vehicle.is_one_time_person
        assert clothing.is_one_time_person

    def test_empty_profile(self):
        assert CostProfile().is_empty
        assert CostProfile().rules() == []


class TestAttendanceAndKeys:
    """Tests for attendance records and ledger keys."""

    def test_sunday_is_ignored(self):
        record = AttendanceRecord(user_id="u1", week=10, day_5=True, day_6=True)
        assert record.active_days() == {5}
        assert not record.is_active(6)

    def test_restricted_to_clears_other_days(self):
        record = AttendanceRecord(user_id="u1", week=10, day_0=True, day_1=True)
        restricted = record.restricted_to({1})
        assert restricted.active_days() == {1}
        assert record.active_days() == {0, 1}

    def test_ledger_key_string(self):
        key = LedgerKey(
            customer_id="c",
            campaign_id="k",
            area_id="a",
            category="vehicle",
            week=10,
            year=2024,
        )
        assert str(key) == "c/k/a/vehicle/KW10-2024"


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.BOOKING_CREATED,
            entity_type="ledger_entry",
            entity_id=str(uuid4()),
            description="Booking created",
        )
        assert event.event_type == AuditEventType.BOOKING_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.recompute_started("area-A", "camp-1", 10, 2024, correlation_id)
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "recompute_started"
        assert log_dict["correlation_id"] == str(correlation_id)
        assert log_dict["details"]["week"] == 10

    def test_audit_event_to_sheets_row(self):
        event = AuditEventBuilder.rule_failed(
            "c/k/a/vehicle/KW10-2024", "StorageError", "timeout", uuid4()
        )
        row = event.to_sheets_row()
        assert len(row) == 10
        assert row[2] == "rule_failed"
        assert row[3] == "error"
        assert row[9] == "timeout"

    def test_ledger_mutation_builder(self):
        event = AuditEventBuilder.ledger_mutation(
            event_type=AuditEventType.CORRECTION_CREATED,
            entry_id=uuid4(),
            ledger_key="c/k/a/vehicle/KW10-2024",
            amount="-50.00",
            units="2.0000",
            correlation_id=uuid4(),
        )
        assert event.description.startswith("Correction created")
        assert event.details["amount"] == "-50.00"

    def test_recompute_completed_warns_on_failures(self):
        event = AuditEventBuilder.recompute_completed("area-A", 3, 1, uuid4())
        assert event.severity == AuditSeverity.WARNING
