"""
Shared fixtures.

Every test runs against the in-memory store; nothing here talks to
Google Sheets.
"""

from decimal import Decimal
from typing import Optional

import pytest

from cost_ledger.audit import AuditLogger
from cost_ledger.config import LedgerSettings
from cost_ledger.models import (
    AreaCostSettings,
    AttendanceRecord,
    CostProfile,
    EntryKind,
    LedgerEntry,
    Period,
    UnitBasis,
    WeeklyAssignment,
    WerberAssignment,
)
from cost_ledger.orchestrator import LedgerRecomputeFlow
from cost_ledger.services.storage import InMemoryStore


CUSTOMER = "cust-1"
CAMPAIGN = "camp-1"
AREA_A = "area-A"
AREA_B = "area-B"
WEEK = 10
YEAR = 2024


@pytest.fixture
def settings() -> LedgerSettings:
    return LedgerSettings()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def flow(store, settings) -> LedgerRecomputeFlow:
    return LedgerRecomputeFlow(
        config_reader=store,
        attendance_reader=store,
        assignment_reader=store,
        ledger_store=store,
        tracking_store=store,
        audit_logger=AuditLogger(store),
        settings=settings,
    )


@pytest.fixture
def make_attendance():
    """Build an AttendanceRecord from a user id and active day numbers."""
    def _make(user_id: str, days, week: int = WEEK) -> AttendanceRecord:
        return AttendanceRecord(
            user_id=user_id,
            week=week,
            campaign_id=CAMPAIGN,
            **{f"day_{day}": True for day in days},
        )
    return _make


@pytest.fixture
def assign(store):
    """Seed a weekly assignment from a {werber_id: area_id} mapping."""
    def _assign(mapping: dict[str, str], week: int = WEEK) -> None:
        store.add_assignment(WeeklyAssignment(
            week=week,
            campaign_id=CAMPAIGN,
            werbers=[
                WerberAssignment(werber_id=werber, area_id=area)
                for werber, area in mapping.items()
            ],
        ))
    return _assign


@pytest.fixture
def seed_areas(store):
    """
    Register areas A and B in the campaign.

    Pass `individual` to give both areas their own profile; otherwise
    they fall back to the customer profile (if one is seeded).
    """
    def _seed(individual: Optional[dict] = None) -> None:
        for area_id in (AREA_A, AREA_B):
            store.set_area_costs(AreaCostSettings(
                area_id=area_id,
                campaign_id=CAMPAIGN,
                individual_costs=individual is not None,
                profile=CostProfile.model_validate(individual or {}),
            ))
    return _seed


@pytest.fixture
def make_entry():
    """Build a ledger entry for area A with sensible defaults."""
    def _make(
        category: str = "vehicle",
        amount: str = "100",
        kind: EntryKind = EntryKind.BOOKING,
        area_id: str = AREA_A,
        week: int = WEEK,
        year: int = YEAR,
        period: Period = Period.DAY,
    ) -> LedgerEntry:
        return LedgerEntry(
            customer_id=CUSTOMER,
            campaign_id=CAMPAIGN,
            area_id=area_id,
            category=category,
            unit_basis=UnitBasis.TEAM,
            period=period,
            kind=kind,
            amount=Decimal(amount),
            units=Decimal("1"),
            unit_price=Decimal(amount),
            label=category,
            week=week,
            year=year,
        )
    return _make
