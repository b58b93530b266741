"""
Legacy Value Tables

Stored cost configurations predate the current enum spellings. Older
records use German keys ("kfz", "tag", "einmalig") or retired values
("night", "month"). Instead of comparing strings all over the engine,
every spelling we ever wrote is listed here, once, per table version.

DESIGN DECISION: Tables are versioned. A new spelling is added by
creating a new version that extends the previous one, so that a record
can always be read back with the table that was current when it was
written.
"""

from typing import Optional

CURRENT_TABLE_VERSION = 1

DEFAULT_UNIT_BASIS = "team"
DEFAULT_PERIOD = "day"
DEFAULT_SPECIAL_PERIOD = "once"


UNIT_BASIS_TABLES: dict[int, dict[str, str]] = {
    1: {
        "team": "team",
        "person": "person",
        # Retired per-person spellings
        "night": "person",
        "day": "person",
        "piece": "person",
        "per-person": "person",
        "nacht": "person",
        "tag": "person",
        "stueck": "person",
        "pp": "person",
    },
}

PERIOD_TABLES: dict[int, dict[str, str]] = {
    1: {
        "day": "day",
        "week": "week",
        "block": "block",
        "once": "once",
        "month": "block",
        "tag": "day",
        "woche": "week",
        "abschnitt": "block",
        "einmalig": "once",
        "monat": "block",
    },
}

CATEGORY_TABLES: dict[int, dict[str, str]] = {
    1: {
        "vehicle": "vehicle",
        "lodging": "lodging",
        "meals": "meals",
        "clothing": "clothing",
        "credentials": "credentials",
        "kfz": "vehicle",
        "unterkunft": "lodging",
        "verpflegung": "meals",
        "kleidung": "clothing",
        "ausweise": "credentials",
    },
}


FIELD_NAME_TABLES: dict[int, dict[str, str]] = {
    1: {
        "aktiv": "active",
        "betrag": "amount",
        "summe": "sum",
        "pro": "unit_basis",
        "zeitraum": "period",
        "artFrei": "label",
        "unitBasis": "unit_basis",
        "explicitAreaId": "explicit_area_id",
    },
}


def _table(tables: dict[int, dict[str, str]], version: int) -> dict[str, str]:
    try:
        return tables[version]
    except KeyError:
        raise ValueError(f"Unknown legacy table version: {version}")


def _clean(value: Optional[str]) -> str:
    return str(value).strip().lower() if value is not None else ""


def normalize_unit_basis(
    value: Optional[str],
    version: int = CURRENT_TABLE_VERSION,
) -> tuple[str, bool]:
    """
    Map a stored unit-basis spelling to "team" or "person".

    Returns (normalized_value, recognized). Unknown values fall back to
    "team"; recognized is False in that case so callers can flag it.
    """
    table = _table(UNIT_BASIS_TABLES, version)
    cleaned = _clean(value)
    if cleaned in table:
        return table[cleaned], True
    return DEFAULT_UNIT_BASIS, False


def normalize_period(
    value: Optional[str],
    version: int = CURRENT_TABLE_VERSION,
    default: str = DEFAULT_PERIOD,
) -> tuple[str, bool]:
    """
    Map a stored period spelling to day/week/block/once.

    A missing value yields `default` and counts as recognized; an
    unrecognized value yields "day" and does not.
    """
    table = _table(PERIOD_TABLES, version)
    cleaned = _clean(value)
    if not cleaned:
        return default, True
    if cleaned in table:
        return table[cleaned], True
    return DEFAULT_PERIOD, False


def normalize_category(
    value: str,
    version: int = CURRENT_TABLE_VERSION,
) -> Optional[str]:
    """Map a stored category key to a CostCategory value, or None."""
    return _table(CATEGORY_TABLES, version).get(_clean(value))


def rename_legacy_fields(
    data: dict,
    version: int = CURRENT_TABLE_VERSION,
) -> dict:
    """Return a copy of `data` with retired field names replaced."""
    table = _table(FIELD_NAME_TABLES, version)
    renamed = {}
    for key, value in data.items():
        target = table.get(key, key)
        # Current spelling wins when both are present
        if target != key and target in data:
            continue
        renamed[target] = value
    return renamed
