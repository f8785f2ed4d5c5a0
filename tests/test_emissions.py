import itertools
import math
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from footprint.services.emissions import (
    DEFAULT_FACTORS,
    EmissionCalculator,
    EmissionFactorTable,
    InvalidFactorTable,
    InvalidRecord,
    InvalidValue,
    UnknownActivityType,
    UnknownCategory,
    default_calculator as calc,
    round_half_up,
)


def test_car_petrol_100km():
    result = calc.calculate_emission("transport", "car_petrol", 100, "km")
    assert result.co2_emission == 12.0
    assert result.emission_factor == 0.12
    assert result.co2_unit == "kg"
    assert result.unit == "km"


def test_two_beef_meals():
    assert calc.calculate_emission("food", "beef", 2, "meal").co2_emission == 12.0


@pytest.mark.parametrize("value", [0, 0.5, 1, 3.3333, 17, 1234.567])
def test_every_known_pair_uses_its_factor(value):
    for category, types in DEFAULT_FACTORS.items():
        for activity_type, factor in types.items():
            result = calc.calculate_emission(category, activity_type, value, None)
            assert result.co2_emission == round_half_up(value * factor, 3)


def test_unknown_category():
    with pytest.raises(UnknownCategory):
        calc.calculate_emission("bogus", "x", 1, "u")


def test_unknown_activity_type():
    with pytest.raises(UnknownActivityType) as exc:
        calc.calculate_emission("transport", "bogus", 1, "km")
    assert "bogus" in str(exc.value)


@pytest.mark.parametrize("value", [-1, float("nan"), "3", True])
def test_invalid_value(value):
    with pytest.raises(InvalidValue):
        calc.calculate_emission("transport", "bus", value, "km")


def test_unit_is_passed_through_even_if_it_mismatches(caplog):
    result = calc.calculate_emission("transport", "bus", 10, "miles")
    assert result.unit == "miles"
    assert result.co2_emission == 0.5
    assert "differs from factor unit" in caplog.text


def test_get_emission_factor_is_permissive():
    assert calc.get_emission_factor("energy", "electricity") == 0.5
    assert calc.get_emission_factor("energy", "nope") is None
    assert calc.get_emission_factor("nope", "electricity") is None


def test_all_activity_types_listing():
    listing = calc.get_all_activity_types()
    assert list(listing) == ["transport", "energy", "food", "waste", "consumption"]
    assert {"type": "bicycle", "factor": 0, "unit": "km"} in listing["transport"]
    assert [t["type"] for t in listing["waste"]] == ["general_waste", "recycling", "composting"]
    assert all(t["unit"] == "item" for t in listing["consumption"])


def test_table_is_read_only():
    table = EmissionFactorTable(DEFAULT_FACTORS)
    with pytest.raises(TypeError):
        table.factors_for("food")["beef"] = 0


def test_custom_table_is_injected():
    regional = EmissionCalculator(EmissionFactorTable({"energy": {"electricity": 0.1}}))
    assert regional.calculate_emission("energy", "electricity", 10, "kWh").co2_emission == 1.0
    assert regional.get_all_activity_types() == {
        "energy": [{"type": "electricity", "factor": 0.1, "unit": "kWh"}]
    }
    with pytest.raises(UnknownCategory):
        regional.calculate_emission("food", "beef", 1, "meal")


@pytest.mark.parametrize("factors", [
    {"space": {"rocket": 1.0}},
    {"food": {"beef": -1}},
    {"food": {"beef": "lots"}},
    {"food": ["beef"]},
])
def test_bad_factor_tables_are_rejected(factors):
    with pytest.raises(InvalidFactorTable):
        EmissionFactorTable(factors)


def test_table_from_json(tmp_path):
    path = tmp_path / "factors.json"
    path.write_text('{"waste": {"landfill": 0.7, "recycling": 0.1}}')
    table = EmissionFactorTable.from_json(path)
    assert table.categories == ["waste"]
    assert EmissionCalculator(table).get_emission_factor("waste", "landfill") == 0.7

# --------------------------------------------------
# Aggregation
# --------------------------------------------------

RECORDS = [
    {"category": "transport", "activity_type": "bus", "co2_emission": 1.5},
    {"category": "transport", "activity_type": "car_petrol", "co2_emission": 12.0},
    {"category": "food", "activity_type": "beef", "co2_emission": 6.0},
    {"category": "energy", "activity_type": "electricity", "co2_emission": 2.333},
]


def test_empty_summary():
    summary = calc.calculate_total_emissions([])
    assert summary.as_dict() == {"total": 0, "by_category": {}, "by_activity_type": {}}


def test_summary_breakdown():
    summary = calc.calculate_total_emissions(RECORDS)
    assert summary.total == 21.83
    assert summary.by_category == {"transport": 13.5, "food": 6.0, "energy": 2.33}
    assert summary.by_activity_type["transport_bus"] == 1.5
    assert summary.by_activity_type["energy_electricity"] == 2.33


def test_summary_is_order_independent():
    expected = calc.calculate_total_emissions(RECORDS).as_dict()
    for perm in itertools.permutations(RECORDS):
        assert calc.calculate_total_emissions(perm).as_dict() == expected


def test_rounding_happens_once_at_the_end():
    summary = calc.calculate_total_emissions([
        {"category": "transport", "activity_type": "bus", "co2_emission": 1.005},
        {"category": "transport", "activity_type": "bus", "co2_emission": 1.004},
    ])
    assert summary.total == 2.01
    assert summary.by_category["transport"] == 2.01


def test_summary_accepts_objects():
    rows = [SimpleNamespace(category="waste", activity_type="recycling", co2_emission=0.25)]
    assert calc.calculate_total_emissions(rows).by_activity_type == {"waste_recycling": 0.25}


@pytest.mark.parametrize("record", [
    {"category": "food", "activity_type": "beef"},
    {"category": "food", "activity_type": "beef", "co2_emission": None},
    {"category": "food", "activity_type": "beef", "co2_emission": "6"},
    {"category": "food", "activity_type": "beef", "co2_emission": math.nan},
    {"category": "food", "activity_type": "beef", "co2_emission": -1},
    {"activity_type": "beef", "co2_emission": 1.0},
])
def test_malformed_records_fail_fast(record):
    with pytest.raises(InvalidRecord):
        calc.calculate_total_emissions([record])

# --------------------------------------------------
# Daily trends
# --------------------------------------------------

def test_daily_trends_group_by_date():
    day = datetime(2026, 3, 1, 9, 30)
    rows = [
        {"category": "transport", "activity_type": "bus", "co2_emission": 1.004, "date": day},
        {"category": "food", "activity_type": "beef", "co2_emission": 6.0, "date": day + timedelta(hours=10)},
        {"category": "transport", "activity_type": "bus", "co2_emission": 1.005, "date": day},
        {"category": "energy", "activity_type": "coal", "co2_emission": 3.4, "date": day - timedelta(days=1)},
    ]
    points = [p.as_dict() for p in calc.daily_trends(rows)]
    assert points == [
        {"date": "2026-02-28", "total": 3.4, "transport": 0, "energy": 3.4, "food": 0, "waste": 0, "consumption": 0},
        {"date": "2026-03-01", "total": 8.01, "transport": 2.01, "energy": 0, "food": 6.0, "waste": 0, "consumption": 0},
    ]


def test_daily_trends_normalise_to_utc():
    late_evening = datetime(2026, 3, 1, 23, 0, tzinfo=timezone(timedelta(hours=-5)))
    rows = [
        {"category": "waste", "activity_type": "recycling", "co2_emission": 0.1, "date": late_evening},
        {"category": "waste", "activity_type": "recycling", "co2_emission": 0.1, "date": "2026-03-02T01:00:00Z"},
        {"category": "waste", "activity_type": "recycling", "co2_emission": 0.1, "date": date(2026, 3, 2)},
    ]
    points = calc.daily_trends(rows)
    assert [p.date for p in points] == ["2026-03-02"]
    assert points[0].waste == 0.3


def test_daily_trends_require_a_date():
    with pytest.raises(InvalidRecord):
        calc.daily_trends([{"category": "food", "activity_type": "vegan", "co2_emission": 0.9}])


def test_round_half_up_matches_js_rounding():
    assert round_half_up(2.5, 0) == 3
    assert round_half_up(0.125, 2) == 0.13
    assert round_half_up(12.0, 3) == 12.0


def test_round_half_up_leaves_huge_values_alone():
    assert round_half_up(1e300, 2) == 1e300
    assert round_half_up(1.7e308, 3) == 1.7e308

# --------------------------------------------------
# Overflow
# --------------------------------------------------

def test_emission_too_large_to_round():
    with pytest.raises(InvalidValue):
        calc.calculate_emission("consumption", "furniture", 1e306, "item")


def test_huge_value_with_zero_factor_is_fine():
    assert calc.calculate_emission("transport", "bicycle", 1e306, "km").co2_emission == 0


def test_summary_sum_overflow():
    rows = [{"category": "food", "activity_type": "beef", "co2_emission": 1.7e308}] * 2
    with pytest.raises(InvalidRecord):
        calc.calculate_total_emissions(rows)


def test_trend_sum_overflow():
    rows = [
        {"category": "food", "activity_type": "beef", "co2_emission": 1.7e308, "date": date(2026, 3, 1)},
        {"category": "food", "activity_type": "lamb", "co2_emission": 1.7e308, "date": date(2026, 3, 1)},
    ]
    with pytest.raises(InvalidRecord):
        calc.daily_trends(rows)


def test_factor_table_must_be_a_mapping(tmp_path):
    with pytest.raises(InvalidFactorTable):
        EmissionFactorTable([["food", {"beef": 6.0}]])

    path = tmp_path / "factors.json"
    path.write_text('[{"food": {"beef": 6.0}}]')
    with pytest.raises(InvalidFactorTable):
        EmissionFactorTable.from_json(path)
