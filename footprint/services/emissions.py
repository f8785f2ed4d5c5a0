import json
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

# --------------------------------------------------
# Categories & default factors
# --------------------------------------------------

class Category(str, Enum):
    TRANSPORT = "transport"
    ENERGY = "energy"
    FOOD = "food"
    WASTE = "waste"
    CONSUMPTION = "consumption"


CATEGORY_UNITS = MappingProxyType({
    Category.TRANSPORT.value: "km",
    Category.ENERGY.value: "kWh",
    Category.FOOD.value: "meal",
    Category.WASTE.value: "kg",
    Category.CONSUMPTION.value: "item",
})

CO2_UNIT = "kg"

# kg CO2 per unit of the category's natural measure
DEFAULT_FACTORS = {
    "transport": {
        "car_petrol": 0.12,
        "car_diesel": 0.15,
        "car_electric": 0.05,
        "bus": 0.05,
        "train": 0.04,
        "metro": 0.03,
        "motorcycle": 0.08,
        "bicycle": 0,
        "walking": 0,
        "flight_short": 0.255,  # < 1500 km
        "flight_long": 0.195,   # > 1500 km
    },
    "energy": {
        "electricity": 0.5,     # grid average, varies by country
        "natural_gas": 0.185,
        "heating_oil": 0.25,
        "lpg": 0.214,
        "coal": 0.34,
    },
    "food": {
        "beef": 6.0,
        "lamb": 5.5,
        "pork": 3.5,
        "chicken": 2.0,
        "fish": 1.5,
        "eggs": 1.2,
        "dairy": 1.0,
        "vegetarian": 1.5,
        "vegan": 0.9,
    },
    "waste": {
        "general_waste": 0.5,
        "recycling": 0.1,
        "composting": 0.05,
    },
    "consumption": {
        "clothing": 15,         # per item average
        "electronics": 50,
        "furniture": 100,
    },
}

# --------------------------------------------------
# Errors
# --------------------------------------------------

class EmissionError(ValueError):
    """Base class for calculator input errors."""


class UnknownCategory(EmissionError):
    def __init__(self, category):
        super().__init__(f"Unknown category: {category}")
        self.category = category


class UnknownActivityType(EmissionError):
    def __init__(self, category, activity_type):
        super().__init__(f"Unknown activity type: {activity_type} in category {category}")
        self.category = category
        self.activity_type = activity_type


class InvalidValue(EmissionError):
    pass


class InvalidRecord(EmissionError):
    pass


class InvalidFactorTable(EmissionError):
    pass

# --------------------------------------------------
# Helpers
# --------------------------------------------------

def round_half_up(value: float, places: int) -> float:
    """Round like ``Math.round(value * 10**places) / 10**places``."""
    scale = 10 ** places
    scaled = value * scale
    if not math.isfinite(scaled) or abs(scaled) >= 2 ** 52:
        # already integral at this magnitude
        return value
    return math.floor(scaled + 0.5) / scale


def _roundable(value: float, places: int) -> bool:
    return math.isfinite(value * 10 ** places + 0.5)


def _round_sum(value: float, label: str) -> float:
    if not _roundable(value, 2):
        raise InvalidRecord(f"{label} emissions overflow: {value!r}")
    return round_half_up(value, 2)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _field(record, name):
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _record_emission(record) -> tuple:
    category = _field(record, "category")
    activity_type = _field(record, "activity_type")
    co2 = _field(record, "co2_emission")

    if not category or not activity_type:
        raise InvalidRecord("activity record is missing category or activity_type")
    if not _is_number(co2) or not math.isfinite(co2) or co2 < 0:
        raise InvalidRecord(
            f"activity record {category}_{activity_type} has invalid co2_emission: {co2!r}"
        )
    return str(category), str(activity_type), float(co2)


def _record_day(record) -> str:
    value = _field(record, "date")
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidRecord(f"activity record has unparseable date: {value!r}") from None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    raise InvalidRecord(f"activity record has no date: {value!r}")

# --------------------------------------------------
# Results
# --------------------------------------------------

@dataclass(frozen=True)
class EmissionResult:
    category: str
    activity_type: str
    value: float
    unit: Optional[str]
    emission_factor: float
    co2_emission: float
    co2_unit: str = CO2_UNIT

    def as_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "activity_type": self.activity_type,
            "value": self.value,
            "unit": self.unit,
            "emission_factor": self.emission_factor,
            "co2_emission": self.co2_emission,
            "co2_unit": self.co2_unit,
        }


@dataclass
class EmissionSummary:
    total: float = 0
    by_category: Dict[str, float] = field(default_factory=dict)
    by_activity_type: Dict[str, float] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "by_category": dict(self.by_category),
            "by_activity_type": dict(self.by_activity_type),
        }


@dataclass
class DailyTrendPoint:
    date: str
    total: float = 0
    transport: float = 0
    energy: float = 0
    food: float = 0
    waste: float = 0
    consumption: float = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "total": self.total,
            "transport": self.transport,
            "energy": self.energy,
            "food": self.food,
            "waste": self.waste,
            "consumption": self.consumption,
        }

# --------------------------------------------------
# Factor table
# --------------------------------------------------

class EmissionFactorTable:
    """Immutable category -> activity type -> factor mapping.

    Declaration order of activity types is preserved; it drives the order of
    :meth:`EmissionCalculator.get_all_activity_types`.
    """

    def __init__(self, factors: Mapping):
        if not isinstance(factors, Mapping):
            raise InvalidFactorTable(
                f"Factor table must map categories to factors, got {type(factors).__name__}"
            )
        table = {}
        for category, types in factors.items():
            if category not in CATEGORY_UNITS:
                raise InvalidFactorTable(f"Unknown category in factor table: {category}")
            if not isinstance(types, Mapping):
                raise InvalidFactorTable(f"Factors for {category} must be a mapping")
            checked = {}
            for activity_type, factor in types.items():
                if not _is_number(factor) or not math.isfinite(factor) or factor < 0:
                    raise InvalidFactorTable(
                        f"Invalid factor for {category}/{activity_type}: {factor!r}"
                    )
                checked[str(activity_type)] = factor
            table[category] = MappingProxyType(checked)
        self._factors = MappingProxyType(table)

    @classmethod
    def from_json(cls, path) -> "EmissionFactorTable":
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        logger.info("Loaded emission factor table from %s", path)
        return cls(data)

    @property
    def categories(self) -> List[str]:
        return list(self._factors)

    def factors_for(self, category) -> Optional[Mapping]:
        return self._factors.get(category)

    def __iter__(self):
        return iter(self._factors.items())

# --------------------------------------------------
# Calculator
# --------------------------------------------------

class EmissionCalculator:
    def __init__(self, table: EmissionFactorTable):
        self.table = table

    def calculate_emission(self, category, activity_type, value, unit=None) -> EmissionResult:
        """Convert a logged quantity into kg CO2.

        Raises UnknownCategory / UnknownActivityType when the pair is not in
        the table. ``unit`` is informational and passed through as given.
        """
        factors = self.table.factors_for(category)
        if factors is None:
            raise UnknownCategory(category)

        factor = factors.get(activity_type)
        if factor is None:
            raise UnknownActivityType(category, activity_type)

        if not _is_number(value) or not math.isfinite(value) or value < 0:
            raise InvalidValue(f"value must be a non-negative number, got {value!r}")

        emission = value * factor
        if not _roundable(emission, 3):
            raise InvalidValue(f"value {value!r} is too large to convert")

        expected = CATEGORY_UNITS[category]
        if unit is not None and unit != expected:
            logger.warning(
                "Unit %r for %s/%s differs from factor unit %r",
                unit, category, activity_type, expected,
            )

        return EmissionResult(
            category=category,
            activity_type=activity_type,
            value=value,
            unit=unit,
            emission_factor=factor,
            co2_emission=round_half_up(emission, 3),
        )

    def get_emission_factor(self, category, activity_type) -> Optional[float]:
        factors = self.table.factors_for(category)
        if factors is None:
            return None
        return factors.get(activity_type)

    def canonical_unit(self, category) -> Optional[str]:
        return CATEGORY_UNITS.get(category)

    def get_all_activity_types(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            category: [
                {"type": activity_type, "factor": factor, "unit": CATEGORY_UNITS[category]}
                for activity_type, factor in types.items()
            ]
            for category, types in self.table
        }

    def calculate_total_emissions(self, activities: Iterable) -> EmissionSummary:
        total = 0.0
        by_category: Dict[str, float] = {}
        by_activity_type: Dict[str, float] = {}

        for record in activities:
            category, activity_type, co2 = _record_emission(record)
            total += co2
            by_category[category] = by_category.get(category, 0.0) + co2
            key = f"{category}_{activity_type}"
            by_activity_type[key] = by_activity_type.get(key, 0.0) + co2

        # round once at the end
        return EmissionSummary(
            total=_round_sum(total, "total"),
            by_category={k: _round_sum(v, k) for k, v in by_category.items()},
            by_activity_type={k: _round_sum(v, k) for k, v in by_activity_type.items()},
        )

    def daily_trends(self, activities: Iterable) -> List[DailyTrendPoint]:
        days: Dict[str, Dict[str, float]] = {}

        for record in activities:
            category, _, co2 = _record_emission(record)
            day = _record_day(record)
            totals = days.setdefault(day, {"total": 0.0})
            totals["total"] += co2
            totals[category] = totals.get(category, 0.0) + co2

        points = []
        for day in sorted(days):
            totals = days[day]
            points.append(DailyTrendPoint(
                date=day,
                total=_round_sum(totals["total"], f"{day} total"),
                **{c.value: _round_sum(totals.get(c.value, 0.0), f"{day} {c.value}") for c in Category},
            ))
        return points


default_calculator = EmissionCalculator(EmissionFactorTable(DEFAULT_FACTORS))
