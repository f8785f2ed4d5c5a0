from dataclasses import dataclass
from datetime import datetime, timedelta

# "month" is a rolling 30-day window, not a calendar month
PERIOD_LENGTHS = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}
DEFAULT_PERIOD = "month"


@dataclass(frozen=True)
class PeriodWindow:
    start: datetime
    end: datetime
    include_end: bool = True

    def contains(self, ts: datetime) -> bool:
        if ts < self.start:
            return False
        return ts <= self.end if self.include_end else ts < self.end

    def bounds(self, column) -> tuple:
        """The bounds of :meth:`contains` as filter expressions over ``column``."""
        upper = column <= self.end if self.include_end else column < self.end
        return column >= self.start, upper


def period_length(period: str) -> timedelta:
    return PERIOD_LENGTHS.get(period, PERIOD_LENGTHS[DEFAULT_PERIOD])


def period_window(period: str, now: datetime, previous: bool = False) -> PeriodWindow:
    """Window for a summary query.

    Current: [now - L, now]. Previous: [now - 2L, now - L), so the two are
    adjacent without overlapping.
    """
    length = period_length(period)
    if previous:
        return PeriodWindow(start=now - 2 * length, end=now - length, include_end=False)
    return PeriodWindow(start=now - length, end=now)


def trend_window(days: int, now: datetime) -> PeriodWindow:
    if days < 1:
        raise ValueError(f"days must be at least 1, got {days}")
    return PeriodWindow(start=now - timedelta(days=days), end=now)
