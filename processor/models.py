"""Data models for unit availability and occupancy reporting."""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import FrozenSet, Tuple


class Weekday(Enum):
    """Day of week, ordered Monday first like ``date.weekday()``."""
    MON = 'Mon'
    TUE = 'Tue'
    WED = 'Wed'
    THU = 'Thu'
    FRI = 'Fri'
    SAT = 'Sat'
    SUN = 'Sun'

    @classmethod
    def from_date(cls, day: date) -> 'Weekday':
        return list(cls)[day.weekday()]


@dataclass(frozen=True)
class CheckoutMarker:
    """Checkout cell found in a month block."""
    date_token: str
    href: str


@dataclass(frozen=True)
class UnitAvailability:
    """Check-in and check-out dates scraped from one unit's calendar."""
    unit_name: str
    check_ins: FrozenSet[date] = field(default_factory=frozenset)
    check_outs: FrozenSet[date] = field(default_factory=frozenset)


@dataclass(frozen=True)
class OccupancyRow:
    """Units turning over on a single date of the reporting window."""
    date: date
    weekday: Weekday
    checking_in: Tuple[str, ...]
    checking_out: Tuple[str, ...]


@dataclass(frozen=True)
class UnitFailure:
    """A unit that could not be fetched or parsed."""
    url: str
    error_type: str
    message: str
