"""Data models used throughout the project."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


class FareType(str, Enum):
    CURRENCY = "DOLLARS"
    POINTS = "POINTS"

    @classmethod
    def from_cli(cls, value: str | None) -> "FareType":
        """Map ``--fare-type`` (``dollars`` / ``points``) onto a fare type."""
        if value and value.strip().lower() == "points":
            return cls.POINTS
        return cls.CURRENCY


class Leg(str, Enum):
    OUTBOUND = "outbound"
    RETURN = "return"


# Booking form values for the time-of-day windows
TIME_OF_DAY = {
    "anytime": "ANYTIME",
    "morning": "BEFORE_NOON",
    "afternoon": "NOON_TO_6PM",
    "evening": "AFTER_6PM",
}


def time_of_day(value: str | None) -> str:
    """Return the form value for *value*, falling back to ``ANYTIME``."""
    return TIME_OF_DAY.get((value or "").lower(), TIME_OF_DAY["anytime"])


@dataclass(slots=True, frozen=True)
class FareQuery:
    origin: str
    destination: str
    outbound_date: date
    outbound_time: str = TIME_OF_DAY["anytime"]
    return_date: Optional[date] = None
    return_time: str = TIME_OF_DAY["anytime"]
    passengers: int = 1
    fare_type: FareType = FareType.CURRENCY
    nonstop: bool = False

    @property
    def is_one_way(self) -> bool:
        return self.return_date is None


@dataclass(slots=True)
class FetchResult:
    """Outcome of one fare source call: fragments per leg, or an error."""

    outbound: List[str] = field(default_factory=list)
    returns: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, reason: str) -> "FetchResult":
        return cls(error=reason)


@dataclass(slots=True, frozen=True)
class CycleResult:
    outbound_price: float
    return_price: float
    valid: bool

    @property
    def total(self) -> float:
        return self.outbound_price + self.return_price

    @classmethod
    def from_prices(cls, outbound: float, return_: float) -> "CycleResult":
        valid = math.isfinite(outbound) or math.isfinite(return_)
        return cls(outbound, return_, valid)


@dataclass(slots=True, frozen=True)
class FareDiff:
    """Signed price change per leg; positive means the fare went down."""

    outbound: Optional[float] = None
    return_: Optional[float] = None

    @classmethod
    def none(cls) -> "FareDiff":
        return cls()


@dataclass(slots=True)
class DealThreshold:
    individual: Optional[float] = None
    combined: Optional[float] = None


__all__ = [
    "FareType",
    "Leg",
    "TIME_OF_DAY",
    "time_of_day",
    "FareQuery",
    "FetchResult",
    "CycleResult",
    "FareDiff",
    "DealThreshold",
]
