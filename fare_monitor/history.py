from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import CycleResult, FareDiff, FareType
from .price_parser import format_price, parse_price

logger = logging.getLogger(__name__)


def _lowest(fragments: Iterable[str], fare_type: FareType) -> float:
    prices = [parse_price(f, fare_type) for f in fragments]
    finite = [p for p in prices if math.isfinite(p)]
    return min(finite) if finite else math.inf


def aggregate_cycle(
    outbound: Iterable[str],
    returns: Iterable[str],
    fare_type: FareType,
    is_one_way: bool,
) -> CycleResult:
    """Reduce one cycle's fragments to the lowest price per leg."""
    lowest_out = _lowest(outbound, fare_type)
    lowest_ret = math.inf if is_one_way else _lowest(returns, fare_type)
    return CycleResult.from_prices(lowest_out, lowest_ret)


@dataclass(slots=True)
class FareHistoryState:
    prev_outbound: Optional[float] = None
    prev_return: Optional[float] = None

    @property
    def empty(self) -> bool:
        return self.prev_outbound is None and self.prev_return is None


def _diff(prev: Optional[float], current: float) -> Optional[float]:
    if prev is None or not math.isfinite(prev) or not math.isfinite(current):
        return None
    return prev - current


class FareHistory:
    """Lowest prices of the previous valid cycle."""

    def __init__(self, is_one_way: bool = False) -> None:
        self.is_one_way = is_one_way
        self.state = FareHistoryState()

    def update(self, cycle: CycleResult) -> FareDiff:
        """Diff *cycle* against the previous one and remember it.

        Invalid cycles leave the state untouched and yield an empty diff.
        """
        if not cycle.valid:
            return FareDiff.none()

        diff = FareDiff(
            outbound=_diff(self.state.prev_outbound, cycle.outbound_price),
            return_=None
            if self.is_one_way
            else _diff(self.state.prev_return, cycle.return_price),
        )

        self.state.prev_outbound = cycle.outbound_price
        if not self.is_one_way:
            self.state.prev_return = cycle.return_price
        logger.debug("History updated: %s", self.state)
        return diff


def describe_diff(value: Optional[float], fare_type: FareType) -> str:
    if value is None:
        return ""
    if value > 0:
        return f"(down {format_price(abs(value), fare_type)})"
    if value < 0:
        return f"(up {format_price(abs(value), fare_type)})"
    return "(no change)"


__all__ = [
    "aggregate_cycle",
    "FareHistoryState",
    "FareHistory",
    "describe_diff",
]
