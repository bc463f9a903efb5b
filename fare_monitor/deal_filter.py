from __future__ import annotations

from .models import CycleResult, DealThreshold, FareQuery
from .price_parser import format_price


def is_deal(
    cycle: CycleResult, threshold: DealThreshold, is_one_way: bool
) -> bool:
    """Return ``True`` if *cycle* hits the individual or combined threshold.

    Only meaningful for valid cycles. The combined threshold is never
    looked at for one-way trips.
    """
    combined_hit = (
        not is_one_way
        and threshold.combined is not None
        and cycle.total <= threshold.combined
    )
    individual_hit = threshold.individual is not None and (
        cycle.outbound_price <= threshold.individual
        or (not is_one_way and cycle.return_price <= threshold.individual)
    )
    return bool(combined_hit or individual_hit)


def deal_message(query: FareQuery, cycle: CycleResult) -> str:
    """Text of the deal alert sent to every channel."""
    fare = query.fare_type
    route = f"{query.origin}->{query.destination}"
    if query.is_one_way:
        return (
            f"Deal alert! Fare total for {route} on {query.outbound_date} "
            f"has hit {format_price(cycle.outbound_price, fare)}."
        )
    return (
        f"Deal alert! Combined total for {route} on "
        f"{query.outbound_date}–{query.return_date} has hit "
        f"{format_price(cycle.total, fare)}. Individual fares are "
        f"{format_price(cycle.outbound_price, fare)} (outbound) and "
        f"{format_price(cycle.return_price, fare)} (return)."
    )


__all__ = ["is_deal", "deal_message"]
