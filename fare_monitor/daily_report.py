"""daily_report – daily fare summary on a self re-arming one-shot timer.

Each poll cycle calls :meth:`DailyUpdateScheduler.maybe_arm`. When no
timer is pending, a single APScheduler ``date`` job is registered for the
next occurrence of the configured time of day. Once it fires the scheduler
is idle again and the following cycle arms the next day.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Any, Optional

from .history import FareHistory, FareHistoryState
from .models import FareQuery
from .notifier import AlertDispatcher
from .price_parser import format_price

logger = logging.getLogger(__name__)


def daily_summary(query: FareQuery, state: FareHistoryState) -> str:
    fare = query.fare_type
    route = f"{query.origin}->{query.destination}"
    if state.empty:
        return f"Daily update: no fares found yet for {route}."
    if query.is_one_way:
        return (
            f"Daily update: fare for {route} is currently "
            f"{format_price(state.prev_outbound, fare)}."
        )
    total = (state.prev_outbound or 0) + (state.prev_return or 0)
    return (
        f"Daily update: combined total for {route} is currently "
        f"{format_price(total, fare)}, individual fares are "
        f"{format_price(state.prev_outbound, fare)} (outbound) and "
        f"{format_price(state.prev_return, fare)} (return)."
    )


def next_fire_time(now: datetime, fire_at: time) -> datetime:
    """Today at *fire_at*, or tomorrow if that moment is not after *now*."""
    target = now.replace(
        hour=fire_at.hour, minute=fire_at.minute, second=0, microsecond=0
    )
    if target <= now:
        target += timedelta(days=1)
    return target


@dataclass(slots=True)
class DailyUpdateState:
    next_fire_at: Optional[datetime] = None
    job: Optional[Any] = None

    @property
    def armed(self) -> bool:
        return self.job is not None


class DailyUpdateScheduler:
    def __init__(
        self,
        scheduler: Any,
        dispatcher: AlertDispatcher,
        query: FareQuery,
        history: FareHistory,
    ) -> None:
        self.scheduler = scheduler
        self.dispatcher = dispatcher
        self.query = query
        self.history = history
        self.state = DailyUpdateState()

    def maybe_arm(self, now: datetime, fire_at: time) -> bool:
        """Arm the daily timer unless one is already pending."""
        if self.state.armed:
            return False

        target = next_fire_time(now, fire_at)
        self.state.next_fire_at = target
        self.state.job = self.scheduler.add_job(
            self.fire,
            trigger="date",
            run_date=target,
            misfire_grace_time=None,
        )
        logger.info("Daily update scheduled for %s", target.isoformat())
        return True

    async def fire(self) -> None:
        try:
            message = daily_summary(self.query, self.history.state)
            logger.info("Sending daily update")
            await self.dispatcher.dispatch(message)
        finally:
            self.state.job = None
            self.state.next_fire_at = None


__all__ = [
    "daily_summary",
    "next_fire_time",
    "DailyUpdateState",
    "DailyUpdateScheduler",
]
