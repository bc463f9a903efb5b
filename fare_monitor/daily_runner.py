from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import List, Optional, Protocol, Set

from .daily_report import DailyUpdateScheduler
from .dashboard import DashboardSink
from .deal_filter import deal_message, is_deal
from .history import FareHistory, aggregate_cycle, describe_diff
from .models import (
    CycleResult,
    DealThreshold,
    FareQuery,
    FareType,
    FetchResult,
)
from .notifier import AlertDispatcher
from .price_parser import format_price

logger = logging.getLogger(__name__)


class FareSource(Protocol):
    async def fetch(self, query: FareQuery) -> FetchResult: ...


@dataclass(slots=True)
class MonitorConfig:
    query: FareQuery
    threshold: DealThreshold = field(default_factory=DealThreshold)
    interval_min: float = 30.0
    daily_update: bool = False
    daily_update_at: time = time(18, 0)


def format_interval(minutes: float) -> str:
    """Short human form of an interval: ``30m``, ``1h 30m``, ``45s``."""
    seconds = int(round(minutes * 60))
    if seconds < 60:
        return f"{seconds}s"
    hours, rem = divmod(seconds, 3600)
    mins, secs = divmod(rem, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if mins:
        parts.append(f"{mins}m")
    if secs:
        parts.append(f"{secs}s")
    return " ".join(parts)


def _with_diff(price: float, diff: Optional[float], fare: FareType) -> str:
    return " ".join(
        s for s in (format_price(price, fare), describe_diff(diff, fare)) if s
    )


class FareMonitor:
    """Poll loop: fetch, reduce, diff, check for deals, alert, repeat."""

    def __init__(
        self,
        config: MonitorConfig,
        source: FareSource,
        dashboard: DashboardSink,
        dispatcher: AlertDispatcher,
        scheduler=None,
    ) -> None:
        self.config = config
        self.source = source
        self.dashboard = dashboard
        self.dispatcher = dispatcher
        self.history = FareHistory(is_one_way=config.query.is_one_way)
        self.daily: Optional[DailyUpdateScheduler] = None
        if config.daily_update:
            if scheduler is None:
                raise ValueError("daily updates need a scheduler")
            self.daily = DailyUpdateScheduler(
                scheduler, dispatcher, config.query, self.history
            )
        self._alerts: Set[asyncio.Task] = set()

    @property
    def query(self) -> FareQuery:
        return self.config.query

    def _alert(self, message: str) -> None:
        task = asyncio.create_task(self.dispatcher.dispatch(message))
        self._alerts.add(task)
        task.add_done_callback(self._alerts.discard)

    @property
    def pending_alerts(self) -> List[asyncio.Task]:
        return list(self._alerts)

    def _report(self, cycle: CycleResult, diff, now: datetime) -> None:
        fare = self.query.fare_type
        lines = [
            "Lowest fare for an outbound flight is currently "
            + _with_diff(cycle.outbound_price, diff.outbound, fare)
        ]
        if not self.query.is_one_way:
            lines += [
                "Lowest fare for a return flight is currently "
                + _with_diff(cycle.return_price, diff.return_, fare),
                f"Total for both flights is currently "
                f"{format_price(cycle.total, fare)}",
            ]
        self.dashboard.log(lines)
        self.dashboard.plot(now, cycle.outbound_price, cycle.return_price)

    async def run_cycle(self, now: Optional[datetime] = None) -> CycleResult:
        """Run one poll cycle and return its result."""
        query = self.query
        try:
            fetched = await self.source.fetch(query)
        except Exception as exc:
            fetched = FetchResult.failure(str(exc))
        if not fetched.ok:
            logger.warning("Fare source failed: %s", fetched.error)

        cycle = aggregate_cycle(
            fetched.outbound, fetched.returns, query.fare_type, query.is_one_way
        )
        now = now or datetime.now()

        if not cycle.valid:
            msg = (
                "No matching flights could be found (trying again in "
                f"{format_interval(self.config.interval_min)})"
            )
            logger.warning(msg)
            self.dashboard.log([msg])
        else:
            diff = self.history.update(cycle)
            if is_deal(cycle, self.config.threshold, query.is_one_way):
                message = deal_message(query, cycle)
                self.dashboard.log([message])
                self._alert(message)
            self._report(cycle, diff, now)

        if self.daily is not None:
            self.daily.maybe_arm(now, self.config.daily_update_at)
        return cycle

    async def run_forever(self) -> None:
        """Poll until the process is interrupted.

        The interval is measured from the end of each cycle, so at most
        one cycle is ever in flight.
        """
        delay = self.config.interval_min * 60
        while True:
            await self.run_cycle()
            await asyncio.sleep(delay)

    def settings_lines(self, channels: List[str]) -> List[str]:
        q = self.query
        cfg = self.config
        fare = q.fare_type
        one_way = q.is_one_way
        individual = cfg.threshold.individual
        combined = cfg.threshold.combined
        lines = [
            f"Origin airport: {q.origin}",
            f"Destination airport: {q.destination}",
            f"Outbound date: {q.outbound_date}",
            f"Outbound time: {q.outbound_time.lower()}",
            not one_way and f"Return date: {q.return_date}",
            not one_way and f"Return time: {q.return_time.lower()}",
            f"Trip type: {'one-way' if one_way else 'two-way'}",
            f"Fare type: {fare.value.lower()}",
            f"Passengers: {q.passengers}",
            f"Interval: {format_interval(cfg.interval_min)}",
            "Individual deal price: "
            + (
                f"<= {format_price(individual, fare)}"
                if individual is not None
                else "disabled"
            ),
            not one_way
            and "Total deal price: "
            + (
                f"<= {format_price(combined, fare)}"
                if combined is not None
                else "disabled"
            ),
            f"Alert channels: {', '.join(channels) if channels else 'disabled'}",
            "Daily update: "
            + (
                cfg.daily_update_at.strftime("%H:%M")
                if cfg.daily_update
                else "disabled"
            ),
            f"Nonstop: {'enabled' if q.nonstop else 'disabled'}",
        ]
        return [line for line in lines if line]


__all__ = ["FareSource", "MonitorConfig", "FareMonitor", "format_interval"]
