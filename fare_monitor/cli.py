from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time
from typing import Optional

import click
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .config import Settings, get_settings
from .daily_runner import FareMonitor, MonitorConfig
from .dashboard import FrameDashboard
from .models import DealThreshold, FareQuery, FareType, time_of_day
from .notifier import AlertDispatcher, build_channels
from .southwest_fetcher import SouthwestFetcher

logger = logging.getLogger(__name__)

DATE_FORMATS = ["%m/%d/%Y", "%Y-%m-%d"]


def setup_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.INFO,
        handlers=[
            logging.FileHandler(settings.log_file),
            logging.StreamHandler(),
        ],
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _hhmm(ctx, param, value: str) -> time:
    try:
        return datetime.strptime(value, "%H:%M").time()
    except ValueError:
        raise click.BadParameter("expected HH:MM, e.g. 18:00")


def build_config(
    *,
    origin: str,
    destination: str,
    leave_date: date,
    leave_time: str = "anytime",
    return_date: Optional[date] = None,
    return_time: str = "anytime",
    fare_type: str = "dollars",
    passengers: int = 1,
    individual_deal_price: Optional[int] = None,
    total_deal_price: Optional[int] = None,
    interval: float = 30.0,
    one_way: bool = False,
    daily_update: bool = False,
    daily_update_at: time = time(18, 0),
    nonstop: bool = False,
) -> MonitorConfig:
    """Turn command line values into a :class:`MonitorConfig`.

    A one-way trip (or a missing return date) drops the return date, the
    return time window and the total deal price.
    """
    one_way = one_way or return_date is None
    query = FareQuery(
        origin=origin,
        destination=destination,
        outbound_date=leave_date,
        outbound_time=time_of_day(leave_time),
        return_date=None if one_way else return_date,
        return_time="" if one_way else time_of_day(return_time),
        passengers=passengers,
        fare_type=FareType.from_cli(fare_type),
        nonstop=nonstop,
    )
    threshold = DealThreshold(
        individual=individual_deal_price,
        combined=None if one_way else total_deal_price,
    )
    return MonitorConfig(
        query=query,
        threshold=threshold,
        interval_min=interval,
        daily_update=daily_update,
        daily_update_at=daily_update_at,
    )


async def run_monitor(
    config: MonitorConfig,
    settings: Settings,
    *,
    once: bool = False,
    history_csv: Optional[str] = None,
) -> None:
    channels = build_channels(settings)
    dispatcher = AlertDispatcher(channels)
    dashboard = FrameDashboard(is_one_way=config.query.is_one_way)
    scheduler = AsyncIOScheduler()
    scheduler.start()
    monitor = FareMonitor(
        config,
        SouthwestFetcher(timeout=settings.request_timeout_s),
        dashboard,
        dispatcher,
        scheduler=scheduler,
    )
    dashboard.settings(monitor.settings_lines([ch.name for ch in channels]))
    if not dispatcher.enabled:
        logger.warning("No alert channel configured, deals will only be logged")
    try:
        if once:
            await monitor.run_cycle()
            if monitor.pending_alerts:
                await asyncio.gather(*monitor.pending_alerts)
        else:
            await monitor.run_forever()
    finally:
        scheduler.shutdown(wait=False)
        if history_csv:
            dashboard.to_csv(history_csv)


@click.command()
@click.option("--from", "origin", required=True, help="Origin airport code")
@click.option("--to", "destination", required=True, help="Destination airport code")
@click.option(
    "--leave-date", type=click.DateTime(formats=DATE_FORMATS), required=True
)
@click.option("--leave-time", default="anytime", help="anytime|morning|afternoon|evening")
@click.option("--return-date", type=click.DateTime(formats=DATE_FORMATS))
@click.option("--return-time", default="anytime", help="anytime|morning|afternoon|evening")
@click.option("--fare-type", default="dollars", help="dollars|points")
@click.option("--passengers", type=int, default=1)
@click.option("--individual-deal-price", type=int)
@click.option("--total-deal-price", type=int)
@click.option("--interval", type=float, default=30.0, help="Minutes between checks")
@click.option("--one-way", is_flag=True)
@click.option("--daily-update-at", default="18:00", callback=_hhmm)
@click.option("--daily-update", is_flag=True, help="Send a daily fare summary")
@click.option("--nonstop", is_flag=True)
@click.option("--once", is_flag=True, help="Run a single check and exit")
@click.option(
    "--history-csv",
    type=click.Path(dir_okay=False),
    help="Write observed prices to this CSV on exit",
)
def main(
    origin: str,
    destination: str,
    leave_date: datetime,
    leave_time: str,
    return_date: Optional[datetime],
    return_time: str,
    fare_type: str,
    passengers: int,
    individual_deal_price: Optional[int],
    total_deal_price: Optional[int],
    interval: float,
    one_way: bool,
    daily_update_at: time,
    daily_update: bool,
    nonstop: bool,
    once: bool,
    history_csv: Optional[str],
) -> None:
    """Watch fares for one itinerary and alert on deals."""
    settings = get_settings()
    setup_logging(settings)

    if daily_update and not (
        settings.twilio_configured or settings.telegram_configured
    ):
        logger.warning("Daily update requested but no alert channel is configured")
        daily_update = False

    config = build_config(
        origin=origin,
        destination=destination,
        leave_date=leave_date.date(),
        leave_time=leave_time,
        return_date=return_date.date() if return_date else None,
        return_time=return_time,
        fare_type=fare_type,
        passengers=passengers,
        individual_deal_price=individual_deal_price,
        total_deal_price=total_deal_price,
        interval=interval,
        one_way=one_way,
        daily_update=daily_update,
        daily_update_at=daily_update_at,
        nonstop=nonstop,
    )
    try:
        asyncio.run(
            run_monitor(config, settings, once=once, history_csv=history_csv)
        )
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")


if __name__ == "__main__":
    main()
