import asyncio
import logging
from datetime import date, datetime, time
from unittest.mock import AsyncMock, Mock, patch

import pytest

from fare_monitor.daily_runner import FareMonitor, MonitorConfig, format_interval
from fare_monitor.dashboard import FrameDashboard
from fare_monitor.models import DealThreshold, FareQuery, FetchResult
from fare_monitor.notifier import AlertDispatcher


class FakeSource:
    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    async def fetch(self, query):
        self.calls += 1
        return self.results.pop(0)


class FakeScheduler:
    def __init__(self):
        self.jobs = []

    def add_job(self, func, **kwargs):
        self.jobs.append((func, kwargs))
        return object()


class StopLoop(Exception):
    pass


def make_config(**kwargs):
    query = FareQuery(
        origin="DAL",
        destination="HOU",
        outbound_date=date(2024, 9, 10),
        return_date=date(2024, 9, 20),
    )
    return MonitorConfig(query=query, **kwargs)


def make_monitor(source, config=None, scheduler=None):
    dispatcher = Mock()
    dispatcher.dispatch = AsyncMock()
    dashboard = FrameDashboard()
    monitor = FareMonitor(
        config or make_config(), source, dashboard, dispatcher, scheduler=scheduler
    )
    return monitor, dashboard, dispatcher


def run_cycles(monitor, count=1, now=None):
    async def scenario():
        for _ in range(count):
            await monitor.run_cycle(now=now)
        await asyncio.gather(*monitor.pending_alerts)

    asyncio.run(scenario())


def test_invalid_cycle_skips_history_and_alerts(caplog):
    source = FakeSource(FetchResult(outbound=["sold out"], returns=[]))
    monitor, dashboard, dispatcher = make_monitor(
        source, make_config(threshold=DealThreshold(individual=1000))
    )
    caplog.set_level(logging.WARNING)

    with patch("fare_monitor.daily_runner.is_deal") as deal_check:
        run_cycles(monitor)

    deal_check.assert_not_called()
    dispatcher.dispatch.assert_not_called()
    assert monitor.history.state.empty
    assert dashboard.frame.empty
    assert any(
        "No matching flights could be found (trying again in 30m)"
        in r.getMessage()
        for r in caplog.records
    )


def test_failed_fetch_is_logged_and_treated_as_empty(caplog):
    source = FakeSource(FetchResult.failure("HTTP 503"))
    monitor, _, dispatcher = make_monitor(source)
    caplog.set_level(logging.WARNING)

    run_cycles(monitor)

    assert any("HTTP 503" in r.getMessage() for r in caplog.records)
    assert monitor.history.state.empty


def test_deal_is_dispatched():
    source = FakeSource(FetchResult(outbound=["$100"], returns=["$150"]))
    monitor, dashboard, dispatcher = make_monitor(
        source, make_config(threshold=DealThreshold(combined=250))
    )

    run_cycles(monitor)

    dispatcher.dispatch.assert_awaited_once()
    message = dispatcher.dispatch.await_args.args[0]
    assert message.startswith("Deal alert! Combined total for DAL->HOU")
    assert message in dashboard.lines


def test_no_deal_above_threshold():
    source = FakeSource(FetchResult(outbound=["$200"], returns=["$150"]))
    monitor, _, dispatcher = make_monitor(
        source, make_config(threshold=DealThreshold(individual=90, combined=250))
    )
    run_cycles(monitor)
    dispatcher.dispatch.assert_not_called()


def test_cycles_report_lowest_fares_and_diffs():
    source = FakeSource(
        FetchResult(outbound=["$200", "$240"], returns=["$150"]),
        FetchResult(outbound=["$180"], returns=["$170"]),
    )
    monitor, dashboard, _ = make_monitor(source)

    run_cycles(monitor, count=2, now=datetime(2024, 9, 1, 12, 0))

    assert dashboard.lines[-3:] == [
        "Lowest fare for an outbound flight is currently $180 (down $20)",
        "Lowest fare for a return flight is currently $170 (up $20)",
        "Total for both flights is currently $350",
    ]
    assert dashboard.lines[0] == (
        "Lowest fare for an outbound flight is currently $200"
    )
    assert list(dashboard.frame["outbound"]) == [200, 180]
    assert list(dashboard.frame["return"]) == [150, 170]


def test_daily_update_armed_once_across_cycles():
    scheduler = FakeScheduler()
    source = FakeSource(
        FetchResult(outbound=["$200"], returns=["$150"]),
        FetchResult(),
        FetchResult(outbound=["$190"], returns=["$150"]),
    )
    monitor, _, _ = make_monitor(
        source,
        make_config(daily_update=True, daily_update_at=time(18, 0)),
        scheduler=scheduler,
    )

    run_cycles(monitor, count=3, now=datetime(2024, 9, 1, 9, 0))

    assert len(scheduler.jobs) == 1
    func, kwargs = scheduler.jobs[0]
    assert kwargs["run_date"] == datetime(2024, 9, 1, 18, 0)


def test_daily_update_needs_scheduler():
    with pytest.raises(ValueError):
        make_monitor(FakeSource(), make_config(daily_update=True))


def test_run_forever_waits_interval_after_each_cycle():
    source = FakeSource(FetchResult(), FetchResult())
    monitor, _, _ = make_monitor(source, make_config(interval_min=5))
    sleep = AsyncMock(side_effect=[None, StopLoop()])

    with patch("fare_monitor.daily_runner.asyncio.sleep", sleep):
        with pytest.raises(StopLoop):
            asyncio.run(monitor.run_forever())

    assert source.calls == 2
    assert [c.args[0] for c in sleep.await_args_list] == [300, 300]


def test_format_interval():
    assert format_interval(30) == "30m"
    assert format_interval(90) == "1h 30m"
    assert format_interval(0.75) == "45s"
    assert format_interval(60) == "1h"


def test_settings_lines():
    monitor, _, _ = make_monitor(
        FakeSource(), make_config(threshold=DealThreshold(individual=90))
    )
    lines = monitor.settings_lines(["telegram"])
    assert "Origin airport: DAL" in lines
    assert "Trip type: two-way" in lines
    assert "Individual deal price: <= $90" in lines
    assert "Total deal price: disabled" in lines
    assert "Alert channels: telegram" in lines
    assert "Daily update: disabled" in lines


class SlowChannel:
    name = "slow"

    async def send(self, message):
        await asyncio.sleep(5)


class BrokenSource:
    async def fetch(self, query):
        raise RuntimeError("selector changed")


def test_slow_channel_does_not_hold_up_cycle():
    source = FakeSource(FetchResult(outbound=["$100"], returns=["$150"]))
    monitor = FareMonitor(
        make_config(threshold=DealThreshold(combined=250)),
        source,
        FrameDashboard(),
        AlertDispatcher([SlowChannel()]),
    )

    async def scenario():
        cycle = await asyncio.wait_for(monitor.run_cycle(), 0.5)
        pending = monitor.pending_alerts
        for task in pending:
            task.cancel()
        return cycle, pending

    cycle, pending = asyncio.run(scenario())
    assert cycle.valid
    assert len(pending) == 1


def test_raising_source_is_treated_as_failed_fetch(caplog):
    monitor, dashboard, dispatcher = make_monitor(BrokenSource())
    caplog.set_level(logging.WARNING)

    cycle = asyncio.run(monitor.run_cycle())

    assert not cycle.valid
    assert monitor.history.state.empty
    dispatcher.dispatch.assert_not_called()
    assert any("selector changed" in r.getMessage() for r in caplog.records)
