import asyncio
import logging
from datetime import date, time
from unittest.mock import AsyncMock, patch

import pandas as pd
from click.testing import CliRunner

from fare_monitor import cli
from fare_monitor.config import Settings
from fare_monitor.models import FareType, FetchResult


def invoke(args, settings=None):
    settings = settings or Settings(TELEGRAM_BOT_TOKEN="abc", TELEGRAM_CHAT_ID="42")
    runner = CliRunner()
    with patch.object(cli, "run_monitor", new=AsyncMock()) as run, patch.object(
        cli, "setup_logging"
    ), patch.object(cli, "get_settings", return_value=settings):
        result = runner.invoke(cli.main, args)
    return result, run


def test_round_trip_flags():
    result, run = invoke(
        [
            "--from", "DAL",
            "--to", "HOU",
            "--leave-date", "09/10/2024",
            "--leave-time", "morning",
            "--return-date", "2024-09-20",
            "--fare-type", "points",
            "--passengers", "2",
            "--individual-deal-price", "90",
            "--total-deal-price", "250",
            "--interval", "15",
            "--daily-update",
            "--daily-update-at", "07:30",
            "--nonstop",
            "--once",
        ]
    )
    assert result.exit_code == 0, result.output
    config = run.await_args.args[0]
    assert run.await_args.kwargs["once"] is True

    q = config.query
    assert (q.origin, q.destination) == ("DAL", "HOU")
    assert q.outbound_date == date(2024, 9, 10)
    assert q.outbound_time == "BEFORE_NOON"
    assert q.return_date == date(2024, 9, 20)
    assert q.return_time == "ANYTIME"
    assert q.fare_type is FareType.POINTS
    assert q.passengers == 2
    assert q.nonstop
    assert config.threshold.individual == 90
    assert config.threshold.combined == 250
    assert config.interval_min == 15
    assert config.daily_update
    assert config.daily_update_at == time(7, 30)


def test_one_way_drops_return_fields():
    result, run = invoke(
        [
            "--from", "DAL",
            "--to", "HOU",
            "--leave-date", "2024-09-10",
            "--return-date", "2024-09-20",
            "--total-deal-price", "250",
            "--one-way",
        ]
    )
    assert result.exit_code == 0, result.output
    config = run.await_args.args[0]
    assert config.query.is_one_way
    assert config.query.return_time == ""
    assert config.threshold.combined is None


def test_daily_update_disabled_without_channels():
    result, run = invoke(
        ["--from", "DAL", "--to", "HOU", "--leave-date", "2024-09-10", "--daily-update"],
        settings=Settings(TELEGRAM_BOT_TOKEN="", TELEGRAM_CHAT_ID=""),
    )
    assert result.exit_code == 0, result.output
    assert not run.await_args.args[0].daily_update


def test_bad_daily_update_time():
    result, run = invoke(
        ["--from", "DAL", "--to", "HOU", "--leave-date", "2024-09-10",
         "--daily-update-at", "6pm"]
    )
    assert result.exit_code != 0
    assert "HH:MM" in result.output
    run.assert_not_called()


def test_unknown_time_window_falls_back_to_anytime():
    config = cli.build_config(
        origin="DAL",
        destination="HOU",
        leave_date=date(2024, 9, 10),
        leave_time="midnight",
        return_date=date(2024, 9, 20),
    )
    assert config.query.outbound_time == "ANYTIME"


def test_run_monitor_once_writes_history_csv(tmp_path, caplog):
    config = cli.build_config(
        origin="DAL",
        destination="HOU",
        leave_date=date(2024, 9, 10),
        return_date=date(2024, 9, 20),
        total_deal_price=300,
        daily_update=True,
    )
    settings = Settings(
        TWILIO_ACCOUNT_SID="",
        TELEGRAM_BOT_TOKEN="",
        TELEGRAM_CHAT_ID="",
    )
    csv_path = tmp_path / "prices.csv"
    fetch = AsyncMock(
        return_value=FetchResult(outbound=["$100"], returns=["$150"])
    )
    caplog.set_level(logging.INFO)

    with patch.object(cli.SouthwestFetcher, "fetch", new=fetch):
        asyncio.run(
            cli.run_monitor(config, settings, once=True, history_csv=str(csv_path))
        )

    fetch.assert_awaited_once_with(config.query)
    df = pd.read_csv(csv_path)
    assert len(df) == 1
    assert df.loc[0, "outbound"] == 100
    assert df.loc[0, "return"] == 150
    messages = [r.getMessage() for r in caplog.records]
    assert "No alert channel configured, deals will only be logged" in messages
    assert any(m.startswith("Deal alert! Combined total") for m in messages)
