from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Iterable, List, Protocol

import pandas as pd

logger = logging.getLogger(__name__)

COLUMNS = ["at", "outbound", "return"]


class DashboardSink(Protocol):
    """Write-only feed of price points and log lines."""

    def plot(
        self, at: datetime, outbound_price: float, return_price: float
    ) -> None: ...

    def log(self, lines: Iterable[str]) -> None: ...


def _finite_or_nan(value: float) -> float:
    return value if math.isfinite(value) else math.nan


class FrameDashboard:
    """Dashboard feed backed by a pandas DataFrame and the log."""

    def __init__(self, is_one_way: bool = False) -> None:
        self.is_one_way = is_one_way
        self._rows: List[dict] = []
        self.lines: List[str] = []

    def plot(
        self, at: datetime, outbound_price: float, return_price: float
    ) -> None:
        self._rows.append(
            {
                "at": at,
                "outbound": _finite_or_nan(outbound_price),
                "return": math.nan
                if self.is_one_way
                else _finite_or_nan(return_price),
            }
        )

    def log(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.lines.append(line)
            logger.info("%s", line)

    def settings(self, lines: Iterable[str]) -> None:
        for line in lines:
            logger.info("  %s", line)

    @property
    def frame(self) -> pd.DataFrame:
        if not self._rows:
            return pd.DataFrame(columns=COLUMNS)
        return pd.DataFrame(self._rows, columns=COLUMNS)

    def to_csv(self, path: str) -> str:
        """Write the plotted price series to *path* and return it."""
        df = self.frame
        if self.is_one_way:
            df = df.drop(columns=["return"])
        df.to_csv(path, index=False)
        logger.info("Wrote %d price points to %s", len(df), path)
        return path


__all__ = ["DashboardSink", "FrameDashboard"]
