from __future__ import annotations

import asyncio
import logging
from typing import Dict, List
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from .models import FareQuery, FetchResult, Leg

logger = logging.getLogger(__name__)

FORM_SELECTOR = ".booking-form--form"
DATE_FORMAT = "%m/%d/%Y"


class SouthwestFetcherError(RuntimeError):
    """Booking site returned something we cannot use."""


def fare_selector(leg: Leg, nonstop: bool = False) -> str:
    """CSS selector for the price cells of *leg* in a results page."""
    table, legacy = (
        ("#faresOutbound", "#b0Table")
        if leg is Leg.OUTBOUND
        else ("#faresReturn", "#b1Table")
    )
    scope = f"{table} .nonstop" if nonstop else table
    return f"{scope} .product_price, {legacy} span.var.h5"


def booking_form(query: FareQuery) -> Dict[str, str]:
    """Form fields submitted to the fare search."""
    one_way = query.is_one_way
    return {
        "twoWayTrip": "false" if one_way else "true",
        "airTranRedirect": "",
        "returnAirport": "" if one_way else "RoundTrip",
        "outboundTimeOfDay": query.outbound_time,
        "returnTimeOfDay": "" if one_way else query.return_time,
        "seniorPassengerCount": "0",
        "fareType": query.fare_type.value,
        "originAirport": query.origin,
        "destinationAirport": query.destination,
        "outboundDateString": query.outbound_date.strftime(DATE_FORMAT),
        "returnDateString": ""
        if one_way
        else query.return_date.strftime(DATE_FORMAT),  # type: ignore[union-attr]
        "adultPassengerCount": str(query.passengers),
    }


def extract_fragments(html: str, query: FareQuery) -> FetchResult:
    """Pull the raw price markup of both legs out of a results page."""
    soup = BeautifulSoup(html, "html.parser")
    outbound = [
        str(tag) for tag in soup.select(fare_selector(Leg.OUTBOUND, query.nonstop))
    ]
    returns: List[str] = []
    if not query.is_one_way:
        returns = [
            str(tag)
            for tag in soup.select(fare_selector(Leg.RETURN, query.nonstop))
        ]
    return FetchResult(outbound=outbound, returns=returns)


class SouthwestFetcher:
    """Fare source that scrapes the Southwest booking form."""

    def __init__(
        self,
        base_url: str = "https://www.southwest.com",
        *,
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, url: str) -> requests.Response:
        resp = self.session.get(url, timeout=self.timeout)
        if resp.status_code != 200:
            raise SouthwestFetcherError(
                f"HTTP {resp.status_code} – {resp.text[:120]}"
            )
        return resp

    def search(self, query: FareQuery) -> str:
        """Submit the booking form for *query* and return the results page."""
        home = self._get(self.base_url)
        form = BeautifulSoup(home.text, "html.parser").select_one(FORM_SELECTOR)
        if form is None:
            raise SouthwestFetcherError("booking form not found")

        fields = {
            inp["name"]: inp.get("value", "")
            for inp in form.select("input[type=hidden][name]")
        }
        fields.update(booking_form(query))
        action = urljoin(self.base_url + "/", form.get("action") or "")

        if (form.get("method") or "post").lower() == "get":
            resp = self.session.get(action, params=fields, timeout=self.timeout)
        else:
            resp = self.session.post(action, data=fields, timeout=self.timeout)
        if resp.status_code != 200:
            raise SouthwestFetcherError(
                f"HTTP {resp.status_code} – {resp.text[:120]}"
            )
        return resp.text

    def fetch_sync(self, query: FareQuery) -> FetchResult:
        try:
            html = self.search(query)
        except (requests.RequestException, SouthwestFetcherError) as exc:
            logger.warning(
                "Fare search %s->%s failed: %s",
                query.origin,
                query.destination,
                exc,
            )
            return FetchResult.failure(str(exc))
        result = extract_fragments(html, query)
        logger.debug(
            "Found %d outbound and %d return fares",
            len(result.outbound),
            len(result.returns),
        )
        return result

    async def fetch(self, query: FareQuery) -> FetchResult:
        return await asyncio.to_thread(self.fetch_sync, query)


__all__ = [
    "SouthwestFetcher",
    "SouthwestFetcherError",
    "booking_form",
    "extract_fragments",
    "fare_selector",
]
