from __future__ import annotations

import logging
import math
import time
from typing import Any, Callable, Optional

import pandas as pd
import requests

from perp_trader.config import DEFAULT_MARKET_DATA, MarketDataConfig
from perp_trader.errors import InputValidationError, MarketDataError
from perp_trader.types import Candle, PerpMarketSnapshot
from perp_trader.utils import interval_to_seconds


logger = logging.getLogger(__name__)


def _unique(values: list[str]) -> list[str]:
    out: list[str] = []
    for v in values:
        if v and v not in out:
            out.append(v)
    return out


def interval_candidates(interval: str) -> list[str]:
    s = interval.strip()
    values = [s, s.upper()]
    if s.lower().endswith("h") and s[:-1].isascii() and s[:-1].isdigit() and int(s[:-1]) > 0:
        values.append(f"{int(s[:-1]) * 60}m")
    return _unique(values)


def parse_timestamp_ms(value: Any) -> Optional[int]:
    try:
        return int(float(value))
    except OverflowError:
        return None
    except (TypeError, ValueError):
        pass
    try:
        ts = pd.Timestamp(str(value))
    except (TypeError, ValueError):
        return None
    if ts is pd.NaT:
        return None
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return int((ts - pd.Timestamp(0, tz="UTC")) // pd.Timedelta(milliseconds=1))


def parse_kline(row: Any) -> Optional[Candle]:
    if isinstance(row, (list, tuple)):
        if len(row) < 6:
            return None
        ts, o, h, l, c, v = row[:6]
    elif isinstance(row, dict):
        ts = row.get("start", row.get("timestamp"))
        o, h, l, c, v = (row.get(k) for k in ("open", "high", "low", "close", "volume"))
    else:
        return None
    if any(x is None for x in (ts, o, h, l, c, v)):
        return None
    stamp = parse_timestamp_ms(ts)
    if stamp is None:
        return None
    try:
        values = [float(x) for x in (o, h, l, c, v)]
    except (TypeError, ValueError):
        return None
    if any(math.isnan(x) for x in values):
        return None
    return Candle(stamp, *values)


class BackpackMarketDataClient:
    """Candles and perp context from the Backpack public REST API."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        cfg: MarketDataConfig = DEFAULT_MARKET_DATA,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._session = session or requests.Session()
        self._cfg = cfg
        self._clock = clock

    def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        url = self._cfg.base_url.rstrip("/") + path
        resp = self._session.get(url, params=params, timeout=self._cfg.timeout_seconds)
        resp.raise_for_status()
        return resp.json()

    def resolve_perp_symbols(self, pair: str) -> list[str]:
        markets = self._get("/api/v1/markets")
        if not isinstance(markets, list):
            raise MarketDataError("Backpack markets response is invalid.")

        parts = pair.upper().split("-")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise InputValidationError(f"Invalid pair '{pair}'. Expected BASE-QUOTE format.")
        base, quote = parts
        if quote == "USD":
            quote = "USDC"

        perps = [
            m
            for m in markets
            if isinstance(m, dict)
            and str(m.get("symbol") or "").upper().endswith("_PERP")
            and str(m.get("marketType") or "").upper() in ("PERP", "FUTURE")
        ]
        if not perps:
            raise MarketDataError("No PERP markets returned from Backpack.")

        for m in perps:
            if str(m.get("baseSymbol") or "").upper() == base and str(m.get("quoteSymbol") or "").upper() == quote:
                return [str(m["symbol"]).upper()]
        wanted = f"{base}_{quote}_PERP"
        for m in perps:
            if str(m["symbol"]).upper() == wanted:
                return [wanted]
        by_base = _unique([str(m["symbol"]).upper() for m in perps if str(m.get("baseSymbol") or "").upper() == base])
        if by_base:
            return by_base

        examples = ", ".join(str(m["symbol"]) for m in perps[:10])
        raise MarketDataError(f"No PERP symbol found for {pair.upper()}. Available examples: {examples}")

    def get_candles(self, pair: str, interval: str, limit: int) -> list[Candle]:
        symbols = self.resolve_perp_symbols(pair)
        intervals = interval_candidates(interval)
        last_error: Optional[Exception] = None

        for symbol in symbols:
            for iv in intervals:
                seconds = interval_to_seconds(iv)
                if seconds is None:
                    continue
                end = int(self._clock())
                start = end - seconds * (int(limit) + 5)
                try:
                    payload = self._get(
                        "/api/v1/klines",
                        {"symbol": symbol, "interval": iv, "startTime": start, "endTime": end},
                    )
                except requests.HTTPError as e:
                    status = e.response.status_code if e.response is not None else None
                    if status != 400:
                        raise
                    logger.debug("klines_rejected symbol=%s interval=%s", symbol, iv)
                    last_error = e
                    continue
                if not isinstance(payload, list):
                    raise MarketDataError("Backpack response is not an array of candles.")
                candles = sorted(
                    (c for c in (parse_kline(r) for r in payload) if c is not None),
                    key=lambda c: c.timestamp,
                )
                if candles:
                    return candles[-int(limit):]

        reason = f"Last error: {last_error}" if last_error is not None else "Last error: no candles returned"
        raise MarketDataError(
            f"Backpack rejected candle request. Tried symbols [{', '.join(symbols)}] "
            f"and intervals [{', '.join(intervals)}]. {reason}"
        )

    def get_perp_snapshot(self, pair: str) -> PerpMarketSnapshot:
        symbol = self.resolve_perp_symbols(pair)[0]
        marks = self._get("/api/v1/markPrices", {"symbol": symbol})
        mark = _first_row(marks, "markPrices")
        oi_rows = self._get("/api/v1/openInterest", {"symbol": symbol})
        oi = _first_row(oi_rows, "openInterest")
        history = self._get("/api/v1/fundingRates", {"symbol": symbol})

        funding = float(mark.get("fundingRate") or 0.0)
        rates = [float(r["fundingRate"]) for r in history if isinstance(r, dict) and r.get("fundingRate") is not None] if isinstance(history, list) else []
        funding_avg = sum(rates) / len(rates) if rates else funding

        mark_price = float(mark["markPrice"])
        index_price = float(mark["indexPrice"])
        premium = (mark_price - index_price) / index_price * 100.0 if index_price else 0.0
        return PerpMarketSnapshot(
            symbol=symbol,
            funding_rate=funding,
            funding_rate_avg=funding_avg,
            open_interest=float(oi.get("openInterest") or 0.0),
            mark_price=mark_price,
            index_price=index_price,
            premium_pct=round(premium, 4),
        )


def _first_row(payload: Any, label: str) -> dict:
    if isinstance(payload, dict):
        return payload
    if isinstance(payload, list) and payload and isinstance(payload[0], dict):
        return payload[0]
    raise MarketDataError(f"Backpack {label} response is invalid.")
