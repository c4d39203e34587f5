from __future__ import annotations

from typing import Iterable

import pandas as pd

from perp_trader.config import DEFAULT_MARKET_DATA
from perp_trader.data.candles import candles_to_frame
from perp_trader.errors import InsufficientDataError
from perp_trader.indicators.atr import adx, atr
from perp_trader.indicators.bands import bollinger, vwap
from perp_trader.indicators.ema import ema, macd
from perp_trader.indicators.oscillators import rsi, stoch_rsi
from perp_trader.types import Candle, IndicatorSnapshot


def _latest(series: pd.Series, label: str) -> float:
    if len(series) == 0 or pd.isna(series.iloc[-1]):
        raise InsufficientDataError(f"{label} could not be calculated from input candles.")
    return round(float(series.iloc[-1]), 4)


def compute_indicator_snapshot(
    candles: Iterable[Candle] | pd.DataFrame,
    *,
    min_candles: int = DEFAULT_MARKET_DATA.min_indicator_candles,
) -> IndicatorSnapshot:
    df = candles_to_frame(candles)
    if len(df) < min_candles:
        raise InsufficientDataError(
            f"At least {min_candles} candles are required to compute indicators reliably (got {len(df)})."
        )

    close = df["close"]
    m = macd(close)
    bb = bollinger(close, 20, 2.0)
    st = stoch_rsi(close)

    return IndicatorSnapshot(
        rsi14=_latest(rsi(close, 14), "RSI"),
        ema20=_latest(ema(close, 20), "EMA20"),
        ema50=_latest(ema(close, 50), "EMA50"),
        macd=_latest(m["macd"], "MACD"),
        macd_signal=_latest(m["signal"], "MACD signal"),
        macd_histogram=_latest(m["histogram"], "MACD histogram"),
        atr14=_latest(atr(df, 14), "ATR"),
        adx14=_latest(adx(df, 14), "ADX"),
        bb_upper=_latest(bb["upper"], "Bollinger Bands"),
        bb_middle=_latest(bb["middle"], "Bollinger Bands"),
        bb_lower=_latest(bb["lower"], "Bollinger Bands"),
        stoch_rsi_k=_latest(st["k"], "StochRSI"),
        stoch_rsi_d=_latest(st["d"], "StochRSI"),
        vwap=_latest(vwap(df), "VWAP"),
    )


def trend_bias(candles: Iterable[Candle] | pd.DataFrame) -> str | None:
    """LONG/SHORT from EMA20 vs EMA50 on a higher timeframe, None when too short."""
    close = candles_to_frame(candles)["close"]
    fast = ema(close, 20)
    slow = ema(close, 50)
    if len(close) == 0 or pd.isna(fast.iloc[-1]) or pd.isna(slow.iloc[-1]):
        return None
    return "LONG" if float(fast.iloc[-1]) >= float(slow.iloc[-1]) else "SHORT"
