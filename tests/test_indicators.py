from __future__ import annotations

import math

import pandas as pd
import pytest

from perp_trader.errors import InsufficientDataError
from perp_trader.indicators.atr import adx, atr
from perp_trader.indicators.bands import bollinger, vwap
from perp_trader.indicators.oscillators import rsi, stoch_rsi
from perp_trader.indicators.snapshot import compute_indicator_snapshot, trend_bias
from perp_trader.types import Candle


def _make_candles(n: int = 120, slope: float = 0.2) -> list[Candle]:
    out = []
    for i in range(n):
        close = 100.0 + slope * i + math.sin(i / 3.0)
        out.append(
            Candle(
                timestamp=1_700_000_000_000 + i * 60_000,
                open=close - 0.1,
                high=close + 0.6,
                low=close - 0.6,
                close=close,
                volume=10.0 + (i % 5),
            )
        )
    return out


def test_snapshot_on_uptrend():
    snap = compute_indicator_snapshot(_make_candles())
    assert snap.ema20 > snap.ema50
    assert snap.bb_upper > snap.bb_middle > snap.bb_lower
    assert 0.0 <= snap.rsi14 <= 100.0
    assert 0.0 <= snap.stoch_rsi_k <= 100.0
    assert 0.0 <= snap.stoch_rsi_d <= 100.0
    assert snap.atr14 > 0.0
    assert snap.adx14 >= 0.0
    assert snap.macd_histogram == pytest.approx(snap.macd - snap.macd_signal, abs=1e-3)
    assert snap.vwap > 0.0


def test_snapshot_is_order_independent():
    candles = _make_candles()
    assert compute_indicator_snapshot(list(reversed(candles))) == compute_indicator_snapshot(candles)


def test_too_few_candles_raises():
    with pytest.raises(InsufficientDataError):
        compute_indicator_snapshot(_make_candles(59))


def test_trend_bias():
    assert trend_bias(_make_candles()) == "LONG"
    assert trend_bias(_make_candles(slope=-0.2)) == "SHORT"
    assert trend_bias(_make_candles(30)) is None
    assert trend_bias([]) is None


def test_rsi_edges():
    rising = pd.Series([float(i) for i in range(40)])
    flat = pd.Series([5.0] * 40)
    assert rsi(rising).iloc[-1] == 100.0
    assert rsi(flat).iloc[-1] == 50.0
    assert pd.isna(rsi(rising).iloc[5])


def test_stoch_rsi_flat_window_is_zero():
    st = stoch_rsi(pd.Series([float(i) for i in range(60)]))
    assert st["k"].iloc[-1] == 0.0
    assert st["d"].iloc[-1] == 0.0


def test_atr_on_constant_range():
    df = pd.DataFrame({"high": [102.0] * 40, "low": [98.0] * 40, "close": [100.0] * 40})
    assert atr(df).iloc[-1] == pytest.approx(4.0)
    # no directional movement at all
    assert adx(df).iloc[-1] == 0.0


def test_bollinger_and_vwap():
    close = pd.Series([1.0, 2.0, 3.0, 4.0, 5.0])
    bb = bollinger(close, period=5, num_std=2.0)
    assert bb["middle"].iloc[-1] == 3.0
    assert bb["upper"].iloc[-1] == pytest.approx(3.0 + 2.0 * math.sqrt(2.0))

    df = pd.DataFrame({"high": [11.0, 21.0], "low": [9.0, 19.0], "close": [10.0, 20.0], "volume": [1.0, 3.0]})
    assert vwap(df).iloc[-1] == pytest.approx(17.5)
    df["volume"] = 0.0
    assert vwap(df).iloc[-1] == pytest.approx(15.0)
