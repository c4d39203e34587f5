from __future__ import annotations

import numpy as np
import pandas as pd

from perp_trader.indicators.ema import wilder


def true_range(df: pd.DataFrame) -> pd.Series:
    high = df["high"]
    low = df["low"]
    prev_close = df["close"].shift(1)
    return pd.concat(
        [
            (high - low).abs(),
            (high - prev_close).abs(),
            (low - prev_close).abs(),
        ],
        axis=1,
    ).max(axis=1)


def atr(df: pd.DataFrame, period: int = 14) -> pd.Series:
    return wilder(true_range(df), period)


def adx(df: pd.DataFrame, period: int = 14) -> pd.Series:
    up = df["high"].diff()
    down = -df["low"].diff()
    plus_dm = pd.Series(np.where((up > down) & (up > 0), up, 0.0), index=df.index)
    minus_dm = pd.Series(np.where((down > up) & (down > 0), down, 0.0), index=df.index)

    tr_s = wilder(true_range(df), period)
    plus_di = 100.0 * wilder(plus_dm, period) / tr_s
    minus_di = 100.0 * wilder(minus_dm, period) / tr_s
    di_sum = plus_di + minus_di
    # flat windows have no directional movement at all
    dx = (100.0 * (plus_di - minus_di).abs() / di_sum.replace(0.0, np.nan)).where(di_sum != 0.0, 0.0)
    return wilder(dx, period)
