from __future__ import annotations

import numpy as np
import pandas as pd

from perp_trader.indicators.ema import wilder


def rsi(close: pd.Series, period: int = 14) -> pd.Series:
    delta = close.diff()
    gain = wilder(delta.clip(lower=0.0), period)
    loss = wilder((-delta).clip(lower=0.0), period)
    rs = gain / loss.replace(0.0, np.nan)
    out = 100.0 - 100.0 / (1.0 + rs)
    # no losses in the window means RSI is pinned at 100
    out = out.where(loss != 0.0, 100.0).mask((gain == 0.0) & (loss == 0.0), 50.0)
    return out.where(gain.notna())


def stoch_rsi(
    close: pd.Series,
    rsi_period: int = 14,
    stoch_period: int = 14,
    k_period: int = 3,
    d_period: int = 3,
) -> pd.DataFrame:
    r = rsi(close, rsi_period)
    lo = r.rolling(stoch_period, min_periods=stoch_period).min()
    hi = r.rolling(stoch_period, min_periods=stoch_period).max()
    span = (hi - lo).replace(0.0, np.nan)
    raw = (100.0 * (r - lo) / span).fillna(0.0).where(lo.notna())
    k = raw.rolling(k_period, min_periods=k_period).mean()
    d = k.rolling(d_period, min_periods=d_period).mean()
    return pd.DataFrame({"k": k, "d": d})
