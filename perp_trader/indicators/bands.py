from __future__ import annotations

import pandas as pd


def bollinger(close: pd.Series, period: int = 20, num_std: float = 2.0) -> pd.DataFrame:
    mid = close.rolling(period, min_periods=period).mean()
    std = close.rolling(period, min_periods=period).std(ddof=0)
    return pd.DataFrame({"upper": mid + num_std * std, "middle": mid, "lower": mid - num_std * std})


def vwap(df: pd.DataFrame) -> pd.Series:
    typical = (df["high"] + df["low"] + df["close"]) / 3.0
    volume = df["volume"].astype(float)
    cum_vol = volume.cumsum()
    # zero-volume feeds degrade to a cumulative typical-price mean
    out = (typical * volume).cumsum() / cum_vol.where(cum_vol > 0)
    fallback = typical.expanding().mean()
    return out.fillna(fallback)
