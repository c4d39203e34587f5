from __future__ import annotations

from typing import Iterable

import pandas as pd

from perp_trader.types import Candle


CANDLE_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]


def candles_to_frame(candles: Iterable[Candle] | pd.DataFrame) -> pd.DataFrame:
    """Normalise candles into an ascending frame keyed by epoch-ms ``timestamp``."""
    if isinstance(candles, pd.DataFrame):
        df = candles.copy()
        if "timestamp" not in df.columns:
            if "time" not in df.columns:
                raise ValueError("Candle frame needs a 'timestamp' or 'time' column")
            t = pd.to_datetime(df["time"], utc=True)
            df["timestamp"] = (t - pd.Timestamp(0, tz="UTC")) // pd.Timedelta(milliseconds=1)
        if "volume" not in df.columns:
            df["volume"] = 0.0
    else:
        df = pd.DataFrame(
            [(c.timestamp, c.open, c.high, c.low, c.close, c.volume) for c in candles],
            columns=CANDLE_COLUMNS,
        )
    df = df[CANDLE_COLUMNS].copy()
    df["timestamp"] = df["timestamp"].astype("int64")
    for col in CANDLE_COLUMNS[1:]:
        df[col] = df[col].astype(float)
    return df.sort_values("timestamp", kind="stable").reset_index(drop=True)

