from __future__ import annotations

import time
from pathlib import Path

import pandas as pd

from perp_trader.data.candles import candles_to_frame


def load_ohlcv_csv(path: str | Path, *, time_col: str = "time") -> pd.DataFrame:
    """Read an OHLCV export into an ascending frame with an epoch-ms ``timestamp`` column.

    ``time_col`` may hold ISO datetimes or epoch milliseconds; a ``timestamp``
    column is used directly when present.
    """
    p = Path(path)
    # exports that are still being written can be briefly locked or empty
    retries = 3
    while True:
        try:
            df = pd.read_csv(p)
            break
        except (PermissionError, pd.errors.EmptyDataError):
            retries -= 1
            if retries == 0:
                raise
            time.sleep(0.5)

    if "timestamp" not in df.columns:
        if time_col not in df.columns:
            raise ValueError(f"Missing '{time_col}' column in {p}")
        col = df[time_col]
        if pd.api.types.is_numeric_dtype(col):
            df["timestamp"] = col.astype("int64")
        else:
            df = df.rename(columns={time_col: "time"})
    for c in ("open", "high", "low", "close"):
        if c not in df.columns:
            raise ValueError(f"Missing '{c}' column in {p}")
    if "volume" not in df.columns:
        df["volume"] = 0
    return candles_to_frame(df)
