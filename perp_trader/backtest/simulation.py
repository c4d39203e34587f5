from __future__ import annotations

from typing import Iterable, Literal

import pandas as pd

from perp_trader.data.candles import candles_to_frame
from perp_trader.errors import InputValidationError, InsufficientDataError
from perp_trader.types import Candle, Direction, OutcomeStatus, PaperTrade, SimulationOutcome


REASON_BOTH = "Both SL and TP were touched in the same candle; counted as stop-loss."
REASON_SL = "Stop-loss was hit within the simulation window."
REASON_TP = "Take-profit was hit within the simulation window."
REASON_HORIZON_WIN = "No SL/TP hit; position closed at horizon with positive PnL."
REASON_HORIZON_LOSS = "No SL/TP hit; position closed at horizon with negative PnL."


def pnl_pct(signal: Direction, entry: float, exit_price: float) -> float:
    if signal == "LONG":
        return (exit_price - entry) / entry * 100.0
    return (entry - exit_price) / entry * 100.0


def first_hit(
    *,
    high: float,
    low: float,
    tp: float,
    sl: float,
    side: Direction,
) -> Literal["tp", "sl", "none", "both"]:
    if side == "LONG":
        hit_tp = high >= tp
        hit_sl = low <= sl
    else:
        hit_tp = low <= tp
        hit_sl = high >= sl
    if hit_tp and hit_sl:
        return "both"
    if hit_sl:
        return "sl"
    if hit_tp:
        return "tp"
    return "none"


def _outcome(trade: PaperTrade, status: OutcomeStatus, exit_price: float, reason: str) -> SimulationOutcome:
    return SimulationOutcome(
        status=status,
        reason=reason,
        exit_price=float(exit_price),
        pnl_pct=pnl_pct(trade.signal, trade.entry, exit_price),
    )


def evaluate_paper_trade(
    trade: PaperTrade,
    candles: Iterable[Candle] | pd.DataFrame,
    horizon_end_ms: int,
) -> SimulationOutcome:
    """Resolve a hypothetical position against candles seen after it opened.

    Candles in ``(opened_at, horizon_end]`` are scanned in time order and the
    first touch of either level decides. Intrabar order is unknown, so a
    candle touching both levels counts as a stop-out. Without any touch the
    trade is closed at the last close at or before the horizon.
    """
    if trade.signal not in ("LONG", "SHORT"):
        raise InputValidationError(f"Paper trades must be LONG or SHORT (got {trade.signal}).")

    df = candles_to_frame(candles)
    window = df[(df["timestamp"] > trade.opened_at_ms) & (df["timestamp"] <= horizon_end_ms)]

    for row in window.itertuples(index=False):
        hit = first_hit(
            high=float(row.high),
            low=float(row.low),
            tp=trade.take_profit,
            sl=trade.stop_loss,
            side=trade.signal,
        )
        if hit == "both":
            return _outcome(trade, "FAILURE", trade.stop_loss, REASON_BOTH)
        if hit == "sl":
            return _outcome(trade, "FAILURE", trade.stop_loss, REASON_SL)
        if hit == "tp":
            return _outcome(trade, "SUCCESS", trade.take_profit, REASON_TP)

    if len(window):
        fallback = window.iloc[-1]
    else:
        before = df[df["timestamp"] <= horizon_end_ms]
        if not len(before):
            raise InsufficientDataError("Unable to evaluate simulation outcome because no candles were available.")
        fallback = before.iloc[-1]

    exit_price = float(fallback["close"])
    pct = pnl_pct(trade.signal, trade.entry, exit_price)
    if pct >= 0:
        return SimulationOutcome(status="SUCCESS", reason=REASON_HORIZON_WIN, exit_price=exit_price, pnl_pct=pct)
    return SimulationOutcome(status="FAILURE", reason=REASON_HORIZON_LOSS, exit_price=exit_price, pnl_pct=pct)
