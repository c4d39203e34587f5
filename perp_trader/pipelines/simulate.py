from __future__ import annotations

import logging
from typing import Iterable, Optional

import pandas as pd

from perp_trader.backtest.simulation import evaluate_paper_trade
from perp_trader.errors import InputValidationError
from perp_trader.types import Candle, PaperTrade, Recommendation, SimulationOutcome


logger = logging.getLogger(__name__)

DEFAULT_HORIZON_MINUTES = 15


def paper_trade_from(rec: Recommendation, opened_at_ms: int) -> PaperTrade:
    if rec.signal == "NO_TRADE":
        raise InputValidationError("Cannot simulate a NO_TRADE recommendation.")
    return PaperTrade(
        signal=rec.signal,
        entry=rec.entry,
        stop_loss=rec.stop_loss,
        take_profit=rec.take_profit,
        opened_at_ms=int(opened_at_ms),
    )


def horizon_minutes_for(rec: Recommendation, default: int = DEFAULT_HORIZON_MINUTES) -> int:
    return int(rec.objective_horizon_minutes or default)


def simulate_recommendation(
    rec: Recommendation,
    *,
    opened_at_ms: int,
    candles: Iterable[Candle] | pd.DataFrame,
    horizon_minutes: Optional[int] = None,
) -> SimulationOutcome:
    """Evaluate ``rec`` as a paper trade over candles observed after it was issued."""
    trade = paper_trade_from(rec, opened_at_ms)
    minutes = horizon_minutes or horizon_minutes_for(rec)
    horizon_end_ms = trade.opened_at_ms + minutes * 60_000
    outcome = evaluate_paper_trade(trade, candles, horizon_end_ms)
    logger.info(
        "simulation pair=%s status=%s exit=%.4f pnl_pct=%.4f",
        rec.pair,
        outcome.status,
        outcome.exit_price,
        outcome.pnl_pct,
    )
    return outcome
