from __future__ import annotations

import pandas as pd
import pytest

from perp_trader.backtest.simulation import (
    REASON_BOTH,
    REASON_HORIZON_LOSS,
    REASON_HORIZON_WIN,
    REASON_SL,
    REASON_TP,
    evaluate_paper_trade,
    first_hit,
)
from perp_trader.errors import InputValidationError, InsufficientDataError
from perp_trader.types import Candle, PaperTrade


MIN = 60_000
T0 = 1_700_000_000_000


def _c(i: int, high: float, low: float, close: float) -> Candle:
    return Candle(timestamp=T0 + i * MIN, open=close, high=high, low=low, close=close, volume=1.0)


def _trade(signal="LONG", entry=100.0, sl=99.0, tp=102.0) -> PaperTrade:
    return PaperTrade(signal=signal, entry=entry, stop_loss=sl, take_profit=tp, opened_at_ms=T0)


def test_long_take_profit_hit():
    candles = [_c(1, 101.0, 99.5, 100.5), _c(2, 102.5, 100.0, 102.0)]
    out = evaluate_paper_trade(_trade(), candles, T0 + 15 * MIN)
    assert out.status == "SUCCESS"
    assert out.reason == REASON_TP
    assert out.exit_price == 102.0
    assert out.pnl_pct == pytest.approx(2.0)


def test_long_stop_hit_before_target():
    candles = [_c(1, 100.5, 98.8, 99.0), _c(2, 103.0, 99.0, 102.5)]
    out = evaluate_paper_trade(_trade(), candles, T0 + 15 * MIN)
    assert out.status == "FAILURE"
    assert out.reason == REASON_SL
    assert out.exit_price == 99.0
    assert out.pnl_pct == pytest.approx(-1.0)


def test_same_candle_touch_counts_as_stop():
    candles = [_c(1, 103.0, 98.0, 101.0)]
    out = evaluate_paper_trade(_trade(), candles, T0 + 15 * MIN)
    assert out.status == "FAILURE"
    assert out.reason == REASON_BOTH
    assert out.exit_price == 99.0


def test_short_levels_are_mirrored():
    trade = _trade(signal="SHORT", sl=101.0, tp=98.0)
    out = evaluate_paper_trade(trade, [_c(1, 100.5, 97.5, 98.0)], T0 + 15 * MIN)
    assert out.status == "SUCCESS"
    assert out.pnl_pct == pytest.approx(2.0)

    out = evaluate_paper_trade(trade, [_c(1, 101.5, 99.5, 101.0)], T0 + 15 * MIN)
    assert out.status == "FAILURE"
    assert out.pnl_pct == pytest.approx(-1.0)


def test_horizon_close_without_touch():
    win = evaluate_paper_trade(_trade(), [_c(1, 100.8, 99.5, 100.2), _c(2, 101.0, 99.8, 100.6)], T0 + 15 * MIN)
    assert win.status == "SUCCESS"
    assert win.reason == REASON_HORIZON_WIN
    assert win.exit_price == 100.6
    assert win.pnl_pct == pytest.approx(0.6)

    loss = evaluate_paper_trade(_trade(), [_c(1, 100.3, 99.2, 99.6)], T0 + 15 * MIN)
    assert loss.status == "FAILURE"
    assert loss.reason == REASON_HORIZON_LOSS
    assert loss.pnl_pct == pytest.approx(-0.4)


def test_flat_exit_counts_as_success():
    out = evaluate_paper_trade(_trade(), [_c(1, 100.5, 99.5, 100.0)], T0 + 15 * MIN)
    assert out.status == "SUCCESS"
    assert out.pnl_pct == 0.0


def test_candles_outside_window_are_ignored():
    candles = [
        _c(0, 105.0, 95.0, 100.0),  # the entry candle itself
        _c(1, 100.5, 99.5, 100.3),
        _c(20, 105.0, 100.0, 104.0),  # after the horizon
    ]
    out = evaluate_paper_trade(_trade(), candles, T0 + 15 * MIN)
    assert out.reason == REASON_HORIZON_WIN
    assert out.exit_price == 100.3


def test_unsorted_input_is_scanned_in_time_order():
    candles = [_c(3, 103.0, 100.0, 102.0), _c(1, 100.5, 98.5, 99.0)]
    out = evaluate_paper_trade(_trade(), candles, T0 + 15 * MIN)
    assert out.reason == REASON_SL


def test_empty_window_falls_back_to_latest_candle_before_horizon():
    candles = [_c(-2, 100.5, 99.5, 99.7), _c(0, 100.4, 99.9, 100.1)]
    out = evaluate_paper_trade(_trade(), candles, T0 + 15 * MIN)
    assert out.exit_price == 100.1
    assert out.status == "SUCCESS"


def test_no_candles_raises():
    with pytest.raises(InsufficientDataError):
        evaluate_paper_trade(_trade(), [], T0 + 15 * MIN)
    with pytest.raises(InsufficientDataError):
        evaluate_paper_trade(_trade(), [_c(30, 101.0, 99.0, 100.0)], T0 + 15 * MIN)


def test_no_trade_is_rejected():
    trade = PaperTrade(signal="NO_TRADE", entry=100.0, stop_loss=100.0, take_profit=100.0, opened_at_ms=T0)  # type: ignore[arg-type]
    with pytest.raises(InputValidationError):
        evaluate_paper_trade(trade, [_c(1, 101.0, 99.0, 100.0)], T0 + 15 * MIN)


def test_accepts_frame_input():
    df = pd.DataFrame(
        {
            "timestamp": [T0 + 2 * MIN, T0 + MIN],
            "open": [100.0, 100.0],
            "high": [102.5, 100.5],
            "low": [100.0, 99.5],
            "close": [102.0, 100.2],
        }
    )
    out = evaluate_paper_trade(_trade(), df, T0 + 15 * MIN)
    assert out.reason == REASON_TP


def test_first_hit_labels():
    assert first_hit(high=102.0, low=99.5, tp=102.0, sl=99.0, side="LONG") == "tp"
    assert first_hit(high=101.0, low=99.0, tp=102.0, sl=99.0, side="LONG") == "sl"
    assert first_hit(high=101.0, low=99.5, tp=102.0, sl=99.0, side="LONG") == "none"
    assert first_hit(high=101.0, low=98.0, tp=98.0, sl=101.0, side="SHORT") == "both"
