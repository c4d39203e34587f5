from __future__ import annotations

from dataclasses import replace

from perp_trader.strategy.scoring import score_signal
from perp_trader.types import IndicatorSnapshot, PerpMarketSnapshot


PERP = PerpMarketSnapshot(
    symbol="BTC_USDC_PERP",
    funding_rate=0.0,
    funding_rate_avg=0.0,
    open_interest=1000.0,
    mark_price=50000.0,
    index_price=50000.0,
    premium_pct=0.0,
)

BULLISH = IndicatorSnapshot(
    rsi14=58.0,
    ema20=50500.0,
    ema50=50000.0,
    macd=20.0,
    macd_signal=10.0,
    macd_histogram=5.0,
    atr14=150.0,
    adx14=30.0,
    bb_upper=51000.0,
    bb_middle=50000.0,
    bb_lower=49000.0,
    stoch_rsi_k=60.0,
    stoch_rsi_d=50.0,
    vwap=50200.0,
)

CHOPPY = IndicatorSnapshot(
    rsi14=50.0,
    ema20=50001.0,
    ema50=50000.0,
    macd=0.0,
    macd_signal=0.0,
    macd_histogram=0.0,
    atr14=10.0,
    adx14=12.0,
    bb_upper=50020.0,
    bb_middle=50000.0,
    bb_lower=49980.0,
    stoch_rsi_k=50.0,
    stoch_rsi_d=50.0,
    vwap=50000.0,
)


def test_bullish_confluence_scores_long_with_full_confidence():
    s = score_signal(BULLISH, PERP, 50000.0)
    assert s.direction == "LONG"
    assert s.regime == "TRADEABLE"
    assert s.long_score == 66
    assert s.short_score == 13
    assert s.confidence == 100
    # one line per factor, no bias supplied
    assert len(s.rationale) == 10


def test_choppy_and_vwap_penalties_stack():
    s = score_signal(CHOPPY, PERP, 50000.0)
    assert s.direction == "LONG"
    assert s.regime == "CHOPPY"
    # 50 + 38 = 88, then -18 for chop and -12 for VWAP proximity
    assert s.confidence == 58
    assert any("Regime filter" in line for line in s.rationale)
    assert s.rationale[-1].startswith("VWAP filter")


def test_tie_breaks_toward_ema_order():
    ind = IndicatorSnapshot(
        rsi14=50.0,
        ema20=100.0,
        ema50=100.0,
        macd=0.5,
        macd_signal=0.2,
        macd_histogram=0.3,
        atr14=0.5,
        adx14=20.0,
        bb_upper=102.0,
        bb_middle=100.0,
        bb_lower=98.0,
        stoch_rsi_k=50.0,
        stoch_rsi_d=50.0,
        vwap=100.0,
    )
    s = score_signal(ind, PERP, 100.5)
    assert s.long_score == s.short_score == 31
    assert s.direction == "LONG"
    assert s.confidence == 45
    assert "Scores are tied; trend direction used as tie-breaker." in s.rationale
    assert "Indicator confluence is weak; confidence is reduced." in s.rationale


def test_higher_timeframe_bias_adds_named_line():
    up = score_signal(BULLISH, PERP, 50000.0, bias_direction="LONG", bias_label="15m")
    down = score_signal(BULLISH, PERP, 50000.0, bias_direction="SHORT", bias_label="15m")
    assert any("15m" in line and "bullish" in line for line in up.rationale)
    assert any("15m" in line and "bearish" in line for line in down.rationale)
    assert up.long_score - down.long_score == 16
    assert down.short_score - up.short_score == 16


def test_perp_crowding_is_contrarian():
    crowded_long = replace(PERP, funding_rate=0.0002, funding_rate_avg=0.0001, premium_pct=0.3)
    s = score_signal(BULLISH, crowded_long, 50000.0)
    base = score_signal(BULLISH, PERP, 50000.0)
    assert s.short_score - base.short_score == 8
    assert s.long_score == base.long_score


def test_low_adx_marks_choppy_without_points():
    ind = replace(BULLISH, adx14=10.0)
    s = score_signal(ind, PERP, 50000.0)
    assert s.regime == "CHOPPY"
    assert s.long_score == 56
    # diff 43 -> 93, minus the chop penalty
    assert s.confidence == 75


def test_scoring_is_deterministic():
    a = score_signal(CHOPPY, PERP, 50000.0, bias_direction="SHORT", bias_label="1h")
    b = score_signal(CHOPPY, PERP, 50000.0, bias_direction="SHORT", bias_label="1h")
    assert a == b


def test_confidence_stays_in_bounds():
    cases = [
        (BULLISH, 50000.0),
        (CHOPPY, 50000.0),
        (replace(CHOPPY, adx14=30.0), 50000.0),
        (replace(BULLISH, atr14=5.0, adx14=5.0, ema20=50000.0), 50200.0),
    ]
    for ind, price in cases:
        s = score_signal(ind, PERP, price)
        assert 25 <= s.confidence <= 100
