from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional

from perp_trader.config import DEFAULT_WEIGHTS, ScoringWeights
from perp_trader.types import Direction, IndicatorSnapshot, PerpMarketSnapshot, Regime


@dataclass(frozen=True)
class ScoreContext:
    ind: IndicatorSnapshot
    perp: PerpMarketSnapshot
    price: float
    atr_pct: float
    bias: Optional[Direction]
    bias_label: str


@dataclass(frozen=True)
class Rule:
    when: Callable[[ScoreContext], bool]
    long_pts: int
    short_pts: int
    text: str
    choppy: bool = False


@dataclass(frozen=True)
class SignalScore:
    direction: Direction
    confidence: int
    regime: Regime
    rationale: tuple[str, ...]
    long_score: int
    short_score: int


def atr_pct_of(ind: IndicatorSnapshot) -> float:
    return ind.atr14 / max(ind.ema20, 1.0) * 100.0


def _always(_: ScoreContext) -> bool:
    return True


@lru_cache(maxsize=8)
def rule_table(w: ScoringWeights) -> tuple[tuple[Rule, ...], ...]:
    """One tuple per factor; the first matching rule of each factor applies."""
    rsi_bull_lo, rsi_bull_hi = w.rsi_bull_band
    rsi_bear_lo, rsi_bear_hi = w.rsi_bear_band
    return (
        (
            Rule(lambda c: c.ind.ema20 > c.ind.ema50, w.ema_trend, 0, "EMA20 is above EMA50 (bullish trend)."),
            Rule(_always, 0, w.ema_trend, "EMA20 is below EMA50 (bearish trend)."),
        ),
        (
            Rule(
                lambda c: c.ind.adx14 >= w.adx_strong and c.ind.ema20 >= c.ind.ema50,
                w.adx_trend,
                0,
                "ADX confirms a strong trend regime.",
            ),
            Rule(lambda c: c.ind.adx14 >= w.adx_strong, 0, w.adx_trend, "ADX confirms a strong trend regime."),
            Rule(lambda c: c.ind.adx14 < w.adx_choppy, 0, 0, "ADX is very low; market is likely choppy.", choppy=True),
            Rule(_always, 0, 0, "ADX indicates a moderate trend regime."),
        ),
        (
            Rule(
                lambda c: c.ind.macd_histogram > 0 and c.ind.macd > c.ind.macd_signal,
                w.macd_momentum,
                0,
                "MACD momentum is positive.",
            ),
            Rule(
                lambda c: c.ind.macd_histogram < 0 and c.ind.macd < c.ind.macd_signal,
                0,
                w.macd_momentum,
                "MACD momentum is negative.",
            ),
            Rule(_always, 0, 0, "MACD momentum is mixed."),
        ),
        (
            Rule(
                lambda c: rsi_bull_lo < c.ind.rsi14 < rsi_bull_hi,
                w.rsi_continuation,
                0,
                "RSI supports continuation to the upside.",
            ),
            Rule(
                lambda c: rsi_bear_lo < c.ind.rsi14 < rsi_bear_hi,
                0,
                w.rsi_continuation,
                "RSI supports continuation to the downside.",
            ),
            Rule(lambda c: c.ind.rsi14 >= w.rsi_overbought, 0, w.rsi_reversal, "RSI is overbought; upside may be exhausted."),
            Rule(lambda c: c.ind.rsi14 <= w.rsi_oversold, w.rsi_reversal, 0, "RSI is oversold; rebound risk is elevated."),
            Rule(_always, 0, 0, "RSI is neutral."),
        ),
        (
            Rule(
                lambda c: c.ind.stoch_rsi_k > c.ind.stoch_rsi_d and c.ind.stoch_rsi_k < w.stoch_rsi_upper,
                w.stoch_rsi_timing,
                0,
                "StochRSI timing is aligned for long continuation.",
            ),
            Rule(
                lambda c: c.ind.stoch_rsi_k < c.ind.stoch_rsi_d and c.ind.stoch_rsi_k > w.stoch_rsi_lower,
                0,
                w.stoch_rsi_timing,
                "StochRSI timing is aligned for short continuation.",
            ),
            Rule(_always, 0, 0, "StochRSI timing is neutral."),
        ),
        (
            Rule(lambda c: c.price >= c.ind.vwap, w.vwap_side, 0, "Price is above VWAP (intraday buyer control)."),
            Rule(_always, 0, w.vwap_side, "Price is below VWAP (intraday seller control)."),
        ),
        (
            Rule(lambda c: c.price > c.ind.bb_upper, 0, w.bollinger_stretch, "Price is stretched above the upper Bollinger band."),
            Rule(lambda c: c.price < c.ind.bb_lower, w.bollinger_stretch, 0, "Price is stretched below the lower Bollinger band."),
            Rule(_always, 0, 0, "Price is inside the Bollinger bands."),
        ),
        (
            Rule(
                lambda c: c.perp.funding_rate > w.funding_threshold and c.perp.funding_rate_avg > 0,
                0,
                w.funding_crowding,
                "Funding is persistently positive (long crowding risk).",
            ),
            Rule(
                lambda c: c.perp.funding_rate < -w.funding_threshold and c.perp.funding_rate_avg < 0,
                w.funding_crowding,
                0,
                "Funding is persistently negative (short crowding risk).",
            ),
            Rule(_always, 0, 0, "Funding is neutral."),
        ),
        (
            Rule(
                lambda c: c.perp.premium_pct > w.premium_threshold_pct,
                0,
                w.premium_crowding,
                "Mark trades at a premium to index (possible long overheating).",
            ),
            Rule(
                lambda c: c.perp.premium_pct < -w.premium_threshold_pct,
                w.premium_crowding,
                0,
                "Mark trades at a discount to index (possible short exhaustion).",
            ),
            Rule(_always, 0, 0, "Mark/index premium is balanced."),
        ),
        (
            Rule(lambda c: c.bias == "LONG", w.htf_bias, 0, "Higher-timeframe bias ({bias_label}) is bullish."),
            Rule(lambda c: c.bias == "SHORT", 0, w.htf_bias, "Higher-timeframe bias ({bias_label}) is bearish."),
        ),
        (
            Rule(
                lambda c: c.atr_pct < w.atr_pct_choppy,
                0,
                0,
                "ATR is very low for intraday; avoid chop-heavy entries.",
                choppy=True,
            ),
            Rule(
                lambda c: c.atr_pct < w.atr_pct_elevated,
                w.stable_volatility,
                w.stable_volatility,
                "ATR indicates controlled intraday volatility.",
            ),
            Rule(_always, 0, 0, "ATR indicates elevated volatility; execution risk rises."),
        ),
    )


def score_signal(
    indicators: IndicatorSnapshot,
    perp: PerpMarketSnapshot,
    last_price: float,
    *,
    bias_direction: Optional[Direction] = None,
    bias_label: Optional[str] = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> SignalScore:
    ctx = ScoreContext(
        ind=indicators,
        perp=perp,
        price=float(last_price),
        atr_pct=atr_pct_of(indicators),
        bias=bias_direction,
        bias_label=bias_label or "HTF",
    )

    long_score = 0
    short_score = 0
    regime: Regime = "TRADEABLE"
    rationale: list[str] = []
    for factor in rule_table(weights):
        for rule in factor:
            if not rule.when(ctx):
                continue
            long_score += rule.long_pts
            short_score += rule.short_pts
            if rule.choppy:
                regime = "CHOPPY"
            rationale.append(rule.text.format(bias_label=ctx.bias_label))
            break

    direction: Direction
    if long_score > short_score:
        direction = "LONG"
    elif short_score > long_score:
        direction = "SHORT"
    else:
        direction = "LONG" if indicators.ema20 >= indicators.ema50 else "SHORT"
        rationale.append("Scores are tied; trend direction used as tie-breaker.")

    diff = abs(long_score - short_score)
    if diff >= weights.strong_diff:
        confidence = min(100, weights.strong_base + diff)
    else:
        confidence = max(weights.weak_floor, weights.weak_base + diff)
        rationale.append("Indicator confluence is weak; confidence is reduced.")

    if regime == "CHOPPY":
        confidence = max(weights.confidence_floor, confidence - weights.choppy_penalty)
        rationale.append("Regime filter reduced confidence due to intraday chop risk.")

    # Stacks with the regime penalty above.
    vwap_dist_pct = abs(ctx.price - indicators.vwap) / max(indicators.vwap, 1.0) * 100.0
    if vwap_dist_pct < weights.vwap_proximity_pct:
        regime = "CHOPPY"
        confidence = max(weights.confidence_floor, confidence - weights.vwap_penalty)
        rationale.append("VWAP filter: price is too close to VWAP; no clear intraday edge.")

    return SignalScore(
        direction=direction,
        confidence=int(confidence),
        regime=regime,
        rationale=tuple(rationale),
        long_score=long_score,
        short_score=short_score,
    )
